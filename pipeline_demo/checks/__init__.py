"""Pipeline stage checks and their result types."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Status(str, Enum):
  OK = "OK"
  WARN = "WARN"
  FAIL = "FAIL"


class CheckResult(BaseModel):
  name: str
  status: Status
  detail: str = ""


class Report(BaseModel):
  checks: List[CheckResult] = Field(default_factory=list)

  def add(self, name: str, status: Status, detail: str = "") -> CheckResult:
    result = CheckResult(name=name, status=status, detail=detail)
    self.checks.append(result)
    return result

  @property
  def ok(self) -> bool:
    # WARN is informational; only FAIL breaks the stage
    return all(check.status != Status.FAIL for check in self.checks)

  @property
  def failures(self) -> List[CheckResult]:
    return [check for check in self.checks if check.status == Status.FAIL]

  @property
  def warnings(self) -> List[CheckResult]:
    return [check for check in self.checks if check.status == Status.WARN]


class PlatformReport(Report):
  cluster_name: str


class ValidationReport(Report):
  rendered: str = ""
