"""Kubernetes manifest validation for the Helm chart.

The chart is rendered with `helm template` and the result is validated
with kubeconform. Plain template files (no Helm directives) are also
validated one by one; a failure there is only a warning. When a policy
directory is given the rendered manifests are run through `kyverno apply`.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from pipeline_demo.checks import Status, ValidationReport
from pipeline_demo.config import Settings
from pipeline_demo.errors import ToolNotFoundError

logger = logging.getLogger(__name__)

HELM_DIRECTIVE = "{{"


def require_tools(*tools: str) -> None:
  for tool in tools:
    if shutil.which(tool) is None:
      raise ToolNotFoundError(tool)


def _run(cmd: List[str]) -> subprocess.CompletedProcess:
  logger.debug("running %s", " ".join(cmd))
  return subprocess.run(cmd, capture_output=True, text=True, check=False)


def _tail(proc: subprocess.CompletedProcess) -> str:
  return (proc.stderr or proc.stdout or "").strip()


def values_files(chart_dir: Path, env: Optional[str] = None) -> List[Path]:
  files = [chart_dir / "values.yaml"]
  if env:
    env_values = chart_dir / f"values-{env}.yaml"
    if env_values.is_file():
      files.append(env_values)
    else:
      logger.warning("no %s, rendering with base values only", env_values.name)
  return files


def render_chart(settings: Settings, env: Optional[str], output: Path) -> subprocess.CompletedProcess:
  cmd = ["helm", "template", settings.helm_release, str(settings.chart_dir)]
  for path in values_files(settings.chart_dir, env):
    cmd += ["--values", str(path)]
  proc = _run(cmd)
  if proc.returncode == 0:
    output.write_text(proc.stdout, encoding="utf-8")
  return proc


def run_manifest_validation(
    settings: Settings,
    workdir: Path,
    env: Optional[str] = None,
    policy_dir: Optional[Path] = None,
) -> ValidationReport:
  tools = ["helm", "kubeconform"] + (["kyverno"] if policy_dir else [])
  require_tools(*tools)

  rendered = Path(workdir) / "rendered-manifests.yaml"
  report = ValidationReport(rendered=str(rendered))

  # 1. Render
  proc = render_chart(settings, env, rendered)
  if proc.returncode != 0:
    report.add("helm template", Status.FAIL, _tail(proc))
    return report
  report.add("helm template", Status.OK, "Helm chart rendered successfully")

  # 2. Rendered manifests against the Kubernetes schemas
  proc = _run(["kubeconform", "-summary", "-output", "text", str(rendered)])
  if proc.returncode != 0:
    report.add("kubeconform", Status.FAIL, _tail(proc))
    return report
  report.add("kubeconform", Status.OK, (proc.stdout or "").strip() or "All Kubernetes manifests are valid")

  # 3. Individual template files
  templates = sorted((Path(settings.chart_dir) / "templates").glob("*.yaml"))
  for template in templates:
    name = f"templates/{template.name}"
    if HELM_DIRECTIVE in template.read_text(encoding="utf-8"):
      report.add(name, Status.OK, "skipped (contains Helm templates)")
      continue
    proc = _run(["kubeconform", str(template)])
    if proc.returncode != 0:
      report.add(name, Status.WARN, f"Validation failed: {_tail(proc)}")
    else:
      report.add(name, Status.OK, "valid")

  # 4. Admission policies
  if policy_dir:
    proc = _run(["kyverno", "apply", str(policy_dir), "--resource", str(rendered)])
    if proc.returncode != 0:
      report.add("kyverno", Status.FAIL, _tail(proc))
      return report
    report.add("kyverno", Status.OK, "All policies passed")

  return report
