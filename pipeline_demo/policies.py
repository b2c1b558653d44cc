"""Kyverno policy catalogue.

The platform layer installs these as ClusterPolicies, and the manifest
validation stage applies the same documents to the rendered chart with
the kyverno CLI, so a chart that passes the pipeline is admitted.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

logger = logging.getLogger(__name__)

VALIDATION_ACTIONS = ("Enforce", "Audit")


@dataclass(frozen=True)
class Rule:
  name: str
  message: str
  pattern: dict


@dataclass(frozen=True)
class Policy:
  name: str
  title: str
  description: str
  kinds: Tuple[str, ...]
  rules: Tuple[Rule, ...]
  severity: str = "medium"
  annotations: Dict[str, str] = field(default_factory=dict)

  def document(self, action: str = "Enforce") -> dict:
    if action not in VALIDATION_ACTIONS:
      raise ValueError(f"validation failure action must be one of {VALIDATION_ACTIONS}, got {action!r}")
    return {
      "apiVersion": "kyverno.io/v1",
      "kind": "ClusterPolicy",
      "metadata": {
        "name": self.name,
        "annotations": {
          "policies.kyverno.io/title": self.title,
          "policies.kyverno.io/severity": self.severity,
          "policies.kyverno.io/description": self.description,
          **self.annotations,
        },
      },
      "spec": {
        "validationFailureAction": action,
        "background": True,
        "rules": [
          {
            "name": rule.name,
            "match": {"any": [{"resources": {"kinds": list(self.kinds)}}]},
            "validate": {"message": rule.message, "pattern": rule.pattern},
          }
          for rule in self.rules
        ],
      },
    }


CATALOGUE: Tuple[Policy, ...] = (
  Policy(
    name="disallow-latest-tag",
    title="Disallow Latest Tag",
    description="Images must be pinned to an explicit tag other than 'latest'.",
    kinds=("Pod",),
    rules=(
      Rule(
        name="require-image-tag",
        message="An image tag is required.",
        pattern={"spec": {"containers": [{"image": "*:*"}]}},
      ),
      Rule(
        name="validate-image-tag",
        message="Using a mutable image tag e.g. 'latest' is not allowed.",
        pattern={"spec": {"containers": [{"image": "!*:latest"}]}},
      ),
    ),
  ),
  Policy(
    name="require-run-as-non-root",
    title="Require runAsNonRoot",
    description="Pods must run as a non-root user.",
    kinds=("Pod",),
    severity="high",
    rules=(
      Rule(
        name="run-as-non-root",
        message="Running as root is not allowed. Set spec.securityContext.runAsNonRoot to true.",
        pattern={"spec": {"securityContext": {"runAsNonRoot": True}}},
      ),
    ),
  ),
  Policy(
    name="require-resource-limits",
    title="Require Limits",
    description="Containers must declare CPU and memory limits.",
    kinds=("Pod",),
    rules=(
      Rule(
        name="validate-resources",
        message="CPU and memory resource limits are required.",
        pattern={"spec": {"containers": [{"resources": {"limits": {"memory": "?*", "cpu": "?*"}}}]}},
      ),
    ),
  ),
  Policy(
    name="require-app-labels",
    title="Require Labels",
    description="Workloads and services must carry the app.kubernetes.io/name label.",
    kinds=("Deployment", "Service"),
    severity="low",
    rules=(
      Rule(
        name="check-for-labels",
        message="The label `app.kubernetes.io/name` is required.",
        pattern={"metadata": {"labels": {"app.kubernetes.io/name": "?*"}}},
      ),
    ),
  ),
)


def cluster_policies(action: str = "Enforce") -> List[dict]:
  return [policy.document(action) for policy in CATALOGUE]


def write_policies(directory: Path, action: str = "Enforce") -> List[Path]:
  """Write one YAML file per policy into `directory` and return their paths."""
  directory = Path(directory)
  directory.mkdir(parents=True, exist_ok=True)
  paths = []
  for document in cluster_policies(action):
    path = directory / f"{document['metadata']['name']}.yaml"
    path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    logger.debug("wrote policy %s", path)
    paths.append(path)
  return paths
