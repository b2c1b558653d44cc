import json
import pulumi
import pulumi_aws as aws
from typing import Optional

def lifecycle_policy(untagged_days: int = 14, keep_tagged: int = 30) -> str:
  """ECR lifecycle rules: expire untagged images, cap the number of tagged ones."""
  return json.dumps({
    "rules": [
      {
        "rulePriority": 1,
        "description": f"Expire untagged images after {untagged_days} days",
        "selection": {
          "tagStatus": "untagged",
          "countType": "sinceImagePushed",
          "countUnit": "days",
          "countNumber": untagged_days,
        },
        "action": {"type": "expire"},
      },
      {
        "rulePriority": 2,
        "description": f"Keep the last {keep_tagged} tagged images",
        "selection": {
          "tagStatus": "any",
          "countType": "imageCountMoreThan",
          "countNumber": keep_tagged,
        },
        "action": {"type": "expire"},
      },
    ]
  })

def create_registry(
    name: str,
    tags: Optional[dict] = None,
    untagged_days: int = 14,
    keep_tagged: int = 30,
) -> aws.ecr.Repository:
  if tags is None:
    tags = {}

  registry = aws.ecr.Repository(f"{name}-registry",
    name=name,
    force_delete=True,                  # Cleanup on destroy
    image_tag_mutability="IMMUTABLE",   # Jenkins pushes one tag per build; never overwrite
    image_scanning_configuration=aws.ecr.RepositoryImageScanningConfigurationArgs(
      scan_on_push=True
    ),
    tags=tags
  )

  aws.ecr.LifecyclePolicy(f"{name}-lifecycle",
    repository=registry.name,
    policy=lifecycle_policy(untagged_days, keep_tagged),
  )

  pulumi.export("ecr_registry_url", registry.repository_url)

  return registry
