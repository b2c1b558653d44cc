"""Runtime settings for the demo service and the pipeline checks.

Values come from environment variables (the Jenkins agent and the
container both export them) with an optional `.env` file for local runs.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pipeline_demo import __version__


class Settings(BaseSettings):
  model_config = SettingsConfigDict(
    extra="ignore",
    case_sensitive=False,
    env_file=".env",
    env_file_encoding="utf-8",
  )

  environment: str = Field(
    default="unknown",
    description="Deployment environment reported by /info (dev, staging, prod).",
  )
  app_version: str = Field(default=__version__, min_length=1)
  port: int = Field(default=8080, ge=1, le=65535)

  eks_cluster_name: str = Field(default="demo-cluster", min_length=1)
  aws_default_region: str = Field(default="us-east-1", min_length=1)
  kubeconfig: Optional[str] = Field(
    default=None,
    description="Path to a kubeconfig; falls back to ~/.kube/config, then in-cluster config.",
  )

  helm_release: str = Field(default="test-release", min_length=1)
  chart_dir: Path = Field(default=Path("helm-chart"))
