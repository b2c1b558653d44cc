import pytest

from pipeline_demo.config import Settings


@pytest.fixture
def settings(tmp_path):
  return Settings(
    environment="staging",
    app_version="2.3.4",
    eks_cluster_name="demo-cluster",
    aws_default_region="us-east-1",
    chart_dir=tmp_path / "helm-chart",
  )
