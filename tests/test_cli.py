"""
Tests for the pipeline-demo CLI.

The checks themselves are patched out; these tests cover option handling
and the exit code contract the Jenkins stages rely on.
"""

from unittest.mock import patch

from typer.testing import CliRunner

from pipeline_demo.checks import PlatformReport, Status, ValidationReport
from pipeline_demo.cli import app
from pipeline_demo.errors import ToolNotFoundError

runner = CliRunner()


def _platform_report(*statuses):
  report = PlatformReport(cluster_name="demo-cluster")
  for i, status in enumerate(statuses):
    report.add(f"check {i}", status, "detail")
  return report


@patch("pipeline_demo.cli.run_platform_check")
def test_check_cluster_success(mock_check):
  mock_check.return_value = _platform_report(Status.OK, Status.WARN)
  result = runner.invoke(app, ["check-cluster"])
  assert result.exit_code == 0, result.output
  assert "Platform check completed successfully" in result.output


@patch("pipeline_demo.cli.run_platform_check")
def test_check_cluster_failure_exits_1(mock_check):
  mock_check.return_value = _platform_report(Status.OK, Status.FAIL)
  result = runner.invoke(app, ["check-cluster"])
  assert result.exit_code == 1


@patch("pipeline_demo.cli.run_platform_check")
def test_check_cluster_overrides(mock_check):
  mock_check.return_value = _platform_report(Status.OK)
  runner.invoke(app, ["check-cluster", "--cluster-name", "other", "--region", "eu-west-1"])
  settings = mock_check.call_args.args[0]
  assert settings.eks_cluster_name == "other"
  assert settings.aws_default_region == "eu-west-1"


@patch("pipeline_demo.cli.run_manifest_validation")
def test_validate_manifests_writes_policies(mock_validate, tmp_path):
  seen = {}

  def fake_validation(settings, workdir, env=None, policy_dir=None):
    seen["policies"] = sorted(p.name for p in policy_dir.iterdir())
    return ValidationReport(rendered=str(workdir / "rendered-manifests.yaml"))

  mock_validate.side_effect = fake_validation
  result = runner.invoke(app, ["validate-manifests", "--chart-dir", str(tmp_path), "--env", "prod"])
  assert result.exit_code == 0, result.output
  assert mock_validate.call_args.kwargs["env"] == "prod"
  assert seen["policies"][0] == "disallow-latest-tag.yaml"
  assert mock_validate.call_args.args[0].chart_dir == tmp_path


@patch("pipeline_demo.cli.run_manifest_validation")
def test_validate_manifests_removes_its_workdir(mock_validate):
  mock_validate.return_value = ValidationReport(rendered="x")
  result = runner.invoke(app, ["validate-manifests"])
  assert result.exit_code == 0, result.output
  workdir = mock_validate.call_args.args[1]
  assert workdir.name.startswith("manifests-")
  assert not workdir.exists()


@patch("pipeline_demo.cli.run_manifest_validation")
def test_validate_manifests_without_policies(mock_validate):
  mock_validate.return_value = ValidationReport(rendered="x")
  runner.invoke(app, ["validate-manifests", "--no-policies"])
  assert mock_validate.call_args.kwargs["policy_dir"] is None


@patch("pipeline_demo.cli.run_manifest_validation", side_effect=ToolNotFoundError("helm"))
def test_validate_manifests_missing_tool_exits_1(mock_validate):
  result = runner.invoke(app, ["validate-manifests"])
  assert result.exit_code == 1
  assert "helm" in result.output


def test_export_policies(tmp_path):
  result = runner.invoke(app, ["export-policies", str(tmp_path / "out"), "--audit"])
  assert result.exit_code == 0, result.output
  files = sorted(p.name for p in (tmp_path / "out").iterdir())
  assert "require-run-as-non-root.yaml" in files
  assert "validationFailureAction: Audit" in (tmp_path / "out" / "require-run-as-non-root.yaml").read_text()


@patch("pipeline_demo.cli.demo_app.main")
def test_serve(mock_main):
  result = runner.invoke(app, ["serve", "--port", "9090"])
  assert result.exit_code == 0, result.output
  mock_main.assert_called_once_with(host="0.0.0.0", port=9090)
