"""
Unit tests for the Helm chart manifest validation.

helm, kubeconform and kyverno are never executed: shutil.which and
subprocess.run are patched and the fake runner answers per tool.
"""

import subprocess
from unittest.mock import patch

import pytest

from pipeline_demo.checks import Status
from pipeline_demo.checks.manifests import run_manifest_validation, values_files
from pipeline_demo.errors import ToolNotFoundError

RENDERED = "apiVersion: v1\nkind: Service\nmetadata:\n  name: demo\n"


@pytest.fixture
def chart(settings):
  chart_dir = settings.chart_dir
  (chart_dir / "templates").mkdir(parents=True)
  (chart_dir / "values.yaml").write_text("replicaCount: 1\n")
  (chart_dir / "values-staging.yaml").write_text("replicaCount: 2\n")
  (chart_dir / "templates" / "deployment.yaml").write_text("metadata:\n  name: {{ .Release.Name }}\n")
  (chart_dir / "templates" / "networkpolicy.yaml").write_text("apiVersion: networking.k8s.io/v1\nkind: NetworkPolicy\n")
  return chart_dir


class FakeRunner:
  def __init__(self, fail=()):
    self.fail = set(fail)
    self.calls = []

  def __call__(self, cmd, **kwargs):
    self.calls.append(cmd)
    key = cmd[0]
    if cmd[0] == "kubeconform" and "-summary" not in cmd:
      key = "kubeconform-file"
    if key in self.fail:
      return subprocess.CompletedProcess(cmd, 1, stdout="", stderr=f"{key} failed")
    stdout = RENDERED if cmd[0] == "helm" else "Summary: 2 resources found - Valid: 2, Invalid: 0"
    return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")


def _validate(settings, tmp_path, runner, **kwargs):
  with patch("pipeline_demo.checks.manifests.shutil.which", return_value="/usr/local/bin/tool"), \
       patch("pipeline_demo.checks.manifests.subprocess.run", side_effect=runner):
    return run_manifest_validation(settings, workdir=tmp_path, **kwargs)


def test_valid_chart_passes(settings, chart, tmp_path):
  runner = FakeRunner()
  report = _validate(settings, tmp_path, runner, env="staging")
  assert report.ok
  assert (tmp_path / "rendered-manifests.yaml").read_text() == RENDERED
  helm_cmd = runner.calls[0]
  assert helm_cmd[:4] == ["helm", "template", "test-release", str(chart)]
  assert helm_cmd[4:] == ["--values", str(chart / "values.yaml"), "--values", str(chart / "values-staging.yaml")]
  assert runner.calls[1] == ["kubeconform", "-summary", "-output", "text", str(tmp_path / "rendered-manifests.yaml")]


def test_templated_files_are_skipped(settings, chart, tmp_path):
  runner = FakeRunner()
  report = _validate(settings, tmp_path, runner)
  by_name = {c.name: c for c in report.checks}
  assert by_name["templates/deployment.yaml"].detail.startswith("skipped")
  assert by_name["templates/networkpolicy.yaml"].detail == "valid"
  file_checks = [cmd for cmd in runner.calls if cmd[0] == "kubeconform" and "-summary" not in cmd]
  assert file_checks == [["kubeconform", str(chart / "templates" / "networkpolicy.yaml")]]


def test_render_failure_stops(settings, chart, tmp_path):
  runner = FakeRunner(fail={"helm"})
  report = _validate(settings, tmp_path, runner)
  assert not report.ok
  assert [c.name for c in report.checks] == ["helm template"]
  assert len(runner.calls) == 1


def test_kubeconform_failure_fails(settings, chart, tmp_path):
  report = _validate(settings, tmp_path, FakeRunner(fail={"kubeconform"}))
  assert not report.ok
  assert report.failures[0].name == "kubeconform"


def test_single_file_failure_is_a_warning(settings, chart, tmp_path):
  report = _validate(settings, tmp_path, FakeRunner(fail={"kubeconform-file"}))
  assert report.ok
  assert [w.name for w in report.warnings] == ["templates/networkpolicy.yaml"]


def test_policy_violation_fails(settings, chart, tmp_path):
  policy_dir = tmp_path / "policies"
  runner = FakeRunner(fail={"kyverno"})
  report = _validate(settings, tmp_path, runner, policy_dir=policy_dir)
  assert not report.ok
  assert report.failures[0].name == "kyverno"
  assert runner.calls[-1] == ["kyverno", "apply", str(policy_dir), "--resource", str(tmp_path / "rendered-manifests.yaml")]


def test_policies_pass(settings, chart, tmp_path):
  report = _validate(settings, tmp_path, FakeRunner(), policy_dir=tmp_path / "policies")
  assert report.ok
  assert report.checks[-1].name == "kyverno"


def test_missing_tool_raises(settings, chart, tmp_path):
  with patch("pipeline_demo.checks.manifests.shutil.which", side_effect=lambda t: None if t == "kubeconform" else "/bin/" + t):
    with pytest.raises(ToolNotFoundError) as excinfo:
      run_manifest_validation(settings, workdir=tmp_path)
  assert excinfo.value.tool == "kubeconform"


def test_missing_environment_values_fall_back_to_base(chart):
  assert values_files(chart, "prod") == [chart / "values.yaml"]
  assert values_files(chart, None) == [chart / "values.yaml"]
