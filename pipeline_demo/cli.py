"""Command line entry point used by the Jenkins stages."""

import logging
import tempfile
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pipeline_demo import app as demo_app
from pipeline_demo.checks import Report, Status
from pipeline_demo.checks.manifests import run_manifest_validation
from pipeline_demo.checks.platform import run_platform_check
from pipeline_demo.config import Settings
from pipeline_demo.errors import PipelineDemoError
from pipeline_demo.policies import write_policies

app = typer.Typer(no_args_is_help=True, help="CI/CD pipeline demo: platform checks, manifest validation, demo service.")

_console = Console()

_STATUS_STYLE = {
  Status.OK: "green",
  Status.WARN: "yellow",
  Status.FAIL: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")) -> None:
  logging.basicConfig(
    level=logging.DEBUG if verbose else logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=_console, show_path=False)],
  )


def _print_report(title: str, report: Report) -> None:
  table = Table(title=title)
  table.add_column("Check", style="bright_green", no_wrap=True)
  table.add_column("Status")
  table.add_column("Details", style="dim")
  for check in report.checks:
    style = _STATUS_STYLE[check.status]
    table.add_row(check.name, f"[{style}]{check.status.value}[/{style}]", check.detail)
  _console.print(table)


def _finish(report: Report, success: str) -> None:
  if report.ok:
    _console.print(f"[green]{success}[/green]")
    return
  for failure in report.failures:
    _console.print(f"[red]ERROR:[/red] {failure.name}: {failure.detail}")
  raise typer.Exit(code=1)


@app.command("check-cluster")
def check_cluster(
  cluster_name: Optional[str] = typer.Option(None, "--cluster-name", help="Overrides EKS_CLUSTER_NAME."),
  region: Optional[str] = typer.Option(None, "--region", help="Overrides AWS_DEFAULT_REGION."),
) -> None:
  """Verify the EKS cluster, its node groups, nodes and system pods."""

  settings = Settings()
  overrides = {}
  if cluster_name:
    overrides["eks_cluster_name"] = cluster_name
  if region:
    overrides["aws_default_region"] = region
  if overrides:
    settings = settings.model_copy(update=overrides)

  try:
    report = run_platform_check(settings)
  except PipelineDemoError as exc:
    _console.print(f"[red]ERROR:[/red] {exc}")
    raise typer.Exit(code=1)

  _print_report(f"EKS Cluster Platform Check: {report.cluster_name}", report)
  _finish(report, "Platform check completed successfully")


@app.command("validate-manifests")
def validate_manifests(
  chart_dir: Optional[Path] = typer.Option(None, "--chart-dir", help="Overrides CHART_DIR."),
  env: Optional[str] = typer.Option(None, "--env", help="Also apply values-<env>.yaml."),
  policies: bool = typer.Option(True, "--policies/--no-policies", help="Run the Kyverno policies against the chart."),
) -> None:
  """Render the Helm chart and validate the manifests."""

  settings = Settings()
  if chart_dir:
    settings = settings.model_copy(update={"chart_dir": chart_dir})

  # Rendered manifests and policy files live only for the duration of the run
  with tempfile.TemporaryDirectory(prefix="manifests-") as tmp:
    workdir = Path(tmp)
    policy_dir = None
    if policies:
      policy_dir = workdir / "policies"
      write_policies(policy_dir)

    try:
      report = run_manifest_validation(settings, workdir, env=env, policy_dir=policy_dir)
    except PipelineDemoError as exc:
      _console.print(f"[red]ERROR:[/red] {exc}")
      raise typer.Exit(code=1)

    _print_report("Kubernetes Manifest Validation", report)
  _finish(report, "Validation completed successfully")


@app.command("export-policies")
def export_policies(
  out_dir: Path = typer.Argument(..., help="Directory to write ClusterPolicy YAML files to."),
  audit: bool = typer.Option(False, "--audit", help="Audit instead of Enforce."),
) -> None:
  """Write the Kyverno ClusterPolicies as YAML files."""

  paths = write_policies(out_dir, action="Audit" if audit else "Enforce")
  for path in paths:
    _console.print(str(path))


@app.command()
def serve(
  host: str = typer.Option("0.0.0.0", "--host"),
  port: Optional[int] = typer.Option(None, "--port", help="Overrides PORT."),
) -> None:
  """Run the demo HTTP service."""

  demo_app.main(host=host, port=port)


if __name__ == "__main__":
  app()
