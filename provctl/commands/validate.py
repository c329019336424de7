"""
Validate a plan file without changing any node.
"""
from pathlib import Path

import typer

from provctl.config import Config
from provctl.errors import ProvisionError
from provctl.modules.plan import FilePlanner
from provctl.modules.reporter import Reporter
from provctl.modules.validate import Validator


def validate(
    plan_file: Path = typer.Option(Config.PLAN_FILE, "--plan-file", "-f", help="Path to the installation plan file"),
    skip_preflight: bool = typer.Option(False, "--skip-preflight", help="Only check the plan, do not contact nodes"),
):
    """Validate the plan file and run pre-flight checks against its nodes."""
    reporter = Reporter()
    try:
        plan = FilePlanner(plan_file).read()
        report = Validator(reporter=reporter).validate(plan, skip_preflight=skip_preflight)
    except ProvisionError as e:
        typer.echo(f"❌ error validating plan: {e}", err=True)
        raise typer.Exit(1)

    if report.warnings:
        typer.echo(f"⚠️  Plan is valid with {len(report.warnings)} warning(s)")
    else:
        typer.echo("✅ Plan is valid")
