"""
Write a starter plan file.
"""
from pathlib import Path

import typer

from provctl.config import Config
from provctl.modules.plan import FilePlanner, starter_plan


def plan(
    plan_file: Path = typer.Option(Config.PLAN_FILE, "--plan-file", "-f", help="Where to write the plan file"),
    name: str = typer.Option("provctl-cluster", "--name", help="Cluster name"),
    etcd: int = typer.Option(3, "--etcd", min=1, help="Number of etcd nodes"),
    master: int = typer.Option(2, "--master", min=1, help="Number of master nodes"),
    worker: int = typer.Option(3, "--worker", min=1, help="Number of worker nodes"),
    storage: int = typer.Option(0, "--storage", min=0, help="Number of storage nodes"),
):
    """Generate a plan file with placeholder nodes to fill in."""
    planner = FilePlanner(plan_file)
    if planner.exists():
        typer.echo(f"❌ Plan file {str(plan_file)!r} already exists, refusing to overwrite it", err=True)
        raise typer.Exit(1)

    planner.write(starter_plan(name=name, etcd=etcd, master=master, worker=worker, storage=storage))
    typer.echo(f"✅ Wrote plan file to {plan_file}")
    typer.echo("Edit the node hosts and IPs, then run \"provctl apply\"")
