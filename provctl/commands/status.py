"""
Show node readiness of an installed cluster.
"""
import os

import typer

from provctl.config import Config
from provctl.modules import status as cluster_status


def status(
    kubeconfig: str = typer.Option(
        os.path.join(Config.GENERATED_ASSETS_DIR, "kubeconfig"), "--kubeconfig",
        help="Kubeconfig generated by apply",
    ),
):
    """Show the readiness of every cluster node."""
    if not os.path.exists(kubeconfig):
        typer.echo(f"❌ kubeconfig not found at {kubeconfig}, run \"provctl apply\" first", err=True)
        raise typer.Exit(1)

    result = cluster_status.run(kubeconfig)
    if "error" in result:
        typer.echo(f"❌ Failed to reach the API server: {result['error']}", err=True)
        raise typer.Exit(1)

    typer.echo(f"📡 Nodes in {kubeconfig}:")
    for node in result["nodes"]:
        marker = "✅" if node["ready"] else "❌"
        typer.echo(f"  {marker} {node['name']}: {', '.join(node['conditions']) or 'no conditions'}")
    if not result["ready"]:
        raise typer.Exit(1)
