"""Operator-facing output for install runs.

Pure presentation: nothing here changes what the engine does. Only phases that
actually ran are ever passed in, so the summary never lists work that was
skipped.
"""
from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .engine.models import PhaseResult, PhaseState

DASHBOARD_PROXY_URL = (
    "http://localhost:8001/api/v1/namespaces/kube-system/services/https:kubernetes-dashboard:/proxy/"
)


class Reporter:
    """Renders headers, status markers and the final summary."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def print_header(self, message: str, char: str = '=') -> None:
        self.console.print()
        self.console.print(escape(message), style="bold")
        self.console.print(char * len(message))

    def print_ok(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def print_fail(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {escape(message)}")

    def print_phases(self, results: Iterable[PhaseResult]) -> None:
        table = Table(title="Executed phases")
        table.add_column("Phase")
        table.add_column("Batches", justify="right")
        table.add_column("Result")
        for result in results:
            if result.state == PhaseState.COMPLETED:
                outcome = "[green]completed[/green]"
            else:
                outcome = f"[red]failed[/red] {escape(', '.join(result.failed_hosts))}"
            table.add_row(escape(result.phase), str(len(result.batches)), outcome)
        self.console.print(table)

    def print_summary(self, generated_assets_dir: str, ssh_user: str, ssh_key: str) -> None:
        kubeconfig = f"{generated_assets_dir}/kubeconfig"
        self.console.print("\nThe cluster was installed successfully!\n", style="green")
        self.console.print(
            "- To use the generated kubeconfig file with kubectl:"
            f"\n    * use \"kubectl --kubeconfig {kubeconfig}\""
            f"\n    * or copy the config file \"cp {kubeconfig} ~/.kube/config\"",
            style="blue",
        )
        self.console.print(
            f"- To view the Kubernetes dashboard: \"kubectl --kubeconfig {kubeconfig} proxy\" and open"
            f"\n    {DASHBOARD_PROXY_URL}",
            style="blue",
        )
        self.console.print(f"- To SSH into a cluster node: \"ssh -i {ssh_key} {ssh_user}@<node ip>\"", style="blue")
        self.console.print(f"- To check node readiness: \"provctl status --kubeconfig {kubeconfig}\"", style="blue")
