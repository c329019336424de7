"""
Apply a plan file to create or upgrade a Kubernetes cluster.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import typer

from provctl.config import Config
from provctl.errors import ProvisionError
from provctl.modules.engine.executor import Executor, new_executor
from provctl.modules.engine.models import OUTPUT_FORMATS, ExecutorOptions
from provctl.modules.kubeconfig import generate_kubeconfig
from provctl.modules.plan import FilePlanner, Planner
from provctl.modules.reporter import Reporter
from provctl.modules.validate import Validator
from provctl.utils import backup_directory, backup_path

logger = logging.getLogger("provctl.apply")

HELM_PLAY = "_helm.yaml"

# Error context per optional play, as shown to the operator
PLAY_ERRORS = {
    HELM_PLAY: "error configuring Helm RBAC",
    "_heapster.yaml": "error installing heapster",
}


class ApplyCommand:
    """Runs the full apply flow; every stage failure is re-raised with its context."""

    def __init__(self, planner: Planner, validator: Validator, executor: Executor, reporter: Reporter,
                 options: ExecutorOptions, home_dir: Optional[Path] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.planner = planner
        self.validator = validator
        self.executor = executor
        self.reporter = reporter
        self.options = options
        self.home_dir = Path(home_dir) if home_dir is not None else Path.home()
        self.clock = clock

    def _backup_helm_dir(self) -> None:
        helm_dir = self.home_dir / ".helm"
        try:
            backed_up = backup_directory(helm_dir, backup_path(helm_dir, self.clock()))
        except OSError as e:
            raise ProvisionError(f"error preparing Helm client: {e}") from e
        if backed_up:
            self.reporter.print_ok(f"Backed up {str(helm_dir)!r} directory")

    def run(self) -> None:
        try:
            plan = self.planner.read()
        except ProvisionError as e:
            raise ProvisionError(f"error reading plan file: {e}") from e

        try:
            self.validator.validate(plan, skip_preflight=self.options.skip_preflight)
        except ProvisionError as e:
            raise ProvisionError(f"error validating plan: {e}") from e

        try:
            self.executor.generate_certificates(plan)
        except ProvisionError as e:
            raise ProvisionError(f"error installing: {e}") from e

        self.reporter.print_header("Generating Kubeconfig File", '=')
        try:
            generate_kubeconfig(plan, self.options.generated_assets_dir)
        except (OSError, ValueError) as e:
            raise ProvisionError(f"error generating kubeconfig file: {e}") from e
        self.reporter.print_ok(f"Generated kubeconfig file in the {self.options.generated_assets_dir!r} directory")

        try:
            self.executor.install(plan)
        except ProvisionError as e:
            raise ProvisionError(f"error installing: {e}") from e

        for phase in self.executor.optional_phases(plan):
            self.reporter.print_header(phase.name, '=')
            if phase.play == HELM_PLAY:
                self._backup_helm_dir()
            try:
                self.executor.run_play(phase.play, plan)
            except ProvisionError as e:
                raise ProvisionError(f"{PLAY_ERRORS[phase.play]}: {e}") from e

        try:
            self.executor.run_smoke_test(plan)
        except ProvisionError as e:
            raise ProvisionError(f"error running smoke test: {e}") from e

        self.reporter.print_phases(self.executor.executed())
        self.reporter.print_summary(
            self.options.generated_assets_dir,
            ssh_user=plan.cluster.ssh.user,
            ssh_key=plan.cluster.ssh.ssh_key,
        )


def apply(
    plan_file: Path = typer.Option(
        Config.PLAN_FILE, "--plan-file", "-f", help="Path to the installation plan file",
    ),
    generated_assets_dir: str = typer.Option(
        Config.GENERATED_ASSETS_DIR, "--generated-assets-dir",
        help="Directory where assets generated during the installation are stored",
    ),
    restart_services: bool = typer.Option(
        False, "--restart-services", help="Force restart cluster services (use with care)",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging from the installation"),
    output: str = typer.Option(
        "simple", "--output", "-o", help=f"Installation output format ({'|'.join(OUTPUT_FORMATS)})",
    ),
    skip_preflight: bool = typer.Option(
        False, "--skip-preflight", help="Skip pre-flight checks, useful when re-running apply",
    ),
):
    """Apply your plan file to create a Kubernetes cluster."""
    try:
        options = ExecutorOptions(
            generated_assets_dir=generated_assets_dir,
            restart_services=restart_services,
            verbose=verbose,
            output_format=output,
            skip_preflight=skip_preflight,
        )
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    reporter = Reporter()
    command = ApplyCommand(
        planner=FilePlanner(plan_file),
        validator=Validator(reporter=reporter),
        executor=new_executor(options, Config.PLAYBOOK_DIR, reporter=reporter),
        reporter=reporter,
        options=options,
    )
    try:
        command.run()
    except ProvisionError as e:
        logger.debug("apply failed", exc_info=True)
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
