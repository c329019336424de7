"""Cluster installation engine.

``PlanExecutor`` sequences the install: certificates, the fixed list of core
phases, optional feature plays and the smoke test. For each phase it decides
whether the phase applies, splits the target hosts into rolling batches,
reconciles long-lived services during upgrades and stops the run on the first
fatal failure. Nothing is retried or rolled back here; the phases are built
so the operator can simply run the command again.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from ...errors import (
    CertificateGenerationFailed,
    PhaseExecutionFailed,
    SmokeTestFailed,
)
from ..certificates import CertificateAuthority, CertificateReport
from ..plan.models import Plan
from ..reporter import Reporter
from .backend import AnsibleBackend, Backend, hosts_failed
from .batching import FULL_SERIAL, partition
from .models import ExecutorOptions, ModeFlags, PhaseResult, PhaseState, RunRecord
from .phases import (
    CORE_PHASES,
    OPTIONAL_PHASES,
    SMOKE_TEST,
    Phase,
    mode_flags,
    optional_phase,
    select_hosts,
    select_phases,
)
from .reconcile import Action, ProbeFailed, probe, reconcile

logger = logging.getLogger("provctl.executor")

CERTIFICATES_PHASE = "Generating Cluster Certificates"


class Executor:
    """Operations ``apply`` drives, each one blocking and reporting a single error."""

    def generate_certificates(self, plan: Plan) -> None:
        raise NotImplementedError

    def install(self, plan: Plan) -> None:
        raise NotImplementedError

    def run_play(self, name: str, plan: Plan) -> None:
        raise NotImplementedError

    def run_smoke_test(self, plan: Plan) -> None:
        raise NotImplementedError

    def optional_phases(self, plan: Plan) -> List[Phase]:
        """Feature plays that apply to this run, in the order they are run."""
        raise NotImplementedError

    def executed(self) -> List[PhaseResult]:
        """Phases that actually ran, for the final report."""
        return []


def build_extra_vars(plan: Plan, options: ExecutorOptions, flags: ModeFlags, phase: Phase) -> Dict[str, Any]:
    """Variables handed to every play."""
    assets = Path(options.generated_assets_dir).absolute()
    return {
        "play_name": phase.name,
        "cluster_name": plan.cluster.name,
        "upgrading": flags.upgrading,
        "restart_services": flags.restart_services,
        "allow_package_installation": flags.allow_package_installation,
        "disconnected_installation": flags.disconnected_installation,
        "deploy_internal_docker_registry": plan.features.internal_registry.enabled,
        "configure_docker_with_private_registry": flags.private_registry,
        "docker_registry_address": plan.docker_registry.address,
        "docker_registry_port": plan.docker_registry.port,
        "kubernetes_load_balanced_fqdn": plan.master.load_balanced_fqdn,
        "kubernetes_pods_cidr": plan.cluster.networking.pod_cidr,
        "kubernetes_services_cidr": plan.cluster.networking.service_cidr,
        "tls_directory": str(assets / "keys"),
        # batches are already limited by the engine; each play runs its whole batch at once
        "serial_count": FULL_SERIAL,
    }


class PlanExecutor(Executor):
    """Runs phases through a ``Backend``.

    One executor serves one run: the mode flags are captured on the first call
    and reused for every later call, and once a phase aborts the run, later
    calls fail immediately.
    """

    def __init__(self, backend: Backend, options: ExecutorOptions, reporter: Reporter,
                 certificate_authority: CertificateAuthority, max_workers: int = 10):
        self.backend = backend
        self.options = options
        self.reporter = reporter
        self.certificate_authority = certificate_authority
        self.max_workers = max_workers
        self.run = RunRecord()
        self._flags: Optional[ModeFlags] = None

    def _begin(self, plan: Plan) -> ModeFlags:
        if self._flags is None:
            self._flags = mode_flags(plan, self.options)
            logger.debug(f"Mode flags for this run: {self._flags}")
            self.backend.prepare(plan)
        return self._flags

    # Executor interface

    def generate_certificates(self, plan: Plan) -> None:
        self.reporter.print_header(CERTIFICATES_PHASE, '=')
        result = self.run.start(CERTIFICATES_PHASE)
        result.transition(PhaseState.RUNNING)
        try:
            report = self.certificate_authority.generate(plan)
        except Exception as e:
            result.transition(PhaseState.FAILED)
            result.error = str(e)
            self.run.abort()
            self.reporter.print_fail(f"Error generating certificates: {e}")
            raise CertificateGenerationFailed(f"error generating certificates: {e}") from e
        result.transition(PhaseState.COMPLETED)
        self._report_certificates(report)

    def install(self, plan: Plan) -> None:
        flags = self._begin(plan)
        self.reporter.print_header("Installing Cluster", '=')
        for phase in CORE_PHASES:
            self._run_phase(phase, plan, flags)
        self.reporter.print_ok("Cluster installation completed")

    def run_play(self, name: str, plan: Plan) -> None:
        phase = optional_phase(name)
        self._run_phase(phase, plan, self._begin(plan))

    def run_smoke_test(self, plan: Plan) -> None:
        flags = self._begin(plan)
        self.reporter.print_header("Running Smoke Test", '=')
        self._run_phase(SMOKE_TEST, plan, flags, error=SmokeTestFailed)
        self.run.complete()

    def optional_phases(self, plan: Plan) -> List[Phase]:
        return select_phases(OPTIONAL_PHASES, plan, self._begin(plan))

    def executed(self) -> List[PhaseResult]:
        return self.run.executed()

    # Phase execution

    def _report_certificates(self, report: CertificateReport) -> None:
        if report.ca_created:
            self.reporter.print_ok("Created cluster certificate authority")
        if report.issued:
            self.reporter.print_ok(f"Issued certificates for {', '.join(report.issued)}")
        if report.reissued:
            self.reporter.print_ok(f"Re-issued certificates for {', '.join(report.reissued)} (previous files backed up)")
        if report.reused:
            self.reporter.print_ok(f"Reused existing certificates for {', '.join(report.reused)}")

    def _run_phase(self, phase: Phase, plan: Plan, flags: ModeFlags,
                   error: Type[PhaseExecutionFailed] = PhaseExecutionFailed) -> PhaseResult:
        result = self.run.start(phase.name)

        if not phase.applies(plan.features, flags):
            result.transition(PhaseState.SKIPPED)
            logger.debug(f"Skipping {phase.name}: not enabled for this plan")
            return result

        hosts = select_hosts(plan, phase.hosts)
        if not hosts:
            result.transition(PhaseState.SKIPPED)
            logger.debug(f"Skipping {phase.name}: no hosts in {', '.join(phase.hosts)}")
            return result

        result.transition(PhaseState.RUNNING)
        serial = plan.cluster.serial if phase.rolling else FULL_SERIAL
        batches = partition(hosts, serial)
        extra_vars = build_extra_vars(plan, self.options, flags, phase)
        logger.info(f"{phase.name}: {len(hosts)} host(s) in {len(batches)} batch(es)")

        reasons: List[str] = []
        try:
            for index, batch in enumerate(batches, 1):
                result.batches.append(batch)
                logger.debug(f"{phase.name}: batch {index}/{len(batches)} -> {', '.join(batch)}")
                failed = self._run_batch(phase, batch, flags, extra_vars, reasons)
                if failed:
                    result.failed_hosts.extend(failed)
                    if phase.any_errors_fatal:
                        logger.error(f"{phase.name}: batch {index} failed on {', '.join(failed)}, aborting")
                        break
        except Exception as e:
            result.transition(PhaseState.FAILED)
            result.error = str(e)
            self.run.abort()
            self.reporter.print_fail(phase.name)
            raise error(phase.name, result.failed_hosts, str(e)) from e

        if result.failed_hosts:
            result.transition(PhaseState.FAILED)
            result.error = "; ".join(reasons)
            self.run.abort()
            self.reporter.print_fail(f"{phase.name} (failed on {', '.join(result.failed_hosts)})")
            raise error(phase.name, result.failed_hosts, result.error)

        result.transition(PhaseState.COMPLETED)
        self.reporter.print_ok(phase.name)
        return result

    def _run_batch(self, phase: Phase, batch: Tuple[str, ...], flags: ModeFlags,
                   extra_vars: Dict[str, Any], reasons: List[str]) -> List[str]:
        """Run one batch to completion and return the hosts that failed."""
        failed: List[str] = []
        targets = list(batch)

        if phase.service and flags.upgrading:
            for host, reason in self._reconcile_batch(phase.service, batch, flags):
                failed.append(host)
                reasons.append(reason)
            if failed and phase.any_errors_fatal:
                return failed
            targets = [h for h in batch if h not in failed]

        if not targets:
            return failed

        outcomes = self.backend.run_play(phase.play, targets, extra_vars)
        for host in targets:
            outcome = outcomes.get(host)
            if outcome is None:
                failed.append(host)
                reasons.append(f"{host}: no result reported")
            elif not outcome.ok:
                failed.append(host)
                reasons.append(f"{host}: {outcome.message}")
        for host in hosts_failed(outcomes):
            if host not in failed:
                failed.append(host)
        return failed

    def _reconcile_host(self, service: str, host: str, flags: ModeFlags) -> Optional[str]:
        """Probe one host and apply what reconcile asks for; returns an error or None."""
        rc, detail = self.backend.probe_service(host, service)
        try:
            state = probe(host, service, rc, detail)
        except ProbeFailed as e:
            return str(e)

        for action in reconcile(state, flags.upgrading):
            if action == Action.STOP_SERVICE:
                outcome = self.backend.stop_service(host, service)
            else:
                outcome = self.backend.remove_unit_file(host, service)
            if not outcome.ok:
                return f"{action.value} {service} on {host} failed: {outcome.message}"
            logger.info(f"{host}: {action.value} {service}")
        return None

    def _reconcile_batch(self, service: str, batch: Tuple[str, ...], flags: ModeFlags) -> List[Tuple[str, str]]:
        """Reconcile every host of the batch concurrently, waiting for all of them."""
        errors: List[Tuple[str, str]] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batch)),
                                thread_name_prefix="reconcile") as pool:
            future_to_host = {
                pool.submit(self._reconcile_host, service, host, flags): host
                for host in batch
            }
            for future in as_completed(future_to_host):
                host = future_to_host[future]
                try:
                    problem = future.result()
                except Exception as e:
                    problem = f"reconciling {service} on {host} failed: {e}"
                if problem:
                    logger.error(problem)
                    errors.append((host, problem))
        # report in host-list order regardless of completion order
        order = {host: i for i, host in enumerate(batch)}
        return sorted(errors, key=lambda item: order[item[0]])


def new_executor(options: ExecutorOptions, playbook_dir: str, reporter: Optional[Reporter] = None,
                 backend: Optional[Backend] = None,
                 certificate_authority: Optional[CertificateAuthority] = None) -> PlanExecutor:
    """Build the executor used by ``apply``; directories are created when first written."""
    assets = Path(options.generated_assets_dir)
    if backend is None:
        backend = AnsibleBackend(
            playbook_dir=playbook_dir,
            assets_dir=str(assets),
            verbose=options.verbose,
            raw_output=options.output_format == "raw",
        )
    return PlanExecutor(
        backend=backend,
        options=options,
        reporter=reporter or Reporter(),
        certificate_authority=certificate_authority or CertificateAuthority(assets / "keys"),
    )
