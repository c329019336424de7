"""Plan validation and pre-flight checks.

Two layers, run in order:

1. Plan rules that span the whole document (group sizes, host identity,
   networking, registry settings). These only look at the plan and are
   always enforced, including when pre-flight is skipped.
2. Pre-flight checks against the live nodes over SSH: connectivity, required
   binaries when package installation is disabled, free disk and memory.
   Only read-only commands are run. The first fatal check stops the
   pre-flight; warnings collected up to that point are still reported.
"""
import ipaddress
import logging
import os
import re
import socket
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import paramiko

from ..config import Config
from ..errors import PlanMalformed, PreflightFailed
from .plan.models import Node, Plan
from .reporter import Reporter

logger = logging.getLogger("provctl.validate")

HOSTNAME_RE = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$",
    re.IGNORECASE,
)

# Binaries that must already be installed when the plan forbids package installation
ROLE_COMMANDS: Dict[str, Tuple[str, ...]] = {
    "etcd": ("docker",),
    "master": ("docker", "kubelet", "kubectl"),
    "worker": ("docker", "kubelet"),
    "storage": ("docker", "kubelet", "gluster"),
}


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    preflight_ran: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _check_networking(plan: Plan, errors: List[str]) -> None:
    networks = {}
    for key in ("pod_cidr", "service_cidr"):
        value = getattr(plan.cluster.networking, key)
        try:
            networks[key] = ipaddress.ip_network(value, strict=False)
        except ValueError:
            errors.append(f"cluster.networking.{key}: {value!r} is not a valid CIDR")
    if len(networks) == 2 and networks["pod_cidr"].overlaps(networks["service_cidr"]):
        errors.append("cluster.networking: pod_cidr and service_cidr must not overlap")


def _check_hosts(plan: Plan, errors: List[str]) -> None:
    ip_by_host: Dict[str, str] = {}
    host_by_ip: Dict[str, str] = {}
    for group, node in plan.grouped_nodes():
        where = f"{group}.nodes[{node.host}]"
        if not HOSTNAME_RE.match(node.host):
            errors.append(f"{where}: {node.host!r} is not a valid hostname")
        if not _valid_ip(node.ip):
            errors.append(f"{where}: ip {node.ip!r} is not a valid IP address")
        if node.internal_ip and not _valid_ip(node.internal_ip):
            errors.append(f"{where}: internal_ip {node.internal_ip!r} is not a valid IP address")

        known_ip = ip_by_host.get(node.host)
        if known_ip is None:
            ip_by_host[node.host] = node.ip
        elif known_ip != node.ip:
            errors.append(f"{where}: host {node.host!r} is listed with different IPs ({known_ip}, {node.ip})")

        known_host = host_by_ip.get(node.ip)
        if known_host is None:
            host_by_ip[node.ip] = node.host
        elif known_host != node.host:
            errors.append(f"{where}: IP {node.ip} is shared by hosts {known_host!r} and {node.host!r}")


def validate_plan(plan: Plan) -> Tuple[List[str], List[str]]:
    """Check rules spanning the whole plan.

    Returns:
        Tuple of (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    for name in Plan.REQUIRED_GROUPS:
        if not plan.group(name).nodes:
            errors.append(f"{name}: at least one node is required")
    for name in Plan.GROUPS:
        group = plan.group(name)
        if group.expected_count is not None and group.expected_count != len(group.nodes):
            errors.append(
                f"{name}: expected_count is {group.expected_count} but {len(group.nodes)} node(s) are listed"
            )

    _check_hosts(plan, errors)

    if plan.master.nodes and not plan.master.load_balanced_fqdn:
        errors.append("master.load_balanced_fqdn: required")

    _check_networking(plan, errors)

    if plan.features.internal_registry.enabled and plan.docker_registry.configured:
        errors.append("features.internal_registry cannot be enabled when docker_registry.address is set")
    if plan.cluster.disconnected_installation and not (
            plan.docker_registry.configured or plan.features.internal_registry.enabled):
        errors.append("cluster.disconnected_installation requires a docker registry (external or internal)")

    etcd_count = len(plan.etcd.nodes)
    if etcd_count == 1:
        warnings.append("etcd: a single etcd node has no fault tolerance")
    elif etcd_count and etcd_count % 2 == 0:
        warnings.append(f"etcd: {etcd_count} nodes; an odd number tolerates the same failures with fewer nodes")
    if len(plan.master.nodes) == 1:
        warnings.append("master: a single master node is a single point of failure")

    return errors, warnings


class HostInspector:
    """Read-only queries against a live node."""

    def connect(self, node: Node) -> None:
        """Raise if the node cannot be reached."""
        raise NotImplementedError

    def missing_commands(self, node: Node, commands: Tuple[str, ...]) -> List[str]:
        raise NotImplementedError

    def free_disk_gb(self, node: Node) -> float:
        raise NotImplementedError

    def total_memory_mb(self, node: Node) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass


class SSHInspector(HostInspector):
    """Inspects nodes over SSH with paramiko, one connection per host."""

    def __init__(self, user: str, key_path: str, port: int = 22, timeout: Optional[int] = None):
        self.user = user
        self.key_path = os.path.expanduser(key_path)
        self.port = port
        self.timeout = timeout if timeout is not None else Config.SSH_TIMEOUT
        self._clients: Dict[str, paramiko.SSHClient] = {}

    @classmethod
    def for_plan(cls, plan: Plan) -> "SSHInspector":
        ssh = plan.cluster.ssh
        return cls(user=ssh.user, key_path=ssh.ssh_key, port=ssh.ssh_port)

    def connect(self, node: Node) -> None:
        if node.host in self._clients:
            return
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                node.ip,
                port=self.port,
                username=self.user,
                key_filename=self.key_path,
                timeout=self.timeout,
            )
        except (paramiko.SSHException, socket.error) as e:
            client.close()
            raise ConnectionError(f"cannot SSH to {self.user}@{node.ip}:{self.port}: {e}") from e
        self._clients[node.host] = client

    def _exec(self, node: Node, command: str) -> Tuple[int, str]:
        self.connect(node)
        stdin, stdout, stderr = self._clients[node.host].exec_command(command, timeout=self.timeout)
        exit_status = stdout.channel.recv_exit_status()
        output = stdout.read().decode().strip()
        logger.debug(f"[{node.host}] $ {command} -> {exit_status}")
        return exit_status, output

    def missing_commands(self, node: Node, commands: Tuple[str, ...]) -> List[str]:
        missing = []
        for command in commands:
            rc, _ = self._exec(node, f"command -v {command}")
            if rc != 0:
                missing.append(command)
        return missing

    def free_disk_gb(self, node: Node) -> float:
        rc, output = self._exec(node, "df -Pk / | tail -1")
        if rc != 0 or not output:
            raise RuntimeError(f"could not read free disk space on {node.host}")
        # Filesystem 1024-blocks Used Available Capacity Mounted-on
        available_kb = int(output.split()[3])
        return available_kb / (1024 * 1024)

    def total_memory_mb(self, node: Node) -> int:
        rc, output = self._exec(node, "grep MemTotal /proc/meminfo")
        if rc != 0 or not output:
            raise RuntimeError(f"could not read memory size on {node.host}")
        # MemTotal:       16318480 kB
        return int(output.split()[1]) // 1024

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
        self._clients.clear()


class Validator:
    """Runs plan rules and, unless skipped, the pre-flight checks."""

    def __init__(self, reporter: Optional[Reporter] = None, inspector: Optional[HostInspector] = None,
                 min_disk_gb: Optional[int] = None, min_memory_mb: Optional[int] = None):
        self.reporter = reporter or Reporter()
        self.inspector = inspector
        self.min_disk_gb = min_disk_gb if min_disk_gb is not None else Config.MIN_DISK_GB
        self.min_memory_mb = min_memory_mb if min_memory_mb is not None else Config.MIN_MEMORY_MB

    def validate(self, plan: Plan, skip_preflight: bool = False) -> ValidationReport:
        """Validate the plan and the environment it describes.

        Raises:
            PlanMalformed: If a plan rule is broken, whether or not pre-flight is skipped
            PreflightFailed: If a live check against a node fails
        """
        self.reporter.print_header("Validating Plan", '=')
        errors, warnings = validate_plan(plan)
        report = ValidationReport(errors=errors, warnings=list(warnings))
        for warning in warnings:
            self.reporter.print_warning(warning)
        if errors:
            for error in errors:
                self.reporter.print_fail(error)
            raise PlanMalformed("plan is invalid", errors)
        self.reporter.print_ok("Plan is valid")

        if skip_preflight:
            logger.info("Skipping pre-flight checks")
            return report

        self.reporter.print_header("Running Pre-Flight Checks", '=')
        inspector = self.inspector or SSHInspector.for_plan(plan)
        try:
            self._preflight(plan, inspector, report)
        finally:
            inspector.close()
        report.preflight_ran = True
        self.reporter.print_ok("Pre-flight checks passed")
        return report

    def _fail(self, report: ValidationReport, message: str) -> None:
        for warning in report.warnings:
            logger.warning(warning)
        self.reporter.print_fail(message)
        report.errors.append(message)
        raise PreflightFailed([message], report.warnings)

    def _preflight(self, plan: Plan, inspector: HostInspector, report: ValidationReport) -> None:
        for node in plan.all_nodes():
            try:
                inspector.connect(node)
            except Exception as e:
                self._fail(report, f"{node.host}: {e}")

            if not plan.cluster.allow_package_installation:
                required: List[str] = []
                for role in plan.roles(node.host):
                    for command in ROLE_COMMANDS.get(role, ()):
                        if command not in required:
                            required.append(command)
                try:
                    missing = inspector.missing_commands(node, tuple(required))
                except Exception as e:
                    self._fail(report, f"{node.host}: checking installed packages failed: {e}")
                if missing:
                    self._fail(report, f"{node.host}: package installation is disabled and "
                                       f"{', '.join(missing)} is not installed")

            try:
                disk = inspector.free_disk_gb(node)
                memory = inspector.total_memory_mb(node)
            except Exception as e:
                self._fail(report, f"{node.host}: {e}")
            if disk < self.min_disk_gb:
                self._fail(report, f"{node.host}: {disk:.1f}GB free on /, at least {self.min_disk_gb}GB is required")
            if memory < self.min_memory_mb:
                message = f"{node.host}: {memory}MB of memory, {self.min_memory_mb}MB is recommended"
                report.warnings.append(message)
                self.reporter.print_warning(message)

            self.reporter.print_ok(f"{node.host} is ready")
