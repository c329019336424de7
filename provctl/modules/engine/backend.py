"""Automation backend used by the engine to reach remote hosts.

The engine never talks to hosts directly. It hands a batch of hosts to a
``Backend`` and gets one outcome per host back once every host has finished.
``AnsibleBackend`` is the production implementation built on ansible-runner;
tests substitute a fake that records calls.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import ansible_runner
import yaml

from ..plan.models import Plan
from .models import HostOutcome

logger = logging.getLogger("provctl.backend")

INIT_SYSTEM_DIR = "/etc/systemd/system"


class Backend:
    """Host-level operations the engine depends on."""

    def prepare(self, plan: Plan) -> None:
        """Called once before any other operation of a run."""
        pass

    def run_play(self, play: str, hosts: Sequence[str], extra_vars: Dict[str, Any]) -> Dict[str, HostOutcome]:
        raise NotImplementedError

    def probe_service(self, host: str, service: str) -> Tuple[int, str]:
        """Return ``(rc, output)`` of ``systemctl is-active -q <service>``; must not change the host."""
        raise NotImplementedError

    def stop_service(self, host: str, service: str) -> HostOutcome:
        raise NotImplementedError

    def remove_unit_file(self, host: str, service: str) -> HostOutcome:
        raise NotImplementedError


def build_inventory(plan: Plan) -> Dict[str, Any]:
    """Ansible YAML inventory for the plan's role groups."""
    ssh = plan.cluster.ssh
    hostvars = {}
    for node in plan.all_nodes():
        hostvars[node.host] = {
            "ansible_host": node.ip,
            "internal_ipv4": node.address,
            "ansible_port": ssh.ssh_port,
            "ansible_user": ssh.user,
            "ansible_ssh_private_key_file": os.path.expanduser(ssh.ssh_key),
        }

    children = {}
    for group in Plan.GROUPS:
        children[group] = {"hosts": {host: {} for host in plan.group(group).hosts()}}

    return {"all": {"hosts": hostvars, "children": children}}


class AnsibleBackend(Backend):
    """Runs playbooks and ad-hoc modules through ansible-runner.

    Args:
        playbook_dir: Directory holding the ``_*.yaml`` playbooks
        assets_dir: Generated assets directory; the inventory and runner artifacts live here
        verbose: Pass ``-vvv`` through to Ansible
        raw_output: Stream Ansible output to the terminal instead of ``ansible.log``
    """

    def __init__(self, playbook_dir: str, assets_dir: str, verbose: bool = False, raw_output: bool = False):
        self.playbook_dir = Path(playbook_dir).expanduser().absolute()
        self.assets_dir = Path(assets_dir).absolute()
        self.private_data_dir = self.assets_dir / "runner"
        self.inventory_path = self.assets_dir / "inventory.yaml"
        self.log_path = self.assets_dir / "ansible.log"
        self.verbose = verbose
        self.raw_output = raw_output

    def prepare(self, plan: Plan) -> None:
        self.private_data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.inventory_path, 'w') as f:
            yaml.safe_dump(build_inventory(plan), f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Wrote inventory to {self.inventory_path}")

    def _envvars(self) -> Dict[str, str]:
        env = {
            "ANSIBLE_HOST_KEY_CHECKING": "False",
            "ANSIBLE_RETRY_FILES_ENABLED": "False",
        }
        if not self.raw_output:
            env["ANSIBLE_LOG_PATH"] = str(self.log_path)
        return env

    def _run(self, **kwargs):
        return ansible_runner.run(
            private_data_dir=str(self.private_data_dir),
            inventory=str(self.inventory_path),
            envvars=self._envvars(),
            quiet=not self.raw_output,
            verbosity=3 if self.verbose else 0,
            **kwargs
        )

    @staticmethod
    def _outcomes(runner, hosts: Sequence[str]) -> Dict[str, HostOutcome]:
        stats = runner.stats or {}
        failures = stats.get("failures", {})
        dark = stats.get("dark", {})
        changed = stats.get("changed", {})
        outcomes = {}
        for host in hosts:
            if host in dark:
                outcomes[host] = HostOutcome(host, ok=False, message="host unreachable")
            elif host in failures:
                outcomes[host] = HostOutcome(host, ok=False, message=f"{failures[host]} task(s) failed")
            elif runner.rc != 0 and not failures and not dark:
                outcomes[host] = HostOutcome(host, ok=False, message=f"ansible-runner finished with status {runner.status}")
            else:
                outcomes[host] = HostOutcome(host, ok=True, changed=bool(changed.get(host)))
        return outcomes

    def run_play(self, play: str, hosts: Sequence[str], extra_vars: Dict[str, Any]) -> Dict[str, HostOutcome]:
        playbook = self.playbook_dir / play
        if not playbook.exists():
            raise FileNotFoundError(f"Playbook not found: {playbook}")

        logger.info(f"Running {play} on {', '.join(hosts)}")
        runner = self._run(
            playbook=str(playbook),
            limit=",".join(hosts),
            extravars=extra_vars,
        )
        logger.debug(f"{play} finished with status={runner.status} rc={runner.rc}")
        return self._outcomes(runner, hosts)

    def _adhoc(self, host: str, module: str, module_args: str) -> Tuple[int, str, Optional[Dict[str, Any]]]:
        runner = self._run(host_pattern=host, module=module, module_args=module_args)
        result: Optional[Dict[str, Any]] = None
        for event in runner.events:
            if event.get("event") in ("runner_on_ok", "runner_on_failed", "runner_on_unreachable"):
                data = event.get("event_data", {})
                if data.get("host") == host:
                    result = data.get("res", {})
        if result is None:
            return 255, f"no result from {host} (status {runner.status})", None
        if result.get("unreachable"):
            return 255, result.get("msg", "host unreachable"), result
        return int(result.get("rc", 0 if runner.rc == 0 else 1)), (result.get("stderr") or result.get("msg") or "").strip(), result

    def probe_service(self, host: str, service: str) -> Tuple[int, str]:
        rc, output, _ = self._adhoc(host, "command", f"systemctl is-active -q {service}")
        return rc, output

    def stop_service(self, host: str, service: str) -> HostOutcome:
        rc, output, _ = self._adhoc(host, "service", f"name={service} state=stopped enabled=no")
        return HostOutcome(host, ok=rc == 0, changed=rc == 0, message=output)

    def remove_unit_file(self, host: str, service: str) -> HostOutcome:
        path = f"{INIT_SYSTEM_DIR}/{service}"
        rc, output, _ = self._adhoc(host, "file", f"path={path} state=absent")
        return HostOutcome(host, ok=rc == 0, changed=rc == 0, message=output)


def hosts_failed(outcomes: Dict[str, HostOutcome]) -> List[str]:
    return [host for host, outcome in outcomes.items() if not outcome.ok]
