import io

import pytest
from rich.console import Console

from provctl.modules.engine.backend import Backend
from provctl.modules.engine.models import HostOutcome
from provctl.modules.plan.models import Plan
from provctl.modules.reporter import Reporter


def nodes(role, count, start=1):
    return [
        {"host": f"{role}{i}", "ip": f"10.0.{['etcd', 'master', 'worker', 'storage'].index(role)}.{i}"}
        for i in range(start, start + count)
    ]


def plan_data(etcd=1, master=1, worker=1, storage=0, features=(), mode="install", **cluster):
    data = {
        "cluster": {"name": "test-cluster", **cluster},
        "etcd": {"expected_count": etcd, "nodes": nodes("etcd", etcd)},
        "master": {
            "expected_count": master,
            "load_balanced_fqdn": "master.example.com",
            "load_balanced_short_name": "master",
            "nodes": nodes("master", master),
        },
        "worker": {"expected_count": worker, "nodes": nodes("worker", worker)},
        "storage": {"expected_count": storage, "nodes": nodes("storage", storage)},
        "features": {name: {"enabled": True} for name in features},
        "mode": mode,
    }
    return data


@pytest.fixture
def make_plan():
    def _make(**kwargs) -> Plan:
        return Plan.model_validate(plan_data(**kwargs))
    return _make


class FakeBackend(Backend):
    """Records every call; hosts fail a play when listed in ``fail[play]``."""

    def __init__(self):
        self.prepared = 0
        self.calls = []
        self.extra_vars = []
        self.fail = {}
        self.active = set()
        self.probe_rc = {}
        self.probes = []
        self.stopped = []
        self.removed = []

    def prepare(self, plan):
        self.prepared += 1

    def run_play(self, play, hosts, extra_vars):
        self.calls.append((play, tuple(hosts)))
        self.extra_vars.append(extra_vars)
        failing = self.fail.get(play, set())
        return {
            host: HostOutcome(host, ok=host not in failing, message="task failed" if host in failing else "")
            for host in hosts
        }

    def probe_service(self, host, service):
        self.probes.append((host, service))
        if (host, service) in self.probe_rc:
            return self.probe_rc[(host, service)], "unit file is masked"
        return (0 if (host, service) in self.active else 3), ""

    def stop_service(self, host, service):
        self.stopped.append((host, service))
        self.active.discard((host, service))
        return HostOutcome(host, ok=True, changed=True)

    def remove_unit_file(self, host, service):
        self.removed.append((host, service))
        return HostOutcome(host, ok=True, changed=True)

    def plays(self):
        return [play for play, _ in self.calls]

    def contacted(self, play):
        return [host for p, hosts in self.calls if p == play for host in hosts]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return Reporter(console=Console(file=output, width=200, highlight=False))


@pytest.fixture
def make_plan_data():
    return plan_data
