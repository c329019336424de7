"""Static phase table for the cluster install.

Phase order is fixed here. What changes from run to run is only which phases
apply, decided by each phase's ``include`` predicate against a frozen
``ModeFlags`` snapshot and the plan's feature toggles.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..plan.models import Features, Plan
from .models import ExecutorOptions, ModeFlags

Predicate = Callable[[Features, ModeFlags], bool]


def always(features: Features, flags: ModeFlags) -> bool:
    return True


@dataclass(frozen=True)
class Phase:
    """A named unit of work bound to a host group.

    Attributes:
        name: Human readable name shown by the reporter
        play: Playbook file run through the automation backend
        hosts: Group names the play targets; ``master[0]`` selects the first master
        include: Pure predicate deciding whether the phase applies to this run
        any_errors_fatal: Abort the run as soon as a batch reports a failed host
        rolling: Split the target hosts using the plan's serial setting
        service: systemd unit to stop and remove before the play when upgrading
    """
    name: str
    play: str
    hosts: Tuple[str, ...]
    include: Predicate = always
    any_errors_fatal: bool = True
    rolling: bool = False
    service: Optional[str] = None

    def applies(self, features: Features, flags: ModeFlags) -> bool:
        return bool(self.include(features, flags))


def select_hosts(plan: Plan, selectors: Sequence[str]) -> List[str]:
    """Resolve host selectors to an ordered, de-duplicated host list."""
    hosts: List[str] = []
    for selector in selectors:
        if selector == "all":
            names = [n.host for n in plan.all_nodes()]
        elif selector.endswith("[0]"):
            names = plan.group(selector[:-3]).hosts()[:1]
        else:
            names = plan.group(selector).hosts()
        for name in names:
            if name not in hosts:
                hosts.append(name)
    return hosts


def mode_flags(plan: Plan, options: ExecutorOptions) -> ModeFlags:
    """Take the single snapshot of flags a run is evaluated against."""
    return ModeFlags(
        upgrading=plan.upgrading,
        restart_services=options.restart_services,
        allow_package_installation=plan.cluster.allow_package_installation,
        disconnected_installation=plan.cluster.disconnected_installation,
        private_registry=plan.docker_registry.configured,
    )


KUBE_NODES = ("master", "worker", "storage")

CORE_PHASES: Tuple[Phase, ...] = (
    Phase(
        name="Install Packages",
        play="_packages.yaml",
        hosts=("all",),
        include=lambda f, m: m.allow_package_installation,
    ),
    Phase(
        name="Install Offline Package Repository",
        play="_packages-offline.yaml",
        hosts=("master[0]",),
        include=lambda f, m: m.allow_package_installation and m.disconnected_installation,
    ),
    Phase(
        name="Configure Internal Docker Registry",
        play="_docker-registry.yaml",
        hosts=("master[0]",),
        include=lambda f, m: f.internal_registry.enabled and not m.upgrading,
    ),
    Phase(
        name="Load Images Into Docker Registry",
        play="_docker-registry-images.yaml",
        hosts=("master[0]",),
        include=lambda f, m: m.private_registry and m.disconnected_installation,
    ),
    Phase(
        name="Start etcd Cluster",
        play="_etcd.yaml",
        hosts=("etcd",),
        rolling=True,
        service="etcd_k8s.service",
    ),
    Phase(
        name="Start Kubernetes API Server",
        play="_kube-apiserver.yaml",
        hosts=("master",),
        rolling=True,
        service="kube-apiserver.service",
    ),
    Phase(
        name="Start Kubernetes Controller Manager",
        play="_kube-controller-manager.yaml",
        hosts=("master",),
        rolling=True,
        service="kube-controller-manager.service",
    ),
    Phase(
        name="Start Kubernetes Scheduler",
        play="_kube-scheduler.yaml",
        hosts=("master",),
        rolling=True,
        service="kube-scheduler.service",
    ),
    Phase(
        name="Start Kubelet",
        play="_kubelet.yaml",
        hosts=KUBE_NODES,
        rolling=True,
        service="kubelet.service",
    ),
    Phase(
        name="Start Kubernetes Proxy",
        play="_kube-proxy.yaml",
        hosts=KUBE_NODES,
        rolling=True,
        any_errors_fatal=False,
        service="kube-proxy.service",
    ),
    Phase(
        name="Configure Pod Networking",
        play="_calico.yaml",
        hosts=KUBE_NODES,
    ),
    Phase(
        name="Configure Cluster DNS",
        play="_kube-dns.yaml",
        hosts=("master[0]",),
    ),
    Phase(
        name="Configure Storage Nodes",
        play="_storage.yaml",
        hosts=("storage",),
        any_errors_fatal=False,
    ),
    Phase(
        name="Deploy Kubernetes Dashboard",
        play="_dashboard.yaml",
        hosts=("master[0]",),
    ),
)

OPTIONAL_PHASES: Tuple[Phase, ...] = (
    Phase(
        name="Installing Helm on the Cluster",
        play="_helm.yaml",
        hosts=("master[0]",),
        include=lambda f, m: f.package_manager.enabled,
    ),
    Phase(
        name="Installing Heapster on the Cluster",
        play="_heapster.yaml",
        hosts=("master[0]",),
        include=lambda f, m: f.heapster_monitoring.enabled,
    ),
)

SMOKE_TEST = Phase(
    name="Running Smoke Test",
    play="_smoketest.yaml",
    hosts=("master[0]",),
)


def optional_phase(play: str) -> Phase:
    for phase in OPTIONAL_PHASES:
        if phase.play == play:
            return phase
    raise KeyError(f"unknown play {play!r}")


def select_phases(phases: Sequence[Phase], plan: Plan, flags: ModeFlags) -> List[Phase]:
    """Phases whose predicate holds for this run, in table order."""
    return [p for p in phases if p.applies(plan.features, flags)]
