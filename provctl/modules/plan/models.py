"""Data models for the cluster plan.

The plan is parsed once per run and is immutable afterwards; every model is
frozen so nothing downstream can flip a flag halfway through an install.
Structural checks (types, required keys, serial syntax) live here. Rules that
span several groups, such as host uniqueness, belong to the validator so a
plan that breaks them can still be loaded and reported on.
"""
import re
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SERIAL_RE = re.compile(r"^(\d{1,3})%$")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PlanMode(str, Enum):
    """Whether the run installs a fresh cluster or upgrades an existing one."""
    INSTALL = "install"
    UPGRADE = "upgrade"


class Node(_Frozen):
    """A host in one of the plan's role groups."""
    host: str = Field(description="Hostname, unique across the plan")
    ip: str = Field(description="Address used to reach the node over SSH")
    internal_ip: Optional[str] = Field(default=None, description="Cluster-internal address")
    labels: Dict[str, str] = Field(default_factory=dict)

    @property
    def address(self) -> str:
        return self.internal_ip or self.ip


class NodeGroup(_Frozen):
    expected_count: Optional[int] = None
    nodes: Tuple[Node, ...] = ()

    def hosts(self) -> List[str]:
        return [n.host for n in self.nodes]


class MasterNodeGroup(NodeGroup):
    load_balanced_fqdn: str = ""
    load_balanced_short_name: str = ""


class SSHConfig(_Frozen):
    user: str = "root"
    ssh_key: str = "~/.ssh/id_rsa"
    ssh_port: int = 22


class NetworkConfig(_Frozen):
    pod_cidr: str = "172.16.0.0/16"
    service_cidr: str = "172.20.0.0/16"


class CertificatesConfig(_Frozen):
    expiry_days: int = Field(default=365, gt=0)
    ca_expiry_days: int = Field(default=3650, gt=0)


class ClusterConfig(_Frozen):
    name: str
    allow_package_installation: bool = True
    disconnected_installation: bool = False
    serial: Union[int, str] = Field(
        default="100%",
        description="Rolling batch size for rolling phases, as a percentage ('30%') or host count",
    )
    networking: NetworkConfig = Field(default_factory=NetworkConfig)
    certificates: CertificatesConfig = Field(default_factory=CertificatesConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)

    @field_validator("serial")
    @classmethod
    def check_serial(cls, v: Union[int, str]) -> Union[int, str]:
        if isinstance(v, int):
            if v < 1:
                raise ValueError("serial host count must be at least 1")
            return v
        match = SERIAL_RE.match(v.strip())
        if not match or not 0 < int(match.group(1)) <= 100:
            raise ValueError(f"serial must look like '25%' (1-100%), got {v!r}")
        return v.strip()


class DockerRegistry(_Frozen):
    """An existing private registry the nodes should pull from."""
    address: str = ""
    port: int = 443
    ca: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.address)


class Feature(_Frozen):
    enabled: bool = False


class Features(_Frozen):
    package_manager: Feature = Field(default_factory=Feature)
    heapster_monitoring: Feature = Field(default_factory=Feature)
    internal_registry: Feature = Field(default_factory=Feature)


class Plan(_Frozen):
    """Declarative description of the cluster."""
    cluster: ClusterConfig
    etcd: NodeGroup = Field(default_factory=NodeGroup)
    master: MasterNodeGroup = Field(default_factory=MasterNodeGroup)
    worker: NodeGroup = Field(default_factory=NodeGroup)
    storage: NodeGroup = Field(default_factory=NodeGroup)
    docker_registry: DockerRegistry = Field(default_factory=DockerRegistry)
    features: Features = Field(default_factory=Features)
    mode: PlanMode = PlanMode.INSTALL

    REQUIRED_GROUPS: ClassVar[Tuple[str, ...]] = ("etcd", "master", "worker")
    GROUPS: ClassVar[Tuple[str, ...]] = ("etcd", "master", "worker", "storage")

    @property
    def upgrading(self) -> bool:
        return self.mode == PlanMode.UPGRADE

    def group(self, name: str) -> NodeGroup:
        if name not in self.GROUPS:
            raise KeyError(f"unknown node group {name!r}")
        return getattr(self, name)

    def grouped_nodes(self) -> Iterator[Tuple[str, Node]]:
        for name in self.GROUPS:
            for node in self.group(name).nodes:
                yield name, node

    def all_nodes(self) -> List[Node]:
        """Every distinct node, in group order, first occurrence wins."""
        seen = set()
        nodes = []
        for _, node in self.grouped_nodes():
            if node.host not in seen:
                seen.add(node.host)
                nodes.append(node)
        return nodes

    def roles(self, host: str) -> List[str]:
        return [group for group, node in self.grouped_nodes() if node.host == host]
