"""Loading and persisting plan files."""
import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from ...errors import PlanMalformed, PlanNotFound
from .models import Plan

logger = logging.getLogger("provctl.planner")


class Planner:
    """Reads and writes a plan from a named source."""

    def read(self) -> Plan:
        raise NotImplementedError

    def write(self, plan: Plan) -> None:
        raise NotImplementedError

    def exists(self) -> bool:
        raise NotImplementedError


class FilePlanner(Planner):
    """Plan stored as a YAML file on disk."""

    def __init__(self, file: Union[str, Path]):
        self.file = Path(file)

    def exists(self) -> bool:
        return self.file.is_file()

    def read(self) -> Plan:
        """Parse the plan file.

        Raises:
            PlanNotFound: If the file does not exist
            PlanMalformed: If the file is not YAML or does not match the plan schema
        """
        if not self.exists():
            raise PlanNotFound(str(self.file))

        try:
            with open(self.file, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PlanMalformed(f"plan file {str(self.file)!r} is not valid YAML: {e}") from e

        if not isinstance(data, dict):
            raise PlanMalformed(f"plan file {str(self.file)!r} must contain a mapping")

        try:
            plan = Plan.model_validate(data)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise PlanMalformed(f"plan file {str(self.file)!r} does not match the plan schema", problems) from e

        logger.debug("Read plan %s for cluster %s", self.file, plan.cluster.name)
        return plan

    def write(self, plan: Plan) -> None:
        self.file.parent.mkdir(parents=True, exist_ok=True)
        data = plan.model_dump(mode="json", exclude_none=True)
        with open(self.file, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        logger.debug("Wrote plan %s", self.file)


def starter_plan(name: str = "provctl-cluster", etcd: int = 1, master: int = 1,
                 worker: int = 1, storage: int = 0) -> Plan:
    """Build a plan skeleton with placeholder nodes for the operator to fill in."""
    # one /24 per role, hosts numbered from .1
    subnets = {"etcd": 1, "master": 2, "worker": 3, "storage": 4}

    def nodes(role: str, count: int):
        return [
            {"host": f"{role}{i}", "ip": f"10.0.{subnets[role]}.{i}"}
            for i in range(1, count + 1)
        ]

    return Plan.model_validate({
        "cluster": {"name": name},
        "etcd": {"expected_count": etcd, "nodes": nodes("etcd", etcd)},
        "master": {
            "expected_count": master,
            "load_balanced_fqdn": "master1",
            "load_balanced_short_name": "master1",
            "nodes": nodes("master", master),
        },
        "worker": {"expected_count": worker, "nodes": nodes("worker", worker)},
        "storage": {"expected_count": storage, "nodes": nodes("storage", storage)},
    })
