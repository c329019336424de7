import pytest
import yaml
from pydantic import ValidationError

from provctl.errors import PlanMalformed, PlanNotFound
from provctl.modules.plan import FilePlanner, PlanMode, starter_plan
from provctl.modules.validate import validate_plan


def write_plan(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


def test_read_plan(tmp_path, make_plan_data):
    path = write_plan(tmp_path / "plan.yaml", make_plan_data(master=2, serial="50%", features=["package_manager"]))
    plan = FilePlanner(path).read()

    assert plan.cluster.name == "test-cluster"
    assert plan.cluster.serial == "50%"
    assert plan.master.hosts() == ["master1", "master2"]
    assert plan.features.package_manager.enabled
    assert not plan.features.heapster_monitoring.enabled
    assert plan.mode == PlanMode.INSTALL


def test_missing_plan(tmp_path):
    with pytest.raises(PlanNotFound):
        FilePlanner(tmp_path / "nope.yaml").read()


def test_invalid_yaml(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text("cluster: [unclosed")
    with pytest.raises(PlanMalformed):
        FilePlanner(path).read()


def test_not_a_mapping(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(PlanMalformed):
        FilePlanner(path).read()


def test_schema_errors_are_listed(tmp_path, make_plan_data):
    data = make_plan_data(serial="150%")
    data["master"]["nodes"][0].pop("ip")
    data["unknown_section"] = {}
    path = write_plan(tmp_path / "plan.yaml", data)

    with pytest.raises(PlanMalformed) as exc:
        FilePlanner(path).read()

    problems = " ".join(exc.value.problems)
    assert "cluster.serial" in problems
    assert "master.nodes.0.ip" in problems
    assert "unknown_section" in problems


def test_plan_is_frozen(tmp_path, make_plan_data):
    plan = FilePlanner(write_plan(tmp_path / "plan.yaml", make_plan_data())).read()
    with pytest.raises(ValidationError):
        plan.cluster.serial = "10%"


def test_write_then_read_starter_plan(tmp_path):
    planner = FilePlanner(tmp_path / "sub" / "plan.yaml")
    assert not planner.exists()

    planner.write(starter_plan(name="demo", etcd=3, master=2, worker=2, storage=1))

    assert planner.exists()
    plan = planner.read()
    assert plan.cluster.name == "demo"
    assert plan.etcd.hosts() == ["etcd1", "etcd2", "etcd3"]
    assert plan.storage.nodes[0].ip == "10.0.4.1"


def test_large_starter_plan_is_valid():
    plan = starter_plan(etcd=11, master=12, worker=30, storage=10)

    errors, _ = validate_plan(plan)
    assert errors == []
    assert plan.etcd.nodes[10].ip == "10.0.1.11"
    assert plan.master.nodes[0].ip == "10.0.2.1"
