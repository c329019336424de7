import pytest

from provctl.errors import PlanMalformed, PreflightFailed
from provctl.modules.plan.models import Plan
from provctl.modules.validate import HostInspector, Validator, validate_plan


class FakeInspector(HostInspector):
    def __init__(self, unreachable=(), missing=None, disk=50.0, memory=8192):
        self.unreachable = set(unreachable)
        self.missing = missing or {}
        self.disk = disk
        self.memory = memory
        self.checked = []
        self.closed = False

    def connect(self, node):
        self.checked.append(node.host)
        if node.host in self.unreachable:
            raise ConnectionError(f"cannot SSH to root@{node.ip}:22")

    def missing_commands(self, node, commands):
        return [c for c in commands if c in self.missing.get(node.host, ())]

    def free_disk_gb(self, node):
        return self.disk

    def total_memory_mb(self, node):
        return self.memory

    def close(self):
        self.closed = True


def test_valid_plan_has_no_errors(make_plan):
    errors, warnings = validate_plan(make_plan(etcd=3, master=2))
    assert errors == []
    assert warnings == []


def test_required_groups(make_plan_data):
    data = make_plan_data(worker=0)
    errors, _ = validate_plan(Plan.model_validate(data))
    assert "worker: at least one node is required" in errors


def test_expected_count_mismatch(make_plan_data):
    data = make_plan_data(etcd=3, master=2)
    data["etcd"]["expected_count"] = 5
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("expected_count is 5" in e for e in errors)


def test_host_with_two_ips(make_plan_data):
    data = make_plan_data(etcd=3, master=2)
    data["worker"]["nodes"][0] = {"host": "master1", "ip": "10.9.9.9"}
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("listed with different IPs" in e for e in errors)


def test_ip_shared_by_two_hosts(make_plan_data):
    data = make_plan_data(etcd=3, master=2)
    data["worker"]["nodes"][0]["ip"] = "10.0.1.1"
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("shared by hosts 'master1' and 'worker1'" in e for e in errors)


def test_node_in_several_roles_is_allowed(make_plan_data):
    data = make_plan_data(etcd=3, master=2)
    data["etcd"]["nodes"][0] = {"host": "master1", "ip": "10.0.1.1"}
    errors, _ = validate_plan(Plan.model_validate(data))
    assert errors == []


def test_bad_addresses_and_networks(make_plan_data):
    data = make_plan_data(etcd=3, master=2, networking={"pod_cidr": "10.0.0.0/8", "service_cidr": "10.96.0.0/12"})
    data["worker"]["nodes"][0]["ip"] = "not-an-ip"
    data["worker"]["nodes"][0]["host"] = "Bad_Host"
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("not a valid IP address" in e for e in errors)
    assert any("not a valid hostname" in e for e in errors)
    assert "cluster.networking: pod_cidr and service_cidr must not overlap" in errors


def test_registry_rules(make_plan_data):
    data = make_plan_data(etcd=3, master=2, disconnected_installation=True)
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("requires a docker registry" in e for e in errors)

    data = make_plan_data(etcd=3, master=2, features=["internal_registry"])
    data["docker_registry"] = {"address": "registry.example.com"}
    errors, _ = validate_plan(Plan.model_validate(data))
    assert any("features.internal_registry" in e for e in errors)


def test_topology_warnings(make_plan):
    _, warnings = validate_plan(make_plan(etcd=2, master=1))
    assert any("etcd: 2 nodes" in w for w in warnings)
    assert any("single master" in w for w in warnings)


def test_schema_errors_fail_even_without_preflight(make_plan_data, reporter):
    data = make_plan_data(etcd=3, master=2)
    data["master"]["load_balanced_fqdn"] = ""
    inspector = FakeInspector()

    with pytest.raises(PlanMalformed) as exc:
        Validator(reporter=reporter, inspector=inspector).validate(
            Plan.model_validate(data), skip_preflight=True,
        )

    assert "master.load_balanced_fqdn: required" in exc.value.problems
    assert inspector.checked == []


def test_skip_preflight_never_contacts_nodes(make_plan, reporter):
    inspector = FakeInspector()
    report = Validator(reporter=reporter, inspector=inspector).validate(make_plan(etcd=3, master=2),
                                                                       skip_preflight=True)
    assert report.ok
    assert not report.preflight_ran
    assert inspector.checked == []


def test_preflight_passes(make_plan, reporter):
    inspector = FakeInspector()
    report = Validator(reporter=reporter, inspector=inspector).validate(make_plan(etcd=3, master=2))
    assert report.preflight_ran
    assert inspector.checked == ["etcd1", "etcd2", "etcd3", "master1", "master2", "worker1"]
    assert inspector.closed


def test_preflight_stops_at_first_failure(make_plan, reporter, output):
    inspector = FakeInspector(unreachable={"etcd2"})

    with pytest.raises(PreflightFailed) as exc:
        Validator(reporter=reporter, inspector=inspector).validate(make_plan(etcd=3, master=1))

    assert exc.value.failures == ["etcd2: cannot SSH to root@10.0.0.2:22"]
    assert inspector.checked == ["etcd1", "etcd2"]
    assert inspector.closed
    # warnings found before the failure are still reported
    assert "single master" in " ".join(exc.value.warnings)
    assert "single master" in output.getvalue()


def test_missing_packages_when_installation_disabled(make_plan, reporter):
    inspector = FakeInspector(missing={"worker1": ("kubelet",)})
    plan = make_plan(etcd=3, master=2, allow_package_installation=False)

    with pytest.raises(PreflightFailed) as exc:
        Validator(reporter=reporter, inspector=inspector).validate(plan)
    assert "kubelet is not installed" in exc.value.failures[0]


def test_packages_not_checked_when_installation_allowed(make_plan, reporter):
    inspector = FakeInspector(missing={"worker1": ("kubelet",)})
    Validator(reporter=reporter, inspector=inspector).validate(make_plan(etcd=3, master=2))


def test_low_disk_is_fatal_low_memory_is_a_warning(make_plan, reporter):
    plan = make_plan(etcd=3, master=2)

    report = Validator(reporter=reporter, inspector=FakeInspector(memory=512),
                       min_memory_mb=2048).validate(plan)
    assert any("512MB of memory" in w for w in report.warnings)

    with pytest.raises(PreflightFailed):
        Validator(reporter=reporter, inspector=FakeInspector(disk=1.5), min_disk_gb=10).validate(plan)
