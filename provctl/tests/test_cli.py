import yaml
from typer.testing import CliRunner

from provctl.cli import app

runner = CliRunner()


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("apply", "validate", "plan", "status"):
        assert command in result.stdout


def test_apply_help():
    result = runner.invoke(app, ["apply", "--help"])
    assert result.exit_code == 0
    for option in ("--plan-file", "--generated-assets-dir", "--restart-services",
                   "--verbose", "--output", "--skip-preflight"):
        assert option in result.stdout


def test_apply_rejects_unknown_output_format(tmp_path):
    result = runner.invoke(app, ["apply", "-o", "json", "--generated-assets-dir", str(tmp_path / "gen")])
    assert result.exit_code == 1
    assert "output format 'json' is not supported" in result.output
    assert not (tmp_path / "gen").exists()


def test_apply_missing_plan(tmp_path):
    result = runner.invoke(app, [
        "apply",
        "--plan-file", str(tmp_path / "missing.yaml"),
        "--generated-assets-dir", str(tmp_path / "gen"),
    ])
    assert result.exit_code == 1
    assert "error reading plan file" in result.output
    assert not (tmp_path / "gen").exists()


def test_plan_writes_starter_file(tmp_path):
    path = tmp_path / "cluster-plan.yaml"
    result = runner.invoke(app, ["plan", "--plan-file", str(path), "--name", "demo", "--worker", "4"])
    assert result.exit_code == 0
    data = yaml.safe_load(path.read_text())
    assert data["cluster"]["name"] == "demo"
    assert len(data["worker"]["nodes"]) == 4


def test_plan_refuses_to_overwrite(tmp_path):
    path = tmp_path / "cluster-plan.yaml"
    path.write_text("keep me")
    result = runner.invoke(app, ["plan", "--plan-file", str(path)])
    assert result.exit_code == 1
    assert path.read_text() == "keep me"


def test_validate_starter_plan_without_preflight(tmp_path):
    path = tmp_path / "cluster-plan.yaml"
    runner.invoke(app, ["plan", "--plan-file", str(path)])
    result = runner.invoke(app, ["validate", "--plan-file", str(path), "--skip-preflight"])
    assert result.exit_code == 0
    assert "Plan is valid" in result.output


def test_validate_reports_broken_plan(tmp_path):
    path = tmp_path / "cluster-plan.yaml"
    path.write_text("cluster:\n  name: demo\n  serial: lots\n")
    result = runner.invoke(app, ["validate", "--plan-file", str(path), "--skip-preflight"])
    assert result.exit_code == 1
    assert "error validating plan" in result.output


def test_status_without_kubeconfig(tmp_path):
    result = runner.invoke(app, ["status", "--kubeconfig", str(tmp_path / "kubeconfig")])
    assert result.exit_code == 1
    assert "kubeconfig not found" in result.output


def test_apply_invalid_plan_leaves_no_assets(tmp_path):
    path = tmp_path / "cluster-plan.yaml"
    path.write_text("cluster:\n  name: demo\n  serial: lots\n")
    result = runner.invoke(app, [
        "apply",
        "--plan-file", str(path),
        "--generated-assets-dir", str(tmp_path / "gen"),
        "--skip-preflight",
    ])
    assert result.exit_code == 1
    assert not (tmp_path / "gen").exists()
