import logging
import subprocess
import sys
from datetime import datetime
from pathlib import Path

import pytest

from provctl.utils import backup_directory, backup_path, run_command


def test_run_command_captures_stdout(tmp_path):
    result = run_command([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)
    assert result.stdout.strip() == str(tmp_path)


def test_run_command_logs_stderr_and_raises(caplog):
    script = "import sys; sys.stderr.write('unable to load key'); sys.exit(3)"

    with caplog.at_level(logging.ERROR, logger="provctl.utils"):
        with pytest.raises(subprocess.CalledProcessError) as exc:
            run_command([sys.executable, "-c", script])

    assert exc.value.returncode == 3
    assert exc.value.stderr == "unable to load key"
    assert "exited with 3: unable to load key" in caplog.text


def test_run_command_missing_tool():
    with pytest.raises(FileNotFoundError):
        run_command(["provctl-no-such-tool", "--version"])


def test_backup_path():
    path = backup_path(Path("/home/ops/.helm"), datetime(2024, 3, 1, 12, 30, 45))
    assert path == Path("/home/ops/.helm.backup-2024-03-01-12-30-45")


def test_backup_directory(tmp_path):
    src = tmp_path / ".helm"
    dst = tmp_path / ".helm.backup"

    assert not backup_directory(src, dst)

    src.mkdir()
    (src / "repository").write_text("stable")
    assert backup_directory(src, dst)
    assert not src.exists()
    assert (dst / "repository").read_text() == "stable"

    src.mkdir()
    with pytest.raises(FileExistsError):
        backup_directory(src, dst)


def test_backup_directory_refuses_files(tmp_path):
    src = tmp_path / ".helm"
    src.write_text("not a directory")
    with pytest.raises(NotADirectoryError):
        backup_directory(src, tmp_path / ".helm.backup")
