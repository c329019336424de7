"""Utility functions and helpers for the provctl application."""
import logging
import shlex
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger("provctl.utils")

BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"


def run_command(cmd: Sequence[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    """Run a local tool to completion, capturing what it prints.

    Raises:
        subprocess.CalledProcessError: If the tool exits non-zero; its stderr is logged first
        FileNotFoundError: If the tool is not installed
    """
    args = [str(arg) for arg in cmd]
    logger.debug(f"Running {shlex.join(args)}")
    result = subprocess.run(args, cwd=cwd, capture_output=True, text=True)
    if result.returncode != 0:
        detail = result.stderr.strip() or "no output"
        logger.error(f"{args[0]} exited with {result.returncode}: {detail}")
        raise subprocess.CalledProcessError(result.returncode, args, result.stdout, result.stderr)
    return result


def backup_path(path: Path, now: Optional[datetime] = None) -> Path:
    """``<path>.backup-<timestamp>`` sibling of ``path``."""
    stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
    return path.with_name(f"{path.name}.backup-{stamp}")


def backup_directory(src: Path, dst: Path) -> bool:
    """Move ``src`` out of the way to ``dst``.

    Returns:
        True if a directory was backed up, False if there was nothing to back up

    Raises:
        NotADirectoryError: If ``src`` exists but is not a directory
        FileExistsError: If ``dst`` already exists
    """
    src = Path(src)
    dst = Path(dst)
    if not src.exists():
        return False
    if not src.is_dir():
        raise NotADirectoryError(f"{src} exists but is not a directory")
    if dst.exists():
        raise FileExistsError(f"backup destination {dst} already exists")
    src.rename(dst)
    logger.info(f"Backed up {src} to {dst}")
    return True
