"""Subprocess execution utilities."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def run_cmd(cmd: list[str], cwd: Path | None = None) -> str:
    """Run a command and return its combined stdout/stderr output.

    Raises:
        subprocess.CalledProcessError: If the command exits with non-zero status.
        FileNotFoundError: If the executable does not exist.

    Example:
        >>> run_cmd(["unzip", "-o", "-q", "rg.zip", "-d", "out"])
        ''
    """
    p = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    return p.stdout.decode("utf-8", errors="ignore")


def command_available(cmd: list[str]) -> bool:
    """Return True when ``cmd`` runs and exits 0 (used for harmless checks like ``unzip -h``)."""
    try:
        run_cmd(cmd)
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.debug("Check %s failed: %s", cmd, exc)
        return False
    return True
