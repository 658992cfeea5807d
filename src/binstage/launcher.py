"""Launch a built JavaScript bundle under bun, falling back to node."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from binstage.logging_config import configure_logging

logger = logging.getLogger(__name__)

BUNDLE_ENV = "BINSTAGE_BUNDLE"
DEFAULT_BUNDLE = Path("dist") / "index.js"
DEFAULT_RUNTIMES = ("bun", "node")


def runtime_command(runtime: str, bundle: Path, args: Sequence[str]) -> list[str]:
    if runtime == "bun":
        return ["bun", "run", str(bundle), *args]
    return [runtime, str(bundle), *args]


def locate_bundle(root: Path | None = None) -> Path:
    """``$BINSTAGE_BUNDLE`` if set, else ``<root>/dist/index.js`` (root defaults to this package's parent)."""
    override = os.environ.get(BUNDLE_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    base = root if root is not None else Path(__file__).resolve().parent.parent
    return base / DEFAULT_BUNDLE


def launch(
    bundle: Path,
    args: Sequence[str],
    *,
    runtimes: Sequence[str] = DEFAULT_RUNTIMES,
    cwd: Path | None = None,
) -> int:
    """Run ``bundle`` with the first installed runtime and return its exit code.

    stdin/stdout/stderr are inherited. A runtime that is not installed is
    skipped; any other spawn failure ends the launch with status 1. A child
    killed by signal N yields 128 + N.
    """
    if not bundle.exists():
        logger.error("Built files not found at %s. Run the build first.", bundle)
        return 1

    working_dir = str(cwd) if cwd else os.getcwd()
    for runtime in runtimes:
        cmd = runtime_command(runtime, bundle, args)
        try:
            completed = subprocess.run(cmd, cwd=working_dir, check=False)
        except FileNotFoundError:
            logger.debug("%s not installed, trying next runtime", runtime)
            continue
        except OSError as exc:
            logger.error("Failed to start with %s: %s", runtime, exc)
            return 1
        # A signal-terminated child reports -N; shells report 128+N.
        returncode = completed.returncode
        return 128 - returncode if returncode < 0 else returncode

    logger.error("No runtime available to launch %s (tried: %s)", bundle, ", ".join(runtimes))
    return 1


def main() -> int:
    configure_logging(level=os.environ.get("BINSTAGE_LOG_LEVEL", "WARNING"))
    return launch(locate_bundle(), sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
