from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    """Create ``path`` and any missing parents; a no-op when it already exists."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_path(path: Path) -> None:
    """Remove a file, link or directory tree at ``path`` if present."""
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.is_dir():
        shutil.rmtree(path)


def write_json(path: Path, obj: dict[str, Any], *, indent: int = 2) -> None:
    """Write dict to JSON file atomically."""
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(json.dumps(obj, indent=indent, ensure_ascii=False) + "\n")
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)
