"""Optional imports resolved at call time rather than at import time."""

from __future__ import annotations

import importlib
from typing import Any

from binstage.exceptions import DependencyMissingError


def _try_import(module: str, attr: str | None = None) -> Any | None:
    try:
        imported = importlib.import_module(module)
    except ImportError:
        return None
    if attr:
        return getattr(imported, attr, None)
    return imported


def require(name: str, dependency: Any, *, install: str | None = None) -> Any:
    """Return ``dependency``, or raise DependencyMissingError when its import failed."""
    if dependency is not None:
        return dependency
    hint = f" (install: {install})" if install else ""
    raise DependencyMissingError(
        f"missing dependency: {name}{hint}",
        dependency=name,
        install=install,
    )
