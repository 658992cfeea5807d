"""Shared utility functions for binstage."""

from binstage.utils.io import ensure_dir, remove_path, write_json
from binstage.utils.subprocess import command_available, run_cmd

__all__ = [
    "ensure_dir",
    "remove_path",
    "write_json",
    "run_cmd",
    "command_available",
]
