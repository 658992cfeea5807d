from __future__ import annotations

import types

import pytest

from binstage import dependencies
from binstage.exceptions import DependencyMissingError


def test_try_import_missing_module_returns_none() -> None:
    assert dependencies._try_import("module_that_does_not_exist") is None


def test_try_import_attribute_lookup() -> None:
    resolved = dependencies._try_import("types", "SimpleNamespace")
    assert resolved is types.SimpleNamespace


def test_require_raises_with_install_hint() -> None:
    with pytest.raises(DependencyMissingError) as excinfo:
        dependencies.require("requests", None, install="pip install requests")

    assert str(excinfo.value) == "missing dependency: requests (install: pip install requests)"
    assert excinfo.value.context == {"dependency": "requests", "install": "pip install requests"}


def test_require_without_hint() -> None:
    with pytest.raises(DependencyMissingError, match=r"^missing dependency: requests$") as excinfo:
        dependencies.require("requests", None)
    assert excinfo.value.context == {"dependency": "requests"}


def test_require_returns_dependency() -> None:
    marker = object()
    assert dependencies.require("marker", marker) is marker
