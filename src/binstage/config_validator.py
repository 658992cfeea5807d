from __future__ import annotations

import json
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator, FormatChecker

from binstage.exceptions import ConfigurationError, YamlParseError
from binstage.platforms import (
    DEFAULT_RIPGREP_VERSION,
    ArchiveFormat,
    PlatformSpec,
    PlatformTable,
)

PLATFORMS_SCHEMA = "platforms"
VERSION_PLACEHOLDER = "{version}"

_FALLBACK_SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"


def _load_schema_from_package(schema_name: str) -> dict[str, Any] | None:
    try:
        schema_path = resources.files("binstage").joinpath(
            "schemas",
            f"{schema_name}.schema.json",
        )
        return json.loads(schema_path.read_text(encoding="utf-8"))
    except (FileNotFoundError, ModuleNotFoundError, AttributeError):
        return None


@cache
def load_schema(schema_name: str) -> dict[str, Any]:
    schema = _load_schema_from_package(schema_name)
    if schema is not None:
        return schema
    schema_path = _FALLBACK_SCHEMA_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_config(config: Any, schema_name: str, *, config_path: Path | None = None) -> None:
    schema = load_schema(schema_name)
    validator = Draft7Validator(schema, format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(config), key=lambda exc: list(exc.path))
    if not errors:
        return
    location = str(config_path) if config_path else "<config>"
    lines = [f"Schema validation failed for {location} ({schema_name})."]
    error_details: list[dict[str, str]] = []
    for error in errors[:10]:
        path = ".".join(str(p) for p in error.path) if error.path else "<root>"
        lines.append(f"- {path}: {error.message}")
        error_details.append({"path": path, "message": error.message})
    if len(errors) > 10:
        lines.append(f"... and {len(errors) - 10} more errors.")
    raise ConfigurationError(
        "\n".join(lines),
        context={
            "path": location,
            "schema": schema_name,
            "errors": error_details,
            "truncated": len(errors) > 10,
        },
    )


def read_yaml(path: Path, schema_name: str | None = None) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Cannot read config file {path}: {exc}",
            context={"path": str(path)},
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise YamlParseError(
            f"YAML parse error in {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    if data is None:
        data = {}
    if schema_name:
        validate_config(data, schema_name, config_path=path)
    return data


def _substitute_version(value: str, version: str) -> str:
    return value.replace(VERSION_PLACEHOLDER, version)


def platform_table_from_config(
    config: dict[str, Any],
    *,
    version: str | None = None,
    config_path: Path | None = None,
) -> PlatformTable:
    """Build a PlatformTable from an already-validated config mapping.

    ``version`` overrides the file's own ``version`` key; ``{version}``
    placeholders in ``archive_name`` and ``url`` are substituted.
    """
    release_version = version or str(config.get("version") or DEFAULT_RIPGREP_VERSION)
    specs: list[PlatformSpec] = []
    for entry in config.get("platforms", []):
        specs.append(
            PlatformSpec(
                name=entry["name"],
                archive_name=_substitute_version(entry["archive_name"], release_version),
                url=_substitute_version(entry["url"], release_version),
                binary_path=entry["binary_path"],
                archive_format=ArchiveFormat.parse(entry.get("archive_format", "tar.gz")),
                dir_prefix=entry.get("dir_prefix"),
            )
        )
    try:
        return PlatformTable(specs)
    except ConfigurationError as exc:
        if config_path is not None:
            exc.context.setdefault("path", str(config_path))
        raise


def load_platform_table(path: Path, *, version: str | None = None) -> PlatformTable:
    data = read_yaml(path, schema_name=PLATFORMS_SCHEMA)
    return platform_table_from_config(data, version=version, config_path=path)
