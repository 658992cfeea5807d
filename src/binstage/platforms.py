"""
binstage/platforms.py

Platform specifications: one immutable record per release target, and the
ordered table the batch runner is constructed with.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from binstage.exceptions import ConfigurationError

DEFAULT_RIPGREP_VERSION = "14.1.1"
DEFAULT_OUTPUT_DIR = "ripgrep-binaries"
RIPGREP_RELEASE_BASE = "https://github.com/BurntSushi/ripgrep/releases/download"


class ArchiveFormat(str, Enum):
    """Container format of a release asset."""

    TAR_GZ = "tar.gz"  # POSIX targets, binary needs +x after extraction
    ZIP = "zip"  # Windows targets

    @classmethod
    def parse(cls, value: str | ArchiveFormat) -> ArchiveFormat:
        if isinstance(value, ArchiveFormat):
            return value
        normalized = str(value).strip().lower().lstrip(".")
        if normalized == "tgz":
            normalized = cls.TAR_GZ.value
        try:
            return cls(normalized)
        except ValueError as exc:
            valid = ", ".join(fmt.value for fmt in cls)
            raise ConfigurationError(
                f"Unsupported archive format: {value!r} (valid: {valid})",
                context={"archive_format": str(value)},
            ) from exc


@dataclass(frozen=True)
class PlatformSpec:
    """Static description of one target's release artifact."""

    name: str  # e.g. "linux-x64"; also the staging directory name
    archive_name: str
    url: str
    binary_path: str  # relative to the staging directory
    archive_format: ArchiveFormat = ArchiveFormat.TAR_GZ
    dir_prefix: str | None = None

    @property
    def is_zip(self) -> bool:
        return self.archive_format is ArchiveFormat.ZIP

    @property
    def extracted_dir_prefix(self) -> str:
        """Name prefix of the archive's top-level directory (``ripgrep-`` for ripgrep assets)."""
        if self.dir_prefix:
            return self.dir_prefix
        head, sep, _ = self.archive_name.partition("-")
        return f"{head}{sep}" if sep else self.archive_name


class PlatformTable:
    """Ordered, immutable collection of PlatformSpec with unique names."""

    def __init__(self, specs: Iterable[PlatformSpec]) -> None:
        specs = tuple(specs)
        seen: set[str] = set()
        duplicates: list[str] = []
        for spec in specs:
            if spec.name in seen:
                duplicates.append(spec.name)
            seen.add(spec.name)
        if duplicates:
            raise ConfigurationError(
                f"Duplicate platform names: {', '.join(sorted(set(duplicates)))}",
                context={"duplicates": sorted(set(duplicates))},
            )
        self._specs = specs

    def __iter__(self) -> Iterator[PlatformSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:
        return f"PlatformTable({', '.join(self.names())})"

    def names(self) -> list[str]:
        return [spec.name for spec in self._specs]

    def get(self, name: str) -> PlatformSpec | None:
        for spec in self._specs:
            if spec.name == name:
                return spec
        return None

    def select(self, name: str | None = None) -> tuple[PlatformSpec, ...]:
        """Return every spec, or just ``name``; unknown names raise ConfigurationError."""
        if name is None:
            return self._specs
        spec = self.get(name)
        if spec is None:
            valid = self.names()
            raise ConfigurationError(
                f"Invalid platform: {name}. Valid platforms: {', '.join(valid)}",
                context={"platform": name, "valid_platforms": valid},
            )
        return (spec,)


def ripgrep_platform(
    name: str, triple: str, *, version: str, archive_format: ArchiveFormat
) -> PlatformSpec:
    archive_name = f"ripgrep-{version}-{triple}.{archive_format.value}"
    return PlatformSpec(
        name=name,
        archive_name=archive_name,
        url=f"{RIPGREP_RELEASE_BASE}/{version}/{archive_name}",
        binary_path="rg.exe" if archive_format is ArchiveFormat.ZIP else "rg",
        archive_format=archive_format,
        dir_prefix="ripgrep-",
    )


def default_platforms(version: str = DEFAULT_RIPGREP_VERSION) -> PlatformTable:
    """Built-in ripgrep release table."""
    return PlatformTable(
        [
            ripgrep_platform(
                "darwin-x64", "x86_64-apple-darwin", version=version, archive_format=ArchiveFormat.TAR_GZ
            ),
            ripgrep_platform(
                "darwin-arm64", "aarch64-apple-darwin", version=version, archive_format=ArchiveFormat.TAR_GZ
            ),
            ripgrep_platform(
                "linux-x64",
                "x86_64-unknown-linux-musl",
                version=version,
                archive_format=ArchiveFormat.TAR_GZ,
            ),
            ripgrep_platform(
                "win-x64", "x86_64-pc-windows-msvc", version=version, archive_format=ArchiveFormat.ZIP
            ),
        ]
    )
