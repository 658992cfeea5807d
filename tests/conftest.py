"""
Shared pytest fixtures for binstage tests.

Provides:
- Release archive builders (tar.gz / zip laid out like upstream assets)
- A fake ``requests`` module for the downloader
- Synthetic platform specs pointing at fake URLs
"""

from __future__ import annotations

import io
import sys
import tarfile
import zipfile
from collections.abc import Iterable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

import binstage.acquire.downloader as downloader_mod  # noqa: E402
from binstage.platforms import ArchiveFormat, PlatformSpec  # noqa: E402

RG_BINARY = b"\x7fELF fake ripgrep"
RG_EXE = b"MZ fake ripgrep"


# =============================================================================
# Archive builders
# =============================================================================


def build_tar_gz(
    path: Path,
    top: str,
    files: dict[str, bytes],
    *,
    modes: dict[str, int] | None = None,
) -> Path:
    """Write a .tar.gz whose entries all live under ``top/``."""
    modes = modes or {}
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tf:
        root = tarfile.TarInfo(top)
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        tf.addfile(root)
        added_dirs: set[str] = set()
        for name, data in files.items():
            parent = "/".join(name.split("/")[:-1])
            if parent and parent not in added_dirs:
                info = tarfile.TarInfo(f"{top}/{parent}")
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
                added_dirs.add(parent)
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tf.addfile(info, io.BytesIO(data))
    return path


def build_zip(path: Path, top: str | None, files: dict[str, bytes]) -> Path:
    """Write a .zip; entries live under ``top/`` unless ``top`` is None."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        if top:
            zf.writestr(f"{top}/", b"")
        for name, data in files.items():
            zf.writestr(f"{top}/{name}" if top else name, data)
    return path


def set_zip_method(path: Path, method: int) -> Path:
    """Rewrite every header's compression-method field (e.g. to one zipfile cannot decode)."""
    data = bytearray(path.read_bytes())
    for signature, offset in ((b"PK\x03\x04", 8), (b"PK\x01\x02", 10)):
        start = data.find(signature)
        while start != -1:
            data[start + offset : start + offset + 2] = method.to_bytes(2, "little")
            start = data.find(signature, start + 4)
    path.write_bytes(bytes(data))
    return path


def tree(root: Path) -> dict[str, bytes | None]:
    """Relative path -> file content (None for directories)."""
    return {
        str(p.relative_to(root)).replace("\\", "/"): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob("*"))
    }


def tar_platform(name: str, *, version: str = "14.1.1", triple: str | None = None) -> PlatformSpec:
    archive_name = f"ripgrep-{version}-{triple or name}.tar.gz"
    return PlatformSpec(
        name=name,
        archive_name=archive_name,
        url=f"https://github.com/BurntSushi/ripgrep/releases/download/{version}/{archive_name}",
        binary_path="rg",
        archive_format=ArchiveFormat.TAR_GZ,
    )


def zip_platform(name: str, *, version: str = "14.1.1", triple: str | None = None) -> PlatformSpec:
    archive_name = f"ripgrep-{version}-{triple or name}.zip"
    return PlatformSpec(
        name=name,
        archive_name=archive_name,
        url=f"https://github.com/BurntSushi/ripgrep/releases/download/{version}/{archive_name}",
        binary_path="rg.exe",
        archive_format=ArchiveFormat.ZIP,
    )


def release_bytes(spec: PlatformSpec, tmp_path: Path) -> bytes:
    """Build a realistic upstream asset for ``spec`` and return its bytes."""
    top = spec.archive_name.removesuffix(".tar.gz").removesuffix(".zip")
    path = tmp_path / "_assets" / spec.archive_name
    if spec.is_zip:
        build_zip(path, top, {"rg.exe": RG_EXE, "README.md": b"# ripgrep\n", "doc/rg.1": b".TH RG"})
    else:
        build_tar_gz(path, top, {"rg": RG_BINARY, "README.md": b"# ripgrep\n", "doc/rg.1": b".TH RG"})
    return path.read_bytes()


# =============================================================================
# HTTP fakes
# =============================================================================


class StreamResponse:
    def __init__(
        self,
        content: bytes = b"",
        status_code: int = 200,
        *,
        headers: dict[str, str] | None = None,
        reason: str = "",
        chunks: Iterable[bytes] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = reason
        self._chunks = list(chunks) if chunks is not None else [content]
        self._error = error

    def iter_content(self, chunk_size: int = 1024 * 1024):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    def __enter__(self) -> StreamResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False


def redirect(location: str, status_code: int = 302) -> StreamResponse:
    return StreamResponse(status_code=status_code, headers={"Location": location})


class FakeHttp:
    """Routes URL -> queued responses; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def route(self, url: str, *responses: Any) -> None:
        self.routes[url] = list(responses)

    def get(self, url: str, **kwargs: Any) -> StreamResponse:
        self.calls.append((url, kwargs))
        queued = self.routes.get(url)
        if not queued:
            return StreamResponse(status_code=404, reason="Not Found")
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


@pytest.fixture(autouse=True)
def _no_github_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> FakeHttp:
    import requests as real_requests

    fake = FakeHttp()
    monkeypatch.setattr(
        downloader_mod,
        "requests",
        SimpleNamespace(get=fake.get, exceptions=real_requests.exceptions),
    )
    return fake
