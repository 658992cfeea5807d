"""Tests for archive extraction safety."""

from __future__ import annotations

import io
import os
import stat
import tarfile
import zipfile
from pathlib import Path

import pytest

from binstage.archive_safety import (
    ArchiveExtractionError,
    ExtractedSizeLimitError,
    PathTraversalError,
    SymlinkError,
    TooManyFilesError,
    is_path_safe,
    safe_extract_tar,
    safe_extract_zip,
)


def _add_file(tf: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    tf.addfile(info, io.BytesIO(data))


class TestIsPathSafe:
    """Tests for the is_path_safe function."""

    def test_safe_path(self, tmp_path: Path) -> None:
        is_safe, reason = is_path_safe("doc/rg.1", tmp_path)
        assert is_safe is True
        assert reason is None

    def test_absolute_path_blocked(self, tmp_path: Path) -> None:
        is_safe, reason = is_path_safe("/etc/passwd", tmp_path)
        assert is_safe is False
        assert "absolute_path" in reason

    def test_path_traversal_blocked(self, tmp_path: Path) -> None:
        is_safe, reason = is_path_safe("../../../etc/passwd", tmp_path)
        assert is_safe is False
        assert "path_traversal" in reason

    def test_escape_via_dots(self, tmp_path: Path) -> None:
        is_safe, _ = is_path_safe("foo/bar/../../../baz", tmp_path)
        assert is_safe is False


class TestSafeExtractTar:
    """Tests for safe tar.gz extraction."""

    def test_strip_one_component(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "rg.tar.gz"
        with tarfile.open(archive_path, "w:gz") as tf:
            _add_file(tf, "ripgrep-14.1.1/rg", b"bin", mode=0o755)
            _add_file(tf, "ripgrep-14.1.1/doc/rg.1", b"man")

        stats = safe_extract_tar(archive_path, tmp_path / "out", strip=1)

        assert stats["files_extracted"] == 2
        assert (tmp_path / "out" / "rg").read_bytes() == b"bin"
        assert (tmp_path / "out" / "doc" / "rg.1").read_bytes() == b"man"
        assert stat.S_IMODE((tmp_path / "out" / "rg").stat().st_mode) == 0o755

    def test_symlink_inside_dest_allowed(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "links.tar.gz"
        with tarfile.open(archive_path, "w:gz") as tf:
            _add_file(tf, "top/rg", b"bin")
            link = tarfile.TarInfo("top/ripgrep")
            link.type = tarfile.SYMTYPE
            link.linkname = "rg"
            tf.addfile(link)

        safe_extract_tar(archive_path, tmp_path / "out", strip=1)

        assert os.readlink(tmp_path / "out" / "ripgrep") == "rg"

    def test_symlink_escaping_dest_blocked(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "evil.tar.gz"
        with tarfile.open(archive_path, "w:gz") as tf:
            link = tarfile.TarInfo("top/passwd")
            link.type = tarfile.SYMTYPE
            link.linkname = "../../etc/passwd"
            tf.addfile(link)

        with pytest.raises(SymlinkError):
            safe_extract_tar(archive_path, tmp_path / "out", strip=1)

    def test_hardlink_blocked(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "hard.tar.gz"
        with tarfile.open(archive_path, "w:gz") as tf:
            _add_file(tf, "top/rg", b"bin")
            link = tarfile.TarInfo("top/rg2")
            link.type = tarfile.LNKTYPE
            link.linkname = "top/rg"
            tf.addfile(link)

        with pytest.raises(SymlinkError, match="Hardlink"):
            safe_extract_tar(archive_path, tmp_path / "out", strip=1)

    def test_too_many_members(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "many.tar.gz"
        with tarfile.open(archive_path, "w:gz") as tf:
            for i in range(5):
                _add_file(tf, f"top/f{i}", b"x")

        with pytest.raises(TooManyFilesError):
            safe_extract_tar(archive_path, tmp_path / "out", strip=1, max_files=3)


class TestSafeExtractZip:
    """Tests for safe ZIP extraction."""

    def test_extract_normal_zip(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "rg.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            zf.writestr("ripgrep-14.1.1/rg.exe", "MZ")
            zf.writestr("ripgrep-14.1.1/doc/rg.1", "man")

        stats = safe_extract_zip(archive_path, tmp_path / "out")

        assert stats["files_extracted"] == 2
        assert (tmp_path / "out" / "ripgrep-14.1.1" / "rg.exe").read_text() == "MZ"

    def test_unix_mode_is_applied(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "modes.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            info = zipfile.ZipInfo("top/tool")
            info.external_attr = (stat.S_IFREG | 0o755) << 16
            zf.writestr(info, "bin")

        safe_extract_zip(archive_path, tmp_path / "out")

        assert stat.S_IMODE((tmp_path / "out" / "top" / "tool").stat().st_mode) == 0o755

    def test_block_path_traversal_zip(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "evil.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            zf.writestr("../../../tmp/evil.txt", "Malicious content")

        with pytest.raises(PathTraversalError):
            safe_extract_zip(archive_path, tmp_path / "out")

    def test_block_symlink_zip(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "link.zip"
        with zipfile.ZipFile(archive_path, "w") as zf:
            info = zipfile.ZipInfo("top/link")
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, "/etc/passwd")

        with pytest.raises(SymlinkError):
            safe_extract_zip(archive_path, tmp_path / "out")

    def test_size_limit(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "big.zip"
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("top/zeros", b"\0" * 10_000)

        with pytest.raises(ExtractedSizeLimitError):
            safe_extract_zip(archive_path, tmp_path / "out", max_extracted_bytes=1_000)

    def test_errors_share_base_class(self) -> None:
        for cls in (PathTraversalError, SymlinkError, TooManyFilesError, ExtractedSizeLimitError):
            assert issubclass(cls, ArchiveExtractionError)
