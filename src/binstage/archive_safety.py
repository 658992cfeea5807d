"""Archive extraction safety utilities.

Safe extraction for the two release container formats, protecting against:
- Path traversal (../, absolute paths)
- Links pointing outside the destination
- Device files
- Archives with an implausible number of members or extracted size

``safe_extract_tar`` can drop leading path components while extracting;
``safe_extract_zip`` extracts entries as stored.
"""

from __future__ import annotations

import logging
import os
import stat
import tarfile
import zipfile
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES = 10_000
DEFAULT_MAX_EXTRACTED_BYTES = 2 * 1024 * 1024 * 1024  # 2 GB
COPY_CHUNK_SIZE = 1024 * 1024


class ArchiveExtractionError(Exception):
    """Raised when archive extraction fails due to safety checks."""


class PathTraversalError(ArchiveExtractionError):
    """Raised when a member would land outside the destination."""


class SymlinkError(ArchiveExtractionError):
    """Raised when a link member is not allowed or points outside the destination."""


class TooManyFilesError(ArchiveExtractionError):
    """Raised when archive contains too many members."""


class ExtractedSizeLimitError(ArchiveExtractionError):
    """Raised when extracted size exceeds limit."""


def is_path_safe(member_path: str, dest_dir: Path) -> tuple[bool, str | None]:
    """Check if a member path is safe to extract.

    Returns:
        Tuple of (is_safe, error_reason)
    """
    normalized = os.path.normpath(member_path)

    if os.path.isabs(normalized) or member_path.startswith(("/", "\\")):
        return False, f"absolute_path:{member_path}"

    if normalized == ".." or normalized.startswith(("../", "..\\")):
        return False, f"path_traversal:{member_path}"

    try:
        final_path = (dest_dir / normalized).resolve()
        final_path.relative_to(dest_dir.resolve())
    except ValueError:
        return False, f"escapes_dest:{member_path}"
    except OSError as e:
        return False, f"path_resolution_error:{member_path}:{e}"

    return True, None


def strip_components(member_path: str, count: int) -> str | None:
    """Drop ``count`` leading components; None when nothing is left."""
    parts = PurePosixPath(member_path.replace("\\", "/")).parts
    if parts and parts[0] == "/":
        parts = parts[1:]
    remaining = parts[count:]
    if not remaining:
        return None
    return str(PurePosixPath(*remaining))


def _copy_stream(src, target_path: Path) -> int:
    written = 0
    with open(target_path, "wb") as dst:
        while True:
            chunk = src.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            dst.write(chunk)
            written += len(chunk)
    return written


def _check_totals(count: int, total_bytes: int, *, max_files: int, max_extracted_bytes: int) -> None:
    if count > max_files:
        raise TooManyFilesError(f"Archive contains {count} members, exceeds limit of {max_files}")
    if total_bytes > max_extracted_bytes:
        raise ExtractedSizeLimitError(
            f"Total uncompressed size {total_bytes} exceeds limit {max_extracted_bytes}"
        )


def safe_extract_tar(
    archive_path: Path,
    dest_dir: Path,
    *,
    strip: int = 0,
    max_files: int = DEFAULT_MAX_FILES,
    max_extracted_bytes: int = DEFAULT_MAX_EXTRACTED_BYTES,
) -> dict[str, object]:
    """Safely extract a gzip-compressed TAR archive.

    Args:
        archive_path: Path to the .tar.gz archive
        dest_dir: Destination directory for extraction
        strip: Number of leading path components removed from every member
        max_files: Maximum number of members
        max_extracted_bytes: Maximum total extracted size in bytes

    Returns:
        Dict with extraction statistics

    Raises:
        ArchiveExtractionError: If any safety check fails
        tarfile.TarError: If the archive is corrupt
    """
    dest_dir = Path(dest_dir).resolve()
    dest_dir.mkdir(parents=True, exist_ok=True)

    extracted_files = 0
    extracted_bytes = 0
    skipped = 0

    with tarfile.open(archive_path, "r:gz") as tf:
        members = tf.getmembers()
        _check_totals(
            len(members),
            sum(m.size for m in members if m.isfile()),
            max_files=max_files,
            max_extracted_bytes=max_extracted_bytes,
        )

        for member in members:
            name = strip_components(member.name, strip)
            if name is None:
                skipped += 1
                continue

            is_safe, reason = is_path_safe(name, dest_dir)
            if not is_safe:
                raise PathTraversalError(f"Unsafe path in archive: {reason}")

            if member.isdev():
                raise ArchiveExtractionError(f"Device file not allowed: {member.name}")
            if member.islnk():
                raise SymlinkError(f"Hardlink not allowed: {member.name}")

            target_path = dest_dir / name

            if member.isdir():
                target_path.mkdir(parents=True, exist_ok=True)
                continue

            target_path.parent.mkdir(parents=True, exist_ok=True)

            if member.issym():
                link_target = os.path.normpath(os.path.join(os.path.dirname(name), member.linkname))
                link_safe, link_reason = is_path_safe(link_target, dest_dir)
                if not link_safe:
                    raise SymlinkError(f"Symlink target unsafe: {link_reason}")
                if target_path.is_symlink() or target_path.exists():
                    target_path.unlink()
                os.symlink(member.linkname, target_path)
                continue

            if not member.isfile():
                skipped += 1
                continue

            src = tf.extractfile(member)
            if src is None:
                skipped += 1
                continue
            with src:
                extracted_bytes += _copy_stream(src, target_path)
            os.chmod(target_path, member.mode & 0o777)
            extracted_files += 1

    logger.debug(
        "TAR extraction complete: archive=%s files=%d bytes=%d skipped=%d",
        archive_path,
        extracted_files,
        extracted_bytes,
        skipped,
    )
    return {
        "archive_path": str(archive_path),
        "dest_dir": str(dest_dir),
        "files_extracted": extracted_files,
        "bytes_extracted": extracted_bytes,
        "skipped": skipped,
    }


def safe_extract_zip(
    archive_path: Path,
    dest_dir: Path,
    *,
    max_files: int = DEFAULT_MAX_FILES,
    max_extracted_bytes: int = DEFAULT_MAX_EXTRACTED_BYTES,
) -> dict[str, object]:
    """Safely extract a ZIP archive, keeping Unix mode bits stored in the entries.

    Raises:
        ArchiveExtractionError: If any safety check fails
        zipfile.BadZipFile: If the archive is corrupt
    """
    dest_dir = Path(dest_dir).resolve()
    dest_dir.mkdir(parents=True, exist_ok=True)

    extracted_files = 0
    extracted_bytes = 0

    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()
        _check_totals(
            len(members),
            sum(m.file_size for m in members),
            max_files=max_files,
            max_extracted_bytes=max_extracted_bytes,
        )

        for member in members:
            is_safe, reason = is_path_safe(member.filename, dest_dir)
            if not is_safe:
                raise PathTraversalError(f"Unsafe path in archive: {reason}")

            mode = member.external_attr >> 16
            if mode and stat.S_ISLNK(mode):
                raise SymlinkError(f"Symlink not allowed: {member.filename}")

            target_path = dest_dir / member.filename

            if member.is_dir():
                target_path.mkdir(parents=True, exist_ok=True)
                continue

            target_path.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(member) as src:
                extracted_bytes += _copy_stream(src, target_path)
            if mode & 0o777:
                os.chmod(target_path, mode & 0o777)
            extracted_files += 1

    logger.debug(
        "ZIP extraction complete: archive=%s files=%d bytes=%d",
        archive_path,
        extracted_files,
        extracted_bytes,
    )
    return {
        "archive_path": str(archive_path),
        "dest_dir": str(dest_dir),
        "files_extracted": extracted_files,
        "bytes_extracted": extracted_bytes,
    }
