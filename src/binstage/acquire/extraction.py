"""Release archive extraction.

tar+gzip assets are extracted with their top-level directory stripped on the
fly. Zip assets cannot be stripped while extracting, so they are expanded as
stored (by the system ``unzip`` when present, otherwise in-process) and then
normalized: the contents of the single ``<prefix>*`` directory are moved up
into the destination.
"""

from __future__ import annotations

import abc
import logging
import subprocess
import tarfile
import uuid
import zipfile
import zlib
from functools import cache
from pathlib import Path

from binstage.archive_safety import ArchiveExtractionError, safe_extract_tar, safe_extract_zip
from binstage.exceptions import ExtractionError
from binstage.utils.io import remove_path
from binstage.utils.subprocess import command_available, run_cmd

logger = logging.getLogger(__name__)

UNZIP_CHECK = ["unzip", "-h"]

# ValueError covers undecodable member names; NotImplementedError an unsupported zip method.
_TAR_ERRORS = (ArchiveExtractionError, tarfile.TarError, zlib.error, EOFError, OSError, ValueError)
_ZIP_ERRORS = (
    ArchiveExtractionError,
    zipfile.BadZipFile,
    subprocess.CalledProcessError,
    zlib.error,
    EOFError,
    OSError,
    ValueError,
    NotImplementedError,
)


def _extraction_error(kind: str, archive_path: Path, dest_dir: Path, exc: BaseException) -> ExtractionError:
    detail = str(exc)
    if isinstance(exc, subprocess.CalledProcessError) and exc.output:
        output = exc.output.decode("utf-8", errors="ignore") if isinstance(exc.output, bytes) else exc.output
        detail = f"{detail}: {output.strip()}"
    return ExtractionError(
        f"Failed to extract {kind}: {detail}",
        context={
            "archive": str(archive_path),
            "dest_dir": str(dest_dir),
            "cause": type(exc).__name__,
        },
    )


def extract_tar_gz(archive_path: Path, dest_dir: Path) -> None:
    """Extract a .tar.gz into ``dest_dir`` dropping the archive's top-level directory."""
    logger.info("Extracting tar.gz to: %s", dest_dir)
    try:
        safe_extract_tar(archive_path, dest_dir, strip=1)
    except _TAR_ERRORS as exc:
        raise _extraction_error("tar.gz", archive_path, dest_dir, exc) from exc


class ZipExtractor(abc.ABC):
    """A way of expanding a zip archive into a directory, entries kept as stored."""

    name: str = ""

    @abc.abstractmethod
    def extract(self, archive_path: Path, dest_dir: Path) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SystemUnzipExtractor(ZipExtractor):
    name = "unzip"

    def extract(self, archive_path: Path, dest_dir: Path) -> None:
        run_cmd(["unzip", "-o", "-q", str(archive_path), "-d", str(dest_dir)])


class InProcessZipExtractor(ZipExtractor):
    name = "zipfile"

    def extract(self, archive_path: Path, dest_dir: Path) -> None:
        safe_extract_zip(archive_path, dest_dir)


@cache
def select_zip_extractor() -> ZipExtractor:
    """Check for ``unzip`` once per process and return the matching strategy."""
    if command_available(UNZIP_CHECK):
        extractor: ZipExtractor = SystemUnzipExtractor()
    else:
        extractor = InProcessZipExtractor()
    logger.debug("Zip extraction strategy: %s", extractor.name)
    return extractor


def find_extracted_dir(dest_dir: Path, prefix: str) -> Path | None:
    candidates = sorted(
        entry for entry in dest_dir.iterdir() if entry.is_dir() and entry.name.startswith(prefix)
    )
    if not candidates:
        return None
    if len(candidates) > 1:
        logger.warning(
            "Several directories in %s match %r, normalizing %s",
            dest_dir,
            prefix,
            candidates[0].name,
        )
    return candidates[0]


def normalize_layout(dest_dir: Path, prefix: str) -> Path:
    """Hoist the contents of ``dest_dir/<prefix>*/`` into ``dest_dir`` and drop that directory.

    Same-named entries already at the top of ``dest_dir`` are replaced.
    Returns the path of the removed directory.
    """
    extracted = find_extracted_dir(dest_dir, prefix)
    if extracted is None:
        raise ExtractionError(
            f"No directory starting with {prefix!r} found in {dest_dir}",
            context={"dest_dir": str(dest_dir), "prefix": prefix},
        )

    # Park it under a unique name so a child sharing its name can be moved up.
    parked = dest_dir / f".binstage-normalize-{uuid.uuid4().hex}"
    extracted.rename(parked)
    for item in sorted(parked.iterdir()):
        target = dest_dir / item.name
        if target.exists() or target.is_symlink():
            remove_path(target)
        item.rename(target)
    parked.rmdir()
    return extracted


def extract_zip(
    archive_path: Path,
    dest_dir: Path,
    prefix: str,
    *,
    extractor: ZipExtractor | None = None,
) -> None:
    """Extract a .zip into ``dest_dir`` and normalize away its ``prefix`` directory."""
    logger.info("Extracting zip to: %s", dest_dir)
    strategy = extractor or select_zip_extractor()
    try:
        strategy.extract(archive_path, dest_dir)
        normalize_layout(dest_dir, prefix)
    except ExtractionError:
        raise
    except _ZIP_ERRORS as exc:
        raise _extraction_error("zip", archive_path, dest_dir, exc) from exc
