"""Single-platform pipeline: stage, download, extract, verify, chmod, clean up."""

from __future__ import annotations

import logging
import stat
from collections.abc import Callable
from pathlib import Path

from binstage.acquire.downloader import download
from binstage.acquire.extraction import ZipExtractor, extract_tar_gz, extract_zip
from binstage.exceptions import StagingError, VerificationError
from binstage.logging_config import LogContext
from binstage.platforms import PlatformSpec
from binstage.utils.io import ensure_dir

logger = logging.getLogger(__name__)

Downloader = Callable[[str, Path], Path]

EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def make_executable(path: Path) -> None:
    mode = stat.S_IMODE(path.stat().st_mode)
    path.chmod(mode | EXECUTE_BITS)


class PlatformJob:
    """Runs the acquisition pipeline for one PlatformSpec at a time.

    The staging directory is ``output_root/<spec.name>``; the archive is
    downloaded next to it as ``output_root/<spec.archive_name>`` and removed
    when the job ends, successful or not. Partial staging content from a
    failed job is left in place for inspection.
    """

    def __init__(
        self,
        output_root: Path,
        *,
        downloader: Downloader = download,
        zip_extractor: ZipExtractor | None = None,
    ) -> None:
        self.output_root = Path(output_root)
        self.downloader = downloader
        self.zip_extractor = zip_extractor

    def staging_dir(self, spec: PlatformSpec) -> Path:
        return self.output_root / spec.name

    def archive_path(self, spec: PlatformSpec) -> Path:
        return self.output_root / spec.archive_name

    def run(self, spec: PlatformSpec) -> Path:
        """Run every step for ``spec`` and return the staged binary path.

        Raises:
            StagingError, NetworkError, ExtractionError, VerificationError: the
                failing step's error.
        """
        with LogContext(platform=spec.name):
            logger.info("Processing %s...", spec.name)
            staging_dir = self.staging_dir(spec)
            try:
                platform_dir = ensure_dir(staging_dir)
            except OSError as exc:
                raise StagingError(
                    f"Cannot create staging directory {staging_dir}: {exc}",
                    context={"platform": spec.name, "staging_dir": str(staging_dir)},
                ) from exc
            archive_path = self.archive_path(spec)
            try:
                self.downloader(spec.url, archive_path)
                logger.info("Downloaded %s", spec.archive_name)

                if spec.is_zip:
                    extract_zip(
                        archive_path,
                        platform_dir,
                        spec.extracted_dir_prefix,
                        extractor=self.zip_extractor,
                    )
                else:
                    extract_tar_gz(archive_path, platform_dir)
                logger.info("Extracted %s", spec.archive_name)

                binary_path = platform_dir / spec.binary_path
                if not binary_path.is_file():
                    raise VerificationError(
                        f"Binary not found at {binary_path}",
                        context={"platform": spec.name, "binary_path": str(binary_path)},
                    )

                if not spec.is_zip:
                    try:
                        make_executable(binary_path)
                    except OSError as exc:
                        raise VerificationError(
                            f"Could not make {binary_path} executable: {exc}",
                            context={"platform": spec.name, "binary_path": str(binary_path)},
                        ) from exc
                logger.info("Binary ready: %s", binary_path)
            finally:
                self._cleanup_archive(archive_path)
            return binary_path

    def _cleanup_archive(self, archive_path: Path) -> None:
        if not archive_path.exists():
            return
        try:
            archive_path.unlink()
        except OSError as exc:
            logger.warning("Could not remove archive %s: %s", archive_path, exc)
        else:
            logger.info("Cleaned up %s", archive_path.name)
