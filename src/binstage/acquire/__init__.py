"""Acquisition: downloading release assets and unpacking them."""

from binstage.acquire.downloader import MAX_REDIRECTS, download
from binstage.acquire.extraction import (
    InProcessZipExtractor,
    SystemUnzipExtractor,
    ZipExtractor,
    extract_tar_gz,
    extract_zip,
    normalize_layout,
    select_zip_extractor,
)

__all__ = [
    "MAX_REDIRECTS",
    "download",
    "extract_tar_gz",
    "extract_zip",
    "normalize_layout",
    "select_zip_extractor",
    "ZipExtractor",
    "SystemUnzipExtractor",
    "InProcessZipExtractor",
]
