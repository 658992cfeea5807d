"""Fetch, verify and stage prebuilt release binaries per target platform."""

from binstage.__version__ import __version__
from binstage.batch import BatchRunner, BatchSummary, JobResult
from binstage.exceptions import (
    BinstageError,
    ConfigurationError,
    ExtractionError,
    NetworkError,
    StagingError,
    VerificationError,
)
from binstage.job import PlatformJob
from binstage.platforms import ArchiveFormat, PlatformSpec, PlatformTable, default_platforms

__all__ = [
    "__version__",
    "ArchiveFormat",
    "PlatformSpec",
    "PlatformTable",
    "default_platforms",
    "PlatformJob",
    "BatchRunner",
    "BatchSummary",
    "JobResult",
    "BinstageError",
    "ConfigurationError",
    "NetworkError",
    "ExtractionError",
    "StagingError",
    "VerificationError",
]
