"""
binstage/batch.py

Runs PlatformJob over an ordered platform table.

Error handling convention:
- ConfigurationError (unknown platform filter) is raised before any job runs.
- NetworkError / ExtractionError / VerificationError from a job are recorded
  in that job's JobResult and the batch moves on to the next platform.
- Anything else is a bug and escapes the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from binstage.exceptions import BinstageError
from binstage.job import PlatformJob
from binstage.platforms import PlatformTable
from binstage.utils.io import ensure_dir, write_json

logger = logging.getLogger(__name__)

SUMMARY_RULE = "=" * 50


@dataclass(frozen=True)
class JobResult:
    """Outcome of one platform's pipeline run."""

    platform: str
    success: bool
    error: str | None = None
    error_code: str | None = None
    binary_path: str | None = None

    @classmethod
    def ok(cls, platform: str, binary_path: Path) -> JobResult:
        return cls(platform=platform, success=True, binary_path=str(binary_path))

    @classmethod
    def failed(cls, platform: str, exc: BinstageError) -> JobResult:
        return cls(platform=platform, success=False, error=exc.message, error_code=exc.code)

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class BatchSummary:
    results: tuple[JobResult, ...]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> list[JobResult]:
        return [result for result in self.results if not result.success]

    @property
    def ok(self) -> bool:
        return self.succeeded == self.total

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def lines(self) -> Iterator[str]:
        yield SUMMARY_RULE
        yield "Summary:"
        yield SUMMARY_RULE
        for result in self.results:
            yield f"{'PASS' if result.success else 'FAIL'} {result.platform}"
            if not result.success:
                yield f"   Error: {result.error}"
        yield SUMMARY_RULE
        yield f"{self.succeeded}/{self.total} platforms successful"

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "total": self.total,
            "ok": self.ok,
            "results": [result.to_dict() for result in self.results],
        }


class BatchRunner:
    def __init__(
        self,
        platforms: PlatformTable,
        output_root: Path,
        *,
        job: PlatformJob | None = None,
    ) -> None:
        self.platforms = platforms
        self.output_root = Path(output_root)
        self.job = job or PlatformJob(self.output_root)

    def run(self, only: str | None = None) -> BatchSummary:
        """Run every requested platform in order; ``only`` narrows to one name."""
        requested = self.platforms.select(only)
        ensure_dir(self.output_root)
        logger.info(
            "Staging %d platform(s) into %s: %s",
            len(requested),
            self.output_root,
            ", ".join(spec.name for spec in requested),
        )

        results: list[JobResult] = []
        for spec in requested:
            try:
                binary_path = self.job.run(spec)
            except BinstageError as exc:
                logger.error("Failed %s: %s", spec.name, exc.message, extra=exc.as_log_fields())
                results.append(JobResult.failed(spec.name, exc))
            else:
                results.append(JobResult.ok(spec.name, binary_path))

        summary = BatchSummary(tuple(results))
        logger.info("%d/%d platforms successful", summary.succeeded, summary.total)
        return summary


def write_report(summary: BatchSummary, path: Path) -> None:
    write_json(path, summary.to_dict())
