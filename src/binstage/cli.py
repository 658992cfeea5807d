#!/usr/bin/env python3
"""Download release binaries for every target platform and stage them for bundling."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from binstage.batch import BatchRunner, write_report
from binstage.config_validator import load_platform_table
from binstage.exceptions import ConfigurationError
from binstage.logging_config import add_logging_args, configure_logging
from binstage.platforms import DEFAULT_OUTPUT_DIR, DEFAULT_RIPGREP_VERSION, PlatformTable, default_platforms

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download prebuilt binaries for each platform and stage them under the output directory."
    )
    parser.add_argument(
        "platform",
        nargs="?",
        default=None,
        help="Only process this platform (default: all).",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output root for staged binaries (default: {DEFAULT_OUTPUT_DIR}).",
    )
    parser.add_argument(
        "--release-version",
        default=None,
        help=f"Release version to fetch (default: {DEFAULT_RIPGREP_VERSION}, or the YAML's version).",
    )
    parser.add_argument(
        "--platforms-yaml",
        type=Path,
        default=None,
        help="Load the platform table from this YAML file instead of the built-in one.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a JSON summary of the run to this path.",
    )
    parser.add_argument(
        "--list-platforms",
        action="store_true",
        help="List the configured platforms and exit.",
    )
    add_logging_args(parser)
    return parser.parse_args(argv)


def _resolve_platforms(args: argparse.Namespace) -> PlatformTable:
    if args.platforms_yaml:
        return load_platform_table(args.platforms_yaml, version=args.release_version)
    return default_platforms(args.release_version or DEFAULT_RIPGREP_VERSION)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=args.log_level, fmt=args.log_format)

    try:
        platforms = _resolve_platforms(args)
        if args.list_platforms:
            print("Available platforms:")
            for name in platforms.names():
                print(f"  - {name}")
            return 0

        output_root = Path(args.output_dir)
        print("Binary downloader")
        print(f"   Output: {output_root}")
        if args.platform:
            print(f"   Platform: {args.platform}")

        summary = BatchRunner(platforms, output_root).run(args.platform)
    except ConfigurationError as exc:
        logger.error("%s", exc.message, extra=exc.as_log_fields())
        print(f"\n{exc.message}", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("Fatal error")
        return 1

    print()
    for line in summary.lines():
        print(line)

    if args.report:
        try:
            write_report(summary, args.report)
        except OSError as exc:
            logger.error("Could not write report %s: %s", args.report, exc)
            return 1

    if not summary.ok:
        return 1
    print("\nAll binaries downloaded successfully!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
