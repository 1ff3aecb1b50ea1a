"""Command line interface.

Usage:
    truesight data.csv
    truesight data.csv --chunk-size 50000 --workers 8
    truesight data.csv --sequential --format json
    truesight data.csv --per-chunk --config truesight.yaml
    truesight data.csv --preview --log-format json

Exit codes:
    0: scan finished
    1: the file could not be read to the end
    2: invalid configuration or input path
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from truesight import __version__
from truesight.config import VALID_LOG_FORMATS, VALID_LOG_LEVELS, VALID_REPORT_FORMATS, ScanConfig
from truesight.exceptions import (
    CheckNotFoundError,
    ConfigurationError,
    InvalidSourcePathError,
    SourceReadError,
)
from truesight.logging import configure_logging
from truesight.reporting import get_report_formatter, preview
from truesight.scanning.hooks import ConsoleChunkHook
from truesight.scanning.runner import scan_csv
from truesight.sources import CsvRecordSource, validate_csv_path


if TYPE_CHECKING:
    from collections.abc import Sequence


EXIT_OK = 0
EXIT_READ_ERROR = 1
EXIT_USAGE_ERROR = 2


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="truesight",
        description="Scan a CSV file for NULL-like, empty and whitespace-only values",
    )
    parser.add_argument("path", help="Path to the CSV file")
    parser.add_argument(
        "--chunk-size",
        "-c",
        type=int,
        help="Records per chunk (default: 1000000)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Disable parallel scanning within a chunk",
    )
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        dest="max_workers",
        help="Worker threads per chunk (default: CPU count)",
    )
    parser.add_argument(
        "--whitespace-includes-empty",
        action="store_true",
        default=None,
        help="Count empty fields as whitespace-only too",
    )
    parser.add_argument(
        "--delimiter",
        "-d",
        help="Field delimiter (default: ',')",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=VALID_REPORT_FORMATS,
        dest="report_format",
        help="Report format (default: table)",
    )
    parser.add_argument(
        "--per-chunk",
        action="store_true",
        help="Print the findings of every chunk while scanning",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Print the header and the first records before scanning",
    )
    parser.add_argument(
        "--preview-rows",
        type=positive_int,
        default=10,
        metavar="N",
        help="Records shown by --preview (default: 10)",
    )
    parser.add_argument(
        "--partial",
        action="store_true",
        default=None,
        dest="collect_partial_results",
        help="On a read error, print the results gathered so far",
    )
    parser.add_argument("--config", help="Configuration file (YAML or JSON)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=VALID_LOG_FORMATS,
        help="Log line format on stderr (default: text)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ScanConfig:
    """Load file and environment configuration, then apply the command line flags."""
    config = ScanConfig.load(config_file=args.config)
    return config.with_overrides(
        chunk_size=args.chunk_size,
        parallel=False if args.sequential else None,
        max_workers=args.max_workers,
        whitespace_includes_empty=args.whitespace_includes_empty,
        collect_partial_results=args.collect_partial_results,
        delimiter=args.delimiter,
        report_format=args.report_format,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def print_preview(path: str, config: ScanConfig, limit: int) -> None:
    with CsvRecordSource(
        validate_csv_path(path),
        delimiter=config.delimiter,
        encoding=config.encoding,
    ) as source:
        print(preview(source, limit))


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        configure_logging(level=config.log_level, format=config.log_format)
        formatter = get_report_formatter(config.report_format)
        if args.preview:
            print_preview(args.path, config, args.preview_rows)
        hooks = [ConsoleChunkHook()] if args.per_chunk else []
        report = scan_csv(args.path, config, hooks=hooks)
    except (ConfigurationError, CheckNotFoundError, InvalidSourcePathError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    except SourceReadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_READ_ERROR

    print(formatter.format(report))
    return EXIT_OK if report.succeeded else EXIT_READ_ERROR


if __name__ == "__main__":
    sys.exit(main())
