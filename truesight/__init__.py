"""TrueSight: chunked data-quality scanning for large delimited files.

TrueSight streams a CSV file in bounded chunks and counts, per column, the
fields that are NULL-like tokens, empty, or whitespace-only. Records inside a
chunk are scanned on a worker pool; results are folded into run-wide totals
and rendered as tables or JSON.

Quick Start:
    >>> from truesight import scan_csv, ScanConfig
    >>> report = scan_csv("warehouse.csv", ScanConfig(chunk_size=100_000))
    >>> report.summary.check("empty").total_count
    32

Rendering:
    >>> from truesight import get_report_formatter
    >>> print(get_report_formatter("table").format(report))

Configuration:
    >>> config = ScanConfig.load()  # truesight.yaml + TRUESIGHT_* env vars
    >>> config = config.with_parallel(False)

Logging:
    >>> from truesight import configure_logging
    >>> configure_logging(level="DEBUG", format="json")
"""

__version__ = "0.1.0"

from truesight.base import Chunk, ChunkResult, safe_percentage, safe_rate
from truesight.config import (
    DEFAULT_SCAN_CONFIG,
    SEQUENTIAL_SCAN_CONFIG,
    SMALL_CHUNK_SCAN_CONFIG,
    EnvReader,
    ScanConfig,
    find_config_file,
    load_config_file,
)
from truesight.exceptions import (
    AggregationError,
    CheckNotFoundError,
    ConfigurationError,
    InvalidConfigValueError,
    InvalidSourcePathError,
    MissingConfigError,
    ScanError,
    ScanStateError,
    SourceError,
    SourceReadError,
    TrueSightError,
    wrap_exception,
)
from truesight.logging import (
    LogContext,
    LogLevel,
    configure_logging,
    get_logger,
    get_performance_logger,
)
from truesight.patterns import (
    BaseCheck,
    EmptyCheck,
    NullLikeCheck,
    PatternCheck,
    WhitespaceOnlyCheck,
    default_checks,
    get_check,
    list_checks,
    register_check,
    resolve_checks,
)
from truesight.reporting import (
    ChunkConsoleFormatter,
    JsonReportFormatter,
    SummaryReportFormatter,
    TableFormatter,
    get_report_formatter,
    preview,
    register_report_formatter,
)
from truesight.scanning import (
    Aggregator,
    ChunkProcessor,
    ChunkSource,
    CompositeScanHook,
    ConsoleChunkHook,
    LoggingScanHook,
    MetricsScanHook,
    RunState,
    ScanHook,
    ScanReport,
    ScanRunner,
    ScanSummary,
    scan_csv,
    scan_dataframe,
    scan_records,
)
from truesight.sources import (
    CsvRecordSource,
    DataFrameRecordSource,
    RecordSource,
    read_polars_csv,
    validate_csv_path,
)


__all__ = [
    "__version__",
    # Base types
    "Chunk",
    "ChunkResult",
    "safe_percentage",
    "safe_rate",
    # Configuration
    "DEFAULT_SCAN_CONFIG",
    "SEQUENTIAL_SCAN_CONFIG",
    "SMALL_CHUNK_SCAN_CONFIG",
    "EnvReader",
    "ScanConfig",
    "find_config_file",
    "load_config_file",
    # Exceptions
    "TrueSightError",
    "ConfigurationError",
    "InvalidConfigValueError",
    "MissingConfigError",
    "SourceError",
    "SourceReadError",
    "InvalidSourcePathError",
    "ScanError",
    "AggregationError",
    "ScanStateError",
    "CheckNotFoundError",
    "wrap_exception",
    # Logging
    "LogContext",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "get_performance_logger",
    # Pattern checks
    "PatternCheck",
    "BaseCheck",
    "EmptyCheck",
    "NullLikeCheck",
    "WhitespaceOnlyCheck",
    "default_checks",
    "get_check",
    "list_checks",
    "register_check",
    "resolve_checks",
    # Reporting
    "ChunkConsoleFormatter",
    "JsonReportFormatter",
    "SummaryReportFormatter",
    "TableFormatter",
    "get_report_formatter",
    "preview",
    "register_report_formatter",
    # Scanning
    "Aggregator",
    "ChunkProcessor",
    "ChunkSource",
    "CompositeScanHook",
    "ConsoleChunkHook",
    "LoggingScanHook",
    "MetricsScanHook",
    "RunState",
    "ScanHook",
    "ScanReport",
    "ScanRunner",
    "ScanSummary",
    "scan_csv",
    "scan_dataframe",
    "scan_records",
    # Sources
    "CsvRecordSource",
    "DataFrameRecordSource",
    "RecordSource",
    "read_polars_csv",
    "validate_csv_path",
]
