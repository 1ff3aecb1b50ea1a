"""Chunked parallel scanning engine.

The engine is a pipeline of three stages tied together by the runner:

    ChunkSource -> ChunkProcessor -> Aggregator

Chunks are produced, scanned and folded one at a time; only the records
inside a chunk are scanned concurrently.

Quick Start:
    >>> from truesight.scanning import scan_csv
    >>> report = scan_csv("warehouse.csv")
    >>> report.summary.total_rows
    12

Custom Pipeline:
    >>> from truesight.scanning import ChunkSource, ChunkProcessor, Aggregator
    >>> aggregator = Aggregator(headers, ["null_like", "empty", "whitespace"])
    >>> with ChunkProcessor(default_checks(), len(headers)) as processor:
    ...     for chunk in ChunkSource(records, chunk_size=10_000):
    ...         aggregator.fold(processor.process(chunk))
"""

from truesight.scanning.aggregation import (
    AggregateSnapshot,
    Aggregator,
    CheckSummary,
    ColumnSummary,
    ScanSummary,
)
from truesight.scanning.chunking import ChunkSource, estimate_chunks, validate_chunk_size
from truesight.scanning.hooks import (
    CompositeScanHook,
    ConsoleChunkHook,
    LoggingScanHook,
    MetricsScanHook,
    ScanHook,
)
from truesight.scanning.processor import (
    ChunkProcessor,
    FindingsAccumulator,
    partition,
    scan_records as scan_chunk_records,
)
from truesight.scanning.runner import (
    RunState,
    ScanReport,
    ScanRunner,
    scan_csv,
    scan_dataframe,
    scan_records,
)


__all__ = [
    # Chunking
    "ChunkSource",
    "estimate_chunks",
    "validate_chunk_size",
    # Processing
    "ChunkProcessor",
    "FindingsAccumulator",
    "partition",
    "scan_chunk_records",
    # Aggregation
    "AggregateSnapshot",
    "Aggregator",
    "CheckSummary",
    "ColumnSummary",
    "ScanSummary",
    # Hooks
    "ScanHook",
    "LoggingScanHook",
    "MetricsScanHook",
    "ConsoleChunkHook",
    "CompositeScanHook",
    # Orchestration
    "RunState",
    "ScanReport",
    "ScanRunner",
    "scan_csv",
    "scan_dataframe",
    "scan_records",
]
