"""Observation hooks for scan runs.

Hooks receive run lifecycle events from ``ScanRunner``. They are called on
the orchestrating thread, in chunk order, after each chunk has been folded.

Example:
    >>> metrics = MetricsScanHook()
    >>> runner = ScanRunner(config, hooks=[LoggingScanHook(), metrics])
    >>> report = runner.run(headers, records)
    >>> metrics.chunks_completed
    4
"""

from __future__ import annotations

import sys
import threading
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

from truesight.logging import get_logger
from truesight.reporting import ChunkConsoleFormatter


if TYPE_CHECKING:
    from collections.abc import Sequence

    from truesight.base import ChunkResult, Headers
    from truesight.config import ScanConfig
    from truesight.logging import TrueSightLogger
    from truesight.scanning.aggregation import ScanSummary


@runtime_checkable
class ScanHook(Protocol):
    """Protocol for scan run observers."""

    def on_run_start(self, run_id: str, headers: Headers, config: ScanConfig) -> None:
        """Called once, before the first chunk is read."""
        ...

    def on_chunk_complete(self, result: ChunkResult, headers: Headers) -> None:
        """Called after a chunk result has been folded."""
        ...

    def on_run_complete(self, summary: ScanSummary) -> None:
        """Called when the source is exhausted and the run is DONE."""
        ...

    def on_run_failed(self, error: Exception, summary: ScanSummary) -> None:
        """Called when the run ends FAILED. ``summary`` covers the folded chunks."""
        ...


class LoggingScanHook:
    """Hook that logs run events through the structured logger."""

    def __init__(self, logger: TrueSightLogger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def on_run_start(self, run_id: str, headers: Headers, config: ScanConfig) -> None:
        self._logger.info(
            f"Starting scan {run_id}",
            columns=len(headers),
            chunk_size=config.chunk_size,
            parallel=config.parallel,
        )

    def on_chunk_complete(self, result: ChunkResult, headers: Headers) -> None:
        self._logger.debug(
            f"Completed chunk {result.chunk_number} in {result.execution_time_ms:.2f}ms",
            chunk=result.chunk_number,
            rows=result.rows_processed,
            **{name: result.total_for(name) for name in result.check_names},
        )

    def on_run_complete(self, summary: ScanSummary) -> None:
        self._logger.info(
            f"Scan complete: {summary.total_rows} rows in {summary.total_chunks} chunks",
            total_rows=summary.total_rows,
            total_chunks=summary.total_chunks,
            findings=summary.total_findings,
            elapsed_seconds=summary.elapsed_seconds,
        )

    def on_run_failed(self, error: Exception, summary: ScanSummary) -> None:
        self._logger.error(
            f"Scan failed after {summary.total_chunks} chunks: {error}",
            exc_info=error,
            total_rows=summary.total_rows,
            total_chunks=summary.total_chunks,
        )


class MetricsScanHook:
    """Hook that collects run metrics. Safe to read from other threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._chunk_times: list[float] = []
        self._rows_processed = 0
        self._runs_started = 0
        self._runs_completed = 0
        self._runs_failed = 0

    def on_run_start(self, run_id: str, headers: Headers, config: ScanConfig) -> None:
        with self._lock:
            self._runs_started += 1

    def on_chunk_complete(self, result: ChunkResult, headers: Headers) -> None:
        with self._lock:
            self._chunk_times.append(result.execution_time_ms)
            self._rows_processed += result.rows_processed

    def on_run_complete(self, summary: ScanSummary) -> None:
        with self._lock:
            self._runs_completed += 1

    def on_run_failed(self, error: Exception, summary: ScanSummary) -> None:
        with self._lock:
            self._runs_failed += 1

    @property
    def chunks_completed(self) -> int:
        with self._lock:
            return len(self._chunk_times)

    @property
    def rows_processed(self) -> int:
        with self._lock:
            return self._rows_processed

    @property
    def runs_started(self) -> int:
        with self._lock:
            return self._runs_started

    @property
    def runs_completed(self) -> int:
        with self._lock:
            return self._runs_completed

    @property
    def runs_failed(self) -> int:
        with self._lock:
            return self._runs_failed

    @property
    def average_chunk_time_ms(self) -> float:
        with self._lock:
            if not self._chunk_times:
                return 0.0
            return sum(self._chunk_times) / len(self._chunk_times)

    def reset(self) -> None:
        with self._lock:
            self._chunk_times.clear()
            self._rows_processed = 0
            self._runs_started = 0
            self._runs_completed = 0
            self._runs_failed = 0


class ConsoleChunkHook:
    """Hook that prints the findings of every chunk as it completes."""

    def __init__(
        self,
        stream: IO[str] | None = None,
        formatter: ChunkConsoleFormatter | None = None,
    ) -> None:
        self._stream = stream
        self._formatter = formatter or ChunkConsoleFormatter()

    def on_run_start(self, run_id: str, headers: Headers, config: ScanConfig) -> None:
        pass

    def on_chunk_complete(self, result: ChunkResult, headers: Headers) -> None:
        stream = self._stream or sys.stdout
        stream.write(self._formatter.format(result, headers))
        stream.write("\n")

    def on_run_complete(self, summary: ScanSummary) -> None:
        pass

    def on_run_failed(self, error: Exception, summary: ScanSummary) -> None:
        pass


class CompositeScanHook:
    """Hook that delegates to multiple hooks, in order."""

    def __init__(self, hooks: Sequence[ScanHook] = ()) -> None:
        self._hooks = list(hooks)

    def add_hook(self, hook: ScanHook) -> None:
        self._hooks.append(hook)

    @property
    def hooks(self) -> tuple[ScanHook, ...]:
        return tuple(self._hooks)

    def on_run_start(self, run_id: str, headers: Headers, config: ScanConfig) -> None:
        for hook in self._hooks:
            hook.on_run_start(run_id, headers, config)

    def on_chunk_complete(self, result: ChunkResult, headers: Headers) -> None:
        for hook in self._hooks:
            hook.on_chunk_complete(result, headers)

    def on_run_complete(self, summary: ScanSummary) -> None:
        for hook in self._hooks:
            hook.on_run_complete(summary)

    def on_run_failed(self, error: Exception, summary: ScanSummary) -> None:
        for hook in self._hooks:
            hook.on_run_failed(error, summary)

    def __len__(self) -> int:
        return len(self._hooks)


def as_hook(hooks: ScanHook | Sequence[ScanHook] | None) -> CompositeScanHook:
    """Normalise a hook, a list of hooks or None into one composite hook."""
    if hooks is None:
        return CompositeScanHook()
    if isinstance(hooks, CompositeScanHook):
        return hooks
    if isinstance(hooks, ScanHook):
        return CompositeScanHook([hooks])
    return CompositeScanHook(list(hooks))

