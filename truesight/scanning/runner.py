"""Run orchestration: drives chunk source, processor and aggregator.

A run moves through ``START -> READING_CHUNKS -> DONE | FAILED``. Chunks are
pulled, scanned and folded strictly one after another. Only the records
inside a chunk are scanned concurrently. The first read error ends the run:
chunks already folded are kept, nothing is retried.

Example:
    >>> from truesight.scanning import scan_csv
    >>> report = scan_csv("warehouse.csv", ScanConfig(chunk_size=50_000))
    >>> report.summary.check("null_like").total_count
    15
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from truesight.config import ScanConfig
from truesight.exceptions import ScanStateError, SourceReadError
from truesight.logging import LogContext, get_logger, get_performance_logger
from truesight.patterns import resolve_checks
from truesight.scanning.aggregation import Aggregator
from truesight.scanning.chunking import ChunkSource
from truesight.scanning.hooks import as_hook
from truesight.scanning.processor import ChunkProcessor
from truesight.sources import CsvRecordSource, DataFrameRecordSource, validate_csv_path


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    import polars as pl

    from truesight.base import ChunkResult, Headers, Record
    from truesight.patterns import PatternCheck
    from truesight.scanning.aggregation import ScanSummary
    from truesight.scanning.hooks import ScanHook


logger = get_logger(__name__)
perf_logger = get_performance_logger(__name__)


class RunState(Enum):
    """Lifecycle state of a scan run."""

    START = "start"
    READING_CHUNKS = "reading_chunks"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.FAILED)


# =============================================================================
# Scan Report
# =============================================================================


@dataclass(frozen=True, slots=True)
class ScanReport:
    """Outcome of one run.

    Attributes:
        state: DONE, or FAILED when a read error ended the run.
        headers: Header row of the dataset.
        chunk_results: Results of every folded chunk, in chunk order.
        summary: Aggregate statistics over the folded chunks.
        run_id: Identifier used in log records of the run.
        error: The read error that ended a FAILED run.
    """

    state: RunState
    headers: Headers
    chunk_results: tuple[ChunkResult, ...]
    summary: ScanSummary
    run_id: str = ""
    error: SourceReadError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED

    def raise_for_state(self) -> None:
        """Raise the read error of a FAILED report, do nothing otherwise."""
        if self.state is RunState.FAILED and self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "headers": list(self.headers),
            "summary": self.summary.to_dict(),
            "chunks": [result.to_dict() for result in self.chunk_results],
            "error": str(self.error) if self.error is not None else None,
        }


# =============================================================================
# Scan Runner
# =============================================================================


class ScanRunner:
    """Performs exactly one scan run.

    Args:
        config: Scan configuration. Defaults to ``ScanConfig()``.
        checks: Explicit pattern checks. Defaults to the checks named in
            ``config.checks``.
        hooks: A hook or a sequence of hooks notified of run events.

    Raises:
        CheckNotFoundError: If ``config.checks`` names an unknown check.
    """

    def __init__(
        self,
        config: ScanConfig | None = None,
        *,
        checks: Sequence[PatternCheck] | None = None,
        hooks: ScanHook | Sequence[ScanHook] | None = None,
    ) -> None:
        self.config = config or ScanConfig()
        if checks is None:
            checks = resolve_checks(
                self.config.checks,
                include_empty_whitespace=self.config.whitespace_includes_empty,
            )
        self._checks = tuple(checks)
        self._hook = as_hook(hooks)
        self._state = RunState.START
        self.run_id = uuid.uuid4().hex[:12]

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def checks(self) -> tuple[PatternCheck, ...]:
        return self._checks

    def run(self, headers: Sequence[str], records: Iterable[Record]) -> ScanReport:
        """Scan ``records`` and return the report.

        Raises:
            ScanStateError: If this runner has already been used.
            SourceReadError: On a read failure, unless
                ``config.collect_partial_results`` is set. The error carries
                the partial report in ``partial_report``.
        """
        if self._state is not RunState.START:
            raise ScanStateError(
                f"Scan run {self.run_id} has already been started",
                state=self._state.value,
            )

        headers = tuple(headers)
        source = ChunkSource(records, self.config.chunk_size)
        aggregator = Aggregator(headers, [check.name for check in self._checks])
        results: list[ChunkResult] = []

        with LogContext(operation="scan", run_id=self.run_id):
            self._state = RunState.READING_CHUNKS
            logger.info(
                "Scan started",
                columns=len(headers),
                checks=[check.name for check in self._checks],
                chunk_size=self.config.chunk_size,
                parallel=self.config.parallel,
            )
            self._hook.on_run_start(self.run_id, headers, self.config)
            start_time = time.perf_counter()

            try:
                with ChunkProcessor.from_config(self.config, self._checks, len(headers)) as processor:
                    for chunk in source:
                        result = processor.process(chunk)
                        aggregator.fold(result)
                        results.append(result)
                        self._hook.on_chunk_complete(result, headers)
            except SourceReadError as e:
                aggregator.set_elapsed(time.perf_counter() - start_time)
                self._state = RunState.FAILED
                report = self._build_report(aggregator, results, error=e)
                self._hook.on_run_failed(e, report.summary)
                if self.config.collect_partial_results:
                    logger.warning(
                        "Scan ended early, returning partial results",
                        chunks_folded=aggregator.chunks_folded,
                        rows=aggregator.total_rows,
                    )
                    return report
                e.partial_report = report
                raise
            except Exception as e:
                self._state = RunState.FAILED
                source.close()
                aggregator.set_elapsed(time.perf_counter() - start_time)
                self._hook.on_run_failed(e, aggregator.summary())
                raise

            aggregator.set_elapsed(time.perf_counter() - start_time)
            self._state = RunState.DONE
            report = self._build_report(aggregator, results)
            logger.info(
                "Scan finished",
                rows=aggregator.total_rows,
                chunks=aggregator.chunks_folded,
                elapsed_seconds=round(aggregator.elapsed_seconds or 0.0, 3),
            )
            self._hook.on_run_complete(report.summary)
            return report

    def _build_report(
        self,
        aggregator: Aggregator,
        results: list[ChunkResult],
        error: SourceReadError | None = None,
    ) -> ScanReport:
        return ScanReport(
            state=self._state,
            headers=aggregator.headers,
            chunk_results=tuple(results),
            summary=aggregator.summary(),
            run_id=self.run_id,
            error=error,
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def scan_records(
    headers: Sequence[str],
    records: Iterable[Record],
    config: ScanConfig | None = None,
    *,
    checks: Sequence[PatternCheck] | None = None,
    hooks: ScanHook | Sequence[ScanHook] | None = None,
) -> ScanReport:
    """Scan an in-memory or streamed record iterable with a fresh runner."""
    return ScanRunner(config, checks=checks, hooks=hooks).run(headers, records)


def scan_csv(
    path: str | os.PathLike[str],
    config: ScanConfig | None = None,
    *,
    has_header: bool = True,
    checks: Sequence[PatternCheck] | None = None,
    hooks: ScanHook | Sequence[ScanHook] | None = None,
) -> ScanReport:
    """Scan a delimited file, streaming it chunk by chunk.

    The file is closed on every exit path.

    Raises:
        InvalidSourcePathError: If the path is not a readable delimited file.
        SourceReadError: If a record cannot be read and
            ``config.collect_partial_results`` is not set.
    """
    config = config or ScanConfig()
    file_path = validate_csv_path(path)
    runner = ScanRunner(config, checks=checks, hooks=hooks)

    with perf_logger.timed("scan_csv", path=str(file_path), chunk_size=config.chunk_size):
        with CsvRecordSource(
            file_path,
            delimiter=config.delimiter,
            encoding=config.encoding,
            has_header=has_header,
        ) as source:
            return runner.run(source.headers, source.records())


def scan_dataframe(
    frame: pl.DataFrame,
    config: ScanConfig | None = None,
    *,
    checks: Sequence[PatternCheck] | None = None,
    hooks: ScanHook | Sequence[ScanHook] | None = None,
) -> ScanReport:
    """Scan a polars DataFrame. Nulls are reported as empty fields."""
    source = DataFrameRecordSource(frame)
    return scan_records(source.headers, source.records(), config, checks=checks, hooks=hooks)
