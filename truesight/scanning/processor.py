"""Chunk processor: applies every pattern check to every field of a chunk.

Two execution modes produce identical findings:

    - Sequential: one pass over the records with one accumulator.
    - Parallel: the records are split into contiguous slices, one task per
      slice on a thread pool. Each task counts into its own
      ``FindingsAccumulator`` and merges it into the chunk's shared
      accumulator exactly once, under a single lock.

Chunks smaller than ``min_parallel_records`` are scanned sequentially even in
parallel mode, since the pool hand-off would cost more than the scan.

Example:
    >>> with ChunkProcessor(default_checks(), column_count=4) as processor:
    ...     result = processor.process(chunk)
    >>> result.count_for("empty", 2)
    3
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from itertools import islice
from typing import TYPE_CHECKING, Any, Self

from truesight.base import ChunkResult
from truesight.config import DEFAULT_MIN_PARALLEL_RECORDS
from truesight.exceptions import InvalidConfigValueError
from truesight.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from truesight.base import Chunk, Record
    from truesight.config import ScanConfig
    from truesight.patterns import PatternCheck


logger = get_logger(__name__)


# =============================================================================
# Findings Accumulator
# =============================================================================


class FindingsAccumulator:
    """Mutable check -> column -> count table.

    Not thread-safe. Each worker owns one; shared accumulators are only
    touched under the owner's lock.
    """

    __slots__ = ("_counts",)

    def __init__(self, check_names: Iterable[str] = ()) -> None:
        self._counts: dict[str, dict[int, int]] = {name: {} for name in check_names}

    def add(self, check_name: str, column: int, count: int = 1) -> None:
        """Add ``count`` matches for ``(check_name, column)``. Zero counts are ignored."""
        if count <= 0:
            return
        columns = self._counts.setdefault(check_name, {})
        columns[column] = columns.get(column, 0) + count

    def merge(self, other: FindingsAccumulator | Mapping[str, Mapping[int, int]]) -> None:
        """Add every count of ``other`` into this accumulator."""
        counts = other._counts if isinstance(other, FindingsAccumulator) else other
        for check_name, columns in counts.items():
            self._counts.setdefault(check_name, {})
            for column, count in columns.items():
                self.add(check_name, column, count)

    def count_for(self, check_name: str, column: int) -> int:
        return self._counts.get(check_name, {}).get(column, 0)

    def total_for(self, check_name: str) -> int:
        return sum(self._counts.get(check_name, {}).values())

    @property
    def check_names(self) -> tuple[str, ...]:
        return tuple(self._counts)

    def snapshot(self) -> dict[str, dict[int, int]]:
        """Copy of the counts, safe to hand out."""
        return {name: dict(columns) for name, columns in self._counts.items()}

    def __bool__(self) -> bool:
        return any(self._counts.values())

    def __repr__(self) -> str:
        return f"FindingsAccumulator({self.snapshot()!r})"


def scan_records(
    records: Iterable[Record],
    checks: Sequence[PatternCheck],
    column_count: int,
    accumulator: FindingsAccumulator,
) -> int:
    """Apply ``checks`` to the first ``column_count`` fields of each record.

    Returns:
        Number of records scanned.
    """
    matchers = [(check.name, check.matches) for check in checks]
    scanned = 0
    for record in records:
        for column, value in enumerate(islice(record, column_count)):
            for name, matches in matchers:
                if matches(value):
                    accumulator.add(name, column)
        scanned += 1
    return scanned


def partition(records: Sequence[Record], parts: int) -> list[Sequence[Record]]:
    """Split ``records`` into at most ``parts`` contiguous, near-equal slices."""
    if not records or parts <= 1:
        return [records] if records else []
    size = (len(records) + parts - 1) // parts
    return [records[start : start + size] for start in range(0, len(records), size)]


# =============================================================================
# Chunk Processor
# =============================================================================


class ChunkProcessor:
    """Turns a ``Chunk`` into a ``ChunkResult``.

    Args:
        checks: Pattern checks to apply, in reporting order. Names must be unique.
        column_count: Number of header columns. Fields at or beyond this
            index are ignored.
        parallel: Scan a chunk's records on a worker pool.
        max_workers: Pool size. Defaults to the CPU count.
        min_parallel_records: Smallest chunk scanned on the pool.

    Raises:
        InvalidConfigValueError: If the checks are empty or repeat a name, or
            a numeric argument is out of range.
    """

    def __init__(
        self,
        checks: Sequence[PatternCheck],
        column_count: int,
        *,
        parallel: bool = True,
        max_workers: int | None = None,
        min_parallel_records: int = DEFAULT_MIN_PARALLEL_RECORDS,
    ) -> None:
        self._checks = tuple(checks)
        names = [check.name for check in self._checks]
        if not names or len(set(names)) != len(names):
            raise InvalidConfigValueError(
                "Pattern checks must be non-empty and uniquely named",
                config_key="checks",
                value=names,
            )
        if isinstance(column_count, bool) or not isinstance(column_count, int) or column_count < 0:
            raise InvalidConfigValueError(
                f"column_count must be a non-negative integer, got {column_count!r}",
                config_key="column_count",
                value=column_count,
            )
        if max_workers is not None and max_workers <= 0:
            raise InvalidConfigValueError(
                f"max_workers must be positive, got {max_workers!r}",
                config_key="max_workers",
                value=max_workers,
            )

        self._check_names = tuple(names)
        self._column_count = column_count
        self._parallel = parallel
        self._max_workers = max_workers or os.cpu_count() or 1
        self._min_parallel_records = min_parallel_records
        self._executor: ThreadPoolExecutor | None = None
        self._merge_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: ScanConfig,
        checks: Sequence[PatternCheck],
        column_count: int,
    ) -> Self:
        return cls(
            checks,
            column_count,
            parallel=config.parallel,
            max_workers=config.max_workers,
            min_parallel_records=config.min_parallel_records,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def checks(self) -> tuple[PatternCheck, ...]:
        return self._checks

    @property
    def check_names(self) -> tuple[str, ...]:
        return self._check_names

    @property
    def column_count(self) -> int:
        return self._column_count

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def should_use_parallel(self, record_count: int) -> bool:
        """Whether a chunk of ``record_count`` records goes to the pool."""
        if not self._parallel or self._max_workers < 2:
            return False
        return record_count >= max(self._min_parallel_records, 2)

    def process(self, chunk: Chunk) -> ChunkResult:
        """Scan one chunk.

        Exceptions raised by a check propagate to the caller.
        """
        start_time = time.perf_counter()
        if self.should_use_parallel(len(chunk)):
            findings = self._process_parallel(chunk.records)
            mode = "parallel"
        else:
            findings = self._process_sequential(chunk.records)
            mode = "sequential"
        execution_time_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            f"Scanned chunk {chunk.number}",
            chunk=chunk.number,
            rows=len(chunk),
            mode=mode,
            execution_time_ms=round(execution_time_ms, 3),
        )
        return ChunkResult(
            chunk_number=chunk.number,
            rows_processed=len(chunk),
            findings=findings.snapshot(),
            execution_time_ms=execution_time_ms,
        )

    def _process_sequential(self, records: Sequence[Record]) -> FindingsAccumulator:
        accumulator = FindingsAccumulator(self._check_names)
        scan_records(records, self._checks, self._column_count, accumulator)
        return accumulator

    def _process_parallel(self, records: Sequence[Record]) -> FindingsAccumulator:
        shared = FindingsAccumulator(self._check_names)

        def scan_slice(part: Sequence[Record]) -> int:
            local = FindingsAccumulator(self._check_names)
            scanned = scan_records(part, self._checks, self._column_count, local)
            with self._merge_lock:
                shared.merge(local)
            return scanned

        executor = self._get_executor()
        futures = [executor.submit(scan_slice, part) for part in partition(records, self._max_workers)]
        for future in as_completed(futures):
            future.result()
        return shared

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="truesight-scan",
            )
        return self._executor

    def close(self) -> None:
        """Shut down the worker pool, waiting for running tasks."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
