"""Aggregation of chunk results into run-wide totals.

The aggregator folds chunk results in any order: totals are plain sums, so
the outcome is independent of the order chunks arrive in. Once the run has
finished, the elapsed time can be recorded exactly once and a ``ScanSummary``
derived with every ratio the reporters need.

Percentages are defined as:

    - ``% of all cells``: check total / (rows x columns)
    - ``% of column rows``: column count / rows
    - ``% of check total``: column count / check total

All ratios use ``safe_percentage`` and are 0.0 when the denominator is zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from truesight.base import freeze_findings, safe_percentage, safe_rate
from truesight.exceptions import AggregationError
from truesight.scanning.processor import FindingsAccumulator


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from truesight.base import ChunkResult, Headers


# =============================================================================
# Snapshot & Summary Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class AggregateSnapshot:
    """Immutable view of the aggregate state at one point in time."""

    headers: Headers
    total_rows: int
    chunks_folded: int
    totals: Mapping[str, Mapping[int, int]] = field(default_factory=dict)
    elapsed_seconds: float | None = None

    def count_for(self, check_name: str, column: int) -> int:
        return self.totals.get(check_name, {}).get(column, 0)

    def total_for(self, check_name: str) -> int:
        return sum(self.totals.get(check_name, {}).values())


@dataclass(frozen=True, slots=True)
class ColumnSummary:
    """Findings of one check in one column."""

    column_index: int
    column_name: str
    count: int
    percent_of_column_rows: float
    percent_of_check_total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "column_name": self.column_name,
            "count": self.count,
            "percent_of_column_rows": self.percent_of_column_rows,
            "percent_of_check_total": self.percent_of_check_total,
        }


@dataclass(frozen=True, slots=True)
class CheckSummary:
    """Run-wide findings of one check.

    Attributes:
        check_name: Name of the pattern check.
        total_count: Matches across all columns.
        percent_of_cells: ``total_count`` over all cells of the dataset.
        columns: One entry per header column, in column order.
    """

    check_name: str
    total_count: int
    percent_of_cells: float
    columns: tuple[ColumnSummary, ...] = ()

    def column(self, key: int | str) -> ColumnSummary:
        """Look up a column by index or header name.

        Raises:
            KeyError: If no such column exists.
        """
        for summary in self.columns:
            if summary.column_index == key or summary.column_name == key:
                return summary
        raise KeyError(key)

    @property
    def affected_columns(self) -> tuple[ColumnSummary, ...]:
        """Columns with at least one match."""
        return tuple(c for c in self.columns if c.count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_name": self.check_name,
            "total_count": self.total_count,
            "percent_of_cells": self.percent_of_cells,
            "columns": [c.to_dict() for c in self.columns],
        }


@dataclass(frozen=True, slots=True)
class ScanSummary:
    """Derived run statistics consumed by the reporters."""

    headers: Headers
    total_rows: int
    total_chunks: int
    checks: tuple[CheckSummary, ...] = ()
    elapsed_seconds: float | None = None

    @property
    def column_count(self) -> int:
        return len(self.headers)

    @property
    def total_cells(self) -> int:
        return self.total_rows * self.column_count

    @property
    def rows_per_second(self) -> float:
        """Throughput, or 0.0 when the elapsed time is unknown or zero."""
        return safe_rate(self.total_rows, self.elapsed_seconds)

    @property
    def total_findings(self) -> int:
        return sum(c.total_count for c in self.checks)

    def check(self, check_name: str) -> CheckSummary:
        """Raises KeyError if ``check_name`` did not run."""
        for summary in self.checks:
            if summary.check_name == check_name:
                return summary
        raise KeyError(check_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "total_rows": self.total_rows,
            "total_chunks": self.total_chunks,
            "column_count": self.column_count,
            "total_cells": self.total_cells,
            "elapsed_seconds": self.elapsed_seconds,
            "rows_per_second": self.rows_per_second,
            "checks": [c.to_dict() for c in self.checks],
        }


# =============================================================================
# Aggregator
# =============================================================================


class Aggregator:
    """Owns the aggregate state of one run.

    Args:
        headers: Header row of the dataset.
        check_names: Checks expected in the results, in reporting order.
            Checks seen only in chunk results are appended on demand.
    """

    def __init__(self, headers: Sequence[str], check_names: Iterable[str] = ()) -> None:
        self._headers: Headers = tuple(headers)
        self._totals = FindingsAccumulator(check_names)
        self._total_rows = 0
        self._chunks_folded = 0
        self._elapsed_seconds: float | None = None

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def total_rows(self) -> int:
        return self._total_rows

    @property
    def chunks_folded(self) -> int:
        return self._chunks_folded

    @property
    def elapsed_seconds(self) -> float | None:
        return self._elapsed_seconds

    def fold(self, result: ChunkResult) -> None:
        """Add one chunk result to the totals.

        Raises:
            AggregationError: If the result reports a negative row count.
        """
        if result.rows_processed < 0:
            raise AggregationError(
                f"Chunk {result.chunk_number} reports a negative row count",
                details={"chunk_number": result.chunk_number, "rows": result.rows_processed},
            )
        self._total_rows += result.rows_processed
        self._totals.merge(result.findings)
        self._chunks_folded += 1

    def fold_all(self, results: Iterable[ChunkResult]) -> None:
        for result in results:
            self.fold(result)

    def set_elapsed(self, seconds: float) -> None:
        """Record the wall time of the run. Allowed once.

        Raises:
            AggregationError: On a second call or a negative duration.
        """
        if self._elapsed_seconds is not None:
            raise AggregationError(
                "Elapsed time has already been recorded",
                details={"elapsed_seconds": self._elapsed_seconds},
            )
        if seconds < 0:
            raise AggregationError(
                f"Elapsed time must not be negative, got {seconds}",
                details={"elapsed_seconds": seconds},
            )
        self._elapsed_seconds = float(seconds)

    @property
    def state(self) -> AggregateSnapshot:
        totals = self._totals.snapshot()
        return AggregateSnapshot(
            headers=self._headers,
            total_rows=self._total_rows,
            chunks_folded=self._chunks_folded,
            totals=MappingProxyType({name: freeze_findings(cols) for name, cols in totals.items()}),
            elapsed_seconds=self._elapsed_seconds,
        )

    def summary(self) -> ScanSummary:
        """Derive run statistics from the current totals."""
        total_cells = self._total_rows * len(self._headers)
        checks = []
        for check_name in self._totals.check_names:
            check_total = self._totals.total_for(check_name)
            columns = tuple(
                self._column_summary(check_name, index, name, check_total)
                for index, name in enumerate(self._headers)
            )
            checks.append(
                CheckSummary(
                    check_name=check_name,
                    total_count=check_total,
                    percent_of_cells=safe_percentage(check_total, total_cells),
                    columns=columns,
                )
            )
        return ScanSummary(
            headers=self._headers,
            total_rows=self._total_rows,
            total_chunks=self._chunks_folded,
            checks=tuple(checks),
            elapsed_seconds=self._elapsed_seconds,
        )

    def _column_summary(
        self,
        check_name: str,
        index: int,
        name: str,
        check_total: int,
    ) -> ColumnSummary:
        count = self._totals.count_for(check_name, index)
        return ColumnSummary(
            column_index=index,
            column_name=name,
            count=count,
            percent_of_column_rows=safe_percentage(count, self._total_rows),
            percent_of_check_total=safe_percentage(count, check_total),
        )
