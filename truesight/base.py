"""Core data types for TrueSight.

Records, chunks and per-chunk results shared by the chunk source, the chunk
processor, the aggregator and the reporters. Result types are frozen
dataclasses whose mappings are read-only, so a chunk result can be handed to
any number of consumers once it has been produced.

Key Components:
    - Record / Headers: type aliases for one data row and the header row
    - ColumnFindings: sparse column index -> match count mapping
    - Chunk: one bounded, numbered batch of records
    - ChunkResult: per-check column findings for one chunk
    - safe_percentage / safe_rate: division helpers that never produce NaN/Inf
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias


if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


Record: TypeAlias = "Sequence[str]"
Headers: TypeAlias = "tuple[str, ...]"
ColumnFindings: TypeAlias = "Mapping[int, int]"


# =============================================================================
# Numeric helpers
# =============================================================================


def safe_percentage(part: float, whole: float) -> float:
    """Return ``part / whole * 100``, or 0.0 when ``whole`` is zero."""
    if whole <= 0:
        return 0.0
    return (part / whole) * 100.0


def safe_rate(amount: float, seconds: float | None) -> float:
    """Return ``amount / seconds``, or 0.0 when the duration is unknown or zero."""
    if not seconds or seconds <= 0:
        return 0.0
    return amount / seconds


def freeze_findings(findings: Mapping[int, int]) -> Mapping[int, int]:
    """Return a read-only, zero-free, column-ordered copy of ``findings``."""
    return MappingProxyType({col: count for col, count in sorted(findings.items()) if count})


# =============================================================================
# Chunk
# =============================================================================


@dataclass(frozen=True, slots=True)
class Chunk:
    """One bounded batch of records.

    Attributes:
        number: 1-based chunk sequence number, assigned in production order.
        records: The records, in source order.
        first_record_number: 1-based index in the source of the first record.
    """

    number: int
    records: tuple[Record, ...]
    first_record_number: int = 1

    def __len__(self) -> int:
        return len(self.records)

    @property
    def last_record_number(self) -> int:
        """1-based index in the source of the last record."""
        return self.first_record_number + len(self.records) - 1


# =============================================================================
# Chunk Result
# =============================================================================


@dataclass(frozen=True, slots=True)
class ChunkResult:
    """Findings of every pattern check over one chunk.

    Attributes:
        chunk_number: 1-based number of the chunk these findings belong to.
        rows_processed: Number of records in the chunk.
        findings: Check name -> sparse column findings. One entry per active
            check, possibly empty.
        execution_time_ms: Wall time spent scanning the chunk.
    """

    chunk_number: int
    rows_processed: int
    findings: Mapping[str, Mapping[int, int]] = field(default_factory=dict)
    execution_time_ms: float = 0.0

    def __post_init__(self) -> None:
        frozen = MappingProxyType(
            {name: freeze_findings(cols) for name, cols in self.findings.items()}
        )
        object.__setattr__(self, "findings", frozen)

    @property
    def check_names(self) -> tuple[str, ...]:
        return tuple(self.findings)

    def findings_for(self, check_name: str) -> Mapping[int, int]:
        """Column findings for one check (empty if the check did not run)."""
        return self.findings.get(check_name, MappingProxyType({}))

    def count_for(self, check_name: str, column: int) -> int:
        return self.findings_for(check_name).get(column, 0)

    def total_for(self, check_name: str) -> int:
        """Total matches of one check across all columns of the chunk."""
        return sum(self.findings_for(check_name).values())

    def same_findings(self, other: ChunkResult) -> bool:
        """Compare chunk identity and counts, ignoring timing."""
        return (
            self.chunk_number == other.chunk_number
            and self.rows_processed == other.rows_processed
            and {k: dict(v) for k, v in self.findings.items()}
            == {k: dict(v) for k, v in other.findings.items()}
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_number": self.chunk_number,
            "rows_processed": self.rows_processed,
            "findings": {
                name: {str(col): count for col, count in cols.items()}
                for name, cols in self.findings.items()
            },
            "execution_time_ms": self.execution_time_ms,
        }
