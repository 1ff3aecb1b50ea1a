"""Chunk source: splits a record stream into bounded, numbered chunks.

The source pulls records lazily, so at most one chunk of records is held in
memory at a time. Chunk numbers start at 1 and follow production order.

A failure to read a record ends the stream for good: the partially
assembled chunk is discarded, ``SourceReadError`` is raised with the record
and chunk numbers, and every later ``next()`` raises ``StopIteration``.

Example:
    >>> source = ChunkSource(records, chunk_size=3)
    >>> [len(chunk) for chunk in source]
    [3, 3, 3, 3]
"""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING, Any

from truesight.base import Chunk
from truesight.exceptions import InvalidConfigValueError, SourceReadError
from truesight.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from truesight.base import Record


logger = get_logger(__name__)


def validate_chunk_size(chunk_size: Any) -> int:
    """Return ``chunk_size`` if it is a positive integer.

    Raises:
        InvalidConfigValueError: For zero, negatives, bools and non-integers.
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise InvalidConfigValueError(
            f"chunk_size must be a positive integer, got {chunk_size!r}",
            config_key="chunk_size",
            value=chunk_size,
            expected="positive integer",
        )
    return chunk_size


def estimate_chunks(total_records: int, chunk_size: int) -> int:
    """Number of chunks ``total_records`` records split into."""
    validate_chunk_size(chunk_size)
    if total_records <= 0:
        return 0
    return (total_records + chunk_size - 1) // chunk_size


class ChunkSource:
    """Iterator of ``Chunk`` objects over a record iterable.

    Args:
        records: Records in source order. Consumed lazily, exactly once.
        chunk_size: Maximum records per chunk.

    Raises:
        InvalidConfigValueError: If ``chunk_size`` is not a positive integer.
            Raised at construction, before any record is read.
    """

    def __init__(self, records: Iterable[Record], chunk_size: int) -> None:
        self._chunk_size = validate_chunk_size(chunk_size)
        self._records: Iterator[Record] = iter(records)
        self._chunks_produced = 0
        self._records_read = 0
        self._exhausted = False
        self._failed = False

    def __iter__(self) -> ChunkSource:
        return self

    def __next__(self) -> Chunk:
        if self._exhausted:
            raise StopIteration

        chunk_number = self._chunks_produced + 1
        first_record_number = self._records_read + 1
        batch: list[Record] = []

        try:
            while len(batch) < self._chunk_size:
                try:
                    record = next(self._records)
                except StopIteration:
                    self._exhausted = True
                    break
                batch.append(record)
        except SourceReadError as e:
            self._fail()
            record_number = e.record_number
            if record_number is None:
                record_number = self._records_read + len(batch) + 1
            error = e.at_chunk(chunk_number)
            error.record_number = record_number
            error.details["record_number"] = record_number
            logger.error(str(error), chunk=chunk_number, record=record_number)
            raise error from e.cause
        except (csv.Error, OSError, ValueError) as e:
            self._fail()
            record_number = self._records_read + len(batch) + 1
            logger.error(
                "Record stream failed",
                chunk=chunk_number,
                record=record_number,
                error=str(e),
            )
            raise SourceReadError(
                f"Failed to read record {record_number} while assembling chunk {chunk_number}: {e}",
                record_number=record_number,
                chunk_number=chunk_number,
                cause=e,
            ) from e

        if not batch:
            raise StopIteration

        self._records_read += len(batch)
        self._chunks_produced = chunk_number
        return Chunk(
            number=chunk_number,
            records=tuple(batch),
            first_record_number=first_record_number,
        )

    def _fail(self) -> None:
        self._failed = True
        self.close()

    def close(self) -> None:
        """Stop producing chunks and release the underlying record iterator."""
        self._exhausted = True
        close = getattr(self._records, "close", None)
        if callable(close):
            close()

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunks_produced(self) -> int:
        """Number of chunks handed out so far."""
        return self._chunks_produced

    @property
    def records_read(self) -> int:
        """Number of records handed out in chunks so far."""
        return self._records_read

    @property
    def failed(self) -> bool:
        """Whether the stream ended with a read error."""
        return self._failed

    @property
    def exhausted(self) -> bool:
        return self._exhausted
