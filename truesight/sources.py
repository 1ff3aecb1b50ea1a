"""Record sources feeding the scanning engine.

A record source yields the header row once and then the data records as
sequences of strings. Two implementations are provided:

    - CsvRecordSource: streams a delimited file with the stdlib ``csv``
      reader, never holding more than one record in memory.
    - DataFrameRecordSource: adapts an in-memory ``polars.DataFrame``.

Read failures are converted into ``SourceReadError`` carrying the record
number and physical line number, so the chunk source can stop the run
cleanly.

Example:
    >>> with CsvRecordSource("orders.csv") as source:
    ...     report = scan_records(source.headers, source.records())
"""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Protocol, Self, runtime_checkable

import polars as pl

from truesight.exceptions import InvalidSourcePathError, SourceReadError
from truesight.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Iterator

    from truesight.base import Headers


logger = get_logger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".tsv", ".txt")


@runtime_checkable
class RecordSource(Protocol):
    """Anything that provides a header row and an iterator over records."""

    @property
    def headers(self) -> Headers: ...

    def records(self) -> Iterator[list[str]]: ...


# =============================================================================
# Path Validation
# =============================================================================


def validate_csv_path(path: str | os.PathLike[str]) -> Path:
    """Check that ``path`` names a readable delimited-text file.

    Returns:
        The path as a ``Path``.

    Raises:
        InvalidSourcePathError: If the path is missing, not a regular file,
            unreadable or has an unsupported suffix.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise InvalidSourcePathError(f"File does not exist: {file_path}", path=str(file_path))
    if not file_path.is_file():
        raise InvalidSourcePathError(f"Path is not a file: {file_path}", path=str(file_path))
    if file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise InvalidSourcePathError(
            f"Unsupported file type '{file_path.suffix}'; expected one of "
            f"{', '.join(SUPPORTED_SUFFIXES)}",
            path=str(file_path),
            details={"suffix": file_path.suffix},
        )
    if not os.access(file_path, os.R_OK):
        raise InvalidSourcePathError(f"File is not readable: {file_path}", path=str(file_path))
    return file_path


# =============================================================================
# CSV Source
# =============================================================================


class CsvRecordSource:
    """Streaming reader over a delimited-text file.

    The header row is read when the source is opened. ``records()`` returns a
    generator over the remaining rows; blank lines are skipped and do not
    count as records. Records may have more or fewer fields than the header.

    With ``has_header=False`` the first record is kept as data and the headers
    are synthesised as ``column_1 .. column_n`` from its width.

    Args:
        path: File to read.
        delimiter: Single-character field delimiter.
        encoding: Text encoding of the file.
        has_header: Whether the first row holds column names.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        delimiter: str = ",",
        encoding: str = "utf-8",
        has_header: bool = True,
    ) -> None:
        self.path = Path(path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.has_header = has_header
        self._file: IO[bytes] | None = None
        self._reader: Any = None
        self._headers: Headers | None = None
        self._pending: list[str] | None = None
        self._records_read = 0
        self._line_offset = 0

    def __enter__(self) -> Self:
        return self.open()

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def records_read(self) -> int:
        """Number of data records handed out so far."""
        return self._records_read

    @property
    def headers(self) -> Headers:
        """Column names from the header row. Opens the source if needed."""
        if self._headers is None:
            self.open()
        return self._headers or ()

    def open(self) -> Self:
        """Open the file and capture the header row.

        The file is read in binary mode and decoded one physical line at a
        time, so a byte that cannot be decoded fails its own record and every
        record before it is still handed out.

        Raises:
            InvalidSourcePathError: If the file cannot be opened.
            SourceReadError: If the header row cannot be decoded or parsed.
        """
        if self._file is not None:
            return self
        try:
            self._file = self.path.open("rb")
        except OSError as e:
            raise InvalidSourcePathError(
                f"Cannot open {self.path}: {e}",
                path=str(self.path),
                cause=e,
            ) from e
        self._line_offset = 0
        self._reader = csv.reader(
            self._decoded_lines(self._file),
            delimiter=self.delimiter,
            strict=True,
        )

        try:
            first = self._next_row(record_number=None)
        except SourceReadError:
            self.close()
            raise

        if first is None:
            self._headers = ()
        elif self.has_header:
            self._headers = tuple(first)
        else:
            self._headers = tuple(f"column_{i}" for i in range(1, len(first) + 1))
            self._pending = first

        logger.debug(
            "Opened CSV source",
            path=str(self.path),
            columns=len(self._headers),
            delimiter=self.delimiter,
        )
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._reader = None

    def records(self) -> Iterator[list[str]]:
        """Yield the data records in file order.

        Raises:
            SourceReadError: If a record cannot be decoded or parsed. The
                generator is finished afterwards.
        """
        if self._file is None:
            self.open()

        if self._pending is not None:
            pending, self._pending = self._pending, None
            self._records_read += 1
            yield pending

        while True:
            row = self._next_row(record_number=self._records_read + 1)
            if row is None:
                return
            self._records_read += 1
            yield row

    def _decoded_lines(self, raw: IO[bytes]) -> Iterator[str]:
        # _line_offset is the byte offset of the line being decoded.
        for line in raw:
            text = line.decode(self.encoding)
            self._line_offset += len(line)
            yield text

    def _next_row(self, record_number: int | None) -> list[str] | None:
        """Read the next non-blank row, or None at end of file."""
        if self._reader is None:
            return None
        where = "header row" if record_number is None else f"record {record_number}"
        while True:
            try:
                row = next(self._reader)
            except StopIteration:
                return None
            except UnicodeDecodeError as e:
                # The failing line was never handed to the reader.
                line_number = self._reader.line_num + 1
                byte_offset = self._line_offset + e.start
                raise SourceReadError(
                    f"Failed to read {where} of {self.path} at line {line_number}: "
                    f"cannot decode byte at offset {byte_offset} as {e.encoding} ({e.reason})",
                    record_number=record_number,
                    line_number=line_number,
                    details={"path": str(self.path), "byte_offset": byte_offset},
                    cause=e,
                ) from e
            except (csv.Error, OSError) as e:
                raise SourceReadError(
                    f"Failed to read {where} of {self.path} at line {self._reader.line_num}: {e}",
                    record_number=record_number,
                    line_number=self._reader.line_num,
                    details={"path": str(self.path)},
                    cause=e,
                ) from e
            if row:
                return row


# =============================================================================
# DataFrame Source
# =============================================================================


class DataFrameRecordSource:
    """Adapts a ``polars.DataFrame`` to the header/record interface.

    Every value is rendered with ``str``; nulls become the empty string so
    they are reported by the ``empty`` check.
    """

    def __init__(self, frame: pl.DataFrame) -> None:
        self.frame = frame

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        pass

    @property
    def headers(self) -> Headers:
        return tuple(self.frame.columns)

    def __len__(self) -> int:
        return self.frame.height

    def records(self) -> Iterator[list[str]]:
        for row in self.frame.iter_rows():
            yield ["" if value is None else str(value) for value in row]


def _polars_encoding(encoding: str) -> str:
    normalized = encoding.lower().replace("-", "").replace("_", "")
    return "utf8" if normalized == "utf8" else encoding


def read_polars_csv(
    path: str | os.PathLike[str],
    *,
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> pl.DataFrame:
    """Load a delimited file with polars, keeping every column as text.

    Missing values are read as empty strings so the frame scans the same way
    the streaming source does.

    Raises:
        SourceReadError: If polars cannot parse the file.
    """
    file_path = Path(path)
    try:
        return pl.read_csv(
            file_path,
            separator=delimiter,
            encoding=_polars_encoding(encoding),
            infer_schema=False,
            missing_utf8_is_empty_string=True,
        )
    except pl.exceptions.NoDataError:
        return pl.DataFrame()
    except (pl.exceptions.PolarsError, OSError) as e:
        raise SourceReadError(
            f"Failed to read {file_path} with polars: {e}",
            details={"path": str(file_path)},
            cause=e,
        ) from e
