"""Report rendering for scan results.

Formatters turn a ``ScanReport`` into text:

    - SummaryReportFormatter: bordered tables with the processing summary,
      the per-column overview and one detail table per check
    - JsonReportFormatter: the report as JSON
    - ChunkConsoleFormatter: the findings of a single chunk, printed while
      the scan is still running

Tables are rendered with ``tabulate``. ``preview`` shows the first records
of a source in the same table style.

Example:
    >>> print(get_report_formatter("table").format(report))
    === PROCESSING SUMMARY ===
    +-------------------+-------+----------------+
    ...
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from itertools import islice
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from tabulate import tabulate

from truesight.exceptions import InvalidConfigValueError


if TYPE_CHECKING:
    from collections.abc import Sequence

    from truesight.base import ChunkResult, Headers
    from truesight.scanning.aggregation import CheckSummary, ScanSummary
    from truesight.scanning.runner import ScanReport
    from truesight.sources import RecordSource


# =============================================================================
# Check Labels
# =============================================================================


@dataclass(frozen=True, slots=True)
class CheckLabels:
    """Display names of one check.

    Attributes:
        title: Used in table titles and headings ("NULL-like").
        short: Used in column headers of the overview table ("NULL").
        phrase: Plural noun for per-chunk lines ("NULL-like values").
        heading: Per-chunk section heading ("NULL-like values:").
    """

    title: str
    short: str
    phrase: str
    heading: str


_labels: dict[str, CheckLabels] = {
    "null_like": CheckLabels("NULL-like", "NULL", "NULL-like values", "NULL-like values:"),
    "empty": CheckLabels("Empty", "Empty", "empty values", "Empty values:"),
    "whitespace": CheckLabels(
        "Whitespace", "Whitespace", "white space only values", "White Space Only values:"
    ),
}


def register_check_labels(check_name: str, labels: CheckLabels) -> None:
    """Set the display names used for a custom check."""
    _labels[check_name] = labels


def labels_for(check_name: str) -> CheckLabels:
    """Display names of a check, derived from its name when none are registered."""
    labels = _labels.get(check_name)
    if labels is None:
        title = check_name.replace("_", " ").title()
        labels = CheckLabels(title, title, f"{title.lower()} values", f"{title} values:")
    return labels


# =============================================================================
# Tables
# =============================================================================


class TableFormatter:
    """Renders bordered tables through ``tabulate``.

    Columns whose cells all start with a digit (counts, percentages) are
    right-aligned, other columns are left-aligned; a ``-`` placeholder does
    not affect the choice. Cells and headers longer than ``max_col_width``
    are cut, with ``...`` when ``show_truncation`` is set.
    """

    def __init__(
        self,
        max_col_width: int = 20,
        show_truncation: bool = True,
        tablefmt: str = "psql",
    ) -> None:
        if max_col_width <= 0:
            raise InvalidConfigValueError(
                f"max_col_width must be positive, got {max_col_width}",
                config_key="max_col_width",
                value=max_col_width,
            )
        self.max_col_width = max_col_width
        self.show_truncation = show_truncation
        self.tablefmt = tablefmt

    def truncate(self, text: str, width: int | None = None) -> str:
        width = self.max_col_width if width is None else width
        if len(text) <= width:
            return text
        if self.show_truncation and width > 3:
            return text[: width - 3] + "..."
        return text[:width]

    def format_table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
        """Render ``rows`` under ``headers``. An empty row list renders nothing."""
        if not rows:
            return ""
        cells = [[self.truncate(cell) for cell in row] for row in rows]
        return (
            tabulate(
                cells,
                headers=[self.truncate(header) for header in headers],
                tablefmt=self.tablefmt,
                colalign=_column_alignment(len(headers), cells),
                disable_numparse=True,
            )
            + "\n"
        )


def _column_alignment(width: int, rows: Sequence[Sequence[str]]) -> list[str]:
    alignment = []
    for index in range(width):
        values = [row[index] for row in rows if index < len(row) and row[index] != "-"]
        numeric = bool(values) and all(value[:1].isdigit() for value in values)
        alignment.append("right" if numeric else "left")
    return alignment


def preview(source: RecordSource, limit: int = 10, table: TableFormatter | None = None) -> str:
    """Show the header and the first ``limit`` records of a source as a table.

    Records are padded or cut to the header width.
    """
    headers = source.headers
    width = len(headers)
    rows = [
        [*record[:width], *[""] * (width - len(record))]
        for record in islice(source.records(), limit)
    ]
    title = f"=== PREVIEW: first {len(rows)} records ===\n"
    if not rows:
        return title + "(no records)\n"
    return title + (table or TableFormatter()).format_table(headers, rows)


# =============================================================================
# Report Formatters
# =============================================================================


@runtime_checkable
class ReportFormatter(Protocol):
    """Protocol for whole-report formatters."""

    @property
    def name(self) -> str: ...

    def format(self, report: ScanReport) -> str: ...


class BaseReportFormatter(ABC):
    """Base class carrying the registry name."""

    def __init__(self, name: str | None = None) -> None:
        self._name = name or self.__class__.__name__

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def format(self, report: ScanReport) -> str: ...


class SummaryReportFormatter(BaseReportFormatter):
    """Tabular report of a finished (or partially finished) run.

    Sections:
        1. PROCESSING SUMMARY: totals, each check as % of all cells
        2. DATA QUALITY SUMMARY BY COLUMN: per column, per check count and
           % of the column's rows
        3. One table per check: count, % of the check's total and % of
           column rows, followed by the check total
    """

    def __init__(self, table: TableFormatter | None = None, name: str | None = None) -> None:
        super().__init__(name or "table")
        self.table = table or TableFormatter(max_col_width=25)

    def format(self, report: ScanReport) -> str:
        summary = report.summary
        sections = [
            self.format_processing_summary(summary),
            self.format_column_overview(summary),
            *(self.format_check_table(check) for check in summary.checks),
        ]
        footer = []
        if summary.elapsed_seconds is not None:
            footer.append(
                f"Processed {summary.total_rows:,} rows in {summary.elapsed_seconds:.3f}s "
                f"({summary.rows_per_second:,.0f} rows/s)\n"
            )
        if report.error is not None:
            footer.append(f"Scan FAILED, results cover the chunks read before the error: {report.error}\n")
        return "\n".join(sections) + ("\n" + "".join(footer) if footer else "")

    def format_processing_summary(self, summary: ScanSummary) -> str:
        rows = [
            ["Total Rows", str(summary.total_rows), "-"],
            ["Total Chunks", str(summary.total_chunks), "-"],
            ["Total Cells", str(summary.total_cells), "100.000%"],
        ]
        for check in summary.checks:
            rows.append(
                [
                    f"{labels_for(check.check_name).title} Values",
                    str(check.total_count),
                    f"{check.percent_of_cells:.3f}%",
                ]
            )
        return (
            "=== PROCESSING SUMMARY ===\n"
            + self.table.format_table(["Metric", "Count", "% of All Cells"], rows)
            + f"Dataset: {summary.total_rows} rows × {summary.column_count} columns = "
            f"{summary.total_cells} total cells\n"
        )

    def format_column_overview(self, summary: ScanSummary) -> str:
        headers = ["Column", "Column Name"]
        for check in summary.checks:
            short = labels_for(check.check_name).short
            headers += [f"{short} Count", f"{short} % of Column"]

        rows = []
        for index, name in enumerate(summary.headers):
            row = [str(index), self.table.truncate(name)]
            for check in summary.checks:
                column = check.columns[index]
                row += [str(column.count), f"{column.percent_of_column_rows:.1f}%"]
            rows.append(row)

        return "=== DATA QUALITY SUMMARY BY COLUMN ===\n" + self.table.format_table(headers, rows)

    def format_check_table(self, check: CheckSummary) -> str:
        title = labels_for(check.check_name).title
        headers = ["Column", "Column Name", f"{title} Count", f"% of All {title}", "% of Column Rows"]
        rows = [
            [
                str(column.column_index),
                self.table.truncate(column.column_name),
                str(column.count),
                f"{column.percent_of_check_total:.1f}%" if column.count else "-",
                f"{column.percent_of_column_rows:.3f}%",
            ]
            for column in check.columns
        ]
        return (
            f"=== {title.upper()} VALUES ===\n"
            + self.table.format_table(headers, rows)
            + f"Total {title.lower()} values: {check.total_count} "
            f"({check.percent_of_cells:.3f}% of all cells in dataset)\n"
        )


class JsonReportFormatter(BaseReportFormatter):
    """Serialises ``ScanReport.to_dict()`` as JSON."""

    def __init__(self, indent: int | None = 2, name: str | None = None) -> None:
        super().__init__(name or "json")
        self._indent = indent

    def format(self, report: ScanReport) -> str:
        return json.dumps(report.to_dict(), indent=self._indent, default=str)


class ChunkConsoleFormatter:
    """Describes the findings of one chunk, check by check."""

    def format(self, result: ChunkResult, headers: Headers) -> str:
        lines = [
            "",
            f"Processed chunk #{result.chunk_number} with {result.rows_processed} rows",
            f"--- Statistics for chunk {result.chunk_number}:",
        ]
        for check_name in result.check_names:
            labels = labels_for(check_name)
            findings = result.findings_for(check_name)
            if not findings:
                lines.append(f"No {labels.phrase} found in this chunk")
                continue
            lines.append(labels.heading)
            for column, count in findings.items():
                name = headers[column] if column < len(headers) else "Unknown Column"
                lines.append(f"   col_{column} column_name={name}: {count} {labels.phrase}")
        return "\n".join(lines)


# =============================================================================
# Formatter Registry
# =============================================================================

_formatters: dict[str, ReportFormatter] = {}
_formatter_lock = threading.Lock()


def register_report_formatter(formatter: ReportFormatter) -> None:
    """Register a formatter under its name, replacing any previous one."""
    with _formatter_lock:
        _formatters[formatter.name] = formatter


def get_report_formatter(name: str) -> ReportFormatter:
    """Get a report formatter by name.

    Raises:
        InvalidConfigValueError: If no formatter has that name.
    """
    with _formatter_lock:
        formatter = _formatters.get(name)
        if formatter is None:
            raise InvalidConfigValueError(
                f"Report format '{name}' not found",
                config_key="report_format",
                value=name,
                expected=" | ".join(sorted(_formatters)),
            )
        return formatter


def list_report_formatters() -> list[str]:
    with _formatter_lock:
        return list(_formatters)


def reset_report_formatters() -> None:
    """Reset the registry to the built-in formatters."""
    with _formatter_lock:
        _formatters.clear()
        _register_defaults()


def _register_defaults() -> None:
    for formatter in (SummaryReportFormatter(), JsonReportFormatter()):
        _formatters[formatter.name] = formatter


_register_defaults()
