"""Shared fixtures for TrueSight tests."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from truesight.logging import get_logger_registry


FIXTURES_DIR = Path(__file__).resolve().parent.parent / "fixtures"


@pytest.fixture
def sample_csv_path() -> Path:
    """The 12-record warehouse sample."""
    return FIXTURES_DIR / "sample-warehouse-data.csv"


@pytest.fixture
def sample_rows(sample_csv_path: Path) -> tuple[tuple[str, ...], list[list[str]]]:
    """Headers and records of the warehouse sample, read eagerly."""
    with sample_csv_path.open(encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        headers = tuple(next(reader))
        records = [row for row in reader if row]
    return headers, records


@pytest.fixture(autouse=True)
def reset_logging():
    """Keep logging configuration from leaking between tests."""
    yield
    get_logger_registry().reset()
