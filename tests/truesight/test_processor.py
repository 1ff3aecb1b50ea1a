"""Tests for truesight.scanning.processor module."""

import random
import threading

import pytest

from truesight.base import Chunk
from truesight.config import ScanConfig
from truesight.exceptions import InvalidConfigValueError
from truesight.patterns import EmptyCheck, NullLikeCheck, WhitespaceOnlyCheck, default_checks
from truesight.scanning.processor import (
    ChunkProcessor,
    FindingsAccumulator,
    partition,
    scan_records,
)


def random_records(count: int, columns: int, seed: int = 7) -> list[list[str]]:
    rng = random.Random(seed)
    values = ["", " ", "\t", "NULL", "n/a", "None", "nan", "ok", "42", "nullable", "  x  "]
    records = []
    for _ in range(count):
        width = rng.randint(max(columns - 2, 0), columns + 2)
        records.append([rng.choice(values) for _ in range(width)])
    return records


class TestFindingsAccumulator:
    """Tests for FindingsAccumulator."""

    def test_add_and_count(self):
        """Test counts accumulate per check and column."""
        acc = FindingsAccumulator(["empty"])
        acc.add("empty", 0)
        acc.add("empty", 0)
        acc.add("empty", 2, 5)
        assert acc.count_for("empty", 0) == 2
        assert acc.count_for("empty", 2) == 5
        assert acc.total_for("empty") == 7

    def test_zero_counts_not_stored(self):
        """Test zero increments never create entries."""
        acc = FindingsAccumulator(["empty"])
        acc.add("empty", 3, 0)
        assert acc.snapshot() == {"empty": {}}
        assert not acc

    def test_merge(self):
        """Test merging another accumulator adds counts."""
        left = FindingsAccumulator(["empty"])
        left.add("empty", 0, 2)
        right = FindingsAccumulator(["empty", "null_like"])
        right.add("empty", 0, 3)
        right.add("null_like", 1)
        left.merge(right)
        assert left.snapshot() == {"empty": {0: 5}, "null_like": {1: 1}}

    def test_merge_mapping(self):
        """Test merging a plain mapping."""
        acc = FindingsAccumulator()
        acc.merge({"whitespace": {4: 2}})
        assert acc.count_for("whitespace", 4) == 2

    def test_snapshot_is_a_copy(self):
        """Test snapshots do not alias internal state."""
        acc = FindingsAccumulator(["empty"])
        acc.add("empty", 0)
        snap = acc.snapshot()
        snap["empty"][0] = 99
        assert acc.count_for("empty", 0) == 1


class TestScanRecords:
    """Tests for the scan_records loop."""

    def test_counts_every_check(self):
        """Test each check is applied to each field."""
        acc = FindingsAccumulator()
        scanned = scan_records(
            [["", "NULL", " "], ["x", "", "na"]],
            default_checks(),
            column_count=3,
            accumulator=acc,
        )
        assert scanned == 2
        assert acc.snapshot() == {
            "null_like": {1: 1, 2: 1},
            "empty": {0: 1, 1: 1},
            "whitespace": {2: 1},
        }

    def test_fields_beyond_header_ignored(self):
        """Test fields at index >= column_count are not counted."""
        acc = FindingsAccumulator()
        scan_records([["a", "", "", "NULL"]], default_checks(), column_count=2, accumulator=acc)
        assert acc.snapshot() == {"empty": {1: 1}}

    def test_short_records(self):
        """Test missing trailing fields are simply absent."""
        acc = FindingsAccumulator()
        scan_records([[""], []], [EmptyCheck()], column_count=4, accumulator=acc)
        assert acc.snapshot() == {"empty": {0: 1}}


class TestPartition:
    """Tests for partition."""

    def test_contiguous_slices(self):
        """Test slices cover the input in order."""
        records = list(range(10))
        parts = partition(records, 3)
        assert len(parts) == 3
        assert [x for part in parts for x in part] == records

    def test_more_parts_than_records(self):
        """Test no empty slices are produced."""
        parts = partition([1, 2], 8)
        assert all(parts)
        assert sum(len(p) for p in parts) == 2

    def test_empty(self):
        """Test an empty input has no slices."""
        assert partition([], 4) == []


class TestChunkProcessor:
    """Tests for ChunkProcessor."""

    def test_single_chunk_example(self):
        """Test one chunk of two records."""
        chunk = Chunk(number=1, records=(["a", "", "NULL"], ["  ", "x", ""]))
        with ChunkProcessor(default_checks(), column_count=3, parallel=False) as processor:
            result = processor.process(chunk)

        assert result.chunk_number == 1
        assert result.rows_processed == 2
        assert dict(result.findings_for("null_like")) == {2: 1}
        assert dict(result.findings_for("empty")) == {1: 1, 2: 1}
        assert dict(result.findings_for("whitespace")) == {0: 1}

    def test_every_check_has_an_entry(self):
        """Test checks without matches still appear, with no columns."""
        chunk = Chunk(number=3, records=(["ok", "fine"],))
        with ChunkProcessor(default_checks(), column_count=2, parallel=False) as processor:
            result = processor.process(chunk)
        assert result.check_names == ("null_like", "empty", "whitespace")
        assert all(not result.findings_for(name) for name in result.check_names)

    def test_hundred_rows_column_distribution(self):
        """Test 100 rows with 10/30/60 empty values per column."""
        records = []
        for i in range(100):
            records.append(["" if i < 10 else "a", "" if i < 30 else "b", "" if i < 60 else "c"])
        chunk = Chunk(number=1, records=tuple(records))
        with ChunkProcessor([EmptyCheck()], column_count=3, parallel=False) as processor:
            result = processor.process(chunk)
        assert dict(result.findings_for("empty")) == {0: 10, 1: 30, 2: 60}

    @pytest.mark.parametrize("workers", [2, 3, 8])
    def test_parallel_equals_sequential(self, workers):
        """Test both modes produce identical findings."""
        records = tuple(random_records(503, columns=6))
        chunk = Chunk(number=1, records=records)
        checks = default_checks()

        with ChunkProcessor(checks, 6, parallel=False) as sequential:
            expected = sequential.process(chunk)
        with ChunkProcessor(checks, 6, parallel=True, max_workers=workers, min_parallel_records=1) as parallel:
            assert parallel.should_use_parallel(len(chunk))
            actual = parallel.process(chunk)

        assert actual.same_findings(expected)

    def test_parallel_with_overlapping_whitespace_policy(self):
        """Test the overlapping policy gives identical results in both modes."""
        records = tuple(random_records(200, columns=4, seed=11))
        chunk = Chunk(number=2, records=records)
        checks = default_checks(include_empty_whitespace=True)
        with ChunkProcessor(checks, 4, parallel=False) as sequential:
            expected = sequential.process(chunk)
        with ChunkProcessor(checks, 4, max_workers=4, min_parallel_records=1) as parallel:
            actual = parallel.process(chunk)
        assert actual.same_findings(expected)
        assert actual.total_for("whitespace") >= actual.total_for("empty")

    def test_small_chunks_run_sequentially(self):
        """Test chunks below the threshold skip the pool."""
        processor = ChunkProcessor(default_checks(), 2, max_workers=4, min_parallel_records=100)
        assert not processor.should_use_parallel(99)
        assert processor.should_use_parallel(100)
        processor.process(Chunk(number=1, records=(["", ""],)))
        assert processor._executor is None
        processor.close()

    def test_sequential_mode_never_uses_pool(self):
        """Test parallel=False ignores the threshold."""
        processor = ChunkProcessor(default_checks(), 2, parallel=False, min_parallel_records=1)
        assert not processor.should_use_parallel(10_000)

    def test_workers_use_pool_threads(self):
        """Test the parallel path runs checks on worker threads."""
        seen_threads = set()

        class RecordingCheck(EmptyCheck):
            def matches(self, field):
                seen_threads.add(threading.current_thread().name)
                return super().matches(field)

        chunk = Chunk(number=1, records=tuple(random_records(64, columns=2)))
        with ChunkProcessor([RecordingCheck()], 2, max_workers=4, min_parallel_records=1) as processor:
            processor.process(chunk)
        assert seen_threads
        assert all(name.startswith("truesight-scan") for name in seen_threads)

    def test_check_errors_propagate(self):
        """Test an exception inside a check reaches the caller."""

        class BrokenCheck(EmptyCheck):
            def matches(self, field):
                raise RuntimeError("broken check")

        chunk = Chunk(number=1, records=tuple(random_records(20, columns=2)))
        with ChunkProcessor([BrokenCheck()], 2, max_workers=2, min_parallel_records=1) as processor:
            with pytest.raises(RuntimeError, match="broken check"):
                processor.process(chunk)

    def test_close_is_idempotent(self):
        """Test close can be called repeatedly."""
        processor = ChunkProcessor(default_checks(), 1, max_workers=2, min_parallel_records=1)
        processor.process(Chunk(number=1, records=(["a"], ["b"])))
        processor.close()
        processor.close()

    def test_from_config(self):
        """Test construction from ScanConfig."""
        config = ScanConfig(parallel=False, max_workers=3, min_parallel_records=50)
        processor = ChunkProcessor.from_config(config, default_checks(), 5)
        assert processor.max_workers == 3
        assert processor.column_count == 5
        assert not processor.should_use_parallel(1000)

    def test_duplicate_check_names_rejected(self):
        """Test two checks with one name are rejected."""
        with pytest.raises(InvalidConfigValueError):
            ChunkProcessor([NullLikeCheck(), NullLikeCheck()], 2)

    def test_no_checks_rejected(self):
        """Test an empty check list is rejected."""
        with pytest.raises(InvalidConfigValueError):
            ChunkProcessor([], 2)

    def test_invalid_column_count(self):
        """Test a negative column count is rejected."""
        with pytest.raises(InvalidConfigValueError):
            ChunkProcessor([WhitespaceOnlyCheck()], -1)
