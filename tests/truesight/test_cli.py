"""Tests for truesight.cli module."""

import json

import pytest

from truesight import __version__
from truesight.cli import EXIT_OK, EXIT_READ_ERROR, EXIT_USAGE_ERROR, build_parser, config_from_args, main


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep config discovery and TRUESIGHT_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "TRUESIGHT_CHUNK_SIZE",
        "TRUESIGHT_CHECKS",
        "TRUESIGHT_REPORT_FORMAT",
        "TRUESIGHT_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults_leave_config_untouched(self, sample_csv_path):
        """Test no flag overrides file or environment values."""
        args = build_parser().parse_args([str(sample_csv_path)])
        config = config_from_args(args)
        assert config.chunk_size == 1_000_000
        assert config.parallel is True
        assert config.whitespace_includes_empty is False

    def test_flags_override(self, sample_csv_path):
        """Test flags are applied to the configuration."""
        args = build_parser().parse_args(
            [
                str(sample_csv_path),
                "-c", "5",
                "--sequential",
                "-w", "3",
                "--whitespace-includes-empty",
                "-d", ";",
                "-f", "json",
                "--partial",
                "--log-level", "debug",
            ]
        )
        config = config_from_args(args)
        assert config.chunk_size == 5
        assert config.parallel is False
        assert config.max_workers == 3
        assert config.whitespace_includes_empty is True
        assert config.delimiter == ";"
        assert config.report_format == "json"
        assert config.collect_partial_results is True
        assert config.log_level == "DEBUG"

    def test_flags_override_config_file(self, sample_csv_path, tmp_path):
        """Test flags take precedence over the config file."""
        config_path = tmp_path / "scan.yaml"
        config_path.write_text("chunk_size: 50\nparallel: false\n", encoding="utf-8")
        args = build_parser().parse_args([str(sample_csv_path), "--config", str(config_path), "-c", "7"])
        config = config_from_args(args)
        assert config.chunk_size == 7
        assert config.parallel is False

    def test_version(self, capsys):
        """Test --version prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_bad_format_choice(self, capsys):
        """Test argparse rejects unknown formats."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["data.csv", "--format", "xml"])
        assert exc_info.value.code == 2


class TestMain:
    """Tests for the main entry point."""

    def test_table_report(self, sample_csv_path, capsys):
        """Test a successful scan prints the table report."""
        exit_code = main([str(sample_csv_path), "--chunk-size", "3"])
        out = capsys.readouterr().out
        assert exit_code == EXIT_OK
        assert "=== PROCESSING SUMMARY ===" in out
        assert "Dataset: 12 rows × 6 columns = 72 total cells" in out
        assert "Processed chunk #" not in out

    def test_json_report(self, sample_csv_path, capsys):
        """Test --format json prints only JSON on stdout."""
        exit_code = main([str(sample_csv_path), "--format", "json", "--sequential"])
        data = json.loads(capsys.readouterr().out)
        assert exit_code == EXIT_OK
        assert data["summary"]["total_rows"] == 12
        assert data["summary"]["total_chunks"] == 1

    def test_per_chunk_output(self, sample_csv_path, capsys):
        """Test --per-chunk prints every chunk before the report."""
        main([str(sample_csv_path), "-c", "3", "--per-chunk"])
        out = capsys.readouterr().out
        assert "Processed chunk #4 with 3 rows" in out
        assert out.index("Processed chunk #1") < out.index("=== PROCESSING SUMMARY ===")

    def test_logs_go_to_stderr(self, sample_csv_path, capsys):
        """Test log records do not mix with the report."""
        main([str(sample_csv_path), "--log-level", "INFO"])
        captured = capsys.readouterr()
        assert "Scan started" in captured.err
        assert "Scan started" not in captured.out

    def test_missing_file(self, tmp_path, capsys):
        """Test a missing input exits with the usage error code."""
        exit_code = main([str(tmp_path / "missing.csv")])
        assert exit_code == EXIT_USAGE_ERROR
        assert "does not exist" in capsys.readouterr().err

    def test_invalid_chunk_size(self, sample_csv_path, capsys):
        """Test a zero chunk size is rejected before reading."""
        exit_code = main([str(sample_csv_path), "--chunk-size", "0"])
        assert exit_code == EXIT_USAGE_ERROR
        assert "chunk_size" in capsys.readouterr().err

    def test_unknown_check(self, sample_csv_path, monkeypatch, capsys):
        """Test an unknown check name exits with the usage error code."""
        monkeypatch.setenv("TRUESIGHT_CHECKS", "empty,bogus")
        assert main([str(sample_csv_path)]) == EXIT_USAGE_ERROR
        assert "bogus" in capsys.readouterr().err

    def test_read_error(self, tmp_path, capsys):
        """Test a malformed file exits with the read error code."""
        path = tmp_path / "broken.csv"
        path.write_text('a,b\n1,2\n3,"x"y\n', encoding="utf-8")
        assert main([str(path)]) == EXIT_READ_ERROR
        captured = capsys.readouterr()
        assert "record 2" in captured.err
        assert captured.out == ""

    def test_read_error_with_partial_results(self, tmp_path, capsys):
        """Test --partial prints the partial report and still fails."""
        path = tmp_path / "broken.csv"
        path.write_text('a,b\n1,\n3,4\n5,"x"y\n', encoding="utf-8")
        assert main([str(path), "-c", "2", "--partial"]) == EXIT_READ_ERROR
        out = capsys.readouterr().out
        assert "Scan FAILED" in out
        assert "Dataset: 2 rows × 2 columns = 4 total cells" in out

    def test_json_log_lines(self, sample_csv_path, capsys):
        """Test --log-format json writes one JSON object per log line."""
        assert main([str(sample_csv_path), "--log-format", "json"]) == EXIT_OK
        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
        started = next(line for line in lines if line["message"] == "Scan started")
        assert started["level"] == "INFO"
        assert started["operation"] == "scan"


class TestPreviewOption:
    """Tests for --preview."""

    def test_preview_before_report(self, sample_csv_path, capsys):
        """Test the preview table is printed ahead of the report."""
        assert main([str(sample_csv_path), "--preview", "--preview-rows", "3"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "=== PREVIEW: first 3 records ===" in out
        assert out.index("=== PREVIEW") < out.index("=== PROCESSING SUMMARY ===")
        assert "SKU-002" in out.split("=== PROCESSING SUMMARY ===")[0]
        assert "SKU-004" not in out.split("=== PROCESSING SUMMARY ===")[0]

    def test_no_preview_by_default(self, sample_csv_path, capsys):
        """Test the preview is opt-in."""
        main([str(sample_csv_path)])
        assert "PREVIEW" not in capsys.readouterr().out

    def test_preview_rows_must_be_positive(self, sample_csv_path):
        """Test a zero row count is rejected by the parser."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([str(sample_csv_path), "--preview", "--preview-rows", "0"])
        assert exc_info.value.code == 2
