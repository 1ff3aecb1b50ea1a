"""Configuration management for TrueSight.

The scan configuration is an immutable value handed to the run orchestration
before a run starts. It can be built from explicit parameters, environment
variables, or a JSON/YAML file.

Configuration Precedence (highest to lowest):
    1. Explicit parameters / command line flags
    2. Environment variables (``TRUESIGHT_*``)
    3. Configuration file
    4. Default values

Example:
    >>> from truesight.config import ScanConfig
    >>> config = ScanConfig.load()
    >>> config = config.with_chunk_size(50_000).with_parallel(False)
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self

import yaml

from truesight.exceptions import ConfigurationError, InvalidConfigValueError, MissingConfigError


# =============================================================================
# Constants
# =============================================================================

DEFAULT_ENV_PREFIX = "TRUESIGHT"
CONFIG_FILE_NAMES = ("truesight.yaml", "truesight.yml", "truesight.json", ".truesight.json")

DEFAULT_CHUNK_SIZE = 1_000_000
DEFAULT_MIN_PARALLEL_RECORDS = 1_000
DEFAULT_CHECKS = ("null_like", "empty", "whitespace")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("text", "json")
VALID_REPORT_FORMATS = ("table", "json")


# =============================================================================
# Environment Variable Utilities
# =============================================================================


class EnvReader:
    """Typed accessors for prefixed environment variables.

    Example:
        >>> reader = EnvReader(prefix="TRUESIGHT")
        >>> chunk_size = reader.get_int("CHUNK_SIZE", default=1000)
        >>> parallel = reader.get_bool("PARALLEL", default=True)
    """

    def __init__(self, prefix: str = DEFAULT_ENV_PREFIX) -> None:
        self.prefix = prefix

    def _make_key(self, name: str) -> str:
        if self.prefix:
            return f"{self.prefix}_{name}"
        return name

    def get(self, name: str, default: str | None = None) -> str | None:
        return os.environ.get(self._make_key(name), default)

    def get_required(self, name: str) -> str:
        """Get a variable that must be set.

        Raises:
            MissingConfigError: If the variable is not set.
        """
        key = self._make_key(name)
        value = os.environ.get(key)
        if value is None:
            raise MissingConfigError(key)
        return value

    def get_int(self, name: str, default: int | None = None) -> int | None:
        """Get an integer variable.

        Raises:
            InvalidConfigValueError: If the value is not an integer.
        """
        value = self.get(name)
        if value is None:
            return default
        try:
            return int(value.replace("_", ""))
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid integer value for {self._make_key(name)}",
                config_key=self._make_key(name),
                value=value,
                expected="integer",
                cause=e,
            ) from e

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        """Get a boolean variable.

        Truthy values: "1", "true", "yes", "on" (case-insensitive)
        Falsy values: "0", "false", "no", "off" (case-insensitive)

        Raises:
            InvalidConfigValueError: If the value is not a recognised boolean.
        """
        value = self.get(name)
        if value is None:
            return default
        lower_value = value.strip().lower()
        if lower_value in ("1", "true", "yes", "on"):
            return True
        if lower_value in ("0", "false", "no", "off"):
            return False
        raise InvalidConfigValueError(
            f"Invalid boolean value for {self._make_key(name)}",
            config_key=self._make_key(name),
            value=value,
            expected="boolean (1/0, true/false, yes/no, on/off)",
        )

    def get_list(
        self,
        name: str,
        separator: str = ",",
        default: list[str] | None = None,
    ) -> list[str] | None:
        """Get a separated list variable; blank items are dropped."""
        value = self.get(name)
        if value is None:
            return default
        return [item.strip() for item in value.split(separator) if item.strip()]


# =============================================================================
# File Configuration Utilities
# =============================================================================


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {path}",
            details={"path": str(path)},
            cause=e,
        ) from e
    return data if isinstance(data, dict) else {}


def _load_json(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Failed to parse JSON configuration: {path}",
            details={"path": str(path)},
            cause=e,
        ) from e
    return data if isinstance(data, dict) else {}


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    A ``truesight:`` top-level section is unwrapped when present, so the
    settings can live in a shared project file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or of an
            unsupported type.
    """
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}",
            details={"path": str(path)},
        )

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _load_yaml(path)
    elif suffix == ".json":
        data = _load_json(path)
    else:
        raise ConfigurationError(
            f"Unsupported configuration file format: {suffix}",
            details={"path": str(path), "suffix": suffix},
        )

    section = data.get("truesight")
    return section if isinstance(section, dict) else data


def find_config_file(start_dir: Path | None = None, max_depth: int = 5) -> Path | None:
    """Search ``start_dir`` and its parents for a file named in CONFIG_FILE_NAMES."""
    current = start_dir or Path.cwd()
    for _ in range(max_depth):
        for name in CONFIG_FILE_NAMES:
            config_path = current / name
            if config_path.is_file():
                return config_path
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


# =============================================================================
# Scan Configuration
# =============================================================================


def _require_positive_int(key: str, value: Any, *, allow_none: bool = False) -> None:
    if value is None and allow_none:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigValueError(
            f"{key} must be a positive integer, got {value!r}",
            config_key=key,
            value=value,
            expected="positive integer",
        )


def _require_choice(key: str, value: Any, choices: tuple[str, ...]) -> None:
    if not isinstance(value, str) or value not in choices:
        raise InvalidConfigValueError(
            f"{key} must be one of {', '.join(choices)}, got {value!r}",
            config_key=key,
            value=value,
            expected=" | ".join(choices),
        )


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Immutable configuration of one scan run.

    Attributes:
        chunk_size: Records per chunk.
        parallel: Scan the records of a chunk on a worker pool.
        max_workers: Pool size; ``None`` means the CPU count.
        min_parallel_records: Chunks smaller than this are scanned
            sequentially even when ``parallel`` is set.
        whitespace_includes_empty: Whether the ``whitespace`` check also
            matches empty fields.
        collect_partial_results: On a read failure, return a FAILED report
            with the chunks folded so far instead of raising.
        delimiter: Field delimiter of the input file.
        encoding: Text encoding of the input file.
        checks: Names of the pattern checks to run, in reporting order.
        log_level: Logging level for the command line.
        log_format: 'text' or 'json'.
        report_format: 'table' or 'json'.
        extra: Free-form settings for custom checks or reporters.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    parallel: bool = True
    max_workers: int | None = None
    min_parallel_records: int = DEFAULT_MIN_PARALLEL_RECORDS
    whitespace_includes_empty: bool = False
    collect_partial_results: bool = False
    delimiter: str = ","
    encoding: str = "utf-8"
    checks: tuple[str, ...] = DEFAULT_CHECKS
    log_level: str = "INFO"
    log_format: str = "text"
    report_format: str = "table"
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalise and validate values.

        Raises:
            InvalidConfigValueError: If any value is out of range.
        """
        if not isinstance(self.checks, tuple):
            object.__setattr__(self, "checks", tuple(self.checks))
        if isinstance(self.log_level, str):
            object.__setattr__(self, "log_level", self.log_level.upper())
        self._validate()

    def _validate(self) -> None:
        _require_positive_int("chunk_size", self.chunk_size)
        _require_positive_int("max_workers", self.max_workers, allow_none=True)
        _require_positive_int("min_parallel_records", self.min_parallel_records)
        if not isinstance(self.delimiter, str) or len(self.delimiter) != 1:
            raise InvalidConfigValueError(
                f"delimiter must be a single character, got {self.delimiter!r}",
                config_key="delimiter",
                value=self.delimiter,
                expected="single character",
            )
        if not self.checks:
            raise InvalidConfigValueError(
                "At least one pattern check must be enabled",
                config_key="checks",
                value=self.checks,
                expected="non-empty list of check names",
            )
        if len(set(self.checks)) != len(self.checks):
            raise InvalidConfigValueError(
                "Pattern checks must not repeat",
                config_key="checks",
                value=self.checks,
            )
        _require_choice("log_level", self.log_level, VALID_LOG_LEVELS)
        _require_choice("log_format", self.log_format, VALID_LOG_FORMATS)
        _require_choice("report_format", self.report_format, VALID_REPORT_FORMATS)

    # =========================================================================
    # Builder Methods
    # =========================================================================

    def _copy_with(self, **changes: Any) -> ScanConfig:
        return dataclasses.replace(self, **changes)

    def with_chunk_size(self, size: int) -> ScanConfig:
        return self._copy_with(chunk_size=size)

    def with_parallel(self, parallel: bool = True) -> ScanConfig:
        return self._copy_with(parallel=parallel)

    def with_max_workers(self, workers: int | None) -> ScanConfig:
        return self._copy_with(max_workers=workers)

    def with_overrides(self, **overrides: Any) -> ScanConfig:
        """Apply the given fields, skipping those whose value is None."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return self._copy_with(**changes) if changes else self

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_size": self.chunk_size,
            "parallel": self.parallel,
            "max_workers": self.max_workers,
            "min_parallel_records": self.min_parallel_records,
            "whitespace_includes_empty": self.whitespace_includes_empty,
            "collect_partial_results": self.collect_partial_results,
            "delimiter": self.delimiter,
            "encoding": self.encoding,
            "checks": list(self.checks),
            "log_level": self.log_level,
            "log_format": self.log_format,
            "report_format": self.report_format,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create a ScanConfig from a dictionary; unknown keys go to ``extra``."""
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {**data.get("extra", {}), **{k: v for k, v in data.items() if k not in known}}
        checks = values.get("checks")
        if isinstance(checks, str):
            values["checks"] = tuple(name.strip() for name in checks.split(",") if name.strip())
        elif checks is not None:
            values["checks"] = tuple(checks)
        return cls(**values, extra=extra)

    @classmethod
    def env_overrides(cls, prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
        """Read the settings present in the environment.

        Environment Variables:
            {PREFIX}_CHUNK_SIZE: Records per chunk (int)
            {PREFIX}_PARALLEL: Parallel scanning (bool)
            {PREFIX}_MAX_WORKERS: Worker pool size (int)
            {PREFIX}_MIN_PARALLEL_RECORDS: Parallel threshold (int)
            {PREFIX}_WHITESPACE_INCLUDES_EMPTY: Overlapping whitespace policy (bool)
            {PREFIX}_COLLECT_PARTIAL_RESULTS: Report partial results (bool)
            {PREFIX}_DELIMITER: Field delimiter (string)
            {PREFIX}_ENCODING: Input encoding (string)
            {PREFIX}_CHECKS: Comma-separated check names
            {PREFIX}_LOG_LEVEL: Log level (string)
            {PREFIX}_LOG_FORMAT: 'text' or 'json'
            {PREFIX}_REPORT_FORMAT: 'table' or 'json'
        """
        env = EnvReader(prefix)
        found: dict[str, Any] = {
            "chunk_size": env.get_int("CHUNK_SIZE"),
            "parallel": env.get_bool("PARALLEL"),
            "max_workers": env.get_int("MAX_WORKERS"),
            "min_parallel_records": env.get_int("MIN_PARALLEL_RECORDS"),
            "whitespace_includes_empty": env.get_bool("WHITESPACE_INCLUDES_EMPTY"),
            "collect_partial_results": env.get_bool("COLLECT_PARTIAL_RESULTS"),
            "delimiter": env.get("DELIMITER"),
            "encoding": env.get("ENCODING"),
            "checks": env.get_list("CHECKS"),
            "log_level": env.get("LOG_LEVEL"),
            "log_format": env.get("LOG_FORMAT"),
            "report_format": env.get("REPORT_FORMAT"),
        }
        return {k: v for k, v in found.items() if v is not None}

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_ENV_PREFIX) -> Self:
        """Create configuration from defaults overlaid with environment variables."""
        return cls.from_dict(cls.env_overrides(prefix))

    @classmethod
    def from_file(cls, path: Path | str) -> Self:
        return cls.from_dict(load_config_file(Path(path)))

    @classmethod
    def load(
        cls,
        config_file: Path | str | None = None,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        search_config: bool = True,
    ) -> Self:
        """Load configuration with file discovery and environment overrides.

        Args:
            config_file: Explicit config file path.
            env_prefix: Environment variable prefix.
            search_config: Whether to search for a config file when none is given.

        Returns:
            ScanConfig with environment values taking precedence over the file.
        """
        file_path: Path | None = None
        if config_file:
            file_path = Path(config_file)
        elif search_config:
            file_path = find_config_file()

        data: dict[str, Any] = load_config_file(file_path) if file_path else {}
        data.update(cls.env_overrides(env_prefix))
        return cls.from_dict(data)


DEFAULT_SCAN_CONFIG = ScanConfig()

SEQUENTIAL_SCAN_CONFIG = ScanConfig(parallel=False)

SMALL_CHUNK_SCAN_CONFIG = ScanConfig(chunk_size=10_000)
