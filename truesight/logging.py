"""Structured logging for TrueSight.

Loggers are handed out by a process-wide registry and stay silent until
``configure_logging`` installs a root handler, so embedding the package as a
library prints nothing. The command line installs a stderr handler, as text
or as JSON lines (``--log-format``), which keeps log output apart from the
report printed on stdout.

Keyword arguments of a log call and the fields of every enclosing
``LogContext`` (run id, operation, chunk number) travel with the record.

Example:
    >>> from truesight.logging import get_logger, LogContext
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation="scan", run_id="a1b2"):
    ...     logger.info("Scan started", chunk_size=1000)
"""

from __future__ import annotations

import json
import sys
import threading
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, Self, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Mapping


# =============================================================================
# Levels
# =============================================================================


class LogLevel(Enum):
    """Severity levels. The values line up with the stdlib ``logging`` levels."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_string(cls, level: str) -> LogLevel:
        """Look a level up by name, falling back to INFO."""
        return cls.__members__.get(level.upper(), cls.INFO)


# =============================================================================
# Context
# =============================================================================

_EMPTY_CONTEXT: Mapping[str, Any] = MappingProxyType({})
_log_context: ContextVar[Mapping[str, Any]] = ContextVar("truesight_log_context", default=_EMPTY_CONTEXT)


class LogContext:
    """Attach fields to every record logged inside the ``with`` block.

    Blocks nest; inner fields are added to, and override, the outer ones.
    Worker threads started inside a block do not inherit it.

    Example:
        >>> with LogContext(operation="scan", run_id="r1"):
        ...     with LogContext(chunk=3):
        ...         logger.debug("Chunk folded")  # operation, run_id and chunk
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = {name: value for name, value in fields.items() if value is not None}
        self._token: Any = None

    def __enter__(self) -> Self:
        merged = {**_log_context.get(), **self._fields}
        self._token = _log_context.set(MappingProxyType(merged))
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def get_current_context() -> dict[str, Any]:
    """Fields of the active ``LogContext`` blocks (empty outside any block)."""
    return dict(_log_context.get())


# =============================================================================
# Records, Formatters and Handlers
# =============================================================================


@dataclass(slots=True)
class LogRecord:
    """One log event.

    ``context`` holds the ``LogContext`` fields at the time of the call and
    ``extra`` the keyword arguments of the call itself.
    """

    level: LogLevel
    message: str
    logger_name: str
    context: Mapping[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    exc_info: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def fields(self) -> dict[str, Any]:
        return {**self.context, **self.extra}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "logger": self.logger_name,
            "message": self.message,
            **self.fields,
        }
        if self.exc_info is not None:
            data["error_type"] = type(self.exc_info).__name__
            data["error"] = str(self.exc_info)
        return data


@runtime_checkable
class LogFormatter(Protocol):
    def format(self, record: LogRecord) -> str: ...


@runtime_checkable
class LogHandler(Protocol):
    """Receives every record that passes the logger's level."""

    def handle(self, record: LogRecord) -> None: ...

    def close(self) -> None: ...


class TextFormatter:
    """Single-line, human readable records.

    Example output:
        2024-01-15T10:30:45 INFO    truesight.scanning.runner: Scan finished [run_id=a1 rows=12]
    """

    def __init__(self, timestamp_format: str = "%Y-%m-%dT%H:%M:%S") -> None:
        self.timestamp_format = timestamp_format

    def format(self, record: LogRecord) -> str:
        stamp = record.timestamp.strftime(self.timestamp_format)
        line = f"{stamp} {record.level.name:<7} {record.logger_name}: {record.message}"
        fields = record.fields
        if fields:
            line += " [" + " ".join(f"{key}={value}" for key, value in fields.items()) + "]"
        if record.exc_info is not None:
            line += f" ({type(record.exc_info).__name__}: {record.exc_info})"
        return line


class JSONFormatter:
    """One JSON object per record, for log shippers."""

    def format(self, record: LogRecord) -> str:
        return json.dumps(record.to_dict(), default=str)


class StreamHandler:
    """Writes formatted records to a text stream, stderr unless told otherwise."""

    def __init__(self, stream: Any = None, formatter: LogFormatter | None = None) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.formatter = formatter or TextFormatter()
        self._lock = threading.Lock()
        self._closed = False

    def handle(self, record: LogRecord) -> None:
        if self._closed:
            return
        line = self.formatter.format(record) + "\n"
        with self._lock:
            self.stream.write(line)
            self.stream.flush()

    def close(self) -> None:
        self._closed = True


# =============================================================================
# Loggers
# =============================================================================


class TrueSightLogger:
    """Named logger taking keyword fields.

    Records reach the logger's own handlers and the root handlers of its
    registry. The effective level is the logger's own level when set,
    otherwise the registry's root level.

    Example:
        >>> logger = get_logger("truesight.scanning")
        >>> logger.info("Chunk processed", chunk=1, rows=1000)
    """

    def __init__(
        self,
        name: str,
        level: LogLevel | None = None,
        handlers: list[LogHandler] | None = None,
        registry: LoggerRegistry | None = None,
    ) -> None:
        self.name = name
        self._level = level
        self.handlers: list[LogHandler] = list(handlers or [])
        self._registry = registry

    @property
    def level(self) -> LogLevel:
        if self._level is not None:
            return self._level
        if self._registry is not None:
            return self._registry.root_level
        return LogLevel.INFO

    @level.setter
    def level(self, value: LogLevel) -> None:
        self._level = value

    def is_enabled_for(self, level: LogLevel) -> bool:
        if self._registry is not None and self._registry.disabled:
            return False
        return level.value >= self.level.value

    def log(
        self,
        level: LogLevel,
        message: str,
        exc_info: BaseException | None = None,
        **fields: Any,
    ) -> None:
        if not self.is_enabled_for(level):
            return
        record = LogRecord(
            level=level,
            message=message,
            logger_name=self.name,
            context=get_current_context(),
            extra=fields,
            exc_info=exc_info,
        )
        handlers = self.handlers
        if self._registry is not None:
            handlers = [*handlers, *self._registry.root_handlers]
        for handler in handlers:
            handler.handle(record)

    def debug(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.WARNING, message, **fields)

    def error(self, message: str, exc_info: BaseException | None = None, **fields: Any) -> None:
        self.log(LogLevel.ERROR, message, exc_info=exc_info, **fields)


class LoggerRegistry:
    """One logger per name, plus the root handlers shared by all of them."""

    def __init__(self) -> None:
        self._loggers: dict[str, TrueSightLogger] = {}
        self._lock = threading.Lock()
        self.root_handlers: list[LogHandler] = []
        self.root_level = LogLevel.INFO
        self.disabled = False

    def get_logger(self, name: str, level: LogLevel | None = None) -> TrueSightLogger:
        with self._lock:
            logger = self._loggers.get(name)
            if logger is None:
                logger = self._loggers[name] = TrueSightLogger(name, level=level, registry=self)
            elif level is not None:
                logger.level = level
            return logger

    def configure(
        self,
        level: LogLevel = LogLevel.INFO,
        format: str = "text",
        stream: Any = None,
        handlers: list[LogHandler] | None = None,
    ) -> None:
        """Replace the root handlers.

        Without explicit ``handlers`` a single ``StreamHandler`` is installed,
        writing text or JSON lines depending on ``format``.
        """
        self._close_handlers()
        if handlers is None:
            formatter: LogFormatter = JSONFormatter() if format == "json" else TextFormatter()
            handlers = [StreamHandler(stream, formatter)]
        self.root_handlers = list(handlers)
        self.root_level = level
        self.disabled = False

    def reset(self) -> None:
        """Back to the unconfigured, silent state."""
        self._close_handlers()
        self.root_handlers = []
        self.root_level = LogLevel.INFO
        self.disabled = False
        with self._lock:
            self._loggers.clear()

    def disable(self) -> None:
        self.disabled = True

    def enable(self) -> None:
        self.disabled = False

    def _close_handlers(self) -> None:
        for handler in self.root_handlers:
            handler.close()


_registry = LoggerRegistry()


def get_logger(name: str, level: LogLevel | None = None) -> TrueSightLogger:
    return _registry.get_logger(name, level)


def get_logger_registry() -> LoggerRegistry:
    return _registry


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: str = "text",
    stream: Any = None,
    handlers: list[LogHandler] | None = None,
) -> None:
    """Install root handlers for every TrueSight logger.

    Example:
        >>> configure_logging(level="DEBUG", format="json")
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)
    _registry.configure(level=level, format=format, stream=stream, handlers=handlers)


# =============================================================================
# Timing
# =============================================================================


class OperationTimer:
    """Context manager measuring one operation; logs when the block exits.

    ``duration_ms`` and ``succeeded`` are set on exit. Exceptions are not
    suppressed.
    """

    def __init__(self, perf_logger: PerformanceLogger, operation: str, fields: dict[str, Any]) -> None:
        self.operation = operation
        self.fields = fields
        self.duration_ms: float | None = None
        self.succeeded: bool | None = None
        self._perf_logger = perf_logger
        self._started = 0.0

    def __enter__(self) -> Self:
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        self.succeeded = exc_type is None
        self._perf_logger.report(self)


class PerformanceLogger:
    """Logs how long operations took.

    Successful operations are logged at DEBUG, operations slower than
    ``slow_threshold_ms`` at WARNING and failed ones at ERROR.

    Example:
        >>> perf = get_performance_logger(__name__)
        >>> with perf.timed("scan_csv", path="orders.csv"):
        ...     runner.run(source.headers, source.records())
    """

    def __init__(self, logger: TrueSightLogger, slow_threshold_ms: float = 10_000.0) -> None:
        self.logger = logger
        self.slow_threshold_ms = slow_threshold_ms

    def timed(self, operation: str, **fields: Any) -> OperationTimer:
        return OperationTimer(self, operation, fields)

    def report(self, timer: OperationTimer) -> None:
        duration = timer.duration_ms or 0.0
        if not timer.succeeded:
            level, message = LogLevel.ERROR, f"{timer.operation} FAILED after {duration:.2f}ms"
        elif duration > self.slow_threshold_ms:
            level = LogLevel.WARNING
            message = f"{timer.operation} SLOW: {duration:.2f}ms (threshold {self.slow_threshold_ms}ms)"
        else:
            level, message = LogLevel.DEBUG, f"{timer.operation} completed in {duration:.2f}ms"
        self.logger.log(level, message, duration_ms=round(duration, 3), **timer.fields)


def get_performance_logger(name: str, slow_threshold_ms: float = 10_000.0) -> PerformanceLogger:
    return PerformanceLogger(get_logger(name), slow_threshold_ms=slow_threshold_ms)
