"""Exception hierarchy for TrueSight.

All errors raised by the scanning engine, its configuration layer and its
record sources inherit from TrueSightError, so callers can catch any
scan-related failure at a single point.

Exception Hierarchy:
    TrueSightError (base)
    ├── ConfigurationError
    │   ├── InvalidConfigValueError
    │   └── MissingConfigError
    ├── SourceError
    │   ├── SourceReadError
    │   └── InvalidSourcePathError
    ├── ScanError
    │   ├── AggregationError
    │   └── ScanStateError
    └── CheckNotFoundError

Example:
    >>> try:
    ...     report = scan_csv("orders.csv")
    ... except SourceReadError as e:
    ...     logger.error(f"Scan aborted at record {e.record_number}: {e}")
    ... except TrueSightError as e:
    ...     logger.error(f"Scan failed: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from truesight.scanning.runner import ScanReport


class TrueSightError(Exception):
    """Base exception for all TrueSight errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
        cause: Optional original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
            cause: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"cause={self.cause!r})"
        )

    def with_context(self, **kwargs: Any) -> TrueSightError:
        """Create a copy of this exception with additional context details.

        The original exception is left untouched.

        Args:
            **kwargs: Additional context to add to details.

        Returns:
            New exception instance with merged details.

        Example:
            >>> e = TrueSightError("Error", details={"key": "value"})
            >>> e.with_context(path="data.csv").details
            {'key': 'value', 'path': 'data.csv'}
        """
        clone = self.__class__.__new__(self.__class__, *self.args)
        clone.__dict__.update(self.__dict__)
        clone.__cause__ = self.__cause__
        clone.details = {**self.details, **kwargs}
        return clone


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(TrueSightError):
    """Exception for configuration-related errors.

    Raised before any record is read when the scan configuration is unusable.

    Attributes:
        config_key: Optional key that caused the configuration error.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, cause=cause)
        self.config_key = config_key


class InvalidConfigValueError(ConfigurationError):
    """Exception for invalid configuration values.

    Attributes:
        config_key: The configuration key with invalid value.
        value: The invalid value that was provided.
        expected: Description of what was expected.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str,
        value: Any = None,
        expected: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        details["value"] = value
        if expected:
            details["expected"] = expected
        super().__init__(message, config_key=config_key, details=details, cause=cause)
        self.value = value
        self.expected = expected


class MissingConfigError(ConfigurationError):
    """Exception for a missing required configuration key."""

    def __init__(
        self,
        config_key: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        message = f"Required configuration key '{config_key}' is missing"
        super().__init__(message, config_key=config_key, details=details, cause=cause)


# =============================================================================
# Source Errors
# =============================================================================


class SourceError(TrueSightError):
    """Base exception for record source problems."""

    pass


class SourceReadError(SourceError):
    """The record stream could not produce the next record.

    Always terminal for a run: the chunk being assembled is discarded and no
    further chunks are produced.

    Attributes:
        record_number: 1-based index of the data record that failed, if known.
        chunk_number: 1-based number of the chunk being assembled, if known.
        line_number: Physical line in the input where the failure was detected.
        partial_report: Report of the chunks folded before the failure, attached
            by the run orchestration.
    """

    def __init__(
        self,
        message: str,
        *,
        record_number: int | None = None,
        chunk_number: int | None = None,
        line_number: int | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if record_number is not None:
            details["record_number"] = record_number
        if chunk_number is not None:
            details["chunk_number"] = chunk_number
        if line_number is not None:
            details["line_number"] = line_number
        super().__init__(message, details=details, cause=cause)
        self.record_number = record_number
        self.chunk_number = chunk_number
        self.line_number = line_number
        self.partial_report: ScanReport | None = None

    def at_chunk(self, chunk_number: int) -> SourceReadError:
        """Return a copy of this error annotated with the chunk being assembled."""
        clone = self.with_context(chunk_number=chunk_number)
        clone.chunk_number = chunk_number
        return clone


class InvalidSourcePathError(SourceError):
    """The given input path is missing, unreadable or not a delimited file.

    Attributes:
        path: The offending path.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        details["path"] = path
        super().__init__(message, details=details, cause=cause)
        self.path = path


# =============================================================================
# Scan Errors
# =============================================================================


class ScanError(TrueSightError):
    """Base exception for errors raised by the scanning engine itself."""

    pass


class AggregationError(ScanError):
    """Raised when the aggregate state is mutated illegally."""

    pass


class ScanStateError(ScanError):
    """Raised when a run is driven through an invalid state transition.

    Attributes:
        state: Name of the state the run was in.
    """

    def __init__(
        self,
        message: str,
        *,
        state: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if state:
            details["state"] = state
        super().__init__(message, details=details, cause=cause)
        self.state = state


class CheckNotFoundError(TrueSightError):
    """Raised when a pattern check name is not registered.

    Attributes:
        check_name: Name that was looked up.
        available_checks: Names that are registered.
    """

    def __init__(
        self,
        check_name: str,
        *,
        available_checks: list[str] | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        message = f"Pattern check '{check_name}' not found"
        if available_checks:
            message += f". Available checks: {', '.join(available_checks)}"
        details = details or {}
        details["check_name"] = check_name
        super().__init__(message, details=details, cause=cause)
        self.check_name = check_name
        self.available_checks = available_checks or []


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exception: Exception,
    wrapper_class: type[TrueSightError] = TrueSightError,
    message: str | None = None,
    **kwargs: Any,
) -> TrueSightError:
    """Wrap an arbitrary exception in the TrueSight hierarchy.

    Args:
        exception: The original exception to wrap.
        wrapper_class: The exception class to wrap with.
        message: Optional custom message. Defaults to the original message.
        **kwargs: Additional arguments for the wrapper class.

    Returns:
        A new exception instance with the original kept as ``cause``.

    Example:
        >>> try:
        ...     next(reader)
        ... except csv.Error as e:
        ...     raise wrap_exception(e, SourceReadError, record_number=7) from e
    """
    msg = message if message is not None else str(exception)
    return wrapper_class(msg, cause=exception, **kwargs)
