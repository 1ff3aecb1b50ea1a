"""Pattern checks over single field values.

A pattern check is a stateless predicate identified by name. The built-in
checks detect the three defects the scanner reports:

    - ``null_like``: a textual stand-in for "no value" (``NULL``, ``N/A``, ...)
    - ``empty``: a zero-length field
    - ``whitespace``: a non-empty field containing only whitespace

Checks are plain objects satisfying the ``PatternCheck`` protocol, so new
checks can be added without touching the processor. A thread-safe registry
resolves checks by name for configuration files and the command line.

Example:
    >>> from truesight.patterns import NullLikeCheck, default_checks
    >>> NullLikeCheck().matches("  null ")
    True
    >>> [c.name for c in default_checks()]
    ['null_like', 'empty', 'whitespace']
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from truesight.exceptions import CheckNotFoundError


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence


@runtime_checkable
class PatternCheck(Protocol):
    """Protocol for field-level pattern checks.

    Implementations must be safe to call from several threads at once, which
    in practice means they hold no mutable state.
    """

    @property
    def name(self) -> str:
        """Unique, stable identifier of the check."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the check matches."""
        ...

    def matches(self, field: str) -> bool:
        """Return True if ``field`` exhibits the pattern."""
        ...


class BaseCheck(ABC):
    """Base class for the built-in checks. Checks compare equal by name."""

    check_name: ClassVar[str]
    check_description: ClassVar[str]

    @property
    def name(self) -> str:
        return self.check_name

    @property
    def description(self) -> str:
        return self.check_description

    @abstractmethod
    def matches(self, field: str) -> bool: ...

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseCheck):
            return NotImplemented
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash((type(self), self.name))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class EmptyCheck(BaseCheck):
    """Matches fields of zero length."""

    check_name = "empty"
    check_description = "Field has no characters at all"

    def matches(self, field: str) -> bool:
        return len(field) == 0


class WhitespaceOnlyCheck(BaseCheck):
    """Matches non-empty fields made only of whitespace.

    ``include_empty=True`` restores the overlapping policy where the empty
    string also counts as whitespace-only. By default the check is disjoint
    from ``EmptyCheck``.
    """

    check_name = "whitespace"

    def __init__(self, include_empty: bool = False) -> None:
        self.include_empty = include_empty

    @property
    def description(self) -> str:
        if self.include_empty:
            return "Field is empty or contains only whitespace"
        return "Field is non-empty and contains only whitespace"

    def matches(self, field: str) -> bool:
        if not field:
            return self.include_empty
        return not field.strip()

    def __repr__(self) -> str:
        return f"WhitespaceOnlyCheck(include_empty={self.include_empty})"


class NullLikeCheck(BaseCheck):
    """Matches textual null markers, ignoring case and surrounding whitespace."""

    NULL_LIKE_VALUES: ClassVar[tuple[str, ...]] = ("NULL", "N/A", "NA", "NONE", "NaN")

    check_name = "null_like"
    check_description = "Field spells a null marker (NULL, N/A, NA, NONE, NaN)"

    _tokens: ClassVar[frozenset[str]] = frozenset(v.casefold() for v in NULL_LIKE_VALUES)

    def matches(self, field: str) -> bool:
        return field.strip().casefold() in self._tokens


def default_checks(include_empty_whitespace: bool = False) -> tuple[PatternCheck, ...]:
    """Return the canonical check set in reporting order.

    Args:
        include_empty_whitespace: Whether ``whitespace`` also matches ``""``.
    """
    return (
        NullLikeCheck(),
        EmptyCheck(),
        WhitespaceOnlyCheck(include_empty=include_empty_whitespace),
    )


# =============================================================================
# Registry
# =============================================================================


class CheckRegistry:
    """Thread-safe registry of check factories keyed by check name."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[..., PatternCheck]] = {}
        self._lock = threading.RLock()

    def register(
        self,
        name: str,
        factory: Callable[..., PatternCheck],
        *,
        allow_override: bool = False,
    ) -> None:
        """Register a factory under ``name``.

        Raises:
            ValueError: If ``name`` is taken and ``allow_override`` is False.
        """
        with self._lock:
            if name in self._factories and not allow_override:
                raise ValueError(f"Pattern check '{name}' is already registered")
            self._factories[name] = factory

    def unregister(self, name: str) -> None:
        with self._lock:
            if name not in self._factories:
                raise CheckNotFoundError(name, available_checks=self.list())
            del self._factories[name]

    def get(self, name: str, **options: Any) -> PatternCheck:
        """Create the check registered as ``name``, passing ``options`` through."""
        with self._lock:
            factory = self._factories.get(name)
            if factory is None:
                raise CheckNotFoundError(name, available_checks=self.list())
        return factory(**options)

    def resolve(self, names: Iterable[str], **options: Any) -> tuple[PatternCheck, ...]:
        """Create checks for several names. Options go to factories that accept them."""
        checks = []
        for name in names:
            if name == WhitespaceOnlyCheck.check_name and "include_empty" in options:
                checks.append(self.get(name, include_empty=options["include_empty"]))
            else:
                checks.append(self.get(name))
        return tuple(checks)

    def list(self) -> list[str]:
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories


_registry = CheckRegistry()
_registry.register(NullLikeCheck.check_name, NullLikeCheck)
_registry.register(EmptyCheck.check_name, EmptyCheck)
_registry.register(WhitespaceOnlyCheck.check_name, WhitespaceOnlyCheck)


def get_check_registry() -> CheckRegistry:
    """Return the process-wide check registry."""
    return _registry


def register_check(
    name: str,
    factory: Callable[..., PatternCheck],
    *,
    allow_override: bool = False,
) -> None:
    """Register a custom check factory in the global registry."""
    _registry.register(name, factory, allow_override=allow_override)


def get_check(name: str, **options: Any) -> PatternCheck:
    """Create a registered check by name."""
    return _registry.get(name, **options)


def list_checks() -> list[str]:
    """Names of all registered checks."""
    return _registry.list()


def resolve_checks(
    names: Sequence[str],
    *,
    include_empty_whitespace: bool = False,
) -> tuple[PatternCheck, ...]:
    """Create checks for ``names`` in order, applying the whitespace policy."""
    return _registry.resolve(names, include_empty=include_empty_whitespace)
