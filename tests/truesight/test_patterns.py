"""Tests for truesight.patterns module."""

import pytest

from truesight.exceptions import CheckNotFoundError
from truesight.patterns import (
    BaseCheck,
    CheckRegistry,
    EmptyCheck,
    NullLikeCheck,
    PatternCheck,
    WhitespaceOnlyCheck,
    default_checks,
    get_check,
    get_check_registry,
    list_checks,
    register_check,
    resolve_checks,
)


class StartsWithHashCheck(BaseCheck):
    check_name = "hash_prefixed"
    check_description = "Field starts with '#'"

    def matches(self, field: str) -> bool:
        return field.startswith("#")


class TestNullLikeCheck:
    """Tests for NullLikeCheck."""

    @pytest.mark.parametrize(
        "field",
        ["NULL", "null", "Null", "  null  ", "N/A", "n/a", "NA", "na", "NONE", "none", "NaN", "nan", "\tNULL\n"],
    )
    def test_matches_null_tokens(self, field):
        """Test every token matches regardless of case and padding."""
        assert NullLikeCheck().matches(field) is True

    @pytest.mark.parametrize("field", ["nullable", "NULLS", "", "   ", "0", "N / A", "nan1", "value"])
    def test_rejects_other_values(self, field):
        """Test that only whole tokens match."""
        assert NullLikeCheck().matches(field) is False

    def test_name_and_description(self):
        """Test identity properties."""
        check = NullLikeCheck()
        assert check.name == "null_like"
        assert "NULL" in check.description


class TestEmptyCheck:
    """Tests for EmptyCheck."""

    def test_matches_only_empty_string(self):
        """Test that only zero-length fields match."""
        check = EmptyCheck()
        assert check.matches("") is True
        assert check.matches(" ") is False
        assert check.matches("x") is False

    def test_name(self):
        """Test check name."""
        assert EmptyCheck().name == "empty"


class TestWhitespaceOnlyCheck:
    """Tests for WhitespaceOnlyCheck."""

    @pytest.mark.parametrize("field", [" ", "   ", "\t", " \t\n ", "\u00a0"])
    def test_matches_whitespace(self, field):
        """Test whitespace-only fields match."""
        assert WhitespaceOnlyCheck().matches(field) is True

    @pytest.mark.parametrize("field", [" a ", "x", "NULL"])
    def test_rejects_content(self, field):
        """Test fields with content do not match."""
        assert WhitespaceOnlyCheck().matches(field) is False

    def test_disjoint_from_empty_by_default(self):
        """Test the empty string is not whitespace-only by default."""
        assert WhitespaceOnlyCheck().matches("") is False
        assert EmptyCheck().matches("") is True

    def test_include_empty_policy(self):
        """Test the overlapping policy counts the empty string too."""
        check = WhitespaceOnlyCheck(include_empty=True)
        assert check.matches("") is True
        assert check.matches("  ") is True
        assert check.matches("a") is False

    def test_description_reflects_policy(self):
        """Test description changes with the policy."""
        assert "non-empty" in WhitespaceOnlyCheck().description
        assert "empty or" in WhitespaceOnlyCheck(include_empty=True).description

    def test_equality_includes_policy(self):
        """Test checks with different policies are not equal."""
        assert WhitespaceOnlyCheck() == WhitespaceOnlyCheck()
        assert WhitespaceOnlyCheck() != WhitespaceOnlyCheck(include_empty=True)


class TestDefaultChecks:
    """Tests for default_checks."""

    def test_reporting_order(self):
        """Test canonical order is null-like, empty, whitespace."""
        assert [c.name for c in default_checks()] == ["null_like", "empty", "whitespace"]

    def test_checks_satisfy_protocol(self):
        """Test built-in checks implement PatternCheck."""
        for check in default_checks():
            assert isinstance(check, PatternCheck)

    def test_include_empty_whitespace(self):
        """Test the whitespace policy is passed through."""
        whitespace = default_checks(include_empty_whitespace=True)[2]
        assert whitespace.matches("") is True


class TestCheckRegistry:
    """Tests for CheckRegistry."""

    def test_register_and_get(self):
        """Test registering and creating a check."""
        registry = CheckRegistry()
        registry.register("hash_prefixed", StartsWithHashCheck)
        check = registry.get("hash_prefixed")
        assert check.matches("#1") is True
        assert "hash_prefixed" in registry

    def test_duplicate_registration_rejected(self):
        """Test registering a taken name raises."""
        registry = CheckRegistry()
        registry.register("empty", EmptyCheck)
        with pytest.raises(ValueError):
            registry.register("empty", EmptyCheck)
        registry.register("empty", EmptyCheck, allow_override=True)

    def test_unknown_check(self):
        """Test unknown names raise CheckNotFoundError listing known checks."""
        registry = CheckRegistry()
        registry.register("empty", EmptyCheck)
        with pytest.raises(CheckNotFoundError) as exc_info:
            registry.get("missing")
        assert exc_info.value.check_name == "missing"
        assert exc_info.value.available_checks == ["empty"]

    def test_unregister(self):
        """Test unregistering removes the check."""
        registry = CheckRegistry()
        registry.register("empty", EmptyCheck)
        registry.unregister("empty")
        assert registry.list() == []
        with pytest.raises(CheckNotFoundError):
            registry.unregister("empty")

    def test_resolve_passes_whitespace_policy(self):
        """Test resolve applies include_empty only to the whitespace check."""
        registry = get_check_registry()
        checks = registry.resolve(["empty", "whitespace"], include_empty=True)
        assert checks[0] == EmptyCheck()
        assert checks[1] == WhitespaceOnlyCheck(include_empty=True)


class TestGlobalRegistry:
    """Tests for the module-level registry functions."""

    def test_builtins_registered(self):
        """Test the three built-in checks are registered."""
        assert {"null_like", "empty", "whitespace"} <= set(list_checks())

    def test_get_check(self):
        """Test creating a check by name."""
        assert isinstance(get_check("null_like"), NullLikeCheck)

    def test_resolve_checks_keeps_order(self):
        """Test resolve_checks follows the requested order."""
        checks = resolve_checks(["whitespace", "null_like"])
        assert [c.name for c in checks] == ["whitespace", "null_like"]

    def test_register_custom_check(self):
        """Test a custom check becomes resolvable by name."""
        register_check("hash_prefixed", StartsWithHashCheck, allow_override=True)
        try:
            assert resolve_checks(["hash_prefixed"])[0].matches("#x")
        finally:
            get_check_registry().unregister("hash_prefixed")
