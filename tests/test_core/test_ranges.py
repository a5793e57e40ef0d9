from __future__ import annotations

import pytest

from rangekeeper.core.ranges import (
    base_version,
    is_wildcard,
    parse_range,
    rewrite_range,
    satisfies,
)
from rangekeeper.exceptions import InvalidRangeError, UnrewritableRangeError
from rangekeeper.models.range import RangeKind


# ============================================================================
# parse_range
# ============================================================================


@pytest.mark.unit
class TestParseRange:
    """Tests for range classification."""

    def test_caret_range(self) -> None:
        """Test caret range is split into operator and version."""
        parsed = parse_range("^1.2.3")

        assert parsed.kind is RangeKind.PREFIXED
        assert parsed.operator == "^"
        assert parsed.version == "1.2.3"
        assert parsed.operator_class == "caret"
        assert parsed.raw == "^1.2.3"

    def test_partial_tilde_range_is_prefixed(self) -> None:
        """Test an operator with a partial version stays prefixed."""
        parsed = parse_range("~1.2")

        assert parsed.kind is RangeKind.PREFIXED
        assert parsed.operator == "~"
        assert parsed.precision == 2

    def test_bare_version_is_exact(self) -> None:
        """Test a bare full version is a prefixed range with no operator."""
        parsed = parse_range("1.2.3")

        assert parsed.kind is RangeKind.PREFIXED
        assert parsed.operator == ""
        assert parsed.operator_class == "exact"

    def test_v_prefix_is_kept(self) -> None:
        """Test a v prefix is recorded separately from the version."""
        parsed = parse_range("v1.0.0")

        assert parsed.prefix == "v"
        assert parsed.version == "1.0.0"

    @pytest.mark.parametrize(
        "text,wildcard",
        [("1.x", "x"), ("1.2.*", "*"), ("1.2", None), ("2", None)],
        ids=["major-x", "minor-star", "partial-minor", "partial-major"],
    )
    def test_xranges(self, text: str, wildcard: str) -> None:
        """Test x-ranges and bare partials."""
        parsed = parse_range(text)

        assert parsed.kind is RangeKind.XRANGE
        assert parsed.wildcard == wildcard

    @pytest.mark.parametrize("text", ["*", "", None, "x", "X", "x.1", ">=*"])
    def test_wildcards(self, text: str) -> None:
        """Test every spelling of 'any version' is a wildcard."""
        assert parse_range(text).kind is RangeKind.WILDCARD

    @pytest.mark.parametrize(
        "text",
        [
            "latest",
            "next",
            "workspace:*",
            "npm:other-package@^1.0.0",
            "file:../local",
            "./local",
            "git+https://github.com/user/repo.git",
            "https://example.com/pkg.tgz",
            "user/repo",
            "user/repo#v1.0.0",
        ],
    )
    def test_opaque_declarations(self, text: str) -> None:
        """Test non-semver declarations are classified, not rejected."""
        parsed = parse_range(text)

        assert parsed.kind is RangeKind.OPAQUE
        assert parsed.is_opaque is True

    @pytest.mark.parametrize(
        "text",
        [">=1.0.0 <2.0.0", "1 || 2", "1.0.0 - 2.0.0", "^1.0.0 || ^2.0.0"],
    )
    def test_compound_ranges(self, text: str) -> None:
        """Test multi-comparator ranges are compound."""
        assert parse_range(text).kind is RangeKind.COMPOUND

    @pytest.mark.parametrize("text", ["^^1", "1.2.3.4", "~>1.0"])
    def test_invalid_range_raises(self, text: str) -> None:
        """Test unrecognisable text raises InvalidRangeError."""
        with pytest.raises(InvalidRangeError) as exc_info:
            parse_range(text)

        assert exc_info.value.range_text == text


# ============================================================================
# base_version / is_wildcard
# ============================================================================


@pytest.mark.unit
class TestBaseVersion:
    """Tests for the version a range is anchored on."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("^1.2.3", "1.2.3"),
            ("~1.2", "1.2.0"),
            ("1.x", "1.0.0"),
            ("1.2.*", "1.2.0"),
            (">=1.5.0 <2", "1.5.0"),
        ],
    )
    def test_base_versions(self, text: str, expected: str) -> None:
        assert base_version(parse_range(text)) == expected

    @pytest.mark.parametrize("text", ["*", "", "latest"])
    def test_no_base(self, text: str) -> None:
        """Test wildcard and opaque ranges have no base version."""
        assert base_version(parse_range(text)) is None


@pytest.mark.unit
class TestIsWildcard:
    """Tests for is_wildcard."""

    @pytest.mark.parametrize(
        "text,expected",
        [("*", True), ("", True), (None, True), ("x", True), ("^1.0.0", False), ("^^1", False)],
    )
    def test_is_wildcard(self, text: str, expected: bool) -> None:
        assert is_wildcard(text) is expected


# ============================================================================
# rewrite_range
# ============================================================================


@pytest.mark.unit
class TestRewriteRange:
    """Tests for rewriting a range around a new version."""

    @pytest.mark.parametrize(
        "original,new_version,expected",
        [
            ("^3.0.0", "4.17.21", "^4.17.21"),
            ("~1.2", "1.4.0", "~1.4"),
            ("^1", "4.17.21", "^4"),
            ("^1.x", "4.17.21", "^4.x"),
            (">=v1.2", "4.17.21", ">=v4.17"),
            ("~1.2.3", "1.2.9", "~1.2.9"),
            (">=1.0.0", "2.0.0", ">=2.0.0"),
            ("<1.0.0", "4.17.21", "<=4.17.21"),
            (">1.0.0", "4.17.21", ">=4.17.21"),
            ("1.2.3", "4.17.21", "4.17.21"),
            ("=1.2.3", "4.17.21", "=4.17.21"),
            ("v1.0.0", "2.0.0", "v2.0.0"),
            ("^v1.0.0", "2.0.0", "^v2.0.0"),
            ("1.x", "4.17.21", "4.x"),
            ("1.2.x", "4.17.21", "4.17.x"),
            ("1.2", "4.17.21", "4.17"),
            ("1", "4.17.21", "4"),
            ("*", "4.17.21", "*"),
            ("", "4.17.21", ""),
            (">=1 <2", "1.5.0", ">=1 <2"),
        ],
    )
    def test_preserves_style(self, original: str, new_version: str, expected: str) -> None:
        """Test the rewritten range keeps the declared operator style."""
        assert rewrite_range(original, new_version) == expected

    def test_rewritten_range_admits_new_version(self) -> None:
        """Test a strict upper bound is widened so the new version is admitted."""
        rewritten = rewrite_range("<1.0.0", "4.17.21")

        assert satisfies("4.17.21", rewritten)

    @pytest.mark.parametrize(
        "original",
        ["^1.2.3", "~1.2.3", ">=1.0.0", "<1.0.0", "=1.2.3", "1.2.3", "v1.0.0", "^v1.0.0"],
    )
    def test_prefixed_round_trip(self, original: str) -> None:
        """Test the rewritten range parses back to the new version and operator class."""
        rewritten = parse_range(rewrite_range(original, "4.17.21"))

        assert rewritten.kind is RangeKind.PREFIXED
        assert rewritten.version == "4.17.21"
        assert rewritten.operator_class == parse_range(original).operator_class
        assert rewritten.prefix == parse_range(original).prefix
        assert satisfies("4.17.21", rewritten.raw)

    @pytest.mark.parametrize("original", ["1.x", "1.2.x", "1.2", "1.*", "1.X", "v1.x"])
    def test_xrange_round_trip(self, original: str) -> None:
        """Test x-ranges keep their precision and wildcard character."""
        declared = parse_range(original)
        rewritten = parse_range(rewrite_range(original, "4.17.21"))

        assert rewritten.kind is RangeKind.XRANGE
        assert rewritten.precision == declared.precision
        assert rewritten.wildcard == declared.wildcard
        assert satisfies("4.17.21", rewritten.raw)

    @pytest.mark.parametrize("original", ["~1.2", "^1", ">=1.2", "<1"])
    def test_partial_prefixed_keeps_precision(self, original: str) -> None:
        declared = parse_range(original)
        rewritten = parse_range(rewrite_range(original, "4.17.21"))

        assert rewritten.precision == declared.precision
        assert rewritten.operator_class == declared.operator_class
        assert satisfies("4.17.21", rewritten.raw)

    def test_partial_prefixed_prerelease_written_in_full(self) -> None:
        """Test a prerelease target cannot be shortened, so it is written whole."""
        rewritten = rewrite_range("^1", "2.0.0-beta.1", include_prerelease=True)

        assert rewritten == "^2.0.0-beta.1"

    def test_compound_range_not_admitting_version(self) -> None:
        """Test a compound range outside the new version is unrewritable."""
        with pytest.raises(UnrewritableRangeError) as exc_info:
            rewrite_range(">=1 <2", "4.17.21")

        assert exc_info.value.range_text == ">=1 <2"
        assert exc_info.value.version == "4.17.21"

    def test_opaque_range_is_unrewritable(self) -> None:
        with pytest.raises(UnrewritableRangeError):
            rewrite_range("latest", "1.0.0")

    def test_prerelease_refused_by_default(self) -> None:
        """Test prerelease targets need include_prerelease."""
        with pytest.raises(UnrewritableRangeError):
            rewrite_range("^1.0.0", "2.0.0-beta.1")

    def test_prerelease_allowed(self) -> None:
        assert (
            rewrite_range("^1.0.0", "2.0.0-beta.1", include_prerelease=True)
            == "^2.0.0-beta.1"
        )

    def test_invalid_version_is_unrewritable(self) -> None:
        with pytest.raises(UnrewritableRangeError):
            rewrite_range("^1.0.0", "not-a-version")

    def test_invalid_range_raises(self) -> None:
        with pytest.raises(InvalidRangeError):
            rewrite_range("^^1", "1.0.0")

    @pytest.mark.parametrize("original", ["^1.0.0", "~1.2", "1.x", "*", ">=1 <2"])
    def test_remove_range_pins(self, original: str) -> None:
        """Test remove_range pins the exact version whatever the style."""
        assert rewrite_range(original, "4.17.21", remove_range=True) == "4.17.21"


# ============================================================================
# satisfies
# ============================================================================


@pytest.mark.unit
class TestSatisfies:
    """Tests for npm range satisfaction."""

    @pytest.mark.parametrize(
        "version,range_text,expected",
        [
            ("4.17.21", "^4.0.0", True),
            ("4.17.21", "^3.0.0", False),
            ("1.5.0", ">=1.0.0 <2.0.0", True),
            ("2.0.0", ">=1.0.0 <2.0.0", False),
            ("1.2.0", "", True),
            ("1.2.0", "*", True),
            ("2.0.0", ">= 1.0.0", True),
            ("1.2.3", "^v1.0.0", True),
            ("1.9.0", "1.x", True),
            ("2.5.0", "1 || 2", True),
        ],
    )
    def test_satisfies(self, version: str, range_text: str, expected: bool) -> None:
        assert satisfies(version, range_text) is expected

    def test_prerelease_not_admitted_by_wildcard(self) -> None:
        assert satisfies("1.0.0-beta.1", "*") is False

    def test_invalid_inputs_never_match(self) -> None:
        assert satisfies("not-a-version", "^1.0.0") is False
        assert satisfies("1.0.0", "^^1") is False
        assert satisfies(None, "^1.0.0") is False
