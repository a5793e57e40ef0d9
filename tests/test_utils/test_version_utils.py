from __future__ import annotations

from typing import Optional

import pytest
import semantic_version

from rangekeeper.utils.version_utils import (
    coerce_version,
    get_update_type,
    min_version,
    normalize_range_text,
    npm_spec,
    parse_version,
    satisfies,
)


# ==============================================================================
# Parsing
# ==============================================================================


@pytest.mark.unit
class TestParseVersion:
    """Tests for strict version parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1.2.3", "1.2.3"),
            ("v1.2.3", "1.2.3"),
            ("=1.2.3", "1.2.3"),
            ("  2.0.0-rc.1 ", "2.0.0-rc.1"),
        ],
    )
    def test_valid(self, value: str, expected: str) -> None:
        assert parse_version(value) == semantic_version.Version(expected)

    @pytest.mark.parametrize("value", [None, "", "1.2", "latest", "1.2.3.4"])
    def test_invalid(self, value: Optional[str]) -> None:
        assert parse_version(value) is None


@pytest.mark.unit
class TestCoerceVersion:
    """Tests for lenient version parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1", "1.0.0"),
            ("1.2", "1.2.0"),
            ("v3.4.5", "3.4.5"),
        ],
    )
    def test_zero_fills(self, value: str, expected: str) -> None:
        assert coerce_version(value) == semantic_version.Version(expected)

    @pytest.mark.parametrize("value", [None, "", "latest"])
    def test_invalid(self, value: Optional[str]) -> None:
        assert coerce_version(value) is None


# ==============================================================================
# Update type
# ==============================================================================


@pytest.mark.unit
class TestGetUpdateType:
    """Tests for semantic change classification."""

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("1.0.0", "2.0.0", "major"),
            ("1.0.0", "1.1.0", "minor"),
            ("1.0.0", "1.0.1", "patch"),
            ("1.0.0", "1.0.0", "same"),
            ("2.0.0", "1.0.0", "downgrade"),
            ("1.0.0-rc.1", "1.0.0", "update"),
            ("1.2", "1.3.0", "minor"),
            (None, "1.0.0", "new"),
            ("1.0.0", None, "unknown"),
            (None, None, "unknown"),
            ("latest", "1.0.0", "unknown"),
        ],
    )
    def test_classification(
        self,
        current: Optional[str],
        target: Optional[str],
        expected: str,
    ) -> None:
        assert get_update_type(current, target) == expected


# ==============================================================================
# Range helpers
# ==============================================================================


@pytest.mark.unit
class TestNormalizeRangeText:
    """Tests for range text cleanup."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (">= 1.0.0", ">=1.0.0"),
            ("^v1.2.3", "^1.2.3"),
            ("  ~1.2  ", "~1.2"),
            (None, ""),
            (">= 1.0.0 < 2.0.0", ">=1.0.0 <2.0.0"),
        ],
    )
    def test_normalize(self, raw: Optional[str], expected: str) -> None:
        assert normalize_range_text(raw) == expected


@pytest.mark.unit
class TestSatisfies:
    """Tests for npm range matching."""

    @pytest.mark.parametrize(
        "version,range_text,expected",
        [
            ("4.17.21", "^4.0.0", True),
            ("5.0.0", "^4.0.0", False),
            ("1.2.9", "~1.2.0", True),
            ("1.3.0", "~1.2.0", False),
            ("1.5.0", ">=1.0.0 <2.0.0", True),
            ("2.0.0", ">=1.0.0 <2.0.0", False),
            ("3.0.0", "^1.0.0 || ^3.0.0", True),
            ("1.9.9", "1.x", True),
            ("9.9.9", "*", True),
            ("9.9.9", "", True),
        ],
    )
    def test_match(self, version: str, range_text: str, expected: bool) -> None:
        assert satisfies(version, range_text) is expected

    def test_prerelease_excluded_from_wildcard(self) -> None:
        assert satisfies("2.0.0-rc.1", "*") is False

    def test_prerelease_needs_same_tuple(self) -> None:
        assert satisfies("1.2.4-beta.2", ">=1.2.4-beta.1") is True
        assert satisfies("1.3.0-beta.1", ">=1.2.4-beta.1") is False

    @pytest.mark.parametrize(
        "version,range_text",
        [
            ("junk", "^1.0.0"),
            (None, "^1.0.0"),
            ("1.0.0", "latest"),
            ("1.0.0", "github:user/repo"),
        ],
    )
    def test_unparseable_never_matches(
        self, version: Optional[str], range_text: str
    ) -> None:
        assert satisfies(version, range_text) is False

    def test_npm_spec_memoized(self) -> None:
        assert npm_spec("^1.0.0") is npm_spec("^1.0.0")


@pytest.mark.unit
class TestMinVersion:
    """Tests for the lowest version a range admits."""

    @pytest.mark.parametrize(
        "range_text,expected",
        [
            ("16", "16.0.0"),
            ("16.2", "16.2.0"),
            (">=14", "14.0.0"),
            ("^16.13.0", "16.13.0"),
            (">1.2.3 <2", "1.2.4"),
            ("<16", "0.0.0"),
            ("*", "0.0.0"),
            ("^14 || ^12.22", "12.22.0"),
        ],
    )
    def test_lowest_admitted(self, range_text: str, expected: str) -> None:
        assert min_version(range_text) == semantic_version.Version(expected)

    @pytest.mark.parametrize("range_text", ["lts/*", ">2 <1"])
    def test_none(self, range_text: str) -> None:
        assert min_version(range_text) is None
