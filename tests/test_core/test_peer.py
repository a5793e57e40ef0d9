from __future__ import annotations

from typing import List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from rangekeeper.core.peer import reconcile


class RecordingReselect:
    """Reselect callback returning a fixed answer and recording calls."""

    def __init__(self, answer: Optional[str]) -> None:
        self.answer = answer
        self.calls: List[Tuple[str, List[str]]] = []

    def __call__(self, name: str, ranges: List[str]) -> Optional[str]:
        self.calls.append((name, ranges))
        return self.answer


@pytest.mark.unit
class TestReconcile:
    """Tests for the single-pass peer reconciler."""

    def test_no_constraints_keeps_picks(self) -> None:
        reselect = RecordingReselect("0.0.0")

        outcome = reconcile({"a": "1.0.0", "b": "2.0.0"}, {}, reselect)

        assert outcome.selected == {"a": "1.0.0", "b": "2.0.0"}
        assert outcome.demoted == {}
        assert reselect.calls == []

    def test_violating_pick_is_demoted(self) -> None:
        reselect = RecordingReselect("17.0.2")

        outcome = reconcile(
            {"react": "18.2.0", "plugin": "2.0.0"},
            {"plugin": {"react": "^17.0.0"}},
            reselect,
            current={"react": "^16.0.0", "plugin": "^1.0.0"},
        )

        assert outcome.selected == {"react": "17.0.2", "plugin": "2.0.0"}
        assert "react" in outcome.demoted
        assert outcome.demoted == {"react": "18.2.0"}
        assert reselect.calls == [("react", ["^17.0.0"])]
        assert [c.source_package for c in outcome.conflicts["react"]] == ["plugin"]
        assert outcome.ignored == {
            "react": {
                "from": "^16.0.0",
                "to": "18.2.0",
                "reason": {"plugin": "^17.0.0"},
            }
        }

    def test_satisfied_constraint_keeps_pick(self) -> None:
        reselect = RecordingReselect(None)

        outcome = reconcile(
            {"react": "17.0.2", "plugin": "2.0.0"},
            {"plugin": {"react": "^17.0.0"}},
            reselect,
        )

        assert outcome.selected["react"] == "17.0.2"
        assert outcome.demoted == {}
        assert len(outcome.constraints) == 1

    def test_unsatisfiable_pick_dropped(self) -> None:
        outcome = reconcile(
            {"react": "18.2.0", "plugin": "2.0.0"},
            {"plugin": {"react": "^15.0.0"}},
            RecordingReselect(None),
        )

        assert outcome.selected["react"] is None
        assert outcome.demoted["react"] == "18.2.0"

    def test_ignored_names_keep_pick(self) -> None:
        reselect = MagicMock()

        outcome = reconcile(
            {"react": "18.2.0", "plugin": "2.0.0"},
            {"plugin": {"react": "^17.0.0"}},
            reselect,
            ignore=["react"],
        )

        assert outcome.selected["react"] == "18.2.0"
        assert outcome.ignored == {}
        reselect.assert_not_called()

    def test_all_ranges_passed_sorted(self) -> None:
        """Test every distinct range on a name reaches the reselect callback."""
        reselect = RecordingReselect("17.0.2")

        reconcile(
            {"react": "18.2.0", "plugin-b": "1.0.0", "plugin-a": "1.0.0"},
            {
                "plugin-b": {"react": "^17.0.0"},
                "plugin-a": {"react": ">=16.8.0"},
            },
            reselect,
        )

        assert reselect.calls == [("react", [">=16.8.0", "^17.0.0"])]

    def test_self_peer_ignored(self) -> None:
        outcome = reconcile(
            {"react": "18.2.0"},
            {"react": {"react": "^17.0.0"}},
            RecordingReselect("17.0.2"),
        )

        assert outcome.selected == {"react": "18.2.0"}
        assert len(outcome.constraints) == 0

    def test_missing_picks_contribute_nothing(self) -> None:
        """Test a name with no pick neither constrains nor gets demoted."""
        outcome = reconcile(
            {"react": None, "plugin": None},
            {"plugin": {"react": "^17.0.0"}},
            RecordingReselect("17.0.2"),
        )

        assert outcome.selected == {"react": None, "plugin": None}
        assert len(outcome.constraints) == 0

    def test_reason_lists_only_violated_constraints(self) -> None:
        """Test constraints the original pick met are left out of the reason."""
        outcome = reconcile(
            {"react": "18.2.0", "plugin": "2.0.0", "react-dom": "18.2.0"},
            {
                "plugin": {"react": "^17.0.0"},
                "react-dom": {"react": "^18.2.0"},
            },
            RecordingReselect(None),
        )

        assert outcome.selected["react"] is None
        assert set(outcome.ignored["react"]["reason"]) == {"plugin"}
        assert outcome.selected["react-dom"] == "18.2.0"
