"""Unit tests for sell-side and buy-side workflow phase helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from src.app.deals.workflow import (
    BUY_SIDE_PHASES,
    SELL_SIDE_PHASES,
    WorkflowPhase,
    is_buy_side,
    is_sell_side,
    phase_label,
    publish_changes,
)


class TestPhaseSides:
    def test_every_phase_is_on_exactly_one_side(self) -> None:
        for phase in WorkflowPhase:
            assert is_sell_side(phase) != is_buy_side(phase)
        assert len(SELL_SIDE_PHASES) + len(BUY_SIDE_PHASES) == len(WorkflowPhase)

    def test_no_phase_counts_as_sell_side(self) -> None:
        assert is_sell_side(None) is True
        assert is_buy_side(None) is False

    def test_string_values_are_accepted(self) -> None:
        assert is_sell_side("data_room_build") is True
        assert is_buy_side("due_diligence") is True

    def test_unknown_string_is_neither_side(self) -> None:
        assert is_sell_side("not_a_phase") is False
        assert is_buy_side("not_a_phase") is False


class TestPhaseLabel:
    def test_labels(self) -> None:
        assert phase_label(WorkflowPhase.QA_COMPLIANCE) == "QA & Compliance"
        assert phase_label("live_active") == "Live / Active"

    def test_missing_or_unknown(self) -> None:
        assert phase_label(None) is None
        assert phase_label("bogus") is None


def test_publish_changes_goes_live() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert publish_changes(now) == {
        "workflow_phase": "live_active",
        "deal_published_at": now,
    }
