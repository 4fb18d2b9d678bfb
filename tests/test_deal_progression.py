"""Unit tests for StageProgressionEngine -- milestone-driven deal stage advancement.

Tests cover:
- check_triggers: each stage's trigger, one-step-at-a-time, last stage
- validate_transition: same stage, auto skip, manual override
- summarize_requests: status counts, overdue, completion rounding
- stage helpers: days_in_stage, completed_stages, stage_progress_percent
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.app.deals.progression import (
    STAGE_ORDER,
    InvalidStageTransitionError,
    StageProgressionEngine,
    completed_stages,
    days_in_stage,
    request_completion,
    stage_progress_percent,
    summarize_requests,
)
from src.app.deals.schemas import (
    DealRead,
    DealRequestRead,
    DealStage,
    RequestStatus,
    TriggeredBy,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def engine() -> StageProgressionEngine:
    """Fresh StageProgressionEngine instance."""
    return StageProgressionEngine()


def _make_deal(stage: DealStage = DealStage.DEAL_INITIATED, **milestones) -> DealRead:
    return DealRead(
        id="deal-1",
        company_id="company-1",
        company_name="Acme Manufacturing",
        current_stage=stage,
        **milestones,
    )


def _make_request(
    status: RequestStatus, due_date: datetime | None = None
) -> DealRequestRead:
    return DealRequestRead(
        id=f"req-{status.value}",
        deal_id="deal-1",
        title="Three years of tax returns",
        category="Financial",
        status=status,
        due_date=due_date,
    )


# ── check_triggers ──────────────────────────────────────────────────────────


class TestCheckTriggers:
    """Tests for StageProgressionEngine.check_triggers."""

    def test_first_nda_moves_to_information_request(self, engine) -> None:
        deal = _make_deal(first_nda_signed_at=NOW)
        check = engine.check_triggers(deal)
        assert check.should_progress is True
        assert check.suggested_stage == DealStage.INFORMATION_REQUEST
        assert check.trigger_event == "first_nda_signed"

    def test_no_nda_stays_initiated(self, engine) -> None:
        check = engine.check_triggers(_make_deal())
        assert check.should_progress is False
        assert check.suggested_stage is None
        assert check.current_stage == DealStage.DEAL_INITIATED

    def test_request_completion_at_threshold_moves_to_analysis(self, engine) -> None:
        deal = _make_deal(DealStage.INFORMATION_REQUEST)
        check = engine.check_triggers(deal, request_completion_percent=90)
        assert check.should_progress is True
        assert check.suggested_stage == DealStage.ANALYSIS
        assert check.trigger_event == "request_completion_90"
        assert check.request_completion == 90

    def test_request_completion_below_threshold_blocks(self, engine) -> None:
        deal = _make_deal(DealStage.INFORMATION_REQUEST)
        check = engine.check_triggers(deal, request_completion_percent=89)
        assert check.should_progress is False
        assert check.request_completion == 89

    def test_loi_accepted_moves_to_final_review(self, engine) -> None:
        deal = _make_deal(DealStage.ANALYSIS, loi_accepted_at=NOW)
        check = engine.check_triggers(deal)
        assert check.suggested_stage == DealStage.FINAL_REVIEW
        assert check.trigger_event == "loi_accepted"

    def test_loi_submitted_alone_does_not_fire(self, engine) -> None:
        deal = _make_deal(DealStage.ANALYSIS, loi_submitted_at=NOW)
        assert engine.check_triggers(deal).should_progress is False

    def test_purchase_agreement_moves_to_closing(self, engine) -> None:
        deal = _make_deal(DealStage.FINAL_REVIEW, purchase_agreement_signed_at=NOW)
        check = engine.check_triggers(deal)
        assert check.suggested_stage == DealStage.CLOSING
        assert check.trigger_event == "purchase_agreement_signed"

    def test_only_next_stage_trigger_is_considered(self, engine) -> None:
        """A deal with every milestone set still advances one stage."""
        deal = _make_deal(
            first_nda_signed_at=NOW,
            loi_accepted_at=NOW,
            purchase_agreement_signed_at=NOW,
        )
        check = engine.check_triggers(deal, request_completion_percent=100)
        assert check.suggested_stage == DealStage.INFORMATION_REQUEST

    def test_later_milestone_without_next_trigger_blocks(self, engine) -> None:
        deal = _make_deal(DealStage.INFORMATION_REQUEST, loi_accepted_at=NOW)
        check = engine.check_triggers(deal, request_completion_percent=10)
        assert check.should_progress is False

    def test_closing_never_progresses(self, engine) -> None:
        deal = _make_deal(DealStage.CLOSING, closed_at=NOW)
        check = engine.check_triggers(deal, request_completion_percent=100)
        assert check.should_progress is False
        assert check.current_stage == DealStage.CLOSING


# ── validate_transition ─────────────────────────────────────────────────────


class TestValidateTransition:
    """Tests for StageProgressionEngine.validate_transition."""

    def test_same_stage_rejected(self, engine) -> None:
        with pytest.raises(InvalidStageTransitionError):
            engine.validate_transition(
                DealStage.ANALYSIS, DealStage.ANALYSIS, TriggeredBy.MANUAL
            )

    def test_auto_next_stage_allowed(self, engine) -> None:
        engine.validate_transition(
            DealStage.DEAL_INITIATED, DealStage.INFORMATION_REQUEST, TriggeredBy.AUTO
        )

    def test_auto_skip_rejected(self, engine) -> None:
        with pytest.raises(InvalidStageTransitionError):
            engine.validate_transition(
                DealStage.DEAL_INITIATED, DealStage.ANALYSIS, TriggeredBy.AUTO
            )

    def test_auto_backwards_rejected(self, engine) -> None:
        with pytest.raises(InvalidStageTransitionError):
            engine.validate_transition(
                DealStage.ANALYSIS, DealStage.INFORMATION_REQUEST, TriggeredBy.AUTO
            )

    def test_manual_skip_allowed(self, engine) -> None:
        engine.validate_transition(
            DealStage.DEAL_INITIATED, DealStage.CLOSING, TriggeredBy.MANUAL
        )

    def test_manual_backwards_allowed(self, engine) -> None:
        engine.validate_transition(
            DealStage.FINAL_REVIEW, DealStage.INFORMATION_REQUEST, TriggeredBy.MANUAL
        )


class TestGetNextStage:
    def test_pipeline_order(self, engine) -> None:
        for current, expected in zip(STAGE_ORDER, STAGE_ORDER[1:]):
            assert engine.get_next_stage(current) == expected

    def test_last_stage_has_no_next(self, engine) -> None:
        assert engine.get_next_stage(DealStage.CLOSING) is None


# ── Request Completion ──────────────────────────────────────────────────────


class TestSummarizeRequests:
    """Tests for summarize_requests and request_completion."""

    def test_empty_is_zero(self) -> None:
        summary = summarize_requests([], now=NOW)
        assert summary.total == 0
        assert summary.completion_percent == 0

    def test_answered_and_closed_count_as_complete(self) -> None:
        requests = [
            _make_request(RequestStatus.OPEN),
            _make_request(RequestStatus.IN_PROGRESS),
            _make_request(RequestStatus.ANSWERED),
            _make_request(RequestStatus.CLOSED),
        ]
        summary = summarize_requests(requests, now=NOW)
        assert summary.total == 4
        assert summary.open == 1
        assert summary.in_progress == 1
        assert summary.answered == 1
        assert summary.closed == 1
        assert summary.completion_percent == 50

    def test_completion_rounds(self) -> None:
        requests = [
            _make_request(RequestStatus.CLOSED),
            _make_request(RequestStatus.CLOSED),
            _make_request(RequestStatus.OPEN),
        ]
        assert request_completion(requests) == 67

    def test_completion_rounds_half_up(self) -> None:
        """1 of 8 is 12.5%, which reports as 13 like the data room health score."""
        requests = [_make_request(RequestStatus.ANSWERED)] + [
            _make_request(RequestStatus.OPEN) for _ in range(7)
        ]
        assert request_completion(requests) == 13

    def test_overdue_excludes_closed(self) -> None:
        past = NOW - timedelta(days=2)
        future = NOW + timedelta(days=2)
        requests = [
            _make_request(RequestStatus.OPEN, due_date=past),
            _make_request(RequestStatus.ANSWERED, due_date=past),
            _make_request(RequestStatus.CLOSED, due_date=past),
            _make_request(RequestStatus.OPEN, due_date=future),
            _make_request(RequestStatus.OPEN),
        ]
        assert summarize_requests(requests, now=NOW).overdue == 2


# ── Stage Helpers ───────────────────────────────────────────────────────────


class TestStageHelpers:
    def test_days_in_stage_floors(self) -> None:
        entered = NOW - timedelta(days=3, hours=23)
        assert days_in_stage(entered, now=NOW) == 3

    def test_days_in_stage_unknown_is_zero(self) -> None:
        assert days_in_stage(None, now=NOW) == 0

    def test_days_in_stage_future_clamps_to_zero(self) -> None:
        assert days_in_stage(NOW + timedelta(days=1), now=NOW) == 0

    def test_completed_stages(self) -> None:
        assert completed_stages(DealStage.ANALYSIS) == [
            DealStage.DEAL_INITIATED,
            DealStage.INFORMATION_REQUEST,
        ]
        assert completed_stages(DealStage.DEAL_INITIATED) == []

    def test_stage_progress_percent(self) -> None:
        assert stage_progress_percent(DealStage.DEAL_INITIATED) == 0
        assert stage_progress_percent(DealStage.ANALYSIS) == 50
        assert stage_progress_percent(DealStage.CLOSING) == 100
