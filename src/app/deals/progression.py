"""Event-driven deal stage progression engine.

Evaluates lifecycle milestones on a deal (first NDA, request completion,
LOI acceptance, purchase agreement) against the trigger defined for the
stage after the current one, and recommends advancing one stage when the
trigger has fired. This backs the check_deal_stage_triggers procedure;
progress_deal_stage validation lives here as well.

Automatic progression is strictly one step at a time. Manual progression
(admin override) may move to any other stage.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field

from src.app.data_room.health import percent
from src.app.deals.schemas import (
    DealRead,
    DealRequestRead,
    DealStage,
    RequestStatus,
    RequestSummary,
    TriggeredBy,
)

logger = structlog.get_logger(__name__)

# ── Stage Pipeline Order ────────────────────────────────────────────────────

STAGE_ORDER: list[DealStage] = [
    DealStage.DEAL_INITIATED,
    DealStage.INFORMATION_REQUEST,
    DealStage.ANALYSIS,
    DealStage.FINAL_REVIEW,
    DealStage.CLOSING,
]

STAGE_LABELS: dict[DealStage, str] = {
    DealStage.DEAL_INITIATED: "Deal Initiated",
    DealStage.INFORMATION_REQUEST: "Information Request",
    DealStage.ANALYSIS: "Analysis",
    DealStage.FINAL_REVIEW: "Final Review",
    DealStage.CLOSING: "Closing",
}

TRIGGER_LABELS: dict[str, str] = {
    "first_nda_signed": "First NDA signed by investor",
    "loi_accepted": "LOI accepted",
    "request_completion_90": "90% request completion reached",
    "purchase_agreement_signed": "Purchase agreement signed",
    "manual": "Manual override by admin",
}

REQUEST_COMPLETION_THRESHOLD = 90

# Requests in these states count as complete.
_COMPLETE_REQUEST_STATUSES = {RequestStatus.ANSWERED, RequestStatus.CLOSED}


class InvalidStageTransitionError(ValueError):
    """Raised when a requested stage change is not allowed."""


# ── Trigger Definitions ─────────────────────────────────────────────────────


class StageTrigger(BaseModel):
    """The event that moves a deal into a stage.

    Exactly one of milestone_field or min_request_completion is set.
    """

    trigger_event: str
    milestone_field: str | None = None
    min_request_completion: int | None = Field(default=None, ge=0, le=100)


# Keyed by the stage being entered.
STAGE_TRIGGERS: dict[DealStage, StageTrigger] = {
    DealStage.INFORMATION_REQUEST: StageTrigger(
        trigger_event="first_nda_signed",
        milestone_field="first_nda_signed_at",
    ),
    DealStage.ANALYSIS: StageTrigger(
        trigger_event="request_completion_90",
        min_request_completion=REQUEST_COMPLETION_THRESHOLD,
    ),
    DealStage.FINAL_REVIEW: StageTrigger(
        trigger_event="loi_accepted",
        milestone_field="loi_accepted_at",
    ),
    DealStage.CLOSING: StageTrigger(
        trigger_event="purchase_agreement_signed",
        milestone_field="purchase_agreement_signed_at",
    ),
}


class StageProgressionCheck(BaseModel):
    """Result of check_deal_stage_triggers."""

    should_progress: bool
    current_stage: DealStage
    suggested_stage: DealStage | None = None
    trigger_event: str | None = None
    request_completion: int = 0


# ── Request Completion ──────────────────────────────────────────────────────


def summarize_requests(
    requests: Iterable[DealRequestRead], now: datetime | None = None
) -> RequestSummary:
    """Count requests per status and compute the completion percentage.

    Overdue means the due date has passed and the request is not Closed.
    Completion is Answered + Closed over total, rounded half up; 0 with no
    requests.
    """
    now = now or datetime.now(timezone.utc)
    summary = RequestSummary()
    for req in requests:
        summary.total += 1
        if req.status == RequestStatus.OPEN:
            summary.open += 1
        elif req.status == RequestStatus.IN_PROGRESS:
            summary.in_progress += 1
        elif req.status == RequestStatus.ANSWERED:
            summary.answered += 1
        elif req.status == RequestStatus.CLOSED:
            summary.closed += 1
        if req.due_date and req.due_date < now and req.status != RequestStatus.CLOSED:
            summary.overdue += 1

    complete = summary.answered + summary.closed
    summary.completion_percent = percent(complete, summary.total)
    return summary


def request_completion(requests: Iterable[DealRequestRead]) -> int:
    """Percentage of requests that are Answered or Closed."""
    return summarize_requests(requests).completion_percent


# ── Stage Helpers ───────────────────────────────────────────────────────────


def days_in_stage(stage_entered_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days since the deal entered its current stage (0 if unknown)."""
    if stage_entered_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    elapsed = (now - stage_entered_at).total_seconds() / 86400
    return max(math.floor(elapsed), 0)


def completed_stages(current: DealStage) -> list[DealStage]:
    """Every stage before the current one."""
    return STAGE_ORDER[: STAGE_ORDER.index(current)]


def stage_progress_percent(current: DealStage) -> int:
    return round(100 * STAGE_ORDER.index(current) / (len(STAGE_ORDER) - 1))


# ── Progression Engine ──────────────────────────────────────────────────────


class StageProgressionEngine:
    """Milestone-driven deal stage progression engine.

    Looks only at the trigger of the stage immediately after the current
    one, so a deal never skips stages automatically even when several
    milestones are already set. CLOSING is the last stage and never
    progresses.
    """

    def __init__(self) -> None:
        self._triggers = STAGE_TRIGGERS

    def check_triggers(
        self, deal: DealRead, request_completion_percent: int = 0
    ) -> StageProgressionCheck:
        """Evaluate whether the deal's next-stage trigger has fired.

        Args:
            deal: Deal with its lifecycle timestamps.
            request_completion_percent: Share of diligence requests that are
                complete (0-100).

        Returns:
            StageProgressionCheck with the suggested stage when progression
            is warranted.
        """
        current = deal.current_stage
        no_progress = StageProgressionCheck(
            should_progress=False,
            current_stage=current,
            request_completion=request_completion_percent,
        )

        next_stage = self.get_next_stage(current)
        if next_stage is None:
            return no_progress

        trigger = self._triggers.get(next_stage)
        if trigger is None:
            logger.warning("deal_stage.no_trigger_defined", stage=next_stage.value)
            return no_progress

        fired = False
        if trigger.milestone_field is not None:
            fired = getattr(deal, trigger.milestone_field, None) is not None
        elif trigger.min_request_completion is not None:
            fired = request_completion_percent >= trigger.min_request_completion

        if not fired:
            return no_progress

        logger.info(
            "deal_stage.progression_suggested",
            deal_id=deal.id,
            from_stage=current.value,
            to_stage=next_stage.value,
            trigger_event=trigger.trigger_event,
        )
        return StageProgressionCheck(
            should_progress=True,
            current_stage=current,
            suggested_stage=next_stage,
            trigger_event=trigger.trigger_event,
            request_completion=request_completion_percent,
        )

    def validate_transition(
        self,
        current: DealStage,
        new_stage: DealStage,
        triggered_by: TriggeredBy,
    ) -> None:
        """Raise InvalidStageTransitionError if the change is not allowed.

        Automatic changes must go to the next stage; manual changes may go
        anywhere except the current stage.
        """
        if new_stage == current:
            raise InvalidStageTransitionError(f"Deal is already in stage {current.value}")
        if triggered_by == TriggeredBy.AUTO and new_stage != self.get_next_stage(current):
            raise InvalidStageTransitionError(
                f"Automatic progression from {current.value} can only move to the next stage"
            )

    def get_next_stage(self, current: DealStage) -> DealStage | None:
        """The stage after current, or None at the end of the pipeline."""
        idx = STAGE_ORDER.index(current)
        if idx >= len(STAGE_ORDER) - 1:
            return None
        return STAGE_ORDER[idx + 1]
