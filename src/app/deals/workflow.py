"""Sell-side and buy-side workflow phases.

A deal's workflow_phase records where it sits in the brokerage pipeline:
the sell side covers intake through data room readiness, the buy side
covers everything after the deal is published to investors. A deal with
no phase yet is treated as sell side.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum


class WorkflowPhase(str, Enum):
    # Sell side
    LISTING_RECEIVED = "listing_received"
    UNDER_REVIEW = "under_review"
    LISTING_APPROVED = "listing_approved"
    DATA_ROOM_BUILD = "data_room_build"
    QA_COMPLIANCE = "qa_compliance"
    READY_FOR_DISTRIBUTION = "ready_for_distribution"
    # Buy side
    LIVE_ACTIVE = "live_active"
    UNDER_LOI = "under_loi"
    DUE_DILIGENCE = "due_diligence"
    CLOSING = "closing"
    CLOSED = "closed"


SELL_SIDE_PHASES: list[WorkflowPhase] = [
    WorkflowPhase.LISTING_RECEIVED,
    WorkflowPhase.UNDER_REVIEW,
    WorkflowPhase.LISTING_APPROVED,
    WorkflowPhase.DATA_ROOM_BUILD,
    WorkflowPhase.QA_COMPLIANCE,
    WorkflowPhase.READY_FOR_DISTRIBUTION,
]

BUY_SIDE_PHASES: list[WorkflowPhase] = [
    WorkflowPhase.LIVE_ACTIVE,
    WorkflowPhase.UNDER_LOI,
    WorkflowPhase.DUE_DILIGENCE,
    WorkflowPhase.CLOSING,
    WorkflowPhase.CLOSED,
]

PHASE_LABELS: dict[WorkflowPhase, str] = {
    WorkflowPhase.LISTING_RECEIVED: "Listing Received",
    WorkflowPhase.UNDER_REVIEW: "Under Review",
    WorkflowPhase.LISTING_APPROVED: "Listing Approved",
    WorkflowPhase.DATA_ROOM_BUILD: "Data Room Build",
    WorkflowPhase.QA_COMPLIANCE: "QA & Compliance",
    WorkflowPhase.READY_FOR_DISTRIBUTION: "Ready for Distribution",
    WorkflowPhase.LIVE_ACTIVE: "Live / Active",
    WorkflowPhase.UNDER_LOI: "Under LOI",
    WorkflowPhase.DUE_DILIGENCE: "Due Diligence",
    WorkflowPhase.CLOSING: "Closing",
    WorkflowPhase.CLOSED: "Closed",
}


class Milestone(str, Enum):
    """Sell-side milestone timestamps that can be marked on a deal."""

    LISTING_RECEIVED = "listing_received_at"
    LISTING_APPROVED = "listing_approved_at"
    DATA_ROOM_COMPLETE = "data_room_complete_at"


def _coerce(phase: WorkflowPhase | str | None) -> WorkflowPhase | None:
    if phase is None or isinstance(phase, WorkflowPhase):
        return phase
    try:
        return WorkflowPhase(phase)
    except ValueError:
        return None


def is_sell_side(phase: WorkflowPhase | str | None) -> bool:
    """True for sell-side phases and for deals without a phase."""
    coerced = _coerce(phase)
    if phase is None:
        return True
    return coerced in SELL_SIDE_PHASES


def is_buy_side(phase: WorkflowPhase | str | None) -> bool:
    coerced = _coerce(phase)
    return coerced is not None and coerced in BUY_SIDE_PHASES


def phase_label(phase: WorkflowPhase | str | None) -> str | None:
    coerced = _coerce(phase)
    return PHASE_LABELS.get(coerced) if coerced else None


def publish_changes(now: datetime) -> dict:
    """Column updates applied when a deal goes live to investors."""
    return {
        "workflow_phase": WorkflowPhase.LIVE_ACTIVE.value,
        "deal_published_at": now,
    }
