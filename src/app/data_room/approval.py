"""Data room approval workflow on the deal's approval_status column.

draft / needs_revision -> under_review -> approved | needs_revision
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from src.app.deals.schemas import ApprovalStatus


class ApprovalTransitionError(ValueError):
    """Raised when an approval action is not allowed from the current status."""


class MissingRevisionNotesError(ValueError):
    """Raised when revisions are requested without notes."""


_ALLOWED_FROM: dict[str, set[ApprovalStatus | None]] = {
    "submit": {ApprovalStatus.DRAFT, ApprovalStatus.NEEDS_REVISION, None},
    "approve": {ApprovalStatus.UNDER_REVIEW},
    "request_revisions": {ApprovalStatus.UNDER_REVIEW},
}


def _check(action: str, current: ApprovalStatus | None) -> None:
    if current not in _ALLOWED_FROM[action]:
        label = current.value if current else "none"
        raise ApprovalTransitionError(f"Cannot {action.replace('_', ' ')} a data room in status {label}")


def submit_for_review(current: ApprovalStatus | None, now: datetime) -> dict[str, Any]:
    _check("submit", current)
    return {
        "approval_status": ApprovalStatus.UNDER_REVIEW.value,
        "submitted_for_review_at": now,
    }


def approve(
    current: ApprovalStatus | None, now: datetime, approver_id: str, notes: str | None = None
) -> dict[str, Any]:
    _check("approve", current)
    return {
        "approval_status": ApprovalStatus.APPROVED.value,
        "approved_at": now,
        "approved_by": approver_id,
        "approval_notes": notes,
    }


def request_revisions(
    current: ApprovalStatus | None, now: datetime, notes: str | None
) -> dict[str, Any]:
    if not notes or not notes.strip():
        raise MissingRevisionNotesError("Revision notes are required")
    _check("request_revisions", current)
    return {
        "approval_status": ApprovalStatus.NEEDS_REVISION.value,
        "revision_requested_at": now,
        "revision_notes": notes.strip(),
    }
