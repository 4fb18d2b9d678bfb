"""Human-readable one-line descriptions of deal activities for the feed."""

from __future__ import annotations

from src.app.activity.schemas import DealActivityRead, DealActivityType


def _quoted(metadata: dict, key: str, default: str = "") -> str:
    return f'"{metadata.get(key) or default}"'


def describe_activity(activity: DealActivityRead) -> str:
    """Describe an activity, e.g. 'uploaded "cim.pdf"'."""
    meta = activity.metadata or {}
    kind = activity.activity_type

    if kind == DealActivityType.DOCUMENT_UPLOADED:
        return f"uploaded {_quoted(meta, 'file_name', 'a document')}"
    if kind == DealActivityType.DOCUMENT_DELETED:
        return f"deleted {_quoted(meta, 'file_name', 'a document')}"
    if kind == DealActivityType.DOCUMENT_MOVED:
        return f"moved {_quoted(meta, 'file_name', 'a document')}"
    if kind == DealActivityType.DOCUMENT_APPROVED:
        return f"approved {_quoted(meta, 'file_name', 'a document')}"
    if kind == DealActivityType.DOCUMENT_REJECTED:
        reason = meta.get("rejection_reason")
        suffix = f": {reason}" if reason else ""
        return f"rejected {_quoted(meta, 'file_name', 'a document')}{suffix}"
    if kind == DealActivityType.DOCUMENT_DOWNLOADED:
        return f"downloaded {_quoted(meta, 'file_name', 'a document')}"
    if kind == DealActivityType.REQUEST_CREATED:
        return f"created request {_quoted(meta, 'title')}"
    if kind == DealActivityType.REQUEST_UPDATED:
        return f"updated request {_quoted(meta, 'title')}"
    if kind == DealActivityType.REQUEST_STATUS_CHANGED:
        return f"changed request status to {_quoted(meta, 'new_status')}"
    if kind == DealActivityType.REQUEST_COMPLETED:
        return f"completed request {_quoted(meta, 'title')}"
    if kind == DealActivityType.COMMENT_ADDED:
        return "added a comment"
    if kind == DealActivityType.TEAM_MEMBER_ADDED:
        return f"added {meta.get('member_name') or 'a team member'}"
    if kind == DealActivityType.TEAM_MEMBER_REMOVED:
        return f"removed {meta.get('member_name') or 'a team member'}"
    if kind == DealActivityType.PERMISSION_CHANGED:
        return f"changed permissions for {meta.get('member_name') or 'a team member'}"
    if kind == DealActivityType.NDA_SIGNED:
        return "signed the NDA"
    if kind == DealActivityType.DEAL_STAGE_CHANGED:
        return f"changed deal stage to {_quoted(meta, 'new_stage')}"
    if kind == DealActivityType.DEAL_CREATED:
        return "created this deal"
    if kind == DealActivityType.DEAL_UPDATED:
        return "updated deal information"
    return "performed an action"
