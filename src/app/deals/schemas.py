"""Pydantic schemas for deals, stage history, and diligence requests."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ── Enumerations ────────────────────────────────────────────────────────────


class DealStatus(str, Enum):
    DRAFT = "draft"
    DATA_GATHERING = "data_gathering"
    LIVE = "live"
    ACTIVE = "active"
    UNDER_LOI = "under_loi"
    CLOSING = "closing"
    CLOSED = "closed"
    DEAD = "dead"


class DealStage(str, Enum):
    DEAL_INITIATED = "deal_initiated"
    INFORMATION_REQUEST = "information_request"
    ANALYSIS = "analysis"
    FINAL_REVIEW = "final_review"
    CLOSING = "closing"


class TriggeredBy(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ApprovalStatus(str, Enum):
    """Data room approval status stored on the deal."""

    DRAFT = "draft"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    NEEDS_REVISION = "needs_revision"


class DealTimestamp(str, Enum):
    """Buy-side lifecycle timestamps that feed the stage triggers."""

    FIRST_NDA_SIGNED = "first_nda_signed_at"
    LOI_SUBMITTED = "loi_submitted_at"
    LOI_ACCEPTED = "loi_accepted_at"
    PURCHASE_AGREEMENT_SIGNED = "purchase_agreement_signed_at"
    CLOSED = "closed_at"


class RequestStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    ANSWERED = "Answered"
    CLOSED = "Closed"


# ── Deals ───────────────────────────────────────────────────────────────────


class DealCreate(BaseModel):
    """Fields accepted when creating a deal."""

    company_name: str = Field(..., min_length=1, max_length=300)
    company_id: str | None = None
    title: str | None = None
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    asking_price: float | None = Field(default=None, ge=0)
    revenue: float | None = None
    ebitda: float | None = None
    requires_nda: bool = True
    deal_status: DealStatus = DealStatus.DRAFT
    workflow_phase: str | None = None


class DealUpdate(BaseModel):
    """Editable deal information (all optional)."""

    company_name: str | None = None
    title: str | None = None
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    asking_price: float | None = Field(default=None, ge=0)
    revenue: float | None = None
    ebitda: float | None = None
    requires_nda: bool | None = None
    deal_status: DealStatus | None = None


class DealFilter(BaseModel):
    deal_status: DealStatus | None = None
    workflow_phase: str | None = None
    current_stage: DealStage | None = None


class DealRead(BaseModel):
    """A deal with every lifecycle column."""

    id: str
    company_id: str
    company_name: str
    title: str | None = None
    description: str | None = None
    industry: str | None = None
    location: str | None = None
    asking_price: float | None = None
    revenue: float | None = None
    ebitda: float | None = None
    requires_nda: bool = True

    deal_status: DealStatus = DealStatus.DRAFT
    workflow_phase: str | None = None
    current_stage: DealStage = DealStage.DEAL_INITIATED
    stage_entered_at: datetime | None = None

    approval_status: ApprovalStatus | None = None
    submitted_for_review_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    approval_notes: str | None = None
    revision_requested_at: datetime | None = None
    revision_notes: str | None = None

    listing_received_at: datetime | None = None
    listing_approved_at: datetime | None = None
    data_room_complete_at: datetime | None = None
    deal_published_at: datetime | None = None

    first_nda_signed_at: datetime | None = None
    loi_submitted_at: datetime | None = None
    loi_accepted_at: datetime | None = None
    purchase_agreement_signed_at: datetime | None = None
    closed_at: datetime | None = None

    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Stage History ───────────────────────────────────────────────────────────


class StageHistoryRead(BaseModel):
    id: str
    deal_id: str
    stage: DealStage
    entered_at: datetime
    exited_at: datetime | None = None
    duration_days: int | None = None
    triggered_by: TriggeredBy = TriggeredBy.MANUAL
    trigger_event: str | None = None
    user_id: str | None = None


class StageTransition(BaseModel):
    """A validated stage change handed to the repository."""

    deal_id: str
    old_stage: DealStage
    new_stage: DealStage
    triggered_by: TriggeredBy
    trigger_event: str | None = None
    user_id: str | None = None
    at: datetime


# ── Diligence Requests ──────────────────────────────────────────────────────


class DealRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str | None = None
    category: str = Field(..., min_length=1)
    priority: str = "Medium"
    assigned_to: str | None = None
    due_date: datetime | None = None


class DealRequestUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    priority: str | None = None
    status: RequestStatus | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None


class DealRequestRead(BaseModel):
    id: str
    deal_id: str
    title: str
    description: str | None = None
    category: str
    priority: str = "Medium"
    status: RequestStatus = RequestStatus.OPEN
    asked_by: str | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RequestSummary(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    answered: int = 0
    closed: int = 0
    overdue: int = 0
    completion_percent: int = 0
