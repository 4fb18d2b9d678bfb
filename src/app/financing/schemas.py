"""Pydantic schemas and enumerations for deal financing."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FinancingStage(str, Enum):
    PRE_QUALIFICATION = "pre_qualification"
    APPLICATION_SUBMITTED = "application_submitted"
    UNDER_REVIEW = "under_review"
    ADDITIONAL_DOCS_REQUESTED = "additional_docs_requested"
    CONDITIONAL_APPROVAL = "conditional_approval"
    FINAL_APPROVAL = "final_approval"
    CLOSING = "closing"
    FUNDED = "funded"
    DECLINED = "declined"
    WITHDRAWN = "withdrawn"


class FinancingType(str, Enum):
    SBA_7A = "sba_7a"
    SBA_504 = "sba_504"
    CONVENTIONAL = "conventional"
    SELLER_FINANCING = "seller_financing"
    MEZZANINE = "mezzanine"
    EQUITY = "equity"
    BRIDGE = "bridge"
    LINE_OF_CREDIT = "line_of_credit"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class FinancingDocumentStatus(str, Enum):
    REQUIRED = "required"
    REQUESTED = "requested"
    RECEIVED = "received"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WAIVED = "waived"


class ConditionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    WAIVED = "waived"
    REJECTED = "rejected"


STAGE_LABELS: dict[FinancingStage, str] = {
    FinancingStage.PRE_QUALIFICATION: "Pre-Qualification",
    FinancingStage.APPLICATION_SUBMITTED: "Application Submitted",
    FinancingStage.UNDER_REVIEW: "Under Review",
    FinancingStage.ADDITIONAL_DOCS_REQUESTED: "Docs Requested",
    FinancingStage.CONDITIONAL_APPROVAL: "Conditional Approval",
    FinancingStage.FINAL_APPROVAL: "Final Approval",
    FinancingStage.CLOSING: "Closing",
    FinancingStage.FUNDED: "Funded",
    FinancingStage.DECLINED: "Declined",
    FinancingStage.WITHDRAWN: "Withdrawn",
}

TYPE_LABELS: dict[FinancingType, str] = {
    FinancingType.SBA_7A: "SBA 7(a)",
    FinancingType.SBA_504: "SBA 504",
    FinancingType.CONVENTIONAL: "Conventional",
    FinancingType.SELLER_FINANCING: "Seller Financing",
    FinancingType.MEZZANINE: "Mezzanine",
    FinancingType.EQUITY: "Equity",
    FinancingType.BRIDGE: "Bridge Loan",
    FinancingType.LINE_OF_CREDIT: "Line of Credit",
    FinancingType.OTHER: "Other",
}

# Entering one of these stages stamps the named timestamp column.
STAGE_TIMESTAMPS: dict[FinancingStage, str] = {
    FinancingStage.APPLICATION_SUBMITTED: "submitted_at",
    FinancingStage.FINAL_APPROVAL: "approved_at",
    FinancingStage.FUNDED: "funded_at",
}


# ── Lenders ─────────────────────────────────────────────────────────────────


class LenderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    website: str | None = None
    notes: str | None = None
    avg_close_days: int | None = None
    success_rate: float | None = None
    is_preferred: bool = False


class LenderRead(LenderCreate):
    id: str
    is_active: bool = True
    created_at: datetime | None = None


# ── Applications ────────────────────────────────────────────────────────────


class ApplicationCreate(BaseModel):
    deal_id: str
    lender_id: str | None = None
    application_number: str | None = None
    financing_type: FinancingType = FinancingType.CONVENTIONAL
    stage: FinancingStage = FinancingStage.PRE_QUALIFICATION
    loan_amount: float | None = None
    interest_rate: float | None = None
    term_months: int | None = None
    amortization_months: int | None = None
    down_payment_percent: float | None = None
    closing_date: date | None = None
    assigned_to: str | None = None
    partner_id: str | None = None
    priority: Priority = Priority.NORMAL
    internal_notes: str | None = None
    is_primary: bool = False


class ApplicationUpdate(BaseModel):
    """Partial update; only fields explicitly set are written."""

    lender_id: str | None = None
    application_number: str | None = None
    financing_type: FinancingType | None = None
    stage: FinancingStage | None = None
    loan_amount: float | None = None
    interest_rate: float | None = None
    term_months: int | None = None
    amortization_months: int | None = None
    down_payment_percent: float | None = None
    closing_date: date | None = None
    assigned_to: str | None = None
    priority: Priority | None = None
    health_score: int | None = Field(default=None, ge=0, le=100)
    internal_notes: str | None = None
    decline_reason: str | None = None
    is_primary: bool | None = None


class ApplicationFilter(BaseModel):
    deal_id: str | None = None
    lender_id: str | None = None
    stage: FinancingStage | None = None
    assigned_to: str | None = None


class ApplicationRead(BaseModel):
    id: str
    deal_id: str
    lender_id: str | None = None
    application_number: str | None = None
    financing_type: FinancingType
    stage: FinancingStage
    loan_amount: float | None = None
    interest_rate: float | None = None
    term_months: int | None = None
    amortization_months: int | None = None
    down_payment_percent: float | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    closing_date: date | None = None
    funded_at: datetime | None = None
    assigned_to: str | None = None
    partner_id: str | None = None
    priority: Priority = Priority.NORMAL
    health_score: int = 100
    stage_entered_at: datetime | None = None
    internal_notes: str | None = None
    decline_reason: str | None = None
    is_primary: bool = False
    created_by: str | None = None
    created_at: datetime | None = None
    lender: LenderRead | None = None

    @property
    def stage_label(self) -> str:
        return STAGE_LABELS[self.stage]

    def days_in_stage(self, now: datetime) -> int:
        if self.stage_entered_at is None:
            return 0
        return max(0, (now - self.stage_entered_at).days)


# ── Documents and Conditions ────────────────────────────────────────────────


class FinancingDocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    description: str | None = None
    category: str | None = None
    status: FinancingDocumentStatus = FinancingDocumentStatus.REQUIRED
    due_date: date | None = None
    notes: str | None = None


class FinancingDocumentUpdate(BaseModel):
    status: FinancingDocumentStatus | None = None
    file_path: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    file_type: str | None = None
    due_date: date | None = None
    notes: str | None = None
    rejection_reason: str | None = None


class FinancingDocumentRead(FinancingDocumentCreate):
    id: str
    application_id: str
    file_path: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    file_type: str | None = None
    requested_at: datetime | None = None
    received_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None


class ConditionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str | None = None
    category: str | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    notes: str | None = None
    order_index: int = 0


class ConditionUpdate(BaseModel):
    status: ConditionStatus | None = None
    title: str | None = None
    description: str | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    notes: str | None = None
    order_index: int | None = None


class ConditionRead(ConditionCreate):
    id: str
    application_id: str
    status: ConditionStatus = ConditionStatus.PENDING
    completed_at: datetime | None = None
    completed_by: str | None = None
    created_at: datetime | None = None


# ── Activity ────────────────────────────────────────────────────────────────


class FinancingActivityCreate(BaseModel):
    application_id: str
    activity_type: str
    title: str
    description: str | None = None
    document_id: str | None = None
    condition_id: str | None = None
    metadata: dict[str, Any] | None = None
    user_id: str | None = None


class FinancingActivityRead(FinancingActivityCreate):
    id: str
    created_at: datetime | None = None
