"""Deal persistence models -- deals, stage history, and diligence requests.

Three SQLAlchemy models:
- DealModel: The transaction itself, with workflow phase, deal stage,
  data room approval status, and lifecycle milestone timestamps
- DealStageHistoryModel: One row per stage a deal has entered
- DealRequestModel: Buyer diligence requests tracked against the deal
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import Base


class DealModel(Base):
    """An M&A transaction brokered through the deal room.

    company_id groups deals of the same seller company; NDAs are accepted
    per company, so one signature unlocks every deal of that company.
    """

    __tablename__ = "deals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
        default=uuid.uuid4,
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    asking_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    ebitda: Mapped[float | None] = mapped_column(Float, nullable=True)
    requires_nda: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))

    # Pipeline position
    deal_status: Mapped[str] = mapped_column(
        String(30), default="draft", server_default=text("'draft'")
    )
    workflow_phase: Mapped[str | None] = mapped_column(String(40), nullable=True)
    current_stage: Mapped[str] = mapped_column(
        String(40), default="deal_initiated", server_default=text("'deal_initiated'")
    )
    stage_entered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Data room approval workflow
    approval_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    submitted_for_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    revision_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Sell-side milestones
    listing_received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    listing_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    data_room_complete_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deal_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Buy-side milestones (drive stage triggers)
    first_nda_signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    loi_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    loi_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    purchase_agreement_signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class DealStageHistoryModel(Base):
    """A stage a deal entered; exited_at stays null while it is current."""

    __tablename__ = "deal_stage_history"
    __table_args__ = (
        Index("ix_deal_stage_history_deal_entered", "deal_id", "entered_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
        default=uuid.uuid4,
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage: Mapped[str] = mapped_column(String(40), nullable=False)
    entered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    exited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    triggered_by: Mapped[str] = mapped_column(
        String(10), default="manual", server_default=text("'manual'")
    )
    trigger_event: Mapped[str | None] = mapped_column(String(60), nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class DealRequestModel(Base):
    """A diligence request raised by a buyer or the deal team."""

    __tablename__ = "deal_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
        default=uuid.uuid4,
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), default="Medium", server_default=text("'Medium'")
    )
    status: Mapped[str] = mapped_column(String(20), default="Open", server_default=text("'Open'"))
    asked_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
