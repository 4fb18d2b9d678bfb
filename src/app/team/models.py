"""Team persistence models -- deal team members and partner deal access."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.app.core.database import Base


class DealTeamMemberModel(Base):
    """A user working a deal, with per-deal permission flags.

    restricted_folders lists folder ids the member may not open even when
    can_view_all_folders is set.
    """

    __tablename__ = "deal_team_members"
    __table_args__ = (UniqueConstraint("deal_id", "user_id", name="uq_deal_team_member"),)

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
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    can_view_all_folders: Mapped[bool] = mapped_column(Boolean, default=False)
    can_upload_documents: Mapped[bool] = mapped_column(Boolean, default=False)
    can_delete_documents: Mapped[bool] = mapped_column(Boolean, default=False)
    can_create_requests: Mapped[bool] = mapped_column(Boolean, default=False)
    can_edit_requests: Mapped[bool] = mapped_column(Boolean, default=False)
    can_approve_documents: Mapped[bool] = mapped_column(Boolean, default=False)
    restricted_folders: Mapped[list] = mapped_column(JSON, default=list)
    added_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class PartnerDealAccessModel(Base):
    """Access granted to a partner team on one deal, optionally time-boxed."""

    __tablename__ = "partner_deal_access"

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
    partner_team_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    partner_role: Mapped[str] = mapped_column(String(50), default="partner")
    can_view_data_room: Mapped[bool] = mapped_column(Boolean, default=True)
    can_upload_documents: Mapped[bool] = mapped_column(Boolean, default=False)
    can_edit_deal_info: Mapped[bool] = mapped_column(Boolean, default=False)
    can_answer_dd_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    can_view_buyer_activity: Mapped[bool] = mapped_column(Boolean, default=False)
    can_message_buyers: Mapped[bool] = mapped_column(Boolean, default=False)
    can_approve_data_room: Mapped[bool] = mapped_column(Boolean, default=False)
    can_manage_users: Mapped[bool] = mapped_column(Boolean, default=False)
    access_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    access_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    granted_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
