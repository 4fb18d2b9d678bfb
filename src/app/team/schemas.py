"""Pydantic schemas for deal team members and partner access."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TeamRole(str, Enum):
    DEAL_LEAD = "deal_lead"
    ANALYST = "analyst"
    EXTERNAL_REVIEWER = "external_reviewer"
    INVESTOR = "investor"
    SELLER = "seller"
    ADVISOR = "advisor"


class TeamPermissions(BaseModel):
    """Per-deal permission flags of a team member."""

    can_view_all_folders: bool = False
    can_upload_documents: bool = False
    can_delete_documents: bool = False
    can_create_requests: bool = False
    can_edit_requests: bool = False
    can_approve_documents: bool = False
    restricted_folders: list[str] = Field(default_factory=list)


class PermissionOverrides(BaseModel):
    """Explicit flag values layered over the role defaults."""

    can_view_all_folders: bool | None = None
    can_upload_documents: bool | None = None
    can_delete_documents: bool | None = None
    can_create_requests: bool | None = None
    can_edit_requests: bool | None = None
    can_approve_documents: bool | None = None
    restricted_folders: list[str] | None = None


class TeamMemberCreate(BaseModel):
    user_id: str
    role: TeamRole
    permissions: PermissionOverrides | None = None


class TeamMemberUpdate(BaseModel):
    role: TeamRole | None = None
    permissions: PermissionOverrides | None = None


class TeamMemberRead(TeamPermissions):
    id: str
    deal_id: str
    user_id: str
    role: TeamRole
    added_by: str | None = None
    created_at: datetime | None = None
    member_name: str | None = None
    member_email: str | None = None


# ── Partner Access ──────────────────────────────────────────────────────────


class PartnerFlags(BaseModel):
    can_view_data_room: bool = True
    can_upload_documents: bool = False
    can_edit_deal_info: bool = False
    can_answer_dd_questions: bool = False
    can_view_buyer_activity: bool = False
    can_message_buyers: bool = False
    can_approve_data_room: bool = False
    can_manage_users: bool = False


class PartnerAccessCreate(PartnerFlags):
    partner_team_id: str
    partner_role: str = "partner"
    access_from: datetime | None = None
    access_until: datetime | None = None


class PartnerAccessRead(PartnerAccessCreate):
    id: str
    deal_id: str
    granted_by: str | None = None
    granted_at: datetime | None = None


class PartnerPermissions(PartnerFlags):
    """Effective permissions of a user on a deal."""

    can_download: bool = True
    partner_role: str | None = None
    is_admin: bool = False
    is_partner: bool = False


class AccessDecision(BaseModel):
    """Outcome of a deal or document access check."""

    allowed: bool
    reason: str | None = None
