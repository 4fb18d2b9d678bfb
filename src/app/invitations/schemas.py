"""Pydantic schemas for custom, partner, team and investor invitations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class AccessType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    PORTFOLIO = "portfolio"
    CUSTOM = "custom"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


# ── Staff and partner invites ───────────────────────────────────────────────


class CustomInviteRequest(BaseModel):
    """Body of send-custom-invite. email is checked by the service so an
    empty value yields "Email is required"."""

    email: str = ""
    role: str = "viewer"
    first_name: str | None = None
    last_name: str | None = None


class PartnerInviteRequest(BaseModel):
    email: str = ""
    partner_team_id: str = ""
    team_name: str = ""
    company_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class InviteResult(BaseModel):
    success: bool = True
    message: str
    user_id: str | None = None


class UserInviteRequest(BaseModel):
    """Body of invite-user: a brand-new platform user."""

    email: str = ""
    role: str = "viewer"


# ── Investor invitations ────────────────────────────────────────────────────


class InvestorInvitationCreate(BaseModel):
    email: str
    investor_name: str | None = None
    access_type: AccessType
    deal_id: str | None = None
    deal_ids: list[str] = Field(default_factory=list)
    portfolio_access: bool = False
    master_nda: bool = False
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class InvestorInvitationRead(BaseModel):
    id: str
    email: str
    investor_name: str | None = None
    access_type: AccessType
    deal_id: str | None = None
    deal_ids: list[str] = Field(default_factory=list)
    portfolio_access: bool = False
    master_nda: bool = False
    invitation_code: str
    status: InvitationStatus
    expires_at: datetime
    invited_by: str | None = None
    accepted_by: str | None = None
    accepted_at: datetime | None = None
    send_count: int = 0
    last_sent_at: datetime | None = None
    created_at: datetime | None = None

    def covers_deal(self, deal_id: str) -> bool:
        """True when this invitation grants access to deal_id."""
        if self.portfolio_access or self.access_type == AccessType.PORTFOLIO:
            return True
        if self.access_type == AccessType.SINGLE:
            return self.deal_id == deal_id
        return deal_id in self.deal_ids


class AcceptInvitationRequest(BaseModel):
    code: str


# ── Team invitations ────────────────────────────────────────────────────────


class TeamInvitationCreate(BaseModel):
    """Body of send-team-invitation.

    role is a deal team role (joins deal_id's team on acceptance) or one of
    the platform roles admin, editor and viewer.
    """

    invitee_email: str = ""
    invitee_name: str | None = None
    role: str = "viewer"
    personal_message: str | None = None
    deal_id: str | None = None
    permissions: dict[str, bool] = Field(default_factory=dict)


class TeamInvitationRead(BaseModel):
    id: str
    inviter_id: str | None = None
    invitee_email: str
    invitee_name: str | None = None
    role: str
    personal_message: str | None = None
    invitation_token: str
    deal_id: str | None = None
    permissions: dict[str, bool] = Field(default_factory=dict)
    status: InvitationStatus
    expires_at: datetime
    accepted_by: str | None = None
    accepted_at: datetime | None = None
    created_at: datetime | None = None


class TeamInvitationResult(BaseModel):
    success: bool = True
    message: str
    invitation_id: str
    is_existing_user: bool


class InvitationStats(BaseModel):
    total: int = 0
    pending: int = 0
    accepted: int = 0
    expired: int = 0
    revoked: int = 0


class AcceptTeamInvitationRequest(BaseModel):
    token: str
