"""Access resolution for deals and data room documents.

Effective permissions come from, in order: the profile role (staff get
everything), an active partner_deal_access grant for the profile's partner
team, deal team membership, and accepted investor invitations.

A partner grant only opens the deal when it carries can_view_data_room.
Team members are held to their own flags: restricted_folders always apply,
and members without can_view_all_folders also lose LOI-restricted folders.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from src.app.data_room.schemas import DocumentRead
from src.app.deals.repository import DealRepository
from src.app.invitations.repository import InvitationRepository
from src.app.nda.service import NDAService
from src.app.profiles.schemas import STAFF_ROLES, ProfileRead
from src.app.team.repository import TeamRepository
from src.app.team.schemas import (
    AccessDecision,
    PartnerFlags,
    PartnerPermissions,
    TeamMemberRead,
)

logger = structlog.get_logger(__name__)

ADMIN_PERMISSIONS = PartnerPermissions(
    **{name: True for name in PartnerFlags.model_fields},
    can_download=True,
    partner_role="admin",
    is_admin=True,
)

DEFAULT_PERMISSIONS = PartnerPermissions(can_view_data_room=True, can_download=True)

# Deal actions and the (team member flag, partner flag) that grant each one.
ACTION_FLAGS: dict[str, tuple[str, str | None]] = {
    "upload_documents": ("can_upload_documents", "can_upload_documents"),
    "delete_documents": ("can_delete_documents", None),
    "approve_documents": ("can_approve_documents", None),
    "create_requests": ("can_create_requests", None),
    "edit_requests": ("can_edit_requests", "can_answer_dd_questions"),
}


def is_admin(profile: ProfileRead) -> bool:
    return profile.role in STAFF_ROLES


class AccessResolver:
    """Answers "may this profile see this deal / document?".

    Args:
        team: TeamRepository (members and partner grants).
        invitations: InvitationRepository (accepted investor invitations).
        nda: NDAService, for NDA-gated deals.
        deals: DealRepository.
        folders: DataRoomRepository, to look up LOI-restricted folders.
            Without it only restricted_folders limit team members.
    """

    def __init__(
        self,
        team: TeamRepository,
        invitations: InvitationRepository,
        nda: NDAService,
        deals: DealRepository,
        folders: Any | None = None,
    ) -> None:
        self._team = team
        self._invitations = invitations
        self._nda = nda
        self._deals = deals
        self._folders = folders

    async def partner_permissions(
        self, profile: ProfileRead, deal_id: str, now: datetime | None = None
    ) -> PartnerPermissions:
        """Effective partner-style permissions of profile on deal_id."""
        if is_admin(profile):
            return ADMIN_PERMISSIONS
        if profile.partner_team_id:
            grant = await self._team.get_active_partner_access(
                profile.partner_team_id, deal_id, now or datetime.now(timezone.utc)
            )
            if grant is not None:
                flags = grant.model_dump(include=set(PartnerFlags.model_fields))
                return PartnerPermissions(
                    **flags,
                    can_download=grant.can_view_data_room,
                    partner_role=grant.partner_role,
                    is_partner=True,
                )
        return DEFAULT_PERMISSIONS

    async def team_member(self, profile: ProfileRead, deal_id: str) -> TeamMemberRead | None:
        return await self._team.get_member(deal_id, profile.id)

    async def can_access_deal(self, profile: ProfileRead, deal_id: str) -> AccessDecision:
        if is_admin(profile):
            return AccessDecision(allowed=True, reason="admin")

        permissions = await self.partner_permissions(profile, deal_id)
        if permissions.is_partner and permissions.can_view_data_room:
            return AccessDecision(allowed=True, reason="partner")

        if await self.team_member(profile, deal_id) is not None:
            return AccessDecision(allowed=True, reason="team_member")

        for invitation in await self._invitations.list_accepted_for_user(profile.id):
            if invitation.covers_deal(deal_id):
                return AccessDecision(allowed=True, reason="investor_invitation")

        if permissions.is_partner:
            return AccessDecision(allowed=False, reason="data_room_not_shared")
        return AccessDecision(allowed=False, reason="no_access")

    async def _folder_hidden(self, member: TeamMemberRead, folder_id: str | None) -> bool:
        if not folder_id:
            return False
        if folder_id in member.restricted_folders:
            return True
        if member.can_view_all_folders or self._folders is None:
            return False
        folder = await self._folders.get_folder(folder_id)
        return folder is not None and folder.is_loi_restricted

    async def check_document_access(
        self, profile: ProfileRead, deal_id: str, folder_id: str | None = None
    ) -> AccessDecision:
        """Deal access, plus the NDA gate and restricted folders."""
        decision = await self.can_access_deal(profile, deal_id)
        if not decision.allowed:
            return decision
        if decision.reason == "admin":
            return decision

        member = await self.team_member(profile, deal_id)
        if member is not None:
            if await self._folder_hidden(member, folder_id):
                logger.info(
                    "access.restricted_folder",
                    deal_id=deal_id,
                    user_id=profile.id,
                    folder_id=folder_id,
                )
                return AccessDecision(allowed=False, reason="restricted_folder")
            return decision

        deal = await self._deals.get_deal(deal_id)
        if deal is None:
            return AccessDecision(allowed=False, reason="deal_not_found")
        if deal.requires_nda and not await self._nda.has_accepted(profile.id, deal.company_id):
            return AccessDecision(allowed=False, reason="nda_required")
        return decision

    async def filter_documents(
        self, profile: ProfileRead, deal_id: str, documents: Iterable[DocumentRead]
    ) -> list[DocumentRead]:
        """Drop documents whose folder the profile may not open."""
        allowed: dict[str | None, bool] = {}
        visible = []
        for doc in documents:
            if doc.folder_id not in allowed:
                decision = await self.check_document_access(profile, deal_id, doc.folder_id)
                allowed[doc.folder_id] = decision.allowed
            if allowed[doc.folder_id]:
                visible.append(doc)
        return visible

    async def has_permission(self, profile: ProfileRead, deal_id: str, action: str) -> bool:
        """Whether profile may perform action (a key of ACTION_FLAGS) on deal_id."""
        if is_admin(profile):
            return True
        member_flag, partner_flag = ACTION_FLAGS[action]

        if partner_flag is not None:
            permissions = await self.partner_permissions(profile, deal_id)
            if permissions.is_partner and getattr(permissions, partner_flag):
                return True

        member = await self.team_member(profile, deal_id)
        return member is not None and getattr(member, member_flag)
