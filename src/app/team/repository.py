"""Team repository -- deal team members and partner deal access."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.team.models import DealTeamMemberModel, PartnerDealAccessModel
from src.app.team.schemas import (
    PartnerAccessCreate,
    PartnerAccessRead,
    TeamMemberRead,
    TeamPermissions,
    TeamRole,
)

logger = structlog.get_logger(__name__)


class DuplicateTeamMemberError(ValueError):
    """Raised when a user is added to a deal team twice."""


def _model_to_member(model: DealTeamMemberModel) -> TeamMemberRead:
    return TeamMemberRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        user_id=str(model.user_id),
        role=model.role,
        can_view_all_folders=model.can_view_all_folders,
        can_upload_documents=model.can_upload_documents,
        can_delete_documents=model.can_delete_documents,
        can_create_requests=model.can_create_requests,
        can_edit_requests=model.can_edit_requests,
        can_approve_documents=model.can_approve_documents,
        restricted_folders=[str(f) for f in (model.restricted_folders or [])],
        added_by=str(model.added_by) if model.added_by else None,
        created_at=model.created_at,
    )


def _model_to_partner_access(model: PartnerDealAccessModel) -> PartnerAccessRead:
    return PartnerAccessRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        partner_team_id=str(model.partner_team_id),
        partner_role=model.partner_role,
        can_view_data_room=model.can_view_data_room,
        can_upload_documents=model.can_upload_documents,
        can_edit_deal_info=model.can_edit_deal_info,
        can_answer_dd_questions=model.can_answer_dd_questions,
        can_view_buyer_activity=model.can_view_buyer_activity,
        can_message_buyers=model.can_message_buyers,
        can_approve_data_room=model.can_approve_data_room,
        can_manage_users=model.can_manage_users,
        access_from=model.access_from,
        access_until=model.access_until,
        granted_by=str(model.granted_by) if model.granted_by else None,
        granted_at=model.granted_at,
    )


class TeamRepository:
    """Async CRUD for deal_team_members and partner_deal_access.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Team Members ────────────────────────────────────────────────────────

    async def get_member(self, deal_id: str, user_id: str) -> TeamMemberRead | None:
        async for session in self._session_factory():
            stmt = select(DealTeamMemberModel).where(
                DealTeamMemberModel.deal_id == uuid.UUID(deal_id),
                DealTeamMemberModel.user_id == uuid.UUID(user_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_member(model) if model else None

    async def get_member_by_id(self, member_id: str) -> TeamMemberRead | None:
        async for session in self._session_factory():
            model = await session.get(DealTeamMemberModel, uuid.UUID(member_id))
            return _model_to_member(model) if model else None

    async def list_members(self, deal_id: str) -> list[TeamMemberRead]:
        async for session in self._session_factory():
            stmt = (
                select(DealTeamMemberModel)
                .where(DealTeamMemberModel.deal_id == uuid.UUID(deal_id))
                .order_by(DealTeamMemberModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_member(m) for m in result.scalars().all()]

    async def add_member(
        self,
        deal_id: str,
        user_id: str,
        role: TeamRole,
        permissions: TeamPermissions,
        added_by: str | None = None,
    ) -> TeamMemberRead:
        """Insert a team member.

        Raises:
            DuplicateTeamMemberError: The user is already on the deal team.
        """
        async for session in self._session_factory():
            model = DealTeamMemberModel(
                deal_id=uuid.UUID(deal_id),
                user_id=uuid.UUID(user_id),
                role=role.value,
                added_by=uuid.UUID(added_by) if added_by else None,
                **permissions.model_dump(),
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateTeamMemberError(
                    "User is already a team member of this deal"
                ) from exc
            await session.refresh(model)
            return _model_to_member(model)

    async def update_member(
        self, member_id: str, role: TeamRole, permissions: TeamPermissions
    ) -> TeamMemberRead:
        async for session in self._session_factory():
            model = await session.get(DealTeamMemberModel, uuid.UUID(member_id))
            if model is None:
                raise ValueError(f"Team member not found: {member_id}")
            model.role = role.value
            for key, value in permissions.model_dump().items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_member(model)

    async def remove_member(self, member_id: str) -> None:
        async for session in self._session_factory():
            model = await session.get(DealTeamMemberModel, uuid.UUID(member_id))
            if model is None:
                raise ValueError(f"Team member not found: {member_id}")
            await session.delete(model)
            await session.commit()
            return

    async def remove_user(self, user_id: str) -> int:
        """Remove user_id from every deal team. Returns the rows deleted."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(DealTeamMemberModel).where(DealTeamMemberModel.user_id == uuid.UUID(user_id))
            )
            await session.commit()
            return result.rowcount or 0

    # ── Partner Access ──────────────────────────────────────────────────────

    async def grant_partner_access(
        self, deal_id: str, data: PartnerAccessCreate, granted_by: str | None = None
    ) -> PartnerAccessRead:
        async for session in self._session_factory():
            model = PartnerDealAccessModel(
                deal_id=uuid.UUID(deal_id),
                granted_by=uuid.UUID(granted_by) if granted_by else None,
                **{
                    **data.model_dump(),
                    "partner_team_id": uuid.UUID(data.partner_team_id),
                },
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "team.partner_access_granted",
                deal_id=deal_id,
                partner_team_id=data.partner_team_id,
            )
            return _model_to_partner_access(model)

    async def list_partner_access(self, deal_id: str) -> list[PartnerAccessRead]:
        async for session in self._session_factory():
            stmt = (
                select(PartnerDealAccessModel)
                .where(PartnerDealAccessModel.deal_id == uuid.UUID(deal_id))
                .order_by(PartnerDealAccessModel.granted_at.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_partner_access(m) for m in result.scalars().all()]

    async def get_active_partner_access(
        self, partner_team_id: str, deal_id: str, now: datetime
    ) -> PartnerAccessRead | None:
        """Most recent grant for the team on the deal whose access_until is open or ahead."""
        async for session in self._session_factory():
            stmt = (
                select(PartnerDealAccessModel)
                .where(
                    PartnerDealAccessModel.partner_team_id == uuid.UUID(partner_team_id),
                    PartnerDealAccessModel.deal_id == uuid.UUID(deal_id),
                    or_(
                        PartnerDealAccessModel.access_until.is_(None),
                        PartnerDealAccessModel.access_until >= now,
                    ),
                )
                .order_by(PartnerDealAccessModel.granted_at.desc())
                .limit(1)
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_partner_access(model) if model else None

    async def revoke_partner_access(self, access_id: str) -> None:
        async for session in self._session_factory():
            model = await session.get(PartnerDealAccessModel, uuid.UUID(access_id))
            if model is None:
                raise ValueError(f"Partner access not found: {access_id}")
            await session.delete(model)
            await session.commit()
            return
