"""Invitation repositories -- async CRUD for investor_invitations and team_invitations."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.invitations.models import InvestorInvitationModel, TeamInvitationModel
from src.app.invitations.schemas import (
    InvestorInvitationCreate,
    InvestorInvitationRead,
    InvitationStatus,
    TeamInvitationCreate,
    TeamInvitationRead,
)

logger = structlog.get_logger(__name__)


def _model_to_invitation(model: InvestorInvitationModel) -> InvestorInvitationRead:
    """Convert InvestorInvitationModel to InvestorInvitationRead schema."""
    return InvestorInvitationRead(
        id=str(model.id),
        email=model.email,
        investor_name=model.investor_name,
        access_type=model.access_type,
        deal_id=str(model.deal_id) if model.deal_id else None,
        deal_ids=[str(d) for d in (model.deal_ids or [])],
        portfolio_access=model.portfolio_access,
        master_nda=model.master_nda,
        invitation_code=model.invitation_code,
        status=model.status,
        expires_at=model.expires_at,
        invited_by=str(model.invited_by) if model.invited_by else None,
        accepted_by=str(model.accepted_by) if model.accepted_by else None,
        accepted_at=model.accepted_at,
        send_count=model.send_count or 0,
        last_sent_at=model.last_sent_at,
        created_at=model.created_at,
    )


def _model_to_team_invitation(model: TeamInvitationModel) -> TeamInvitationRead:
    return TeamInvitationRead(
        id=str(model.id),
        inviter_id=str(model.inviter_id) if model.inviter_id else None,
        invitee_email=model.invitee_email,
        invitee_name=model.invitee_name,
        role=model.role,
        personal_message=model.personal_message,
        invitation_token=model.invitation_token,
        deal_id=str(model.deal_id) if model.deal_id else None,
        permissions=dict(model.permissions or {}),
        status=model.status,
        expires_at=model.expires_at,
        accepted_by=str(model.accepted_by) if model.accepted_by else None,
        accepted_at=model.accepted_at,
        created_at=model.created_at,
    )


class InvitationRepository:
    """Async CRUD for investor invitations.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        data: InvestorInvitationCreate,
        invitation_code: str,
        expires_at: datetime,
        invited_by: str | None,
    ) -> InvestorInvitationRead:
        async for session in self._session_factory():
            model = InvestorInvitationModel(
                email=data.email.lower(),
                investor_name=data.investor_name,
                access_type=data.access_type.value,
                deal_id=uuid.UUID(data.deal_id) if data.deal_id else None,
                deal_ids=list(data.deal_ids),
                portfolio_access=data.portfolio_access,
                master_nda=data.master_nda,
                invitation_code=invitation_code,
                status=InvitationStatus.PENDING.value,
                expires_at=expires_at,
                invited_by=uuid.UUID(invited_by) if invited_by else None,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "invitation.created",
                invitation_id=str(model.id),
                access_type=model.access_type,
            )
            return _model_to_invitation(model)

    async def get(self, invitation_id: str) -> InvestorInvitationRead | None:
        async for session in self._session_factory():
            model = await session.get(InvestorInvitationModel, uuid.UUID(invitation_id))
            return _model_to_invitation(model) if model else None

    async def get_by_code(self, code: str) -> InvestorInvitationRead | None:
        async for session in self._session_factory():
            stmt = select(InvestorInvitationModel).where(
                InvestorInvitationModel.invitation_code == code
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_invitation(model) if model else None

    async def list_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[InvestorInvitationRead]:
        async for session in self._session_factory():
            stmt = select(InvestorInvitationModel)
            if status is not None:
                stmt = stmt.where(InvestorInvitationModel.status == status.value)
            stmt = stmt.order_by(InvestorInvitationModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_invitation(m) for m in result.scalars().all()]

    async def list_accepted_for_user(self, user_id: str) -> list[InvestorInvitationRead]:
        async for session in self._session_factory():
            stmt = select(InvestorInvitationModel).where(
                InvestorInvitationModel.accepted_by == uuid.UUID(user_id),
                InvestorInvitationModel.status == InvitationStatus.ACCEPTED.value,
            )
            result = await session.execute(stmt)
            return [_model_to_invitation(m) for m in result.scalars().all()]

    async def update_status(
        self,
        invitation_id: str,
        status: InvitationStatus,
        accepted_by: str | None = None,
        accepted_at: datetime | None = None,
    ) -> InvestorInvitationRead:
        async for session in self._session_factory():
            model = await session.get(InvestorInvitationModel, uuid.UUID(invitation_id))
            if model is None:
                raise ValueError(f"Invitation not found: {invitation_id}")
            model.status = status.value
            if accepted_by is not None:
                model.accepted_by = uuid.UUID(accepted_by)
                model.accepted_at = accepted_at
            await session.commit()
            await session.refresh(model)
            return _model_to_invitation(model)

    async def record_sent(self, invitation_id: str, sent_at: datetime) -> InvestorInvitationRead:
        async for session in self._session_factory():
            model = await session.get(InvestorInvitationModel, uuid.UUID(invitation_id))
            if model is None:
                raise ValueError(f"Invitation not found: {invitation_id}")
            model.send_count = (model.send_count or 0) + 1
            model.last_sent_at = sent_at
            await session.commit()
            await session.refresh(model)
            return _model_to_invitation(model)

    async def delete_by_email(self, email: str) -> int:
        async for session in self._session_factory():
            result = await session.execute(
                delete(InvestorInvitationModel).where(
                    func.lower(InvestorInvitationModel.email) == email.lower()
                )
            )
            await session.commit()
            return result.rowcount or 0


class TeamInvitationRepository:
    """Async CRUD for team invitations.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        data: TeamInvitationCreate,
        inviter_id: str | None,
        invitation_token: str,
        expires_at: datetime,
    ) -> TeamInvitationRead:
        async for session in self._session_factory():
            model = TeamInvitationModel(
                inviter_id=uuid.UUID(inviter_id) if inviter_id else None,
                invitee_email=data.invitee_email,
                invitee_name=data.invitee_name,
                role=data.role,
                personal_message=data.personal_message,
                invitation_token=invitation_token,
                deal_id=uuid.UUID(data.deal_id) if data.deal_id else None,
                permissions=dict(data.permissions),
                status=InvitationStatus.PENDING.value,
                expires_at=expires_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("team_invitation.created", invitation_id=str(model.id), role=model.role)
            return _model_to_team_invitation(model)

    async def get(self, invitation_id: str) -> TeamInvitationRead | None:
        async for session in self._session_factory():
            model = await session.get(TeamInvitationModel, uuid.UUID(invitation_id))
            return _model_to_team_invitation(model) if model else None

    async def get_by_token(self, token: str) -> TeamInvitationRead | None:
        async for session in self._session_factory():
            stmt = select(TeamInvitationModel).where(
                TeamInvitationModel.invitation_token == token
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_team_invitation(model) if model else None

    async def list_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[TeamInvitationRead]:
        async for session in self._session_factory():
            stmt = select(TeamInvitationModel)
            if status is not None:
                stmt = stmt.where(TeamInvitationModel.status == status.value)
            stmt = stmt.order_by(TeamInvitationModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_team_invitation(m) for m in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        async for session in self._session_factory():
            stmt = select(TeamInvitationModel.status, func.count()).group_by(
                TeamInvitationModel.status
            )
            result = await session.execute(stmt)
            return {status: count for status, count in result.all()}

    async def update_status(
        self,
        invitation_id: str,
        status: InvitationStatus,
        accepted_by: str | None = None,
        accepted_at: datetime | None = None,
    ) -> TeamInvitationRead:
        async for session in self._session_factory():
            model = await session.get(TeamInvitationModel, uuid.UUID(invitation_id))
            if model is None:
                raise ValueError(f"Team invitation not found: {invitation_id}")
            model.status = status.value
            if accepted_by is not None:
                model.accepted_by = uuid.UUID(accepted_by)
                model.accepted_at = accepted_at
            await session.commit()
            await session.refresh(model)
            return _model_to_team_invitation(model)

    async def delete(self, invitation_id: str) -> None:
        async for session in self._session_factory():
            model = await session.get(TeamInvitationModel, uuid.UUID(invitation_id))
            if model is not None:
                await session.delete(model)
                await session.commit()
            return

    async def delete_by_email(self, email: str) -> int:
        async for session in self._session_factory():
            result = await session.execute(
                delete(TeamInvitationModel).where(
                    func.lower(TeamInvitationModel.invitee_email) == email.lower()
                )
            )
            await session.commit()
            return result.rowcount or 0
