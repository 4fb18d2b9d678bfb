"""NDA repository -- acceptances and extension tokens."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.nda.models import CompanyNDAAcceptanceModel, NDAExtensionTokenModel
from src.app.nda.schemas import (
    ExtensionTokenRead,
    NDAAcceptanceCreate,
    NDAAcceptanceRead,
    NDAStatus,
)

logger = structlog.get_logger(__name__)


def _model_to_acceptance(model: CompanyNDAAcceptanceModel) -> NDAAcceptanceRead:
    return NDAAcceptanceRead(
        id=str(model.id),
        user_id=str(model.user_id),
        company_id=str(model.company_id),
        company_name=model.company_name,
        signer_name=model.signer_name,
        signer_email=model.signer_email,
        signer_title=model.signer_title,
        status=model.status,
        accepted_at=model.accepted_at,
        expires_at=model.expires_at,
    )


def _model_to_token(model: NDAExtensionTokenModel) -> ExtensionTokenRead:
    return ExtensionTokenRead(
        id=str(model.id),
        nda_id=str(model.nda_id),
        token=model.token,
        expires_at=model.expires_at,
        used_at=model.used_at,
    )


class NDARepository:
    """Async CRUD for company_nda_acceptances and nda_extension_tokens.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Acceptances ─────────────────────────────────────────────────────────

    async def get_acceptance(self, user_id: str, company_id: str) -> NDAAcceptanceRead | None:
        async for session in self._session_factory():
            stmt = select(CompanyNDAAcceptanceModel).where(
                CompanyNDAAcceptanceModel.user_id == uuid.UUID(user_id),
                CompanyNDAAcceptanceModel.company_id == uuid.UUID(company_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_acceptance(model) if model else None

    async def get_acceptance_by_id(self, nda_id: str) -> NDAAcceptanceRead | None:
        async for session in self._session_factory():
            model = await session.get(CompanyNDAAcceptanceModel, uuid.UUID(nda_id))
            return _model_to_acceptance(model) if model else None

    async def create_acceptance(self, data: NDAAcceptanceCreate) -> NDAAcceptanceRead:
        async for session in self._session_factory():
            model = CompanyNDAAcceptanceModel(
                user_id=uuid.UUID(data.user_id),
                company_id=uuid.UUID(data.company_id),
                company_name=data.company_name,
                signer_name=data.signer_name,
                signer_email=data.signer_email,
                signer_title=data.signer_title,
                ip_address=data.ip_address,
                status=NDAStatus.ACTIVE.value,
                expires_at=data.expires_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "nda.acceptance_created",
                nda_id=str(model.id),
                company_id=data.company_id,
            )
            return _model_to_acceptance(model)

    async def list_for_user(self, user_id: str) -> list[NDAAcceptanceRead]:
        async for session in self._session_factory():
            stmt = (
                select(CompanyNDAAcceptanceModel)
                .where(CompanyNDAAcceptanceModel.user_id == uuid.UUID(user_id))
                .order_by(CompanyNDAAcceptanceModel.accepted_at.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_acceptance(m) for m in result.scalars().all()]

    async def list_expiring(self, start: datetime, end: datetime) -> list[NDAAcceptanceRead]:
        """Active acceptances with expires_at in [start, end)."""
        async for session in self._session_factory():
            stmt = (
                select(CompanyNDAAcceptanceModel)
                .where(
                    CompanyNDAAcceptanceModel.status == NDAStatus.ACTIVE.value,
                    CompanyNDAAcceptanceModel.expires_at >= start,
                    CompanyNDAAcceptanceModel.expires_at < end,
                )
                .order_by(CompanyNDAAcceptanceModel.expires_at)
            )
            result = await session.execute(stmt)
            return [_model_to_acceptance(m) for m in result.scalars().all()]

    async def extend(self, nda_id: str, new_expires_at: datetime) -> NDAAcceptanceRead:
        """Set a new expiry and reactivate the acceptance."""
        async for session in self._session_factory():
            model = await session.get(CompanyNDAAcceptanceModel, uuid.UUID(nda_id))
            if model is None:
                raise ValueError(f"NDA not found: {nda_id}")
            model.expires_at = new_expires_at
            model.status = NDAStatus.ACTIVE.value
            await session.commit()
            await session.refresh(model)
            return _model_to_acceptance(model)

    async def expire_lapsed(self, now: datetime) -> int:
        """Mark active acceptances past their expiry as expired."""
        async for session in self._session_factory():
            stmt = (
                update(CompanyNDAAcceptanceModel)
                .where(
                    CompanyNDAAcceptanceModel.status == NDAStatus.ACTIVE.value,
                    CompanyNDAAcceptanceModel.expires_at < now,
                )
                .values(status=NDAStatus.EXPIRED.value)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0

    async def delete_for_user(self, user_id: str) -> int:
        """Delete every acceptance signed by user_id; extension tokens cascade."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(CompanyNDAAcceptanceModel).where(
                    CompanyNDAAcceptanceModel.user_id == uuid.UUID(user_id)
                )
            )
            await session.commit()
            return result.rowcount or 0

    # ── Extension Tokens ────────────────────────────────────────────────────

    async def create_token(self, nda_id: str, token: str, expires_at: datetime) -> ExtensionTokenRead:
        async for session in self._session_factory():
            model = NDAExtensionTokenModel(
                nda_id=uuid.UUID(nda_id),
                token=token,
                expires_at=expires_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_token(model)

    async def get_token(self, token: str) -> ExtensionTokenRead | None:
        async for session in self._session_factory():
            stmt = select(NDAExtensionTokenModel).where(NDAExtensionTokenModel.token == token)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_token(model) if model else None

    async def mark_token_used(self, token_id: str, used_at: datetime) -> None:
        async for session in self._session_factory():
            model = await session.get(NDAExtensionTokenModel, uuid.UUID(token_id))
            if model is None:
                raise ValueError(f"Extension token not found: {token_id}")
            model.used_at = used_at
            await session.commit()
            return
