"""Activity repository -- append-only writes to deal_activities and security_audit_log."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.activity.models import DealActivityModel, SecurityEventModel
from src.app.activity.schemas import (
    DealActivityCreate,
    DealActivityRead,
    SecurityEventCreate,
    SecurityEventRead,
)

logger = structlog.get_logger(__name__)


def _model_to_activity(model: DealActivityModel) -> DealActivityRead:
    """Convert DealActivityModel to DealActivityRead schema."""
    return DealActivityRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        user_id=str(model.user_id) if model.user_id else None,
        activity_type=model.activity_type,
        entity_type=model.entity_type,
        entity_id=model.entity_id,
        metadata=model.metadata_json or {},
        created_at=model.created_at,
    )


def _model_to_event(model: SecurityEventModel) -> SecurityEventRead:
    return SecurityEventRead(
        id=str(model.id),
        event_type=model.event_type,
        event_data=model.event_data or {},
        user_id=str(model.user_id) if model.user_id else None,
        ip_address=model.ip_address,
        user_agent=model.user_agent,
        created_at=model.created_at,
    )


class ActivityRepository:
    """Writes and reads deal activities and security events.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Deal Activity ───────────────────────────────────────────────────────

    async def log_deal_activity(self, data: DealActivityCreate) -> DealActivityRead:
        """Append an entry to the deal's activity feed."""
        async for session in self._session_factory():
            model = DealActivityModel(
                deal_id=uuid.UUID(data.deal_id),
                user_id=uuid.UUID(data.user_id) if data.user_id else None,
                activity_type=data.activity_type.value,
                entity_type=data.entity_type,
                entity_id=data.entity_id,
                metadata_json=data.metadata,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info(
                "activity.logged",
                deal_id=data.deal_id,
                activity_type=data.activity_type.value,
                entity_type=data.entity_type,
            )
            return _model_to_activity(model)

    async def list_deal_activities(
        self, deal_id: str, limit: int = 50
    ) -> list[DealActivityRead]:
        """Most recent activities first."""
        async for session in self._session_factory():
            stmt = (
                select(DealActivityModel)
                .where(DealActivityModel.deal_id == uuid.UUID(deal_id))
                .order_by(DealActivityModel.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_activity(m) for m in result.scalars().all()]

    # ── Security Events ─────────────────────────────────────────────────────

    async def log_security_event(self, data: SecurityEventCreate) -> str:
        """Record a security event and return its id."""
        async for session in self._session_factory():
            model = SecurityEventModel(
                event_type=data.event_type,
                event_data=data.event_data,
                user_id=uuid.UUID(data.user_id) if data.user_id else None,
                ip_address=data.ip_address,
                user_agent=data.user_agent,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("security_event.logged", event_type=data.event_type, user_id=data.user_id)
            return str(model.id)

    async def list_security_events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[SecurityEventRead]:
        async for session in self._session_factory():
            stmt = select(SecurityEventModel)
            if event_type:
                stmt = stmt.where(SecurityEventModel.event_type == event_type)
            stmt = stmt.order_by(SecurityEventModel.created_at.desc()).limit(limit)
            result = await session.execute(stmt)
            return [_model_to_event(m) for m in result.scalars().all()]
