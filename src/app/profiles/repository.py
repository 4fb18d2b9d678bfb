"""Profile repository -- async lookups and upserts for the profiles table."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.profiles.models import ProfileModel, RedeemedLinkModel
from src.app.profiles.schemas import ProfileRead, ProfileUpsert

logger = structlog.get_logger(__name__)


def _model_to_profile(model: ProfileModel) -> ProfileRead:
    """Convert ProfileModel to ProfileRead schema."""
    return ProfileRead(
        id=str(model.id),
        email=model.email,
        first_name=model.first_name,
        last_name=model.last_name,
        role=model.role,
        partner_team_id=str(model.partner_team_id) if model.partner_team_id else None,
        is_active=model.is_active,
        has_password=model.hashed_password is not None,
        created_at=model.created_at,
    )


class ProfileRepository:
    """Async CRUD for profiles.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def get(self, profile_id: str) -> ProfileRead | None:
        async for session in self._session_factory():
            model = await session.get(ProfileModel, uuid.UUID(profile_id))
            return _model_to_profile(model) if model else None

    async def get_by_email(self, email: str) -> ProfileRead | None:
        async for session in self._session_factory():
            stmt = select(ProfileModel).where(func.lower(ProfileModel.email) == email.lower())
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_profile(model) if model else None

    async def upsert(self, data: ProfileUpsert) -> ProfileRead:
        """Create the profile for data.email, or update role/name/team if it exists.

        Name fields are only overwritten when provided.
        """
        async for session in self._session_factory():
            stmt = select(ProfileModel).where(func.lower(ProfileModel.email) == data.email.lower())
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                model = ProfileModel(email=data.email.lower())
                session.add(model)
            model.role = data.role
            if data.first_name is not None:
                model.first_name = data.first_name
            if data.last_name is not None:
                model.last_name = data.last_name
            if data.partner_team_id is not None:
                model.partner_team_id = uuid.UUID(data.partner_team_id)
            await session.commit()
            await session.refresh(model)
            logger.info("profile.upserted", profile_id=str(model.id), role=model.role)
            return _model_to_profile(model)

    async def set_password(self, profile_id: str, hashed_password: str) -> ProfileRead:
        async for session in self._session_factory():
            model = await session.get(ProfileModel, uuid.UUID(profile_id))
            if model is None:
                raise ValueError(f"Profile not found: {profile_id}")
            model.hashed_password = hashed_password
            await session.commit()
            await session.refresh(model)
            return _model_to_profile(model)

    async def list_by_ids(self, profile_ids: list[str]) -> list[ProfileRead]:
        if not profile_ids:
            return []
        async for session in self._session_factory():
            stmt = select(ProfileModel).where(
                ProfileModel.id.in_([uuid.UUID(p) for p in profile_ids])
            )
            result = await session.execute(stmt)
            return [_model_to_profile(m) for m in result.scalars().all()]

    async def get_credentials(self, email: str) -> tuple[ProfileRead, str | None] | None:
        """Return the profile and its password hash, for login only."""
        async for session in self._session_factory():
            stmt = select(ProfileModel).where(func.lower(ProfileModel.email) == email.lower())
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_profile(model), model.hashed_password

    async def redeem_link(self, jti: str, profile_id: str, expires_at: datetime) -> bool:
        """Record an emailed link as used. False when it was already redeemed."""
        async for session in self._session_factory():
            session.add(
                RedeemedLinkModel(
                    jti=jti, profile_id=uuid.UUID(profile_id), expires_at=expires_at
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning("profile.link_replayed", profile_id=profile_id)
                return False
            return True

    async def delete(self, profile_id: str) -> bool:
        """Delete a profile. Redeemed link records cascade."""
        async for session in self._session_factory():
            model = await session.get(ProfileModel, uuid.UUID(profile_id))
            if model is None:
                return False
            await session.delete(model)
            await session.commit()
            logger.info("profile.deleted", profile_id=profile_id)
            return True
