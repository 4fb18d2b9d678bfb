"""Async SQLAlchemy engine, declarative base, and session factory.

Provides:
- Base: Declarative base for every table owned by the service
- get_session(): AsyncSession generator, used as the repositories' session factory
- init_db() / close_db(): lifespan hooks
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.app.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
        )
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────


class Base(DeclarativeBase):
    """Base class for all deal room models."""


# ── Session Factory ─────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the shared engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


# ── Database Initialization ─────────────────────────────────────────────────


def _import_models() -> None:
    """Import every model module so its tables register on Base.metadata."""
    from src.app.activity import models as _activity  # noqa: F401
    from src.app.data_room import models as _data_room  # noqa: F401
    from src.app.deals import models as _deals  # noqa: F401
    from src.app.financing import models as _financing  # noqa: F401
    from src.app.invitations import models as _invitations  # noqa: F401
    from src.app.nda import models as _nda  # noqa: F401
    from src.app.profiles import models as _profiles  # noqa: F401
    from src.app.team import models as _team  # noqa: F401


async def init_db() -> None:
    """Create all tables that don't exist yet.

    Production deployments run alembic migrations; this keeps development
    and first boot working without them.
    """
    _import_models()
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
