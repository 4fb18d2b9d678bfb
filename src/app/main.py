"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events for database initialization and service wiring, the health
routes, and the v1 API router.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.app.api.errors import register_exception_handlers
from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1 import health
from src.app.api.v1.router import router as v1_router
from src.app.config import get_settings
from src.app.core.database import close_db, get_session, init_db
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.app.core.redis import RateLimiter, close_redis, get_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services; close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    # Initialize Sentry if DSN is configured
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if not settings.CRON_SECRET:
        log.warning("startup.cron_secret_missing", environment=settings.ENVIRONMENT.value)

    # ── Core Repositories ───────────────────────────────────────────────────
    # Each group is wrapped in its own try/except so one failure leaves the
    # rest of the API up; endpoints answer 503 for anything left as None.

    try:
        from src.app.activity.repository import ActivityRepository
        from src.app.deals.repository import DealRepository
        from src.app.deals.service import DealService
        from src.app.profiles.repository import ProfileRepository

        app.state.profile_repository = ProfileRepository(session_factory=get_session)
        app.state.activity_repository = ActivityRepository(session_factory=get_session)
        app.state.deal_repository = DealRepository(session_factory=get_session)
        app.state.deal_service = DealService(
            repository=app.state.deal_repository,
            activity=app.state.activity_repository,
        )
        log.info("startup.deals_initialized")
    except Exception:
        log.warning("startup.deals_init_failed", exc_info=True)
        app.state.profile_repository = None
        app.state.activity_repository = None
        app.state.deal_repository = None
        app.state.deal_service = None

    # Login throttling (optional; login works without it)
    try:
        app.state.login_rate_limiter = RateLimiter(
            get_redis_pool(),
            scope="login",
            max_attempts=settings.RATE_LIMIT_MAX_ATTEMPTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    except Exception:
        log.warning("startup.rate_limiter_init_failed", exc_info=True)
        app.state.login_rate_limiter = None

    from src.app.services.email import ResendClient

    email_client = ResendClient(
        api_key=settings.RESEND_API_KEY,
        from_address=settings.EMAIL_FROM,
        base_url=settings.EMAIL_API_URL,
        timeout=settings.EMAIL_TIMEOUT,
    )
    app.state.email_client = email_client
    if not email_client.is_configured:
        log.warning("startup.email_not_configured")

    # ── Data Room ───────────────────────────────────────────────────────────
    try:
        from src.app.data_room.repository import DataRoomRepository
        from src.app.data_room.service import DataRoomService
        from src.app.data_room.storage import LocalStorageBackend

        storage = LocalStorageBackend(settings.STORAGE_ROOT, settings.PUBLIC_API_URL)
        app.state.storage = storage
        app.state.data_room_repository = DataRoomRepository(session_factory=get_session)
        app.state.data_room_service = DataRoomService(
            repository=app.state.data_room_repository,
            deals=app.state.deal_repository,
            activity=app.state.activity_repository,
            storage=storage,
            bucket=settings.DOCUMENTS_BUCKET,
            signed_url_expires=settings.SIGNED_URL_EXPIRES_SECONDS,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        )
        log.info("startup.data_room_initialized", storage_root=settings.STORAGE_ROOT)
    except Exception:
        log.warning("startup.data_room_init_failed", exc_info=True)
        app.state.storage = None
        app.state.data_room_repository = None
        app.state.data_room_service = None

    # ── Teams, NDAs, Invitations and Access Control ─────────────────────────
    try:
        from src.app.invitations.repository import InvitationRepository, TeamInvitationRepository
        from src.app.invitations.service import InvitationService
        from src.app.nda.repository import NDARepository
        from src.app.nda.service import NDAService
        from src.app.profiles.service import UserAdminService
        from src.app.team.access import AccessResolver
        from src.app.team.repository import TeamRepository
        from src.app.team.service import TeamService

        team_repository = TeamRepository(session_factory=get_session)
        invitation_repository = InvitationRepository(session_factory=get_session)
        team_invitation_repository = TeamInvitationRepository(session_factory=get_session)
        nda_repository = NDARepository(session_factory=get_session)

        app.state.team_repository = team_repository
        app.state.team_service = TeamService(
            repository=team_repository,
            profiles=app.state.profile_repository,
            activity=app.state.activity_repository,
        )
        app.state.nda_repository = nda_repository
        app.state.nda_service = NDAService(
            repository=nda_repository,
            deals=app.state.deal_repository,
            deal_service=app.state.deal_service,
            activity=app.state.activity_repository,
            email_client=email_client,
            public_api_url=settings.PUBLIC_API_URL,
            term_days=settings.NDA_TERM_DAYS,
            reminder_days=settings.NDA_REMINDER_DAYS,
            extension_days=settings.NDA_EXTENSION_DAYS,
            token_ttl_days=settings.NDA_TOKEN_TTL_DAYS,
        )
        app.state.invitation_service = InvitationService(
            profiles=app.state.profile_repository,
            invitations=invitation_repository,
            deals=app.state.deal_repository,
            activity=app.state.activity_repository,
            email_client=email_client,
            site_url=settings.SITE_URL,
            investor_expire_days=settings.INVESTOR_INVITATION_EXPIRE_DAYS,
            team_invitations=team_invitation_repository,
            team=team_repository,
            team_expire_days=settings.TEAM_INVITATION_EXPIRE_DAYS,
        )
        app.state.user_admin_service = UserAdminService(
            profiles=app.state.profile_repository,
            team=team_repository,
            invitations=invitation_repository,
            team_invitations=team_invitation_repository,
            nda=nda_repository,
            activity=app.state.activity_repository,
        )
        app.state.access_resolver = AccessResolver(
            team=team_repository,
            invitations=invitation_repository,
            nda=app.state.nda_service,
            deals=app.state.deal_repository,
            folders=app.state.data_room_repository,
        )
        log.info("startup.access_control_initialized")
    except Exception:
        log.warning("startup.access_control_init_failed", exc_info=True)
        app.state.team_repository = None
        app.state.team_service = None
        app.state.nda_repository = None
        app.state.nda_service = None
        app.state.invitation_service = None
        app.state.user_admin_service = None
        app.state.access_resolver = None

    # NDA expiry reminders and lapse sweeps
    if settings.ENABLE_NDA_SCHEDULER and getattr(app.state, "nda_service", None) is not None:
        try:
            from src.app.nda.scheduler import setup_nda_scheduler, start_scheduler_background

            nda_tasks = setup_nda_scheduler(app.state.nda_service, app.state.nda_repository)
            await start_scheduler_background(
                nda_tasks,
                app.state,
                intervals={"check_expiring_ndas": settings.NDA_SCAN_INTERVAL_SECONDS},
            )
        except Exception:
            log.warning("startup.nda_scheduler_start_failed", exc_info=True)

    # ── Financing ───────────────────────────────────────────────────────────
    try:
        from src.app.financing.repository import FinancingRepository
        from src.app.financing.service import FinancingService

        app.state.financing_service = FinancingService(
            repository=FinancingRepository(session_factory=get_session)
        )
        log.info("startup.financing_initialized")
    except Exception:
        log.warning("startup.financing_init_failed", exc_info=True)
        app.state.financing_service = None

    yield

    # ── Shutdown ────────────────────────────────────────────────────────────
    scheduler_tasks = getattr(app.state, "nda_scheduler_tasks", None)
    if scheduler_tasks:
        for task_ref in scheduler_tasks:
            task_ref.cancel()
        await asyncio.gather(*scheduler_tasks, return_exceptions=True)

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="EBB Data Room API",
        version="0.1.0",
        description="M&A deal rooms: deal lifecycle, data rooms, NDAs and financing",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    register_exception_handlers(app)

    # Health probes stay at the root for container orchestration
    app.include_router(health.router)
    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
