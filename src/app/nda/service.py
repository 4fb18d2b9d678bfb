"""NDA lifecycle -- acceptance, expiry reminders, and one-click extension.

accept_company_nda records a signature once per user and company and
feeds the first-NDA milestone of every deal of that company into stage
progression. check_expiring_ndas runs daily: every active NDA expiring in
the reminder window gets a single-use extension token and an email. The
extension link pushes the expiry out by NDA_EXTENSION_DAYS.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import IntegrityError

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import SecurityEventCreate
from src.app.core.monitoring import nda_reminders_total
from src.app.deals.repository import DealRepository
from src.app.deals.service import DealService
from src.app.nda.emails import expiry_reminder_email
from src.app.nda.repository import NDARepository
from src.app.nda.schemas import (
    ExpiringScanResult,
    NDAAcceptanceCreate,
    NDAAcceptRequest,
    NDAAcceptResult,
    NDAExtension,
    NDAStatus,
    NDAStatusRead,
    ReminderResult,
)
from src.app.services.email import ResendClient

logger = structlog.get_logger(__name__)


class NDAExtensionError(Exception):
    """An extension link could not be honoured.

    Attributes:
        status_code: HTTP status for the result page.
        title: Result page heading.
    """

    def __init__(self, status_code: int, title: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.title = title
        self.message = message


class NDAService:
    """NDA acceptance and expiry handling.

    Args:
        repository: NDARepository.
        deals: DealRepository, to find a company's deals.
        deal_service: DealService, to record first-NDA milestones.
        activity: ActivityRepository for security events.
        email_client: ResendClient for reminder emails.
        public_api_url: Base URL of this API, used in extension links.
        term_days: Validity of a new acceptance.
        reminder_days: Days before expiry the reminder goes out.
        extension_days: Days an extension adds.
        token_ttl_days: Validity of an extension token.
    """

    def __init__(
        self,
        repository: NDARepository,
        deals: DealRepository,
        deal_service: DealService,
        activity: ActivityRepository,
        email_client: ResendClient,
        public_api_url: str,
        term_days: int = 365,
        reminder_days: int = 7,
        extension_days: int = 60,
        token_ttl_days: int = 7,
    ) -> None:
        self._repo = repository
        self._deals = deals
        self._deal_service = deal_service
        self._activity = activity
        self._email = email_client
        self._public_api_url = public_api_url.rstrip("/")
        self._term_days = term_days
        self._reminder_days = reminder_days
        self._extension_days = extension_days
        self._token_ttl_days = token_ttl_days

    # ── Acceptance ──────────────────────────────────────────────────────────

    async def accept(
        self,
        user_id: str,
        company_id: str,
        request: NDAAcceptRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> NDAAcceptResult:
        """accept_company_nda: idempotent per (user, company).

        Raises:
            ValueError: The company has no deals.
        """
        existing = await self._repo.get_acceptance(user_id, company_id)
        if existing is not None:
            return NDAAcceptResult(
                success=True,
                already_accepted=True,
                acceptance_id=existing.id,
                expires_at=existing.expires_at,
            )

        deals = await self._deals.list_deals_by_company(company_id)
        if not deals:
            raise ValueError(f"Company not found: {company_id}")

        now = datetime.now(timezone.utc)
        try:
            acceptance = await self._repo.create_acceptance(
                NDAAcceptanceCreate(
                    user_id=user_id,
                    company_id=company_id,
                    company_name=deals[0].company_name,
                    signer_name=request.signer_name,
                    signer_email=str(request.signer_email),
                    signer_title=request.signer_title,
                    ip_address=ip_address,
                    expires_at=now + timedelta(days=self._term_days),
                )
            )
        except IntegrityError:
            # Concurrent accept for the same user and company.
            existing = await self._repo.get_acceptance(user_id, company_id)
            if existing is None:
                raise
            return NDAAcceptResult(
                success=True,
                already_accepted=True,
                acceptance_id=existing.id,
                expires_at=existing.expires_at,
            )

        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="nda_accepted",
                event_data={
                    "company_id": company_id,
                    "acceptance_id": acceptance.id,
                    "signer_email": acceptance.signer_email,
                },
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        for deal in deals:
            await self._deal_service.record_first_nda(deal.id, now, user_id=user_id)

        logger.info("nda.accepted", company_id=company_id, user_id=user_id, deals=len(deals))
        return NDAAcceptResult(
            success=True,
            already_accepted=False,
            acceptance_id=acceptance.id,
            expires_at=acceptance.expires_at,
        )

    async def get_status(self, user_id: str, company_id: str) -> NDAStatusRead:
        acceptance = await self._repo.get_acceptance(user_id, company_id)
        if acceptance is None:
            return NDAStatusRead(company_id=company_id, accepted=False)
        return NDAStatusRead(
            company_id=company_id,
            accepted=self.is_valid(acceptance.status, acceptance.expires_at),
            status=acceptance.status,
            expires_at=acceptance.expires_at,
        )

    async def has_accepted(self, user_id: str, company_id: str) -> bool:
        return (await self.get_status(user_id, company_id)).accepted

    @staticmethod
    def is_valid(status: NDAStatus, expires_at: datetime, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return status == NDAStatus.ACTIVE and expires_at > now

    # ── Expiry Reminders ────────────────────────────────────────────────────

    def extension_url(self, token: str) -> str:
        return f"{self._public_api_url}/api/v1/nda/extend?token={token}"

    async def check_expiring(self, now: datetime | None = None) -> ExpiringScanResult:
        """check-expiring-ndas: remind signers whose NDA expires in the window.

        The window is [now + reminder_days, now + reminder_days + 1 day), so
        a daily scan reminds each NDA once. Per-NDA failures are collected.
        """
        now = now or datetime.now(timezone.utc)
        start = now + timedelta(days=self._reminder_days)
        expiring = await self._repo.list_expiring(start, start + timedelta(days=1))
        logger.info("nda.expiry_scan_started", candidates=len(expiring))

        if not expiring:
            return ExpiringScanResult(message="No expiring NDAs found")

        results: list[ReminderResult] = []
        for nda in expiring:
            try:
                token = await self._repo.create_token(
                    nda.id,
                    str(uuid.uuid4()),
                    now + timedelta(days=self._token_ttl_days),
                )
                await self._email.send_email(
                    expiry_reminder_email(
                        to=nda.signer_email,
                        signer_name=nda.signer_name,
                        company_name=nda.company_name or "the company",
                        expires_at=nda.expires_at,
                        extension_url=self.extension_url(token.token),
                        reminder_days=self._reminder_days,
                        extension_days=self._extension_days,
                        token_ttl_days=self._token_ttl_days,
                    ),
                    template="nda_expiry",
                )
            except Exception as exc:
                nda_reminders_total.labels(status="failed").inc()
                logger.warning("nda.reminder_failed", nda_id=nda.id, error=str(exc))
                results.append(
                    ReminderResult(
                        nda_id=nda.id, email=nda.signer_email, status="failed", error=str(exc)
                    )
                )
                continue
            nda_reminders_total.labels(status="sent").inc()
            logger.info("nda.reminder_sent", nda_id=nda.id)
            results.append(ReminderResult(nda_id=nda.id, email=nda.signer_email, status="sent"))

        success_count = sum(1 for r in results if r.status == "sent")
        logger.info("nda.expiry_scan_completed", processed=len(results), sent=success_count)
        return ExpiringScanResult(
            message=f"Processed {len(expiring)} expiring NDAs",
            success_count=success_count,
            results=results,
        )

    # ── Extension ───────────────────────────────────────────────────────────

    async def extend(self, token: str | None, now: datetime | None = None) -> NDAExtension:
        """extend-nda: redeem an extension token.

        Raises:
            NDAExtensionError: With 400 (missing, used, or expired token)
                or 404 (unknown token or NDA).
        """
        if not token:
            raise NDAExtensionError(400, "Invalid Request", "No extension token provided.")

        record = await self._repo.get_token(token)
        if record is None:
            raise NDAExtensionError(
                404, "Invalid Token", "This extension link is invalid or has expired."
            )
        if record.used_at is not None:
            raise NDAExtensionError(
                400, "Already Used", "This extension link has already been used."
            )
        now = now or datetime.now(timezone.utc)
        if record.expires_at < now:
            raise NDAExtensionError(
                400, "Token Expired", "This extension link has expired. Please contact support."
            )

        nda = await self._repo.get_acceptance_by_id(record.nda_id)
        if nda is None:
            raise NDAExtensionError(
                404,
                "NDA Not Found",
                "The NDA associated with this token could not be found.",
            )

        new_expiry = nda.expires_at + timedelta(days=self._extension_days)
        await self._repo.extend(nda.id, new_expiry)
        await self._repo.mark_token_used(record.id, now)
        logger.info("nda.extended", nda_id=nda.id, expires_at=new_expiry.isoformat())
        return NDAExtension(
            nda_id=nda.id,
            company_name=nda.company_name or "the company",
            new_expires_at=new_expiry,
        )

