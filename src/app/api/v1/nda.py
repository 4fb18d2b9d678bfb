"""REST API endpoints for company NDAs.

Acceptance and status are per (user, company). The expiry scan is callable
by a scheduler over HTTP; the extension link is opened from an email and
answers with a standalone HTML page rather than JSON.
"""

from __future__ import annotations

import hmac
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse

from src.app.api.deps import client_ip, get_current_user
from src.app.config import Environment, get_settings
from src.app.nda.emails import extension_success_message, render_result_page
from src.app.nda.schemas import ExpiringScanResult, NDAAcceptRequest, NDAAcceptResult, NDAStatusRead
from src.app.nda.service import NDAExtensionError
from src.app.profiles.schemas import ProfileRead

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["nda"])


def _get_nda_service(request: Request) -> Any:
    service = getattr(request.app.state, "nda_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="NDA service not initialized",
        )
    return service


@router.post("/companies/{company_id}/nda/accept", response_model=NDAAcceptResult)
async def accept_nda(
    company_id: str,
    body: NDAAcceptRequest,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> NDAAcceptResult:
    """accept_company_nda: idempotent; a repeat call reports already_accepted."""
    service = _get_nda_service(request)
    try:
        return await service.accept(
            user.id,
            company_id,
            body,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/companies/{company_id}/nda", response_model=NDAStatusRead)
async def get_nda_status(
    company_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> NDAStatusRead:
    return await _get_nda_service(request).get_status(user.id, company_id)


@router.post("/nda/check-expiring", response_model=ExpiringScanResult)
async def check_expiring_ndas(
    request: Request,
    x_cron_secret: str | None = Header(default=None),
) -> ExpiringScanResult:
    """Send reminders for NDAs expiring in the reminder window.

    Without CRON_SECRET the scan is only open in development.
    """
    settings = get_settings()
    secret = settings.CRON_SECRET
    if not secret and settings.ENVIRONMENT != Environment.development:
        logger.error("nda.cron_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron secret not configured"
        )
    if secret and not hmac.compare_digest(x_cron_secret or "", secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    service = _get_nda_service(request)
    try:
        return await service.check_expiring()
    except Exception as exc:
        logger.error("nda.expiry_scan_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc


@router.get("/nda/extend", response_class=HTMLResponse)
async def extend_nda(
    request: Request,
    token: str | None = Query(default=None),
) -> HTMLResponse:
    """extend-nda: redeem an emailed extension token."""
    service = _get_nda_service(request)
    try:
        extension = await service.extend(token)
    except NDAExtensionError as exc:
        return HTMLResponse(
            render_result_page(exc.title, exc.message, success=False),
            status_code=exc.status_code,
        )
    except Exception as exc:
        logger.error("nda.extension_failed", error=str(exc))
        return HTMLResponse(
            render_result_page(
                "Error",
                "An unexpected error occurred. Please try again or contact support.",
                success=False,
            ),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return HTMLResponse(
        render_result_page(
            "NDA Extended Successfully",
            extension_success_message(extension.company_name, extension.new_expires_at),
            success=True,
            portal_url=get_settings().SITE_URL,
        )
    )
