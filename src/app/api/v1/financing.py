"""REST API endpoints for the financing pipeline.

Lenders, applications, and each application's documents, conditions, and
activity timeline. Restricted to staff roles; lender creation is admin only.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.app.api.deps import require_admin, require_staff
from src.app.financing.schemas import (
    ApplicationCreate,
    ApplicationFilter,
    ApplicationRead,
    ApplicationUpdate,
    ConditionCreate,
    ConditionRead,
    ConditionUpdate,
    FinancingActivityRead,
    FinancingDocumentCreate,
    FinancingDocumentRead,
    FinancingDocumentUpdate,
    FinancingStage,
    LenderCreate,
    LenderRead,
)
from src.app.financing.service import DeclineReasonRequiredError
from src.app.profiles.schemas import ProfileRead

router = APIRouter(prefix="/financing", tags=["financing"])


def _get_financing_service(request: Request) -> Any:
    service = getattr(request.app.state, "financing_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Financing service not initialized",
        )
    return service


async def _run(coro) -> Any:
    try:
        return await coro
    except DeclineReasonRequiredError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


# ── Lenders ─────────────────────────────────────────────────────────────────


@router.get("/lenders", response_model=list[LenderRead])
async def list_lenders(
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[LenderRead]:
    """Active lenders, preferred first."""
    return await _get_financing_service(request).list_lenders()


@router.post("/lenders", response_model=LenderRead, status_code=201)
async def create_lender(
    body: LenderCreate,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> LenderRead:
    return await _get_financing_service(request).create_lender(body)


# ── Applications ────────────────────────────────────────────────────────────


@router.get("/applications", response_model=list[ApplicationRead])
async def list_applications(
    request: Request,
    deal_id: str | None = None,
    lender_id: str | None = None,
    stage: FinancingStage | None = None,
    assigned_to: str | None = None,
    user: ProfileRead = Depends(require_staff),
) -> list[ApplicationRead]:
    filters = ApplicationFilter(
        deal_id=deal_id, lender_id=lender_id, stage=stage, assigned_to=assigned_to
    )
    return await _get_financing_service(request).list_applications(filters)


@router.post("/applications", response_model=ApplicationRead, status_code=201)
async def create_application(
    body: ApplicationCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ApplicationRead:
    return await _get_financing_service(request).create_application(body, user.id)


@router.get("/applications/{application_id}", response_model=ApplicationRead)
async def get_application(
    application_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ApplicationRead:
    return await _run(_get_financing_service(request).get_application(application_id))


@router.patch("/applications/{application_id}", response_model=ApplicationRead)
async def update_application(
    application_id: str,
    body: ApplicationUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ApplicationRead:
    """Partial update. Declining requires a decline_reason."""
    return await _run(
        _get_financing_service(request).update_application(application_id, body, user.id)
    )


@router.get("/applications/{application_id}/activity", response_model=list[FinancingActivityRead])
async def list_activity(
    application_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[FinancingActivityRead]:
    return await _run(_get_financing_service(request).list_activity(application_id))


# ── Documents ───────────────────────────────────────────────────────────────


@router.get(
    "/applications/{application_id}/documents", response_model=list[FinancingDocumentRead]
)
async def list_documents(
    application_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[FinancingDocumentRead]:
    return await _run(_get_financing_service(request).list_documents(application_id))


@router.post(
    "/applications/{application_id}/documents",
    response_model=FinancingDocumentRead,
    status_code=201,
)
async def create_document(
    application_id: str,
    body: FinancingDocumentCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> FinancingDocumentRead:
    return await _run(
        _get_financing_service(request).create_document(application_id, body, user.id)
    )


@router.patch("/documents/{document_id}", response_model=FinancingDocumentRead)
async def update_document(
    document_id: str,
    body: FinancingDocumentUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> FinancingDocumentRead:
    return await _run(
        _get_financing_service(request).update_document(document_id, body, user.id)
    )


# ── Conditions ──────────────────────────────────────────────────────────────


@router.get("/applications/{application_id}/conditions", response_model=list[ConditionRead])
async def list_conditions(
    application_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[ConditionRead]:
    return await _run(_get_financing_service(request).list_conditions(application_id))


@router.post(
    "/applications/{application_id}/conditions",
    response_model=ConditionRead,
    status_code=201,
)
async def create_condition(
    application_id: str,
    body: ConditionCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ConditionRead:
    return await _run(
        _get_financing_service(request).create_condition(application_id, body, user.id)
    )


@router.patch("/conditions/{condition_id}", response_model=ConditionRead)
async def update_condition(
    condition_id: str,
    body: ConditionUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ConditionRead:
    return await _run(
        _get_financing_service(request).update_condition(condition_id, body, user.id)
    )
