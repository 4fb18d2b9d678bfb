"""REST API endpoints for deals -- CRUD, workflow phases, stage progression, and requests.

Staff roles (super_admin, admin, editor) manage deals; anyone with deal
access (partners, team members, invited investors) can read them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from src.app.api.deps import (
    ensure_deal_access,
    ensure_permission,
    get_current_user,
    require_staff,
)
from src.app.deals.progression import (
    STAGE_LABELS,
    STAGE_ORDER,
    TRIGGER_LABELS,
    InvalidStageTransitionError,
    StageProgressionCheck,
    completed_stages,
    days_in_stage,
    stage_progress_percent,
)
from src.app.deals.schemas import (
    DealCreate,
    DealFilter,
    DealRead,
    DealRequestCreate,
    DealRequestRead,
    DealRequestUpdate,
    DealStage,
    DealStatus,
    DealTimestamp,
    DealUpdate,
    RequestSummary,
    StageHistoryRead,
)
from src.app.deals.service import DealNotFoundError, StageProgressionResult
from src.app.deals.workflow import Milestone, WorkflowPhase, phase_label
from src.app.profiles.schemas import STAFF_ROLES, ProfileRead

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class StageInfo(BaseModel):
    """Current stage with display helpers."""

    current_stage: DealStage
    label: str
    stage_entered_at: datetime | None = None
    days_in_stage: int = 0
    completed_stages: list[DealStage]
    next_stage: DealStage | None = None
    progress_percent: int = 0


class ProgressStageRequest(BaseModel):
    new_stage: DealStage
    trigger_event: str | None = None


class AdvanceResponse(BaseModel):
    advanced: bool
    result: StageProgressionResult | None = None


class TimestampUpdate(BaseModel):
    field: DealTimestamp
    value: datetime | None = None


class TimestampUpdateResponse(BaseModel):
    deal: DealRead
    progression: StageProgressionResult | None = None


class PhaseUpdate(BaseModel):
    workflow_phase: WorkflowPhase


class MilestoneMark(BaseModel):
    milestone: Milestone
    at: datetime | None = None


class DealResponse(DealRead):
    phase_label: str | None = None
    stage_label: str


class TriggerCheckResponse(StageProgressionCheck):
    trigger_label: str | None = None


# ── Dependency Injection Helper ──────────────────────────────────────────────


def _get_deal_service(request: Request) -> Any:
    """Retrieve DealService from app.state, 503 if not available."""
    service = getattr(request.app.state, "deal_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal management not initialized",
        )
    return service


def _to_response(deal: DealRead) -> DealResponse:
    return DealResponse(
        **deal.model_dump(),
        phase_label=phase_label(deal.workflow_phase),
        stage_label=STAGE_LABELS[deal.current_stage],
    )


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


# ── Deal CRUD ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[DealResponse])
async def list_deals(
    request: Request,
    deal_status: DealStatus | None = Query(default=None),
    workflow_phase: str | None = Query(default=None),
    current_stage: DealStage | None = Query(default=None),
    user: ProfileRead = Depends(get_current_user),
) -> list[DealResponse]:
    """List deals; non-staff callers only see deals they can access."""
    service = _get_deal_service(request)
    deals = await service.list_deals(
        DealFilter(
            deal_status=deal_status,
            workflow_phase=workflow_phase,
            current_stage=current_stage,
        )
    )
    if user.role not in STAFF_ROLES:
        resolver = getattr(request.app.state, "access_resolver", None)
        if resolver is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Access control not initialized",
            )
        visible = []
        for deal in deals:
            if (await resolver.can_access_deal(user, deal.id)).allowed:
                visible.append(deal)
        deals = visible
    return [_to_response(d) for d in deals]


@router.post("", response_model=DealResponse, status_code=201)
async def create_deal(
    body: DealCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealResponse:
    deal = await _get_deal_service(request).create_deal(body, user_id=user.id)
    return _to_response(deal)


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DealResponse:
    await ensure_deal_access(request, user, deal_id)
    try:
        deal = await _get_deal_service(request).get_deal(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return _to_response(deal)


@router.patch("/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: str,
    body: DealUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealResponse:
    try:
        deal = await _get_deal_service(request).update_deal(deal_id, body, user_id=user.id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return _to_response(deal)


# ── Workflow Phases ──────────────────────────────────────────────────────────


@router.put("/{deal_id}/phase", response_model=DealResponse)
async def update_phase(
    deal_id: str,
    body: PhaseUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealResponse:
    try:
        deal = await _get_deal_service(request).update_phase(deal_id, body.workflow_phase)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return _to_response(deal)


@router.post("/{deal_id}/milestones", response_model=DealResponse)
async def mark_milestone(
    deal_id: str,
    body: MilestoneMark,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealResponse:
    try:
        deal = await _get_deal_service(request).mark_milestone(deal_id, body.milestone, body.at)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return _to_response(deal)


@router.post("/{deal_id}/publish", response_model=DealResponse)
async def publish_deal(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealResponse:
    try:
        deal = await _get_deal_service(request).publish_deal(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return _to_response(deal)


# ── Stage Progression ────────────────────────────────────────────────────────


@router.get("/{deal_id}/stage", response_model=StageInfo)
async def get_stage(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> StageInfo:
    await ensure_deal_access(request, user, deal_id)
    try:
        deal = await _get_deal_service(request).get_deal(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    current = deal.current_stage
    idx = STAGE_ORDER.index(current)
    return StageInfo(
        current_stage=current,
        label=STAGE_LABELS[current],
        stage_entered_at=deal.stage_entered_at,
        days_in_stage=days_in_stage(deal.stage_entered_at, datetime.now(timezone.utc)),
        completed_stages=completed_stages(current),
        next_stage=STAGE_ORDER[idx + 1] if idx + 1 < len(STAGE_ORDER) else None,
        progress_percent=stage_progress_percent(current),
    )


@router.get("/{deal_id}/stage/history", response_model=list[StageHistoryRead])
async def get_stage_history(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> list[StageHistoryRead]:
    await ensure_deal_access(request, user, deal_id)
    try:
        return await _get_deal_service(request).get_stage_history(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)


@router.get("/{deal_id}/stage/check", response_model=TriggerCheckResponse)
async def check_stage_triggers(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TriggerCheckResponse:
    try:
        check = await _get_deal_service(request).check_stage_triggers(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return TriggerCheckResponse(
        **check.model_dump(),
        trigger_label=TRIGGER_LABELS.get(check.trigger_event) if check.trigger_event else None,
    )


@router.post("/{deal_id}/stage/progress", response_model=StageProgressionResult)
async def progress_stage(
    deal_id: str,
    body: ProgressStageRequest,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> StageProgressionResult:
    """Manually move the deal to any other stage."""
    try:
        return await _get_deal_service(request).progress_stage(
            deal_id,
            body.new_stage,
            trigger_event=body.trigger_event,
            user_id=user.id,
        )
    except DealNotFoundError as exc:
        raise _not_found(exc)
    except InvalidStageTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/{deal_id}/stage/advance", response_model=AdvanceResponse)
async def advance_stage(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> AdvanceResponse:
    """Manually advance one stage; reports advanced=false at the last stage."""
    try:
        result = await _get_deal_service(request).progress_to_next(deal_id, user_id=user.id)
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return AdvanceResponse(advanced=result is not None, result=result)


@router.put("/{deal_id}/timestamps", response_model=TimestampUpdateResponse)
async def set_timestamp(
    deal_id: str,
    body: TimestampUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TimestampUpdateResponse:
    """Set or clear a buy-side milestone, then apply any due progression."""
    try:
        deal, progression = await _get_deal_service(request).set_timestamp(
            deal_id, body.field, body.value
        )
    except DealNotFoundError as exc:
        raise _not_found(exc)
    return TimestampUpdateResponse(deal=deal, progression=progression)


# ── Diligence Requests ───────────────────────────────────────────────────────


@router.get("/{deal_id}/requests", response_model=list[DealRequestRead])
async def list_requests(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> list[DealRequestRead]:
    await ensure_deal_access(request, user, deal_id)
    try:
        return await _get_deal_service(request).list_requests(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)


@router.get("/{deal_id}/requests/summary", response_model=RequestSummary)
async def request_summary(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> RequestSummary:
    await ensure_deal_access(request, user, deal_id)
    try:
        return await _get_deal_service(request).request_summary(deal_id)
    except DealNotFoundError as exc:
        raise _not_found(exc)


@router.post("/{deal_id}/requests", response_model=DealRequestRead, status_code=201)
async def create_request(
    deal_id: str,
    body: DealRequestCreate,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DealRequestRead:
    await ensure_deal_access(request, user, deal_id)
    await ensure_permission(request, user, deal_id, "create_requests")
    try:
        return await _get_deal_service(request).create_request(deal_id, body, user_id=user.id)
    except DealNotFoundError as exc:
        raise _not_found(exc)


@router.patch("/{deal_id}/requests/{request_id}", response_model=DealRequestRead)
async def update_request(
    deal_id: str,
    request_id: str,
    body: DealRequestUpdate,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DealRequestRead:
    await ensure_deal_access(request, user, deal_id)
    await ensure_permission(request, user, deal_id, "edit_requests")
    try:
        return await _get_deal_service(request).update_request(
            deal_id, request_id, body, user_id=user.id
        )
    except ValueError as exc:
        raise _not_found(exc)
