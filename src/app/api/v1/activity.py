"""REST API endpoints for the deal activity feed and the security audit log."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from src.app.activity.descriptions import describe_activity
from src.app.activity.schemas import (
    DealActivityCreate,
    DealActivityRead,
    DealActivityType,
    SecurityEventCreate,
    SecurityEventRead,
)
from src.app.api.deps import client_ip, ensure_deal_access, get_current_user, require_admin
from src.app.profiles.schemas import ProfileRead

router = APIRouter(tags=["activity"])


class ActivityFeedItem(DealActivityRead):
    description: str


class LogActivityRequest(BaseModel):
    activity_type: DealActivityType
    entity_type: str = Field(..., min_length=1, max_length=50)
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class LogSecurityEventRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    event_data: dict[str, Any] = Field(default_factory=dict)


class SecurityEventLogged(BaseModel):
    id: str


def _get_activity_repository(request: Request) -> Any:
    repo = getattr(request.app.state, "activity_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Activity log not initialized",
        )
    return repo


@router.get("/deals/{deal_id}/activities", response_model=list[ActivityFeedItem])
async def list_activities(
    deal_id: str,
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    user: ProfileRead = Depends(get_current_user),
) -> list[ActivityFeedItem]:
    """Most recent first, each with a human-readable description."""
    await ensure_deal_access(request, user, deal_id)
    activities = await _get_activity_repository(request).list_deal_activities(deal_id, limit=limit)
    return [
        ActivityFeedItem(**a.model_dump(), description=describe_activity(a)) for a in activities
    ]


@router.post("/deals/{deal_id}/activities", response_model=DealActivityRead, status_code=201)
async def log_activity(
    deal_id: str,
    body: LogActivityRequest,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DealActivityRead:
    await ensure_deal_access(request, user, deal_id)
    return await _get_activity_repository(request).log_deal_activity(
        DealActivityCreate(
            deal_id=deal_id,
            activity_type=body.activity_type,
            entity_type=body.entity_type,
            entity_id=body.entity_id,
            metadata=body.metadata,
            user_id=user.id,
        )
    )


@router.post("/security/events", response_model=SecurityEventLogged, status_code=201)
async def log_security_event(
    body: LogSecurityEventRequest,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> SecurityEventLogged:
    event_id = await _get_activity_repository(request).log_security_event(
        SecurityEventCreate(
            event_type=body.event_type,
            event_data=body.event_data,
            user_id=user.id,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
    )
    return SecurityEventLogged(id=event_id)


@router.get("/security/events", response_model=list[SecurityEventRead])
async def list_security_events(
    request: Request,
    event_type: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    user: ProfileRead = Depends(require_admin),
) -> list[SecurityEventRead]:
    return await _get_activity_repository(request).list_security_events(
        event_type=event_type, limit=limit
    )
