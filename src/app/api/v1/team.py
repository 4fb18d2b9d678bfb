"""REST API endpoints for deal teams and partner access grants."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.app.api.deps import ensure_deal_access, get_current_user, require_staff
from src.app.profiles.schemas import ProfileRead
from src.app.team.repository import DuplicateTeamMemberError
from src.app.team.schemas import (
    PartnerAccessCreate,
    PartnerAccessRead,
    PartnerPermissions,
    TeamMemberCreate,
    TeamMemberRead,
    TeamMemberUpdate,
)

router = APIRouter(prefix="/deals", tags=["team"])


def _get_state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return value


def _get_team_service(request: Request) -> Any:
    return _get_state(request, "team_service", "Team service")


def _get_team_repository(request: Request) -> Any:
    return _get_state(request, "team_repository", "Team repository")


# ── Members ─────────────────────────────────────────────────────────────────


@router.get("/{deal_id}/team", response_model=list[TeamMemberRead])
async def list_members(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> list[TeamMemberRead]:
    await ensure_deal_access(request, user, deal_id)
    return await _get_team_service(request).list_members(deal_id)


@router.post("/{deal_id}/team", response_model=TeamMemberRead, status_code=201)
async def add_member(
    deal_id: str,
    body: TeamMemberCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TeamMemberRead:
    """Add a member; flags start from the role defaults plus any overrides."""
    try:
        return await _get_team_service(request).add_member(deal_id, body, added_by=user.id)
    except DuplicateTeamMemberError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.patch("/{deal_id}/team/{member_id}", response_model=TeamMemberRead)
async def update_member(
    deal_id: str,
    member_id: str,
    body: TeamMemberUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TeamMemberRead:
    try:
        return await _get_team_service(request).update_member(
            deal_id, member_id, body, user_id=user.id
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{deal_id}/team/{member_id}", status_code=204)
async def remove_member(
    deal_id: str,
    member_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> None:
    try:
        await _get_team_service(request).remove_member(deal_id, member_id, user_id=user.id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


# ── Partner Access ──────────────────────────────────────────────────────────


@router.get("/{deal_id}/partner-access", response_model=list[PartnerAccessRead])
async def list_partner_access(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[PartnerAccessRead]:
    return await _get_team_repository(request).list_partner_access(deal_id)


@router.post("/{deal_id}/partner-access", response_model=PartnerAccessRead, status_code=201)
async def grant_partner_access(
    deal_id: str,
    body: PartnerAccessCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> PartnerAccessRead:
    return await _get_team_repository(request).grant_partner_access(
        deal_id, body, granted_by=user.id
    )


@router.delete("/{deal_id}/partner-access/{access_id}", status_code=204)
async def revoke_partner_access(
    deal_id: str,
    access_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> None:
    try:
        await _get_team_repository(request).revoke_partner_access(access_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{deal_id}/permissions", response_model=PartnerPermissions)
async def get_my_permissions(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> PartnerPermissions:
    """The caller's effective permissions on the deal."""
    resolver = _get_state(request, "access_resolver", "Access control")
    return await resolver.partner_permissions(user, deal_id)
