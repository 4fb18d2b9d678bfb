"""REST API endpoints for staff, partner, team, and investor invitations."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.app.api.deps import get_current_user, require_admin, require_staff
from src.app.invitations.schemas import (
    AcceptInvitationRequest,
    AcceptTeamInvitationRequest,
    CustomInviteRequest,
    InvestorInvitationCreate,
    InvestorInvitationRead,
    InvitationStats,
    InvitationStatus,
    InviteResult,
    PartnerInviteRequest,
    TeamInvitationCreate,
    TeamInvitationRead,
    TeamInvitationResult,
)
from src.app.invitations.service import InvitationError
from src.app.profiles.schemas import ProfileRead

router = APIRouter(prefix="/invitations", tags=["invitations"])


def _get_invitation_service(request: Request) -> Any:
    service = getattr(request.app.state, "invitation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Invitation service not initialized",
        )
    return service


async def _run(coro) -> Any:
    try:
        return await coro
    except InvitationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


# ── Staff & Partner Invites ─────────────────────────────────────────────────


@router.post("/custom", response_model=InviteResult)
async def send_custom_invite(
    body: CustomInviteRequest,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InviteResult:
    """send-custom-invite: invite a user with a role."""
    return await _run(_get_invitation_service(request).send_custom_invite(body, user.id))


@router.post("/partner", response_model=InviteResult)
async def send_partner_invite(
    body: PartnerInviteRequest,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InviteResult:
    """send-partner-invite: add a user to a partner team."""
    return await _run(_get_invitation_service(request).send_partner_invite(body, user.id))


# ── Investor Invitations ────────────────────────────────────────────────────


@router.get("/investor", response_model=list[InvestorInvitationRead])
async def list_investor_invitations(
    request: Request,
    status_filter: InvitationStatus | None = Query(default=None, alias="status"),
    user: ProfileRead = Depends(require_admin),
) -> list[InvestorInvitationRead]:
    return await _get_invitation_service(request).list_investor_invitations(status_filter)


@router.post("/investor", response_model=InvestorInvitationRead, status_code=201)
async def create_investor_invitation(
    body: InvestorInvitationCreate,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InvestorInvitationRead:
    """Store the invitation and email the registration link."""
    return await _run(
        _get_invitation_service(request).create_investor_invitation(body, invited_by=user.id)
    )


@router.post("/investor/{invitation_id}/resend", response_model=InvestorInvitationRead)
async def resend_investor_invitation(
    invitation_id: str,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InvestorInvitationRead:
    return await _run(
        _get_invitation_service(request).send_investor_invitation(invitation_id, resend=True)
    )


@router.post("/investor/{invitation_id}/revoke", response_model=InvestorInvitationRead)
async def revoke_investor_invitation(
    invitation_id: str,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InvestorInvitationRead:
    return await _run(
        _get_invitation_service(request).revoke_investor_invitation(invitation_id, user.id)
    )


@router.post("/accept", response_model=InvestorInvitationRead)
async def accept_investor_invitation(
    body: AcceptInvitationRequest,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> InvestorInvitationRead:
    """Link an invitation code to the signed-in user."""
    return await _run(
        _get_invitation_service(request).accept_investor_invitation(body.code, user.id)
    )


# ── Team Invitations ────────────────────────────────────────────────────────


@router.post("/team", response_model=TeamInvitationResult)
async def send_team_invitation(
    body: TeamInvitationCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TeamInvitationResult:
    """send-team-invitation: invite someone to the platform or a deal team."""
    return await _run(_get_invitation_service(request).send_team_invitation(body, user))


@router.get("/team", response_model=list[TeamInvitationRead])
async def list_team_invitations(
    request: Request,
    status_filter: InvitationStatus | None = Query(default=None, alias="status"),
    user: ProfileRead = Depends(require_staff),
) -> list[TeamInvitationRead]:
    return await _run(_get_invitation_service(request).list_team_invitations(status_filter))


@router.get("/team/stats", response_model=InvitationStats)
async def team_invitation_stats(
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> InvitationStats:
    return await _run(_get_invitation_service(request).team_invitation_stats())


@router.post("/team/accept", response_model=TeamInvitationRead)
async def accept_team_invitation(
    body: AcceptTeamInvitationRequest,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> TeamInvitationRead:
    """Accept a team invitation as the signed-in invitee."""
    return await _run(_get_invitation_service(request).accept_team_invitation(body.token, user))


@router.post("/team/{invitation_id}/resend", response_model=TeamInvitationResult)
async def resend_team_invitation(
    invitation_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TeamInvitationResult:
    return await _run(_get_invitation_service(request).resend_team_invitation(invitation_id, user))


@router.post("/team/{invitation_id}/revoke", response_model=TeamInvitationRead)
async def revoke_team_invitation(
    invitation_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> TeamInvitationRead:
    return await _run(
        _get_invitation_service(request).revoke_team_invitation(invitation_id, user.id)
    )
