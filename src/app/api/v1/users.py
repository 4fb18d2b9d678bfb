"""REST API endpoints for admin user management: invite-user and delete-user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.app.api.deps import require_admin
from src.app.invitations.schemas import InviteResult, UserInviteRequest
from src.app.invitations.service import InvitationError
from src.app.profiles.schemas import DeleteUserRequest, DeleteUserResult, ProfileRead
from src.app.profiles.service import UserAdminError

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_admin_service(request: Request) -> Any:
    service = getattr(request.app.state, "user_admin_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User management not initialized",
        )
    return service


@router.post("/invite", response_model=InviteResult)
async def invite_user(
    body: UserInviteRequest,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> InviteResult:
    """invite-user: email an invite link to an address with no profile yet."""
    service = getattr(request.app.state, "invitation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Invitation service not initialized",
        )
    try:
        return await service.invite_user(body, user.id)
    except InvitationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/delete", response_model=DeleteUserResult)
async def delete_user(
    body: DeleteUserRequest,
    request: Request,
    user: ProfileRead = Depends(require_admin),
) -> DeleteUserResult:
    """delete-user: remove an account by user_id or email."""
    try:
        return await _get_user_admin_service(request).delete_user(body, user)
    except UserAdminError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
