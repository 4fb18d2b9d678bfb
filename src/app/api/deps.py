"""FastAPI dependency injection for authentication and role checks.

These dependencies are used in endpoint function signatures to inject the
authenticated profile, or to refuse callers whose role is not allowed.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status

from src.app.core.security import verify_token
from src.app.profiles.schemas import INVITER_ROLES, STAFF_ROLES, ProfileRead


def client_ip(request: Request) -> str | None:
    """Caller IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_current_user(request: Request) -> ProfileRead:
    """Extract and validate the current user from the Bearer JWT.

    Raises:
        HTTPException(401): Missing header, invalid token, or unknown or
            inactive profile.
        HTTPException(503): Profile repository not initialized.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(auth_header[7:], token_type="access")

    profiles = getattr(request.app.state, "profile_repository", None)
    if profiles is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile repository not initialized",
        )
    profile = await profiles.get(payload["sub"])
    if profile is None or not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return profile


def require_roles(*roles: str) -> Callable:
    """Dependency factory: the current user must hold one of roles."""
    allowed = frozenset(roles)

    async def _check(current_user: ProfileRead = Depends(get_current_user)) -> ProfileRead:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin privileges required",
            )
        return current_user

    return _check


# Aliases for cleaner endpoint signatures
require_admin = require_roles(*INVITER_ROLES)
require_staff = require_roles(*STAFF_ROLES)


# ── Deal and Document Access ────────────────────────────────────────────────


def _get_access_resolver(request: Request):
    resolver = getattr(request.app.state, "access_resolver", None)
    if resolver is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access control not initialized",
        )
    return resolver


async def ensure_deal_access(request: Request, user: ProfileRead, deal_id: str) -> None:
    """403 unless the user may see the deal. Staff roles always may."""
    if user.role in STAFF_ROLES:
        return
    decision = await _get_access_resolver(request).can_access_deal(user, deal_id)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this deal",
        )


async def ensure_document_access(
    request: Request, user: ProfileRead, deal_id: str, folder_id: str | None
) -> None:
    """403 unless the user may open documents in the folder (NDA gate included)."""
    if user.role in STAFF_ROLES:
        return
    decision = await _get_access_resolver(request).check_document_access(
        user, deal_id, folder_id
    )
    if not decision.allowed:
        detail = (
            "NDA acceptance required"
            if decision.reason == "nda_required"
            else "You do not have access to this document"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


_PERMISSION_DENIED = {
    "upload_documents": "You do not have permission to upload documents",
    "delete_documents": "You do not have permission to delete documents",
    "approve_documents": "You do not have permission to review documents",
    "create_requests": "You do not have permission to create requests",
    "edit_requests": "You do not have permission to edit requests",
}


async def ensure_permission(request: Request, user: ProfileRead, deal_id: str, action: str) -> None:
    """403 unless the user's team or partner flags allow action on the deal."""
    if user.role in STAFF_ROLES:
        return
    if not await _get_access_resolver(request).has_permission(user, deal_id, action):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_PERMISSION_DENIED[action],
        )


async def visible_documents(request: Request, user: ProfileRead, deal_id: str, documents: list):
    """Documents of deal_id the user may open. Staff see all of them."""
    if user.role in STAFF_ROLES:
        return documents
    return await _get_access_resolver(request).filter_documents(user, deal_id, documents)
