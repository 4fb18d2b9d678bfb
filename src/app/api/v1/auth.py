"""Authentication API endpoints.

Provides login, token refresh, current user info, emailed-link verification,
and password strength checks. Login is rate limited per email address.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.app.api.deps import get_current_user
from src.app.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    password_strength,
    validate_password,
    verify_password,
    verify_token,
)
from src.app.profiles.schemas import ProfileRead
from src.app.schemas.auth import (
    LoginRequest,
    PasswordCheckRequest,
    PasswordCheckResponse,
    SetPasswordRequest,
    TokenRefreshRequest,
    TokenResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _get_profile_repository(request: Request):
    repo = getattr(request.app.state, "profile_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile repository not initialized",
        )
    return repo


def _issue_tokens(profile: ProfileRead) -> TokenResponse:
    token_data = {"sub": profile.id, "email": profile.email, "role": profile.role}
    return TokenResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(token_data),
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request):
    """Authenticate with email and password and return JWT tokens.

    Returns 429 once RATE_LIMIT_MAX_ATTEMPTS attempts for the email have
    been made within the window.
    """
    profiles = _get_profile_repository(request)
    limiter = getattr(request.app.state, "login_rate_limiter", None)
    email = str(body.email).lower()

    if limiter is not None and not await limiter.hit(email):
        retry_after = await limiter.retry_after(email)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many login attempts. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    credentials = await profiles.get_credentials(email)
    if credentials is None:
        logger.info("auth.login_failed", reason="unknown_email")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    profile, hashed = credentials
    if not profile.is_active or not hashed or not verify_password(body.password, hashed):
        logger.info("auth.login_failed", reason="bad_credentials", user_id=profile.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if limiter is not None:
        await limiter.reset(email)
    logger.info("auth.login_succeeded", user_id=profile.id)
    return _issue_tokens(profile)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(body: TokenRefreshRequest, request: Request):
    """Refresh an expired access token using a valid refresh token."""
    payload = verify_token(body.refresh_token, token_type="refresh")
    profile = await _get_profile_repository(request).get(payload["sub"])
    if profile is None or not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return _issue_tokens(profile)


@router.get("/me", response_model=ProfileRead)
async def get_me(current_user: ProfileRead = Depends(get_current_user)):
    return current_user


@router.post("/verify", response_model=TokenResponse)
async def verify_link(body: SetPasswordRequest, request: Request):
    """Redeem an invite, recovery, or magic-link token for a token pair.

    Invite and recovery links must set a password that satisfies the policy.
    Each link works once.
    """
    payload = verify_token(body.token, token_type=body.type)
    if not payload.get("jti"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    profiles = _get_profile_repository(request)
    profile = await profiles.get(payload["sub"])
    if profile is None or not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    if body.type in ("invite", "recovery"):
        if not body.password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password is required",
            )
        errors = validate_password(body.password)
        if errors:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="; ".join(errors))

    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    if not await profiles.redeem_link(payload["jti"], profile.id, expires_at):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Link has already been used",
        )
    if body.type in ("invite", "recovery"):
        profile = await profiles.set_password(profile.id, hash_password(body.password))

    logger.info("auth.link_verified", user_id=profile.id, link_type=body.type)
    return _issue_tokens(profile)


@router.post("/password-strength", response_model=PasswordCheckResponse)
async def check_password_strength(body: PasswordCheckRequest):
    errors = validate_password(body.password)
    return PasswordCheckResponse(
        strength=password_strength(body.password),
        errors=errors,
        is_valid=not errors,
    )
