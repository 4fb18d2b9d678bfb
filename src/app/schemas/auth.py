"""Pydantic schemas for authentication API endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from src.app.core.security import PasswordStrength


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenResponse(BaseModel):
    """Response schema with access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefreshRequest(BaseModel):
    """Request schema to refresh an access token."""

    refresh_token: str = Field(..., description="Valid refresh token")


class SetPasswordRequest(BaseModel):
    """Redeem an emailed invite, recovery, or magic link.

    password is required for invite and recovery links; a magic link signs
    in without one.
    """

    token: str
    type: str = Field(..., pattern="^(invite|recovery|magiclink)$")
    password: str | None = None


class PasswordCheckRequest(BaseModel):
    password: str


class PasswordCheckResponse(BaseModel):
    strength: PasswordStrength
    errors: list[str] = Field(default_factory=list)
    is_valid: bool
