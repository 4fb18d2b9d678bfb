"""JWT authentication, password hashing, and password policy.

Provides the core security primitives used by auth endpoints, the
invitation flows (invite, recovery, and magic-link tokens), and signed
storage URLs.

Uses bcrypt directly (not passlib) for Python 3.13 compatibility.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError, jwt

from src.app.config import get_settings

# ── Password Hashing ──────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plaintext password against its bcrypt hash."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ── Password Policy ───────────────────────────────────────────────────────────

MIN_PASSWORD_LENGTH = 8

_PASSWORD_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
]


class PasswordStrength(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


def validate_password(password: str) -> list[str]:
    """Return the list of policy violations for a password (empty when valid)."""
    errors: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            errors.append(message)
    return errors


def password_strength(password: str) -> PasswordStrength:
    """Score a password: one point per satisfied rule plus one for length >= 12."""
    score = sum(1 for pattern, _ in _PASSWORD_RULES if pattern.search(password))
    if len(password) >= MIN_PASSWORD_LENGTH:
        score += 1
    if len(password) >= 12:
        score += 1

    if score >= 6:
        return PasswordStrength.STRONG
    if score >= 4:
        return PasswordStrength.MEDIUM
    return PasswordStrength.WEAK


# ── JWT Token Creation ────────────────────────────────────────────────────────


def _encode(data: dict, token_type: str, expire: datetime) -> str:
    settings = get_settings()
    to_encode = data.copy()
    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    The data dict should contain at minimum:
    - sub: profile id (str)
    - role: profile role (str)
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    return _encode(data, "access", expire)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token with longer expiry."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(data, "refresh", expire)


# Action tokens back the links sent in invitation and recovery emails.
ACTION_TOKEN_TYPES = ("invite", "recovery", "magiclink")


def create_action_token(user_id: str, email: str, action: str) -> str:
    """Create a single-purpose token for an emailed auth link.

    Each token carries a random jti; a link is spent once its jti is
    recorded as redeemed.

    Args:
        user_id: Profile id the link signs in as.
        email: Email address the link was sent to.
        action: One of "invite", "recovery", "magiclink".
    """
    if action not in ACTION_TOKEN_TYPES:
        raise ValueError(f"Unknown action token type: {action}")
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.INVITE_TOKEN_EXPIRE_HOURS)
    return _encode(
        {"sub": user_id, "email": email, "jti": secrets.token_urlsafe(16)}, action, expire
    )


def create_signed_path_token(bucket: str, path: str, expires_in: int) -> str:
    """Create a token authorising a single storage object download."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return _encode({"sub": f"{bucket}/{path}", "bucket": bucket, "path": path}, "storage", expire)


# ── JWT Token Verification ────────────────────────────────────────────────────


def verify_token(token: str, token_type: str = "access") -> dict:
    """Decode and validate a JWT token.

    Args:
        token: The JWT string.
        token_type: Expected token type ("access", "refresh", "invite",
            "recovery", "magiclink", or "storage").

    Returns:
        The decoded payload dict.

    Raises:
        HTTPException(401): If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        if payload.get("type") != token_type:
            raise credentials_exception
        if not payload.get("sub"):
            raise credentials_exception
        return payload
    except JWTError:
        raise credentials_exception
