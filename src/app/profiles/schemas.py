"""Pydantic schemas and role constants for profiles."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"
    PARTNER = "partner"
    INVESTOR = "investor"


# Roles allowed to send invitations and manage investors.
INVITER_ROLES: frozenset[str] = frozenset({UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value})

# Roles that see every deal with full permissions.
STAFF_ROLES: frozenset[str] = frozenset(
    {UserRole.SUPER_ADMIN.value, UserRole.ADMIN.value, UserRole.EDITOR.value}
)

ROLE_TITLES: dict[str, str] = {
    UserRole.ADMIN.value: "Administrator",
    UserRole.EDITOR.value: "Editor",
}


def role_title(role: str) -> str:
    """Display title used in invitation emails (anything unlisted is a Viewer)."""
    return ROLE_TITLES.get(role, "Viewer")


class ProfileRead(BaseModel):
    """A profile as returned by ProfileRepository."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str = UserRole.VIEWER.value
    partner_team_id: str | None = None
    is_active: bool = True
    has_password: bool = False
    created_at: datetime | None = None

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email


class ProfileUpsert(BaseModel):
    """Fields written when an invitation creates or updates a profile."""

    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    partner_team_id: str | None = None


class DeleteUserRequest(BaseModel):
    """Body of delete-user: identify the account by id or email."""

    user_id: str | None = None
    email: str | None = None


class DeleteUserResult(BaseModel):
    success: bool = True
    message: str
    user_id: str
    email: str
    cleanup: dict[str, int]
