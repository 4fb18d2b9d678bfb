"""Default permission flags per deal team role."""

from __future__ import annotations

from src.app.team.schemas import PermissionOverrides, TeamPermissions, TeamRole

_ALL = dict(
    can_view_all_folders=True,
    can_upload_documents=True,
    can_delete_documents=True,
    can_create_requests=True,
    can_edit_requests=True,
    can_approve_documents=True,
)

DEFAULT_PERMISSIONS: dict[TeamRole, TeamPermissions] = {
    TeamRole.DEAL_LEAD: TeamPermissions(**_ALL),
    TeamRole.ANALYST: TeamPermissions(
        **{**_ALL, "can_delete_documents": False, "can_approve_documents": False}
    ),
    TeamRole.EXTERNAL_REVIEWER: TeamPermissions(can_approve_documents=True),
    TeamRole.INVESTOR: TeamPermissions(),
    TeamRole.SELLER: TeamPermissions(can_view_all_folders=True, can_upload_documents=True),
    TeamRole.ADVISOR: TeamPermissions(
        can_view_all_folders=True,
        can_upload_documents=True,
        can_create_requests=True,
        can_edit_requests=True,
    ),
}

TEAM_ROLE_VALUES: frozenset[str] = frozenset(role.value for role in TeamRole)

ROLE_DISPLAY_NAMES: dict[TeamRole, str] = {
    TeamRole.DEAL_LEAD: "Deal Lead",
    TeamRole.ANALYST: "Analyst",
    TeamRole.EXTERNAL_REVIEWER: "External Reviewer",
    TeamRole.INVESTOR: "Investor",
    TeamRole.SELLER: "Seller",
    TeamRole.ADVISOR: "Advisor",
}


def resolve_permissions(
    role: TeamRole, overrides: PermissionOverrides | None = None
) -> TeamPermissions:
    """Role defaults with any explicitly set override applied on top."""
    merged = DEFAULT_PERMISSIONS[role].model_dump()
    if overrides is not None:
        merged.update(overrides.model_dump(exclude_none=True))
    return TeamPermissions(**merged)
