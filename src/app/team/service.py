"""Deal team management -- membership, role defaults, and the activity feed."""

from __future__ import annotations

import structlog

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import DealActivityCreate, DealActivityType
from src.app.profiles.repository import ProfileRepository
from src.app.team.repository import DuplicateTeamMemberError, TeamRepository
from src.app.team.roles import resolve_permissions
from src.app.team.schemas import (
    TeamMemberCreate,
    TeamMemberRead,
    TeamMemberUpdate,
    TeamPermissions,
)

logger = structlog.get_logger(__name__)


class TeamService:
    def __init__(
        self,
        repository: TeamRepository,
        profiles: ProfileRepository,
        activity: ActivityRepository,
    ) -> None:
        self._repo = repository
        self._profiles = profiles
        self._activity = activity

    async def _with_profiles(self, members: list[TeamMemberRead]) -> list[TeamMemberRead]:
        profiles = {
            p.id: p for p in await self._profiles.list_by_ids([m.user_id for m in members])
        }
        enriched = []
        for member in members:
            profile = profiles.get(member.user_id)
            if profile is not None:
                member = member.model_copy(
                    update={"member_name": profile.display_name, "member_email": profile.email}
                )
            enriched.append(member)
        return enriched

    async def _log(
        self,
        member: TeamMemberRead,
        activity_type: DealActivityType,
        user_id: str | None,
        **metadata: object,
    ) -> None:
        await self._activity.log_deal_activity(
            DealActivityCreate(
                deal_id=member.deal_id,
                activity_type=activity_type,
                entity_type="team_member",
                entity_id=member.id,
                metadata={
                    "member_id": member.user_id,
                    "member_name": member.member_name,
                    "role": member.role.value,
                    **metadata,
                },
                user_id=user_id,
            )
        )

    async def list_members(self, deal_id: str) -> list[TeamMemberRead]:
        return await self._with_profiles(await self._repo.list_members(deal_id))

    async def add_member(
        self, deal_id: str, data: TeamMemberCreate, added_by: str | None = None
    ) -> TeamMemberRead:
        """Add a user to the deal team with role defaults plus overrides.

        Raises:
            DuplicateTeamMemberError: The user is already on the team.
        """
        if await self._repo.get_member(deal_id, data.user_id) is not None:
            raise DuplicateTeamMemberError("User is already a team member of this deal")

        permissions = resolve_permissions(data.role, data.permissions)
        member = await self._repo.add_member(
            deal_id, data.user_id, data.role, permissions, added_by=added_by
        )
        (member,) = await self._with_profiles([member])
        await self._log(member, DealActivityType.TEAM_MEMBER_ADDED, added_by)
        logger.info("team.member_added", deal_id=deal_id, user_id=data.user_id, role=data.role.value)
        return member

    async def update_member(
        self, deal_id: str, member_id: str, data: TeamMemberUpdate, user_id: str | None = None
    ) -> TeamMemberRead:
        """Change a member's role and/or flags.

        A new role resets the flags to that role's defaults before the
        overrides are applied; otherwise overrides apply to the current flags.
        """
        current = await self._repo.get_member_by_id(member_id)
        if current is None or current.deal_id != deal_id:
            raise ValueError(f"Team member not found: {member_id}")

        role = data.role or current.role
        if data.role is not None:
            permissions = resolve_permissions(role, data.permissions)
        else:
            merged = TeamPermissions(**current.model_dump(include=set(TeamPermissions.model_fields)))
            if data.permissions is not None:
                merged = merged.model_copy(update=data.permissions.model_dump(exclude_none=True))
            permissions = merged

        member = await self._repo.update_member(member_id, role, permissions)
        (member,) = await self._with_profiles([member])
        await self._log(
            member,
            DealActivityType.PERMISSION_CHANGED,
            user_id,
            permissions=permissions.model_dump(),
        )
        return member

    async def remove_member(self, deal_id: str, member_id: str, user_id: str | None = None) -> None:
        current = await self._repo.get_member_by_id(member_id)
        if current is None or current.deal_id != deal_id:
            raise ValueError(f"Team member not found: {member_id}")
        (current,) = await self._with_profiles([current])
        await self._repo.remove_member(member_id)
        await self._log(current, DealActivityType.TEAM_MEMBER_REMOVED, user_id)
        logger.info("team.member_removed", deal_id=deal_id, user_id=current.user_id)
