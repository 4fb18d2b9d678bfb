"""Admin user management -- deleting an account and the rows tied to it."""

from __future__ import annotations

import uuid

import structlog

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import SecurityEventCreate
from src.app.invitations.repository import InvitationRepository, TeamInvitationRepository
from src.app.nda.repository import NDARepository
from src.app.profiles.repository import ProfileRepository
from src.app.profiles.schemas import DeleteUserRequest, DeleteUserResult, ProfileRead
from src.app.team.repository import TeamRepository

logger = structlog.get_logger(__name__)


class UserAdminError(Exception):
    """A user management request failed with a client-visible status."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UserAdminService:
    """Deletes user accounts on behalf of an admin.

    Deal activity and security events stay behind as the audit trail;
    everything that grants the deleted user access goes.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        team: TeamRepository,
        invitations: InvitationRepository,
        team_invitations: TeamInvitationRepository,
        nda: NDARepository,
        activity: ActivityRepository,
    ) -> None:
        self._profiles = profiles
        self._team = team
        self._invitations = invitations
        self._team_invitations = team_invitations
        self._nda = nda
        self._activity = activity

    async def _find(self, user_id: str, email: str) -> ProfileRead | None:
        if user_id:
            try:
                uuid.UUID(user_id)
            except ValueError as exc:
                raise UserAdminError("Invalid user_id", 400) from exc
            return await self._profiles.get(user_id)
        return await self._profiles.get_by_email(email)

    async def delete_user(self, request: DeleteUserRequest, actor: ProfileRead) -> DeleteUserResult:
        """delete-user: remove a profile, its team seats, invitations and NDAs.

        Raises:
            UserAdminError: 400 without a user_id or email, or when the admin
                targets their own account; 404 when no profile matches.
        """
        user_id = (request.user_id or "").strip()
        email = (request.email or "").strip().lower()
        if not user_id and not email:
            raise UserAdminError("Provide user_id or email", 400)
        if user_id and user_id == actor.id:
            raise UserAdminError("Cannot delete your own account", 400)

        target = await self._find(user_id, email)
        if target is None:
            raise UserAdminError("User not found", 404)
        if target.id == actor.id:
            raise UserAdminError("Cannot delete your own account", 400)

        cleanup = {
            "deal_team_members": await self._team.remove_user(target.id),
            "investor_invitations": await self._invitations.delete_by_email(target.email),
            "team_invitations": await self._team_invitations.delete_by_email(target.email),
            "company_nda_acceptances": await self._nda.delete_for_user(target.id),
        }
        cleanup["profiles"] = 1 if await self._profiles.delete(target.id) else 0

        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="user_deleted",
                event_data={
                    "deleted_user_id": target.id,
                    "deleted_email": target.email,
                    "deleted_name": target.display_name,
                    "cleanup": cleanup,
                },
                user_id=actor.id,
            )
        )
        logger.info("user.deleted", user_id=target.id, deleted_by=actor.id, **cleanup)
        return DeleteUserResult(
            success=True,
            message=f"User {target.email} deleted",
            user_id=target.id,
            email=target.email,
            cleanup=cleanup,
        )
