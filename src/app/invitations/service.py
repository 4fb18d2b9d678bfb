"""Invitation flows -- staff invites, partner invites, team invitations, and
investor invitations.

Staff and partner invites create or update the invitee's profile and email a
signed auth link (invite for new users; recovery or magic link for existing
ones). Team invitations and investor invitations are stored rows with a
unique token or code; the emailed link carries it, and accepting it grants the
invited role, deal team seat, or deals.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

import structlog

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import SecurityEventCreate
from src.app.core.security import create_action_token
from src.app.deals.repository import DealRepository
from src.app.deals.schemas import DealRead
from src.app.invitations.emails import (
    custom_invite_email,
    investor_invitation_email,
    partner_invite_email,
    team_invitation_email,
)
from src.app.invitations.repository import InvitationRepository, TeamInvitationRepository
from src.app.invitations.schemas import (
    AccessType,
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
    UserInviteRequest,
)
from src.app.profiles.repository import ProfileRepository
from src.app.profiles.schemas import ProfileRead, ProfileUpsert, UserRole, role_title
from src.app.services.email import EmailDeliveryError, EmailNotConfiguredError, ResendClient
from src.app.team.repository import DuplicateTeamMemberError, TeamRepository
from src.app.team.roles import TEAM_ROLE_VALUES, resolve_permissions
from src.app.team.schemas import PermissionOverrides, TeamRole

logger = structlog.get_logger(__name__)

# Platform roles an admin may hand out directly.
PLATFORM_INVITE_ROLES: frozenset[str] = frozenset(
    {UserRole.ADMIN.value, UserRole.EDITOR.value, UserRole.VIEWER.value}
)

TEAM_INVITATION_ROLES: frozenset[str] = TEAM_ROLE_VALUES | PLATFORM_INVITE_ROLES


class InvitationError(Exception):
    """An invitation request failed with a client-visible status."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvitationService:
    """Sends invitations and resolves investor invitation codes.

    Args:
        profiles: ProfileRepository for invitees.
        invitations: InvitationRepository for investor invitations.
        deals: DealRepository, to describe invited deals.
        activity: ActivityRepository for security events.
        email_client: ResendClient.
        site_url: Frontend base URL used in emailed links.
        investor_expire_days: Default validity of an investor invitation.
        team_invitations: TeamInvitationRepository for team invitations.
        team: TeamRepository, to seat accepted team invitees on a deal.
        team_expire_days: Validity of a team invitation.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        invitations: InvitationRepository,
        deals: DealRepository,
        activity: ActivityRepository,
        email_client: ResendClient,
        site_url: str,
        investor_expire_days: int = 30,
        team_invitations: TeamInvitationRepository | None = None,
        team: TeamRepository | None = None,
        team_expire_days: int = 7,
    ) -> None:
        self._profiles = profiles
        self._invitations = invitations
        self._deals = deals
        self._activity = activity
        self._email = email_client
        self._site_url = site_url.rstrip("/")
        self._investor_expire_days = investor_expire_days
        self._team_invitations = team_invitations
        self._team = team
        self._team_expire_days = team_expire_days

    def _require_email_service(self) -> None:
        if not self._email.is_configured:
            logger.error("invitation.email_not_configured")
            raise InvitationError("Email service not configured", 500)

    async def _send(self, message, template: str) -> None:
        try:
            await self._email.send_email(message, template=template)
        except EmailNotConfiguredError as exc:
            raise InvitationError(str(exc), 500) from exc
        except EmailDeliveryError as exc:
            raise InvitationError(str(exc), 500) from exc

    # ── Staff Invites ───────────────────────────────────────────────────────

    async def send_custom_invite(
        self, request: CustomInviteRequest, sender_id: str
    ) -> InviteResult:
        """send-custom-invite: invite (or re-invite) a user with a role."""
        self._require_email_service()
        email = (request.email or "").strip().lower()
        if not email:
            raise InvitationError("Email is required", 400)

        existing = await self._profiles.get_by_email(email)
        existing_user = existing is not None
        first_name = request.first_name.strip() if request.first_name else None
        last_name = request.last_name.strip() if request.last_name else None

        profile = await self._profiles.upsert(
            ProfileUpsert(email=email, role=request.role, first_name=first_name, last_name=last_name)
        )
        action = "recovery" if existing_user else "invite"
        token = create_action_token(profile.id, email, action)
        link = f"{self._site_url}/auth/accept?type={action}&token={token}"

        await self._send(
            custom_invite_email(
                to=email,
                link=link,
                role_name=role_title(request.role),
                first_name=first_name,
                existing_user=existing_user,
            ),
            template="custom_invite",
        )
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="user_invited",
                event_data={
                    "invited_email": email,
                    "invited_user_id": profile.id,
                    "role": request.role,
                    "existing_user": existing_user,
                },
                user_id=sender_id,
            )
        )
        logger.info("invitation.custom_sent", user_id=profile.id, existing_user=existing_user)
        message = (
            f"Access link sent to {email}" if existing_user else f"Invitation sent to {email}"
        )
        return InviteResult(success=True, message=message, user_id=profile.id)

    # ── Partner Invites ─────────────────────────────────────────────────────

    async def send_partner_invite(
        self, request: PartnerInviteRequest, sender_id: str
    ) -> InviteResult:
        """send-partner-invite: add a user to a partner team and email a link."""
        self._require_email_service()
        email = (request.email or "").strip().lower()
        if not email or not request.partner_team_id or not request.team_name:
            raise InvitationError("Missing required fields", 400)

        existing = await self._profiles.get_by_email(email)
        existing_user = existing is not None
        profile = await self._profiles.upsert(
            ProfileUpsert(
                email=email,
                role=UserRole.PARTNER.value,
                first_name=request.first_name,
                last_name=request.last_name,
                partner_team_id=request.partner_team_id,
            )
        )
        action = "magiclink" if existing_user else "invite"
        token = create_action_token(profile.id, email, action)
        link = f"{self._site_url}/investor?type={action}&token={token}"

        await self._send(
            partner_invite_email(
                to=email,
                link=link,
                team_name=request.team_name,
                company_name=request.company_name,
                first_name=request.first_name,
                existing_user=existing_user,
            ),
            template="partner_invite",
        )
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="partner_invite_sent",
                event_data={
                    "invited_email": email,
                    "team_id": request.partner_team_id,
                    "team_name": request.team_name,
                    "invited_by": sender_id,
                    "existing_user": existing_user,
                },
                user_id=sender_id,
            )
        )
        logger.info("invitation.partner_sent", user_id=profile.id, team_id=request.partner_team_id)
        return InviteResult(success=True, message=f"Invitation sent to {email}", user_id=profile.id)

    # ── New Users ───────────────────────────────────────────────────────────

    async def invite_user(self, request: UserInviteRequest, sender_id: str) -> InviteResult:
        """invite-user: create a brand-new profile and email an invite link.

        Raises:
            InvitationError: 400 for a missing email, an unknown role, or an
                address that already has a profile.
        """
        self._require_email_service()
        email = (request.email or "").strip().lower()
        if not email:
            raise InvitationError("Email is required", 400)
        if request.role not in PLATFORM_INVITE_ROLES:
            raise InvitationError(f"Invalid role: {request.role}", 400)
        if await self._profiles.get_by_email(email) is not None:
            raise InvitationError("User with this email already exists", 400)

        profile = await self._profiles.upsert(ProfileUpsert(email=email, role=request.role))
        token = create_action_token(profile.id, email, "invite")
        link = f"{self._site_url}/auth/callback?type=invite&token={token}"
        await self._send(
            custom_invite_email(
                to=email,
                link=link,
                role_name=role_title(request.role),
                first_name=None,
                existing_user=False,
            ),
            template="user_invite",
        )
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="user_invited",
                event_data={
                    "invited_email": email,
                    "invited_user_id": profile.id,
                    "role": request.role,
                },
                user_id=sender_id,
            )
        )
        logger.info("invitation.user_invited", user_id=profile.id, role=request.role)
        return InviteResult(
            success=True, message="User invitation sent successfully", user_id=profile.id
        )

    # ── Investor Invitations ────────────────────────────────────────────────

    def registration_url(self, code: str) -> str:
        return f"{self._site_url}/register?code={code}"

    async def _invited_deals(self, invitation: InvestorInvitationRead) -> list[DealRead]:
        if invitation.access_type == AccessType.SINGLE and invitation.deal_id:
            ids = [invitation.deal_id]
        elif invitation.access_type in (AccessType.MULTIPLE, AccessType.CUSTOM):
            ids = invitation.deal_ids
        else:
            return []
        deals = []
        for deal_id in ids:
            deal = await self._deals.get_deal(deal_id)
            if deal is not None:
                deals.append(deal)
        return deals

    async def create_investor_invitation(
        self, data: InvestorInvitationCreate, invited_by: str
    ) -> InvestorInvitationRead:
        """Store an investor invitation and email it."""
        if data.access_type == AccessType.SINGLE and not data.deal_id:
            raise InvitationError("deal_id is required for single access", 400)
        if data.access_type in (AccessType.MULTIPLE, AccessType.CUSTOM) and not data.deal_ids:
            raise InvitationError("deal_ids are required for multiple or custom access", 400)
        self._require_email_service()

        days = data.expires_in_days or self._investor_expire_days
        invitation = await self._invitations.create(
            data,
            invitation_code=secrets.token_urlsafe(16),
            expires_at=datetime.now(timezone.utc) + timedelta(days=days),
            invited_by=invited_by,
        )
        return await self.send_investor_invitation(invitation.id, resend=False)

    async def send_investor_invitation(
        self, invitation_id: str, resend: bool = True
    ) -> InvestorInvitationRead:
        """Email (or re-email) a pending invitation's registration link."""
        invitation = await self._invitations.get(invitation_id)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        if invitation.status != InvitationStatus.PENDING:
            raise InvitationError(f"Invitation is {invitation.status.value}", 400)
        self._require_email_service()

        deals = await self._invited_deals(invitation)
        await self._send(
            investor_invitation_email(
                invitation,
                deals,
                self.registration_url(invitation.invitation_code),
                resend=resend,
            ),
            template="investor_invitation",
        )
        updated = await self._invitations.record_sent(invitation.id, datetime.now(timezone.utc))
        logger.info(
            "invitation.investor_sent",
            invitation_id=invitation.id,
            access_type=invitation.access_type.value,
            resend=resend,
        )
        return updated

    async def accept_investor_invitation(self, code: str, user_id: str) -> InvestorInvitationRead:
        """Link the invitation with this code to user_id.

        Raises:
            InvitationError: 404 for an unknown code; 400 when the
                invitation is revoked, expired, or used by someone else.
        """
        invitation = await self._invitations.get_by_code(code)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        if invitation.status == InvitationStatus.REVOKED:
            raise InvitationError("Invitation has been revoked", 400)
        if invitation.status == InvitationStatus.ACCEPTED:
            if invitation.accepted_by == user_id:
                return invitation
            raise InvitationError("Invitation has already been used", 400)

        now = datetime.now(timezone.utc)
        if invitation.status == InvitationStatus.EXPIRED or invitation.expires_at < now:
            if invitation.status != InvitationStatus.EXPIRED:
                await self._invitations.update_status(invitation.id, InvitationStatus.EXPIRED)
            raise InvitationError("Invitation has expired", 400)

        accepted = await self._invitations.update_status(
            invitation.id, InvitationStatus.ACCEPTED, accepted_by=user_id, accepted_at=now
        )
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="investor_invitation_accepted",
                event_data={"invitation_id": invitation.id, "access_type": invitation.access_type.value},
                user_id=user_id,
            )
        )
        logger.info("invitation.investor_accepted", invitation_id=invitation.id, user_id=user_id)
        return accepted

    async def list_investor_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[InvestorInvitationRead]:
        return await self._invitations.list_invitations(status)

    async def revoke_investor_invitation(
        self, invitation_id: str, user_id: str
    ) -> InvestorInvitationRead:
        invitation = await self._invitations.get(invitation_id)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        revoked = await self._invitations.update_status(invitation.id, InvitationStatus.REVOKED)
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="investor_invitation_revoked",
                event_data={"invitation_id": invitation.id, "email": invitation.email},
                user_id=user_id,
            )
        )
        logger.info("invitation.investor_revoked", invitation_id=invitation.id)
        return revoked

    # ── Team Invitations ────────────────────────────────────────────────────

    def _require_team_invitations(self) -> TeamInvitationRepository:
        if self._team_invitations is None:
            raise InvitationError("Team invitations not configured", 503)
        return self._team_invitations

    async def send_team_invitation(
        self, request: TeamInvitationCreate, inviter: ProfileRead
    ) -> TeamInvitationResult:
        """send-team-invitation: store the invitation and email its link.

        Existing users get a magic link; new users get a fresh profile and an
        invite link. Both links carry the invitation token for acceptance.
        """
        repository = self._require_team_invitations()
        self._require_email_service()
        email = (request.invitee_email or "").strip().lower()
        if not email:
            raise InvitationError("Email is required", 400)
        if request.role not in TEAM_INVITATION_ROLES:
            raise InvitationError(f"Invalid role: {request.role}", 400)

        deal_title = None
        if request.deal_id:
            deal = await self._deals.get_deal(request.deal_id)
            if deal is None:
                raise InvitationError("Deal not found", 404)
            deal_title = deal.title or deal.company_name

        name = (request.invitee_name or "").strip() or None
        message = (request.personal_message or "").strip() or None
        invitation = await repository.create(
            request.model_copy(
                update={"invitee_email": email, "invitee_name": name, "personal_message": message}
            ),
            inviter_id=inviter.id,
            invitation_token=secrets.token_urlsafe(32),
            expires_at=datetime.now(timezone.utc) + timedelta(days=self._team_expire_days),
        )

        existing = await self._profiles.get_by_email(email)
        existing_user = existing is not None
        if existing is None:
            first, _, last = (name or "").partition(" ")
            existing = await self._profiles.upsert(
                ProfileUpsert(
                    email=email,
                    role=UserRole.VIEWER.value,
                    first_name=first or None,
                    last_name=last or None,
                )
            )
        action = "magiclink" if existing_user else "invite"
        token = create_action_token(existing.id, email, action)
        link = (
            f"{self._site_url}/auth/accept?type={action}&token={token}"
            f"&invitation={invitation.invitation_token}"
        )

        inviter_name = " ".join(p for p in (inviter.first_name, inviter.last_name) if p)
        try:
            await self._send(
                team_invitation_email(
                    invitation,
                    link,
                    inviter_name=inviter_name or "The Team",
                    deal_title=deal_title,
                    existing_user=existing_user,
                ),
                template="team_invitation",
            )
        except InvitationError as exc:
            logger.error(
                "invitation.team_email_failed", invitation_id=invitation.id, error=exc.message
            )
            raise InvitationError("Failed to send invitation email", 500) from exc

        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="team_invitation_sent",
                event_data={
                    "invitation_id": invitation.id,
                    "invitee_email": email,
                    "role": request.role,
                    "deal_id": request.deal_id,
                    "is_existing_user": existing_user,
                },
                user_id=inviter.id,
            )
        )
        logger.info(
            "invitation.team_sent", invitation_id=invitation.id, existing_user=existing_user
        )
        return TeamInvitationResult(
            success=True,
            message="Invitation sent successfully",
            invitation_id=invitation.id,
            is_existing_user=existing_user,
        )

    async def list_team_invitations(
        self, status: InvitationStatus | None = None
    ) -> list[TeamInvitationRead]:
        return await self._require_team_invitations().list_invitations(status)

    async def team_invitation_stats(self) -> InvitationStats:
        counts = await self._require_team_invitations().count_by_status()
        return InvitationStats(total=sum(counts.values()), **counts)

    async def revoke_team_invitation(self, invitation_id: str, user_id: str) -> TeamInvitationRead:
        repository = self._require_team_invitations()
        invitation = await repository.get(invitation_id)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        revoked = await repository.update_status(invitation.id, InvitationStatus.REVOKED)
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="team_invitation_revoked",
                event_data={
                    "invitation_id": invitation.id,
                    "invitee_email": invitation.invitee_email,
                },
                user_id=user_id,
            )
        )
        logger.info("invitation.team_revoked", invitation_id=invitation.id)
        return revoked

    async def resend_team_invitation(
        self, invitation_id: str, inviter: ProfileRead
    ) -> TeamInvitationResult:
        """Replace the invitation with a fresh one (new token and expiry) and email it."""
        repository = self._require_team_invitations()
        invitation = await repository.get(invitation_id)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        if invitation.status == InvitationStatus.ACCEPTED:
            raise InvitationError("Invitation has already been accepted", 400)
        await repository.delete(invitation.id)
        return await self.send_team_invitation(
            TeamInvitationCreate(
                invitee_email=invitation.invitee_email,
                invitee_name=invitation.invitee_name,
                role=invitation.role,
                personal_message=invitation.personal_message,
                deal_id=invitation.deal_id,
                permissions=invitation.permissions,
            ),
            inviter,
        )

    async def accept_team_invitation(self, token: str, user: ProfileRead) -> TeamInvitationRead:
        """Accept the invitation with this token as the signed-in user.

        A deal team role seats the user on the invitation's deal with the
        role defaults and any stored permission overrides. A platform role
        becomes the user's profile role.

        Raises:
            InvitationError: 404 for an unknown token; 403 when the user's
                email differs from the invitee's; 400 when the invitation is
                revoked, expired, or used by someone else.
        """
        repository = self._require_team_invitations()
        invitation = await repository.get_by_token(token)
        if invitation is None:
            raise InvitationError("Invitation not found", 404)
        if invitation.status == InvitationStatus.REVOKED:
            raise InvitationError("Invitation has been revoked", 400)
        if invitation.status == InvitationStatus.ACCEPTED:
            if invitation.accepted_by == user.id:
                return invitation
            raise InvitationError("Invitation has already been used", 400)

        now = datetime.now(timezone.utc)
        if invitation.status == InvitationStatus.EXPIRED or invitation.expires_at < now:
            if invitation.status != InvitationStatus.EXPIRED:
                await repository.update_status(invitation.id, InvitationStatus.EXPIRED)
            raise InvitationError("Invitation has expired", 400)
        if user.email.lower() != invitation.invitee_email.lower():
            raise InvitationError("Invitation was sent to a different email address", 403)

        if invitation.role in TEAM_ROLE_VALUES and invitation.deal_id and self._team is not None:
            role = TeamRole(invitation.role)
            permissions = resolve_permissions(role, PermissionOverrides(**invitation.permissions))
            try:
                await self._team.add_member(
                    invitation.deal_id, user.id, role, permissions, added_by=invitation.inviter_id
                )
            except DuplicateTeamMemberError:
                logger.info(
                    "invitation.team_member_exists", deal_id=invitation.deal_id, user_id=user.id
                )
        elif invitation.role in PLATFORM_INVITE_ROLES and user.role != UserRole.SUPER_ADMIN.value:
            await self._profiles.upsert(ProfileUpsert(email=user.email, role=invitation.role))

        accepted = await repository.update_status(
            invitation.id, InvitationStatus.ACCEPTED, accepted_by=user.id, accepted_at=now
        )
        await self._activity.log_security_event(
            SecurityEventCreate(
                event_type="team_invitation_accepted",
                event_data={
                    "invitation_id": invitation.id,
                    "role": invitation.role,
                    "deal_id": invitation.deal_id,
                },
                user_id=user.id,
            )
        )
        logger.info("invitation.team_accepted", invitation_id=invitation.id, user_id=user.id)
        return accepted
