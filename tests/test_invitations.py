"""Tests for staff, partner and investor invitations.

Covers:
- send_custom_invite: new vs. existing users, link type, audit event
- send_partner_invite: partner role and team assignment
- invite_user: brand-new users only
- team invitations: send, accept onto a deal team or platform role, resend, revoke, stats
- investor invitations: validation, sending, resend, accept, revoke, expiry
- covers_deal on accepted invitations
- the /invitations router's error mapping and admin gate
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.app.api.deps import get_current_user
from src.app.api.v1 import invitations as invitations_api
from src.app.core.security import verify_token
from src.app.deals.schemas import DealRead
from src.app.invitations.schemas import (
    AccessType,
    CustomInviteRequest,
    InvestorInvitationCreate,
    InvestorInvitationRead,
    InvitationStatus,
    PartnerInviteRequest,
    TeamInvitationCreate,
    TeamInvitationRead,
    UserInviteRequest,
)
from src.app.invitations.service import InvitationError, InvitationService
from src.app.team.schemas import TeamRole


# ── In-Memory Doubles ─────────────────────────────────────────────────────────


class InMemoryInvitationRepository:
    def __init__(self) -> None:
        self.invitations: dict[str, InvestorInvitationRead] = {}

    async def create(self, data, invitation_code, expires_at, invited_by):
        invitation = InvestorInvitationRead(
            id=str(uuid.uuid4()),
            invitation_code=invitation_code,
            status=InvitationStatus.PENDING,
            expires_at=expires_at,
            invited_by=invited_by,
            **{**data.model_dump(exclude={"expires_in_days"}), "email": data.email.lower()},
        )
        self.invitations[invitation.id] = invitation
        return invitation

    async def get(self, invitation_id):
        return self.invitations.get(invitation_id)

    async def get_by_code(self, code):
        for invitation in self.invitations.values():
            if invitation.invitation_code == code:
                return invitation
        return None

    async def list_invitations(self, status=None):
        return [i for i in self.invitations.values() if status is None or i.status == status]

    async def list_accepted_for_user(self, user_id):
        return [
            i
            for i in self.invitations.values()
            if i.accepted_by == user_id and i.status == InvitationStatus.ACCEPTED
        ]

    async def update_status(self, invitation_id, status, accepted_by=None, accepted_at=None):
        changes = {"status": status}
        if accepted_by is not None:
            changes.update(accepted_by=accepted_by, accepted_at=accepted_at)
        updated = self.invitations[invitation_id].model_copy(update=changes)
        self.invitations[invitation_id] = updated
        return updated

    async def record_sent(self, invitation_id, sent_at):
        current = self.invitations[invitation_id]
        updated = current.model_copy(
            update={"send_count": current.send_count + 1, "last_sent_at": sent_at}
        )
        self.invitations[invitation_id] = updated
        return updated


class InMemoryTeamInvitationRepository:
    def __init__(self) -> None:
        self.invitations: dict[str, TeamInvitationRead] = {}

    async def create(self, data, inviter_id, invitation_token, expires_at):
        invitation = TeamInvitationRead(
            id=str(uuid.uuid4()),
            inviter_id=inviter_id,
            invitation_token=invitation_token,
            status=InvitationStatus.PENDING,
            expires_at=expires_at,
            **data.model_dump(),
        )
        self.invitations[invitation.id] = invitation
        return invitation

    async def get(self, invitation_id):
        return self.invitations.get(invitation_id)

    async def get_by_token(self, token):
        for invitation in self.invitations.values():
            if invitation.invitation_token == token:
                return invitation
        return None

    async def list_invitations(self, status=None):
        return [i for i in self.invitations.values() if status is None or i.status == status]

    async def count_by_status(self):
        counts: dict[str, int] = {}
        for invitation in self.invitations.values():
            counts[invitation.status.value] = counts.get(invitation.status.value, 0) + 1
        return counts

    async def update_status(self, invitation_id, status, accepted_by=None, accepted_at=None):
        changes = {"status": status}
        if accepted_by is not None:
            changes.update(accepted_by=accepted_by, accepted_at=accepted_at)
        updated = self.invitations[invitation_id].model_copy(update=changes)
        self.invitations[invitation_id] = updated
        return updated

    async def delete(self, invitation_id):
        self.invitations.pop(invitation_id, None)


class InMemoryDeals:
    def __init__(self) -> None:
        self.deals = {
            "deal-1": DealRead(
                id="deal-1", company_id="acme", company_name="Acme Corp", title="Acme HVAC"
            ),
            "deal-2": DealRead(id="deal-2", company_id="beta", company_name="Beta Bakery"),
        }

    async def get_deal(self, deal_id):
        return self.deals.get(deal_id)


class UnconfiguredEmailClient:
    is_configured = False

    async def send_email(self, email, template="generic"):
        raise AssertionError("should not be called")


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def invitation_repo() -> InMemoryInvitationRepository:
    return InMemoryInvitationRepository()


@pytest.fixture
def team_invitation_repo() -> InMemoryTeamInvitationRepository:
    return InMemoryTeamInvitationRepository()


@pytest.fixture
def service(
    profile_repo, invitation_repo, activity_repo, email_client, team_invitation_repo, team_repo
) -> InvitationService:
    return InvitationService(
        profiles=profile_repo,
        invitations=invitation_repo,
        deals=InMemoryDeals(),
        activity=activity_repo,
        email_client=email_client,
        site_url="https://portal.example.com/",
        team_invitations=team_invitation_repo,
        team=team_repo,
    )


def _token_from(link_text: str) -> str:
    return link_text.split("token=", 1)[1].split()[0].split('"')[0]


def _query_param(text: str, name: str) -> str:
    return re.search(rf"[?&]{name}=([^&\s\"]+)", text).group(1)


# ── Custom Invites ────────────────────────────────────────────────────────────


class TestCustomInvite:
    @pytest.mark.asyncio
    async def test_new_user_gets_invite_link(
        self, service, profile_repo, email_client, activity_repo
    ) -> None:
        result = await service.send_custom_invite(
            CustomInviteRequest(email="  New.Editor@Example.com ", role="editor", first_name="Sam"),
            sender_id="admin-1",
        )
        assert result.message == "Invitation sent to new.editor@example.com"

        profile = await profile_repo.get_by_email("new.editor@example.com")
        assert profile.role == "editor"
        assert profile.first_name == "Sam"

        message, template = email_client.sent[0]
        assert template == "custom_invite"
        assert message.subject == "You're invited to Exclusive Business Brokers"
        assert "https://portal.example.com/auth/accept?type=invite&amp;token=" in message.body_html

        event = activity_repo.security_events[0]
        assert event.event_type == "user_invited"
        assert event.event_data["existing_user"] is False
        assert event.user_id == "admin-1"

    @pytest.mark.asyncio
    async def test_existing_user_gets_recovery_link(self, service, profile_repo, email_client) -> None:
        existing = profile_repo.add("viewer@example.com", role="viewer")
        result = await service.send_custom_invite(
            CustomInviteRequest(email="viewer@example.com", role="admin"), sender_id="admin-1"
        )
        assert result.message == "Access link sent to viewer@example.com"
        assert result.user_id == existing.id
        assert profile_repo.profiles[existing.id].role == "admin"

        message, _ = email_client.sent[0]
        assert message.subject == "Complete your access to Exclusive Business Brokers"
        token = _token_from(message.body_text or message.body_html)
        payload = verify_token(token, "recovery")
        assert payload["sub"] == existing.id

    @pytest.mark.asyncio
    async def test_missing_email(self, service) -> None:
        with pytest.raises(InvitationError) as exc_info:
            await service.send_custom_invite(CustomInviteRequest(email="  "), sender_id="a")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Email is required"

    @pytest.mark.asyncio
    async def test_email_not_configured(self, profile_repo, invitation_repo, activity_repo) -> None:
        service = InvitationService(
            profile_repo,
            invitation_repo,
            InMemoryDeals(),
            activity_repo,
            UnconfiguredEmailClient(),
            site_url="https://portal.example.com",
        )
        with pytest.raises(InvitationError) as exc_info:
            await service.send_custom_invite(
                CustomInviteRequest(email="a@example.com"), sender_id="a"
            )
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Email service not configured"


# ── Partner Invites ───────────────────────────────────────────────────────────


class TestPartnerInvite:
    @pytest.mark.asyncio
    async def test_partner_invite(self, service, profile_repo, email_client, activity_repo) -> None:
        result = await service.send_partner_invite(
            PartnerInviteRequest(
                email="advisor@lawfirm.com",
                partner_team_id="team-9",
                team_name="Smith & Co Legal",
                company_name="Acme Corp",
            ),
            sender_id="admin-1",
        )
        assert result.success is True
        profile = await profile_repo.get_by_email("advisor@lawfirm.com")
        assert profile.role == "partner"
        assert profile.partner_team_id == "team-9"

        message, template = email_client.sent[0]
        assert template == "partner_invite"
        assert message.subject == "You've been invited to join Smith & Co Legal on EBB Data Room"
        assert activity_repo.security_events[0].event_type == "partner_invite_sent"

    @pytest.mark.asyncio
    async def test_missing_fields(self, service) -> None:
        with pytest.raises(InvitationError) as exc_info:
            await service.send_partner_invite(
                PartnerInviteRequest(email="advisor@lawfirm.com"), sender_id="a"
            )
        assert exc_info.value.message == "Missing required fields"


# ── Investor Invitations ──────────────────────────────────────────────────────


class TestInvestorInvitations:
    @pytest.mark.asyncio
    async def test_create_sends_registration_link(self, service, email_client) -> None:
        invitation = await service.create_investor_invitation(
            InvestorInvitationCreate(
                email="Investor@Fund.com", access_type=AccessType.SINGLE, deal_id="deal-1"
            ),
            invited_by="admin-1",
        )
        assert invitation.email == "investor@fund.com"
        assert invitation.status == InvitationStatus.PENDING
        assert invitation.send_count == 1
        remaining = invitation.expires_at - datetime.now(timezone.utc)
        assert timedelta(days=29, hours=23) < remaining <= timedelta(days=30)

        message, template = email_client.sent[0]
        assert template == "investor_invitation"
        assert message.subject == "Investment Opportunity: Acme HVAC"
        assert f"register?code={invitation.invitation_code}" in message.body_html

    @pytest.mark.asyncio
    async def test_custom_expiry(self, service) -> None:
        invitation = await service.create_investor_invitation(
            InvestorInvitationCreate(
                email="a@fund.com", access_type=AccessType.PORTFOLIO, expires_in_days=5
            ),
            invited_by="admin-1",
        )
        assert invitation.expires_at - datetime.now(timezone.utc) <= timedelta(days=5)

    @pytest.mark.asyncio
    async def test_single_requires_deal(self, service) -> None:
        with pytest.raises(InvitationError):
            await service.create_investor_invitation(
                InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.SINGLE),
                invited_by="admin-1",
            )

    @pytest.mark.asyncio
    async def test_multiple_requires_deals(self, service) -> None:
        with pytest.raises(InvitationError):
            await service.create_investor_invitation(
                InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.MULTIPLE),
                invited_by="admin-1",
            )

    @pytest.mark.asyncio
    async def test_resend(self, service, email_client) -> None:
        invitation = await service.create_investor_invitation(
            InvestorInvitationCreate(
                email="a@fund.com", access_type=AccessType.MULTIPLE, deal_ids=["deal-1", "deal-2"]
            ),
            invited_by="admin-1",
        )
        resent = await service.send_investor_invitation(invitation.id)
        assert resent.send_count == 2
        assert email_client.sent[1][0].subject == "[Resent] Investment Opportunities"

    @pytest.mark.asyncio
    async def test_cannot_resend_revoked(self, service) -> None:
        invitation = await service.create_investor_invitation(
            InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.PORTFOLIO),
            invited_by="admin-1",
        )
        await service.revoke_investor_invitation(invitation.id, "admin-1")
        with pytest.raises(InvitationError) as exc_info:
            await service.send_investor_invitation(invitation.id)
        assert exc_info.value.message == "Invitation is revoked"

    @pytest.mark.asyncio
    async def test_accept_and_repeat(self, service, activity_repo) -> None:
        invitation = await service.create_investor_invitation(
            InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.PORTFOLIO),
            invited_by="admin-1",
        )
        accepted = await service.accept_investor_invitation(invitation.invitation_code, "user-7")
        assert accepted.status == InvitationStatus.ACCEPTED
        assert accepted.accepted_by == "user-7"
        assert activity_repo.security_events[-1].event_type == "investor_invitation_accepted"

        again = await service.accept_investor_invitation(invitation.invitation_code, "user-7")
        assert again.id == invitation.id

        with pytest.raises(InvitationError) as exc_info:
            await service.accept_investor_invitation(invitation.invitation_code, "user-8")
        assert exc_info.value.message == "Invitation has already been used"

    @pytest.mark.asyncio
    async def test_accept_unknown_code(self, service) -> None:
        with pytest.raises(InvitationError) as exc_info:
            await service.accept_investor_invitation("nope", "user-1")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_accept_expired_marks_expired(self, service, invitation_repo) -> None:
        invitation = await invitation_repo.create(
            InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.PORTFOLIO),
            invitation_code="old-code",
            expires_at=datetime.now(timezone.utc) - timedelta(days=1),
            invited_by="admin-1",
        )
        with pytest.raises(InvitationError) as exc_info:
            await service.accept_investor_invitation("old-code", "user-1")
        assert exc_info.value.message == "Invitation has expired"
        assert invitation_repo.invitations[invitation.id].status == InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, service) -> None:
        first = await service.create_investor_invitation(
            InvestorInvitationCreate(email="a@fund.com", access_type=AccessType.PORTFOLIO),
            invited_by="admin-1",
        )
        await service.create_investor_invitation(
            InvestorInvitationCreate(email="b@fund.com", access_type=AccessType.PORTFOLIO),
            invited_by="admin-1",
        )
        await service.revoke_investor_invitation(first.id, "admin-1")
        pending = await service.list_investor_invitations(InvitationStatus.PENDING)
        assert [i.email for i in pending] == ["b@fund.com"]
        assert len(await service.list_investor_invitations()) == 2


class TestCoversDeal:
    def _invitation(self, **fields) -> InvestorInvitationRead:
        defaults = dict(
            id="inv-1",
            email="a@fund.com",
            invitation_code="code",
            status=InvitationStatus.ACCEPTED,
            expires_at=datetime.now(timezone.utc),
        )
        return InvestorInvitationRead(**{**defaults, **fields})

    def test_single(self) -> None:
        invitation = self._invitation(access_type=AccessType.SINGLE, deal_id="deal-1")
        assert invitation.covers_deal("deal-1")
        assert not invitation.covers_deal("deal-2")

    def test_multiple(self) -> None:
        invitation = self._invitation(access_type=AccessType.MULTIPLE, deal_ids=["deal-2"])
        assert invitation.covers_deal("deal-2")
        assert not invitation.covers_deal("deal-1")

    def test_portfolio(self) -> None:
        assert self._invitation(access_type=AccessType.PORTFOLIO).covers_deal("any")
        assert self._invitation(
            access_type=AccessType.CUSTOM, portfolio_access=True
        ).covers_deal("any")


# ── New Users ─────────────────────────────────────────────────────────────────


class TestInviteUser:
    @pytest.mark.asyncio
    async def test_new_user(self, service, profile_repo, email_client, activity_repo) -> None:
        result = await service.invite_user(
            UserInviteRequest(email=" Analyst@EBB.com ", role="editor"), sender_id="admin-1"
        )
        assert result.message == "User invitation sent successfully"
        profile = await profile_repo.get_by_email("analyst@ebb.com")
        assert profile.role == "editor"
        assert result.user_id == profile.id

        message, template = email_client.sent[0]
        assert template == "user_invite"
        assert "/auth/callback?type=invite" in message.body_text
        assert verify_token(_token_from(message.body_text), "invite")["sub"] == profile.id
        assert activity_repo.security_events[0].event_type == "user_invited"

    @pytest.mark.asyncio
    async def test_existing_email_rejected(self, service, profile_repo, email_client) -> None:
        profile_repo.add("viewer@example.com")
        with pytest.raises(InvitationError) as exc_info:
            await service.invite_user(UserInviteRequest(email="Viewer@example.com"), "admin-1")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "User with this email already exists"
        assert email_client.sent == []

    @pytest.mark.asyncio
    async def test_role_must_be_platform_role(self, service) -> None:
        with pytest.raises(InvitationError) as exc_info:
            await service.invite_user(
                UserInviteRequest(email="a@example.com", role="super_admin"), "admin-1"
            )
        assert exc_info.value.status_code == 400


# ── Team Invitations ──────────────────────────────────────────────────────────


class TestTeamInvitations:
    @pytest.mark.asyncio
    async def test_new_user_gets_invite_link(
        self,
        service,
        profile_repo,
        team_invitation_repo,
        email_client,
        activity_repo,
        admin_profile,
    ) -> None:
        result = await service.send_team_invitation(
            TeamInvitationCreate(
                invitee_email="Jordan@RidgeAdvisory.com",
                invitee_name="Jordan Lee",
                role="analyst",
                personal_message="  Looking forward to it  ",
                deal_id="deal-1",
            ),
            admin_profile,
        )
        assert result.is_existing_user is False
        invitation = team_invitation_repo.invitations[result.invitation_id]
        assert invitation.invitee_email == "jordan@ridgeadvisory.com"
        assert invitation.personal_message == "Looking forward to it"
        assert invitation.status == InvitationStatus.PENDING
        remaining = invitation.expires_at - datetime.now(timezone.utc)
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

        profile = await profile_repo.get_by_email("jordan@ridgeadvisory.com")
        assert (profile.role, profile.first_name, profile.last_name) == ("viewer", "Jordan", "Lee")

        message, template = email_client.sent[0]
        assert template == "team_invitation"
        assert message.subject == "Avery Admin invited you to collaborate on Acme HVAC"
        assert "Create Your Account" in message.body_html
        assert "Analyst" in message.body_html
        assert _query_param(message.body_text, "invitation") == invitation.invitation_token
        payload = verify_token(_query_param(message.body_text, "token"), "invite")
        assert payload["sub"] == profile.id

        event = activity_repo.security_events[0]
        assert event.event_type == "team_invitation_sent"
        assert event.event_data["is_existing_user"] is False
        assert event.event_data["deal_id"] == "deal-1"

    @pytest.mark.asyncio
    async def test_existing_user_gets_magic_link(
        self, service, profile_repo, email_client, admin_profile
    ) -> None:
        existing = profile_repo.add("viewer@example.com", role="viewer")
        result = await service.send_team_invitation(
            TeamInvitationCreate(invitee_email="viewer@example.com", role="editor"), admin_profile
        )
        assert result.is_existing_user is True
        message, _ = email_client.sent[0]
        assert message.subject == "Avery Admin invited you to collaborate"
        assert "Accept Invitation" in message.body_html
        payload = verify_token(_query_param(message.body_text, "token"), "magiclink")
        assert payload["sub"] == existing.id
        assert profile_repo.profiles[existing.id].role == "viewer"

    @pytest.mark.asyncio
    async def test_rejects_bad_requests(self, service, admin_profile) -> None:
        with pytest.raises(InvitationError) as missing:
            await service.send_team_invitation(TeamInvitationCreate(role="analyst"), admin_profile)
        assert missing.value.message == "Email is required"

        with pytest.raises(InvitationError) as bad_role:
            await service.send_team_invitation(
                TeamInvitationCreate(invitee_email="a@example.com", role="owner"), admin_profile
            )
        assert bad_role.value.status_code == 400

        with pytest.raises(InvitationError) as no_deal:
            await service.send_team_invitation(
                TeamInvitationCreate(invitee_email="a@example.com", role="analyst", deal_id="nope"),
                admin_profile,
            )
        assert no_deal.value.status_code == 404

    @pytest.mark.asyncio
    async def test_accept_seats_deal_team_member(
        self, service, profile_repo, team_repo, activity_repo, admin_profile
    ) -> None:
        result = await service.send_team_invitation(
            TeamInvitationCreate(
                invitee_email="advisor@ridgeadvisory.com",
                role="advisor",
                deal_id="deal-1",
                permissions={"can_delete_documents": True},
            ),
            admin_profile,
        )
        invitee = await profile_repo.get_by_email("advisor@ridgeadvisory.com")
        token = (await service.list_team_invitations())[0].invitation_token

        accepted = await service.accept_team_invitation(token, invitee)
        assert accepted.id == result.invitation_id
        assert accepted.status == InvitationStatus.ACCEPTED
        assert accepted.accepted_by == invitee.id

        member = await team_repo.get_member("deal-1", invitee.id)
        assert member.role == TeamRole.ADVISOR
        assert member.can_upload_documents is True
        assert member.can_delete_documents is True
        assert member.can_approve_documents is False
        assert member.added_by == admin_profile.id
        assert activity_repo.security_events[-1].event_type == "team_invitation_accepted"

        again = await service.accept_team_invitation(token, invitee)
        assert again.id == accepted.id
        assert len(await team_repo.list_members("deal-1")) == 1

    @pytest.mark.asyncio
    async def test_accept_platform_role_updates_profile(
        self, service, profile_repo, admin_profile
    ) -> None:
        viewer = profile_repo.add("viewer@example.com", role="viewer")
        await service.send_team_invitation(
            TeamInvitationCreate(invitee_email="viewer@example.com", role="editor"), admin_profile
        )
        token = (await service.list_team_invitations())[0].invitation_token
        await service.accept_team_invitation(token, viewer)
        assert profile_repo.profiles[viewer.id].role == "editor"

    @pytest.mark.asyncio
    async def test_accept_checks_invitee(
        self, service, profile_repo, team_invitation_repo, admin_profile, investor_profile
    ) -> None:
        await service.send_team_invitation(
            TeamInvitationCreate(invitee_email="someone@else.com", role="viewer"), admin_profile
        )
        invitation = (await service.list_team_invitations())[0]

        with pytest.raises(InvitationError) as wrong_user:
            await service.accept_team_invitation(invitation.invitation_token, investor_profile)
        assert wrong_user.value.status_code == 403

        with pytest.raises(InvitationError) as unknown:
            await service.accept_team_invitation("nope", investor_profile)
        assert unknown.value.status_code == 404

        await service.revoke_team_invitation(invitation.id, admin_profile.id)
        invitee = await profile_repo.get_by_email("someone@else.com")
        with pytest.raises(InvitationError) as revoked:
            await service.accept_team_invitation(invitation.invitation_token, invitee)
        assert revoked.value.message == "Invitation has been revoked"

    @pytest.mark.asyncio
    async def test_accept_expired_marks_expired(
        self, service, team_invitation_repo, investor_profile
    ) -> None:
        invitation = await team_invitation_repo.create(
            TeamInvitationCreate(invitee_email=investor_profile.email, role="viewer"),
            inviter_id="admin-1",
            invitation_token="old-token",
            expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        with pytest.raises(InvitationError) as exc_info:
            await service.accept_team_invitation("old-token", investor_profile)
        assert exc_info.value.message == "Invitation has expired"
        assert team_invitation_repo.invitations[invitation.id].status == InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_resend_replaces_invitation(
        self, service, team_invitation_repo, email_client, admin_profile
    ) -> None:
        first = await service.send_team_invitation(
            TeamInvitationCreate(invitee_email="a@example.com", role="seller", deal_id="deal-1"),
            admin_profile,
        )
        old_token = team_invitation_repo.invitations[first.invitation_id].invitation_token
        second = await service.resend_team_invitation(first.invitation_id, admin_profile)

        assert first.invitation_id not in team_invitation_repo.invitations
        replacement = team_invitation_repo.invitations[second.invitation_id]
        assert replacement.role == "seller"
        assert replacement.invitation_token != old_token
        assert len(email_client.sent) == 2

    @pytest.mark.asyncio
    async def test_stats(self, service, admin_profile) -> None:
        for email in ("a@example.com", "b@example.com", "c@example.com"):
            await service.send_team_invitation(
                TeamInvitationCreate(invitee_email=email, role="viewer"), admin_profile
            )
        first = (await service.list_team_invitations())[0]
        await service.revoke_team_invitation(first.id, admin_profile.id)

        stats = await service.team_invitation_stats()
        assert (stats.total, stats.pending, stats.revoked, stats.accepted) == (3, 2, 1, 0)
        pending = await service.list_team_invitations(InvitationStatus.PENDING)
        assert len(pending) == 2


# ── API ───────────────────────────────────────────────────────────────────────


def _make_mock_app(service, user) -> FastAPI:
    app = FastAPI()
    app.include_router(invitations_api.router, prefix="/v1")
    app.state.invitation_service = service
    app.dependency_overrides[get_current_user] = lambda: user
    return app


@pytest_asyncio.fixture
async def client(service, admin_profile):
    app = _make_mock_app(service, admin_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_create_investor_invitation_endpoint(client):
    """POST /v1/invitations/investor -> 201"""
    response = await client.post(
        "/v1/invitations/investor",
        json={"email": "lp@fund.com", "access_type": "single", "deal_id": "deal-2"},
    )
    assert response.status_code == 201, response.text
    assert response.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_invitation_error_maps_to_status(client):
    """POST /v1/invitations/custom without email -> 400 with message"""
    response = await client.post("/v1/invitations/custom", json={"email": ""})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email is required"


@pytest.mark.asyncio
async def test_revoke_unknown_invitation(client):
    """POST /v1/invitations/investor/{id}/revoke -> 404"""
    response = await client.post(f"/v1/invitations/investor/{uuid.uuid4()}/revoke")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_non_admin_cannot_invite(service, investor_profile):
    """POST /v1/invitations/custom as investor -> 403"""
    app = _make_mock_app(service, investor_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/v1/invitations/custom", json={"email": "x@example.com"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_investor_can_accept(service, investor_profile):
    """POST /v1/invitations/accept as any signed-in user -> 200"""
    invitation = await service.create_investor_invitation(
        InvestorInvitationCreate(email="lp@fund.com", access_type=AccessType.PORTFOLIO),
        invited_by="admin-1",
    )
    app = _make_mock_app(service, investor_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/v1/invitations/accept", json={"code": invitation.invitation_code}
        )
    assert response.status_code == 200
    assert response.json()["accepted_by"] == investor_profile.id


@pytest.mark.asyncio
async def test_team_invitation_endpoints(client):
    """POST /v1/invitations/team -> 200, then GET /v1/invitations/team/stats"""
    response = await client.post(
        "/v1/invitations/team",
        json={"invitee_email": "analyst@ridgeadvisory.com", "role": "analyst", "deal_id": "deal-1"},
    )
    assert response.status_code == 200, response.text
    assert response.json()["is_existing_user"] is False

    stats = await client.get("/v1/invitations/team/stats")
    assert stats.json()["pending"] == 1

    listed = await client.get("/v1/invitations/team", params={"status": "pending"})
    assert [i["invitee_email"] for i in listed.json()] == ["analyst@ridgeadvisory.com"]


@pytest.mark.asyncio
async def test_non_staff_cannot_send_team_invitation(service, investor_profile):
    """POST /v1/invitations/team as investor -> 403"""
    app = _make_mock_app(service, investor_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/v1/invitations/team", json={"invitee_email": "x@example.com", "role": "viewer"}
        )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invitee_accepts_team_invitation(
    service, team_invitation_repo, admin_profile, investor_profile
):
    """POST /v1/invitations/team/accept as the invitee -> 200"""
    await service.send_team_invitation(
        TeamInvitationCreate(invitee_email=investor_profile.email, role="viewer"), admin_profile
    )
    token = next(iter(team_invitation_repo.invitations.values())).invitation_token
    app = _make_mock_app(service, investor_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/v1/invitations/team/accept", json={"token": token})
        unknown = await ac.post("/v1/invitations/team/accept", json={"token": "nope"})
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert unknown.status_code == 404
