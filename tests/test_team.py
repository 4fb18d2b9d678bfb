"""Tests for deal teams, partner grants, and access resolution.

Covers role default permissions and overrides, TeamService membership
changes with their activity entries, and AccessResolver decisions for
staff, partners, team members, and invited investors (NDA gate included).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.app.api.deps import get_current_user
from src.app.api.v1 import team as team_api
from src.app.data_room.schemas import DocumentRead, FolderRead
from src.app.deals.schemas import DealRead
from src.app.invitations.schemas import AccessType, InvestorInvitationRead, InvitationStatus
from src.app.profiles.schemas import ProfileRead
from src.app.team.access import ADMIN_PERMISSIONS, DEFAULT_PERMISSIONS, AccessResolver
from src.app.team.repository import DuplicateTeamMemberError
from src.app.team.roles import DEFAULT_PERMISSIONS as ROLE_DEFAULTS
from src.app.team.roles import resolve_permissions
from src.app.team.schemas import (
    PartnerAccessCreate,
    PermissionOverrides,
    TeamMemberCreate,
    TeamMemberUpdate,
    TeamRole,
)
from src.app.team.service import TeamService

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


# ── In-Memory Doubles ─────────────────────────────────────────────────────────


class InMemoryDeals:
    def __init__(self) -> None:
        self.deals = {
            "deal-1": DealRead(id="deal-1", company_id="acme", company_name="Acme Corp"),
            "deal-open": DealRead(
                id="deal-open", company_id="beta", company_name="Beta", requires_nda=False
            ),
        }

    async def get_deal(self, deal_id):
        return self.deals.get(deal_id)


# ── Role Defaults ─────────────────────────────────────────────────────────────


class TestRolePermissions:
    def test_deal_lead_has_everything(self) -> None:
        perms = ROLE_DEFAULTS[TeamRole.DEAL_LEAD]
        assert all(
            getattr(perms, flag)
            for flag in (
                "can_view_all_folders",
                "can_upload_documents",
                "can_delete_documents",
                "can_create_requests",
                "can_edit_requests",
                "can_approve_documents",
            )
        )

    def test_analyst_cannot_delete_or_approve(self) -> None:
        perms = ROLE_DEFAULTS[TeamRole.ANALYST]
        assert perms.can_upload_documents is True
        assert perms.can_delete_documents is False
        assert perms.can_approve_documents is False

    def test_investor_has_nothing(self) -> None:
        perms = ROLE_DEFAULTS[TeamRole.INVESTOR]
        assert not perms.can_view_all_folders
        assert not perms.can_upload_documents

    def test_every_role_has_defaults(self) -> None:
        assert set(ROLE_DEFAULTS) == set(TeamRole)

    def test_overrides_apply_on_top(self) -> None:
        perms = resolve_permissions(
            TeamRole.INVESTOR,
            PermissionOverrides(can_view_all_folders=True, restricted_folders=["f-9"]),
        )
        assert perms.can_view_all_folders is True
        assert perms.can_upload_documents is False
        assert perms.restricted_folders == ["f-9"]

    def test_unset_overrides_keep_defaults(self) -> None:
        perms = resolve_permissions(TeamRole.SELLER, PermissionOverrides())
        assert perms == ROLE_DEFAULTS[TeamRole.SELLER]


# ── TeamService ───────────────────────────────────────────────────────────────


@pytest.fixture
def team_service(team_repo, profile_repo, activity_repo) -> TeamService:
    return TeamService(team_repo, profile_repo, activity_repo)


class TestTeamService:
    @pytest.mark.asyncio
    async def test_add_member_enriches_and_logs(
        self, team_service, profile_repo, activity_repo
    ) -> None:
        profile = profile_repo.add("analyst@ebb.com", first_name="Ana", last_name="Lyst")
        member = await team_service.add_member(
            "deal-1", TeamMemberCreate(user_id=profile.id, role=TeamRole.ANALYST), added_by="a-1"
        )
        assert member.member_name == "Ana Lyst"
        assert member.member_email == "analyst@ebb.com"
        assert member.can_delete_documents is False

        (entry,) = activity_repo.activities
        assert entry.activity_type.value == "team_member_added"
        assert entry.entity_type == "team_member"
        assert entry.metadata["role"] == "analyst"
        assert entry.metadata["member_name"] == "Ana Lyst"

    @pytest.mark.asyncio
    async def test_duplicate_member(self, team_service) -> None:
        data = TeamMemberCreate(user_id=str(uuid.uuid4()), role=TeamRole.ADVISOR)
        await team_service.add_member("deal-1", data)
        with pytest.raises(DuplicateTeamMemberError):
            await team_service.add_member("deal-1", data)

    @pytest.mark.asyncio
    async def test_role_change_resets_flags(self, team_service, activity_repo) -> None:
        member = await team_service.add_member(
            "deal-1",
            TeamMemberCreate(
                user_id=str(uuid.uuid4()),
                role=TeamRole.INVESTOR,
                permissions=PermissionOverrides(can_upload_documents=True),
            ),
        )
        assert member.can_upload_documents is True

        updated = await team_service.update_member(
            "deal-1", member.id, TeamMemberUpdate(role=TeamRole.EXTERNAL_REVIEWER)
        )
        assert updated.role == TeamRole.EXTERNAL_REVIEWER
        assert updated.can_upload_documents is False
        assert updated.can_approve_documents is True
        assert activity_repo.types()[-1] == "permission_changed"

    @pytest.mark.asyncio
    async def test_flag_change_keeps_role(self, team_service) -> None:
        member = await team_service.add_member(
            "deal-1", TeamMemberCreate(user_id=str(uuid.uuid4()), role=TeamRole.ANALYST)
        )
        updated = await team_service.update_member(
            "deal-1",
            member.id,
            TeamMemberUpdate(permissions=PermissionOverrides(can_approve_documents=True)),
        )
        assert updated.role == TeamRole.ANALYST
        assert updated.can_approve_documents is True
        assert updated.can_upload_documents is True

    @pytest.mark.asyncio
    async def test_member_of_other_deal_not_found(self, team_service) -> None:
        member = await team_service.add_member(
            "deal-1", TeamMemberCreate(user_id=str(uuid.uuid4()), role=TeamRole.SELLER)
        )
        with pytest.raises(ValueError):
            await team_service.update_member("deal-2", member.id, TeamMemberUpdate())
        with pytest.raises(ValueError):
            await team_service.remove_member("deal-2", member.id)

    @pytest.mark.asyncio
    async def test_remove_member(self, team_service, team_repo, activity_repo) -> None:
        member = await team_service.add_member(
            "deal-1", TeamMemberCreate(user_id=str(uuid.uuid4()), role=TeamRole.SELLER)
        )
        await team_service.remove_member("deal-1", member.id)
        assert await team_service.list_members("deal-1") == []
        assert activity_repo.types() == ["team_member_added", "team_member_removed"]


# ── AccessResolver ────────────────────────────────────────────────────────────


@pytest.fixture
def resolver(team_repo, invitations, nda) -> AccessResolver:
    return AccessResolver(team_repo, invitations, nda, InMemoryDeals())


def _profile(role: str = "investor", **fields) -> ProfileRead:
    return ProfileRead(id=str(uuid.uuid4()), email=f"{role}@example.com", role=role, **fields)


class TestAccessResolver:
    @pytest.mark.asyncio
    async def test_staff_see_everything(self, resolver) -> None:
        for role in ("super_admin", "admin", "editor"):
            profile = _profile(role)
            assert (await resolver.can_access_deal(profile, "deal-1")).reason == "admin"
            assert await resolver.partner_permissions(profile, "deal-1") == ADMIN_PERMISSIONS

    @pytest.mark.asyncio
    async def test_stranger_is_denied(self, resolver) -> None:
        decision = await resolver.can_access_deal(_profile(), "deal-1")
        assert decision.allowed is False
        assert decision.reason == "no_access"
        assert await resolver.partner_permissions(_profile(), "deal-1") == DEFAULT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_partner_grant(self, resolver, team_repo) -> None:
        await team_repo.grant_partner_access(
            "deal-1",
            PartnerAccessCreate(
                partner_team_id="team-1", partner_role="lead", can_upload_documents=True
            ),
        )
        partner = _profile("partner", partner_team_id="team-1")

        permissions = await resolver.partner_permissions(partner, "deal-1", now=NOW)
        assert permissions.is_partner is True
        assert permissions.can_upload_documents is True
        assert permissions.partner_role == "lead"
        assert (await resolver.can_access_deal(partner, "deal-1")).reason == "partner"
        assert (await resolver.can_access_deal(partner, "deal-open")).allowed is False

    @pytest.mark.asyncio
    async def test_lapsed_partner_grant(self, resolver, team_repo) -> None:
        await team_repo.grant_partner_access(
            "deal-1",
            PartnerAccessCreate(partner_team_id="team-1", access_until=NOW - timedelta(days=1)),
        )
        partner = _profile("partner", partner_team_id="team-1")
        permissions = await resolver.partner_permissions(partner, "deal-1", now=NOW)
        assert permissions.is_partner is False

    @pytest.mark.asyncio
    async def test_team_member_and_restricted_folder(self, resolver, team_repo) -> None:
        profile = _profile("viewer")
        await team_repo.add_member(
            "deal-1",
            profile.id,
            TeamRole.ADVISOR,
            resolve_permissions(
                TeamRole.ADVISOR, PermissionOverrides(restricted_folders=["secret"])
            ),
        )
        assert (await resolver.can_access_deal(profile, "deal-1")).reason == "team_member"
        assert (await resolver.check_document_access(profile, "deal-1", "open")).allowed
        denied = await resolver.check_document_access(profile, "deal-1", "secret")
        assert denied.allowed is False
        assert denied.reason == "restricted_folder"

    @pytest.mark.asyncio
    async def test_investor_needs_nda_for_documents(self, resolver, invitations, nda) -> None:
        profile = _profile()
        invitations.accepted.append(
            InvestorInvitationRead(
                id="inv-1",
                email=profile.email,
                access_type=AccessType.SINGLE,
                deal_id="deal-1",
                invitation_code="code",
                status=InvitationStatus.ACCEPTED,
                expires_at=NOW,
                accepted_by=profile.id,
            )
        )
        assert (await resolver.can_access_deal(profile, "deal-1")).reason == "investor_invitation"

        gated = await resolver.check_document_access(profile, "deal-1")
        assert gated.allowed is False
        assert gated.reason == "nda_required"

        nda.signed.add((profile.id, "acme"))
        assert (await resolver.check_document_access(profile, "deal-1")).allowed is True

    @pytest.mark.asyncio
    async def test_partner_grant_without_data_room(self, resolver, team_repo) -> None:
        """A grant with can_view_data_room=False opens neither the deal nor its documents."""
        await team_repo.grant_partner_access(
            "deal-open",
            PartnerAccessCreate(partner_team_id="team-1", can_view_data_room=False),
        )
        partner = _profile("partner", partner_team_id="team-1")

        permissions = await resolver.partner_permissions(partner, "deal-open", now=NOW)
        assert permissions.is_partner is True
        assert permissions.can_download is False

        decision = await resolver.can_access_deal(partner, "deal-open")
        assert decision.allowed is False
        assert decision.reason == "data_room_not_shared"
        assert (await resolver.check_document_access(partner, "deal-open")).allowed is False

    @pytest.mark.asyncio
    async def test_loi_folder_needs_view_all_folders(self, team_repo, invitations, nda) -> None:
        loi = FolderRead(id="loi", deal_id="deal-1", name="LOI", is_loi_restricted=True)

        class Folders:
            async def get_folder(self, folder_id):
                return loi if folder_id == "loi" else None

        resolver = AccessResolver(team_repo, invitations, nda, InMemoryDeals(), Folders())
        reviewer, seller = _profile("viewer"), _profile("viewer")
        await team_repo.add_member(
            "deal-1",
            reviewer.id,
            TeamRole.EXTERNAL_REVIEWER,
            resolve_permissions(TeamRole.EXTERNAL_REVIEWER),
        )
        await team_repo.add_member(
            "deal-1", seller.id, TeamRole.SELLER, resolve_permissions(TeamRole.SELLER)
        )

        hidden = await resolver.check_document_access(reviewer, "deal-1", "loi")
        assert hidden.reason == "restricted_folder"
        assert (await resolver.check_document_access(reviewer, "deal-1", "other")).allowed
        assert (await resolver.check_document_access(seller, "deal-1", "loi")).allowed

    @pytest.mark.asyncio
    async def test_filter_documents_drops_restricted_folders(self, resolver, team_repo) -> None:
        profile = _profile("viewer")
        await team_repo.add_member(
            "deal-1",
            profile.id,
            TeamRole.ADVISOR,
            resolve_permissions(TeamRole.ADVISOR, PermissionOverrides(restricted_folders=["hr"])),
        )
        docs = [
            DocumentRead(
                id=f"d{i}", deal_id="deal-1", folder_id=folder, file_name="f", file_path="p"
            )
            for i, folder in enumerate(["hr", "fin", None, "hr"])
        ]
        visible = await resolver.filter_documents(profile, "deal-1", docs)
        assert [d.id for d in visible] == ["d1", "d2"]

    @pytest.mark.asyncio
    async def test_team_flags_decide_actions(self, resolver, team_repo) -> None:
        seller, investor = _profile("viewer"), _profile("viewer")
        await team_repo.add_member(
            "deal-1", seller.id, TeamRole.SELLER, resolve_permissions(TeamRole.SELLER)
        )
        await team_repo.add_member(
            "deal-1", investor.id, TeamRole.INVESTOR, resolve_permissions(TeamRole.INVESTOR)
        )

        assert await resolver.has_permission(seller, "deal-1", "upload_documents") is True
        assert await resolver.has_permission(seller, "deal-1", "delete_documents") is False
        assert await resolver.has_permission(seller, "deal-1", "edit_requests") is False
        for action in ("upload_documents", "create_requests", "edit_requests"):
            assert await resolver.has_permission(investor, "deal-1", action) is False
        assert await resolver.has_permission(_profile("admin"), "deal-1", "delete_documents")

    @pytest.mark.asyncio
    async def test_partner_flags_decide_actions(self, resolver, team_repo) -> None:
        await team_repo.grant_partner_access(
            "deal-1",
            PartnerAccessCreate(partner_team_id="team-1", can_answer_dd_questions=True),
        )
        partner = _profile("partner", partner_team_id="team-1")
        assert await resolver.has_permission(partner, "deal-1", "edit_requests") is True
        assert await resolver.has_permission(partner, "deal-1", "upload_documents") is False
        assert await resolver.has_permission(partner, "deal-1", "create_requests") is False


# ── API ───────────────────────────────────────────────────────────────────────


def _make_mock_app(team_service, team_repo, resolver, user) -> FastAPI:
    app = FastAPI()
    app.include_router(team_api.router, prefix="/v1")
    app.state.team_service = team_service
    app.state.team_repository = team_repo
    app.state.access_resolver = resolver
    app.dependency_overrides[get_current_user] = lambda: user
    return app


@pytest_asyncio.fixture
async def client(team_service, team_repo, resolver, admin_profile):
    app = _make_mock_app(team_service, team_repo, resolver, admin_profile)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_add_member_then_duplicate(client, profile_repo):
    """POST /v1/deals/{id}/team -> 201, again -> 409"""
    profile = profile_repo.add("advisor@ebb.com", first_name="Ada")
    body = {"user_id": profile.id, "role": "advisor"}

    created = await client.post("/v1/deals/deal-1/team", json=body)
    assert created.status_code == 201, created.text
    assert created.json()["member_name"] == "Ada"

    again = await client.post("/v1/deals/deal-1/team", json=body)
    assert again.status_code == 409

    listed = await client.get("/v1/deals/deal-1/team")
    assert [m["user_id"] for m in listed.json()] == [profile.id]


@pytest.mark.asyncio
async def test_update_unknown_member_is_404(client):
    """PATCH /v1/deals/{id}/team/missing -> 404"""
    response = await client.patch("/v1/deals/deal-1/team/missing", json={"role": "analyst"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_partner_access_lifecycle(client):
    """grant -> list -> revoke -> revoke again 404"""
    granted = await client.post(
        "/v1/deals/deal-1/partner-access",
        json={"partner_team_id": "team-1", "can_upload_documents": True},
    )
    assert granted.status_code == 201
    access_id = granted.json()["id"]

    listed = await client.get("/v1/deals/deal-1/partner-access")
    assert [g["id"] for g in listed.json()] == [access_id]

    assert (await client.delete(f"/v1/deals/deal-1/partner-access/{access_id}")).status_code == 204
    assert (await client.delete(f"/v1/deals/deal-1/partner-access/{access_id}")).status_code == 404


@pytest.mark.asyncio
async def test_partner_sees_own_permissions(team_service, team_repo, resolver):
    """GET /v1/deals/{id}/permissions as a partner; adding members is refused"""
    await team_repo.grant_partner_access(
        "deal-1", PartnerAccessCreate(partner_team_id="team-1", can_upload_documents=True)
    )
    partner = _profile("partner", partner_team_id="team-1")
    app = _make_mock_app(team_service, team_repo, resolver, partner)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        perms = await ac.get("/v1/deals/deal-1/permissions")
        denied = await ac.post(
            "/v1/deals/deal-1/team", json={"user_id": partner.id, "role": "analyst"}
        )
    assert perms.status_code == 200
    assert perms.json()["is_partner"] is True
    assert perms.json()["can_upload_documents"] is True
    assert denied.status_code == 403
