"""Shared fixtures and in-memory doubles for the test suite.

Nothing here touches PostgreSQL or Redis: repositories are replaced by
dict-backed doubles exposing the same async methods, and the email client
records messages instead of calling Resend.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import pytest

from src.app.activity.schemas import (
    DealActivityCreate,
    DealActivityRead,
    SecurityEventCreate,
    SecurityEventRead,
)
from src.app.invitations.schemas import InvestorInvitationRead
from src.app.profiles.schemas import ProfileRead, ProfileUpsert
from src.app.services.email import EmailMessage, SentEmailResult
from src.app.team.schemas import PartnerAccessRead, TeamMemberRead


# ── In-Memory Doubles ─────────────────────────────────────────────────────────


class InMemoryActivityRepository:
    """Records deal activities and security events."""

    def __init__(self) -> None:
        self.activities: list[DealActivityRead] = []
        self.security_events: list[SecurityEventCreate] = []

    async def log_deal_activity(self, data: DealActivityCreate) -> DealActivityRead:
        activity = DealActivityRead(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self.activities.append(activity)
        return activity

    async def list_deal_activities(self, deal_id: str, limit: int = 50) -> list[DealActivityRead]:
        matches = [a for a in self.activities if a.deal_id == deal_id]
        return list(reversed(matches))[:limit]

    async def log_security_event(self, data: SecurityEventCreate) -> str:
        self.security_events.append(data)
        return str(uuid.uuid4())

    async def list_security_events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[SecurityEventRead]:
        events = [
            SecurityEventRead(id=str(i), **e.model_dump())
            for i, e in enumerate(self.security_events)
            if event_type is None or e.event_type == event_type
        ]
        return list(reversed(events))[:limit]

    def types(self) -> list[str]:
        return [a.activity_type.value for a in self.activities]


class InMemoryProfileRepository:
    """Profiles keyed by id, with optional bcrypt hashes."""

    def __init__(self) -> None:
        self.profiles: dict[str, ProfileRead] = {}
        self.passwords: dict[str, str] = {}
        self.redeemed_links: set[str] = set()

    def add(self, email: str, role: str = "viewer", **fields: Any) -> ProfileRead:
        profile = ProfileRead(id=str(uuid.uuid4()), email=email, role=role, **fields)
        self.profiles[profile.id] = profile
        return profile

    async def get(self, profile_id: str) -> ProfileRead | None:
        return self.profiles.get(profile_id)

    async def get_by_email(self, email: str) -> ProfileRead | None:
        for profile in self.profiles.values():
            if profile.email.lower() == email.lower():
                return profile
        return None

    async def upsert(self, data: ProfileUpsert) -> ProfileRead:
        existing = await self.get_by_email(data.email)
        if existing is None:
            return self.add(**data.model_dump())
        updated = existing.model_copy(update=data.model_dump(exclude_none=True))
        self.profiles[updated.id] = updated
        return updated

    async def set_password(self, profile_id: str, hashed_password: str) -> ProfileRead:
        self.passwords[profile_id] = hashed_password
        profile = self.profiles[profile_id].model_copy(update={"has_password": True})
        self.profiles[profile_id] = profile
        return profile

    async def list_by_ids(self, profile_ids: list[str]) -> list[ProfileRead]:
        return [self.profiles[pid] for pid in profile_ids if pid in self.profiles]

    async def get_credentials(self, email: str) -> tuple[ProfileRead, str | None] | None:
        profile = await self.get_by_email(email)
        if profile is None:
            return None
        return profile, self.passwords.get(profile.id)

    async def redeem_link(self, jti, profile_id, expires_at) -> bool:
        if jti in self.redeemed_links:
            return False
        self.redeemed_links.add(jti)
        return True

    async def delete(self, profile_id: str) -> bool:
        self.passwords.pop(profile_id, None)
        return self.profiles.pop(profile_id, None) is not None


class InMemoryTeamRepository:
    def __init__(self) -> None:
        self.members: dict[str, TeamMemberRead] = {}
        self.grants: dict[str, PartnerAccessRead] = {}

    async def get_member(self, deal_id, user_id):
        for m in self.members.values():
            if m.deal_id == deal_id and m.user_id == user_id:
                return m
        return None

    async def get_member_by_id(self, member_id):
        return self.members.get(member_id)

    async def list_members(self, deal_id):
        return [m for m in self.members.values() if m.deal_id == deal_id]

    async def add_member(self, deal_id, user_id, role, permissions, added_by=None):
        member = TeamMemberRead(
            id=str(uuid.uuid4()),
            deal_id=deal_id,
            user_id=user_id,
            role=role,
            added_by=added_by,
            **permissions.model_dump(),
        )
        self.members[member.id] = member
        return member

    async def update_member(self, member_id, role, permissions):
        updated = self.members[member_id].model_copy(
            update={"role": role, **permissions.model_dump()}
        )
        self.members[member_id] = updated
        return updated

    async def remove_member(self, member_id):
        del self.members[member_id]

    async def remove_user(self, user_id):
        doomed = [mid for mid, m in self.members.items() if m.user_id == user_id]
        for member_id in doomed:
            del self.members[member_id]
        return len(doomed)

    async def grant_partner_access(self, deal_id, data, granted_by=None):
        grant = PartnerAccessRead(
            id=str(uuid.uuid4()), deal_id=deal_id, granted_by=granted_by, **data.model_dump()
        )
        self.grants[grant.id] = grant
        return grant

    async def list_partner_access(self, deal_id):
        return [g for g in self.grants.values() if g.deal_id == deal_id]

    async def revoke_partner_access(self, access_id):
        if self.grants.pop(access_id, None) is None:
            raise ValueError(f"Partner access not found: {access_id}")

    async def get_active_partner_access(self, partner_team_id, deal_id, now):
        for g in self.grants.values():
            if g.partner_team_id == partner_team_id and g.deal_id == deal_id:
                if g.access_until is None or g.access_until >= now:
                    return g
        return None


class InMemoryInvitations:
    def __init__(self) -> None:
        self.accepted: list[InvestorInvitationRead] = []

    async def list_accepted_for_user(self, user_id):
        return [i for i in self.accepted if i.accepted_by == user_id]


class StubNDA:
    def __init__(self) -> None:
        self.signed: set[tuple[str, str]] = set()

    async def has_accepted(self, user_id, company_id):
        return (user_id, company_id) in self.signed


class RecordingEmailClient:
    """Stands in for ResendClient; optionally fails for chosen recipients."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[tuple[EmailMessage, str]] = []
        self.fail_for = fail_for or set()

    @property
    def is_configured(self) -> bool:
        return True

    async def send_email(self, email: EmailMessage, template: str = "generic") -> SentEmailResult:
        if self.fail_for.intersection(email.to):
            raise RuntimeError(f"Delivery failed for {email.to[0]}")
        self.sent.append((email, template))
        return SentEmailResult(message_id=f"msg-{len(self.sent)}")


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def activity_repo() -> InMemoryActivityRepository:
    return InMemoryActivityRepository()


@pytest.fixture
def profile_repo() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture
def admin_profile() -> ProfileRead:
    return ProfileRead(
        id=str(uuid.uuid4()),
        email="admin@ebbdataroom.com",
        first_name="Avery",
        last_name="Admin",
        role="admin",
    )


@pytest.fixture
def investor_profile() -> ProfileRead:
    return ProfileRead(
        id=str(uuid.uuid4()),
        email="investor@northwindcapital.com",
        role="investor",
    )


@pytest.fixture
def team_repo() -> InMemoryTeamRepository:
    return InMemoryTeamRepository()


@pytest.fixture
def invitations() -> InMemoryInvitations:
    return InMemoryInvitations()


@pytest.fixture
def nda() -> StubNDA:
    return StubNDA()
