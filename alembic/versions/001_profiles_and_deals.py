"""Create profiles, deals, stage history, diligence requests, and audit tables.

Revision ID: 001_profiles_and_deals
Revises:
Create Date: 2026-03-02

Creates the core tables every other module references:
- profiles: Users of the deal room (staff, partners, investors)
- deals: Transactions with workflow phase, stage, and milestone timestamps
- deal_stage_history: One row per stage a deal entered
- deal_requests: Buyer diligence requests
- deal_activities: Per-deal activity feed
- security_audit_log: Logins, invitations, NDA acceptances, rejected uploads
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "001_profiles_and_deals"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ── profiles table ──────────────────────────────────────────────────

    op.create_table(
        "profiles",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column(
            "role",
            sa.String(50),
            server_default=sa.text("'viewer'"),
            nullable=False,
        ),
        sa.Column("partner_team_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
    )
    op.execute("CREATE INDEX ix_profiles_email ON profiles(email)")

    # ── deals table ─────────────────────────────────────────────────────

    op.create_table(
        "deals",
        _id_column(),
        sa.Column("company_id", UUID(as_uuid=True), nullable=False),
        sa.Column("company_name", sa.String(300), nullable=False),
        sa.Column("title", sa.String(300), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("asking_price", sa.Float(), nullable=True),
        sa.Column("revenue", sa.Float(), nullable=True),
        sa.Column("ebitda", sa.Float(), nullable=True),
        sa.Column(
            "requires_nda",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "deal_status",
            sa.String(30),
            server_default=sa.text("'draft'"),
            nullable=False,
        ),
        sa.Column("workflow_phase", sa.String(40), nullable=True),
        sa.Column(
            "current_stage",
            sa.String(40),
            server_default=sa.text("'deal_initiated'"),
            nullable=False,
        ),
        sa.Column("stage_entered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_status", sa.String(30), nullable=True),
        sa.Column("submitted_for_review_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", UUID(as_uuid=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("revision_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision_notes", sa.Text(), nullable=True),
        sa.Column("listing_received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("listing_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data_room_complete_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deal_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_nda_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("loi_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("loi_accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "purchase_agreement_signed_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("CREATE INDEX ix_deals_company_id ON deals(company_id)")

    # ── deal_stage_history table ────────────────────────────────────────

    op.create_table(
        "deal_stage_history",
        _id_column(),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stage", sa.String(40), nullable=False),
        sa.Column("entered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("exited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_days", sa.Integer(), nullable=True),
        sa.Column(
            "triggered_by",
            sa.String(10),
            server_default=sa.text("'manual'"),
            nullable=False,
        ),
        sa.Column("trigger_event", sa.String(60), nullable=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        _created_at(),
    )
    op.execute(
        "CREATE INDEX ix_deal_stage_history_deal_entered "
        "ON deal_stage_history(deal_id, entered_at)"
    )

    # ── deal_requests table ─────────────────────────────────────────────

    op.create_table(
        "deal_requests",
        _id_column(),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column(
            "priority",
            sa.String(20),
            server_default=sa.text("'Medium'"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'Open'"),
            nullable=False,
        ),
        sa.Column("asked_by", UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_to", UUID(as_uuid=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("CREATE INDEX ix_deal_requests_deal_id ON deal_requests(deal_id)")

    # ── deal_activities table ───────────────────────────────────────────

    op.create_table(
        "deal_activities",
        _id_column(),
        sa.Column("deal_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=True),
        sa.Column(
            "metadata",
            sa.JSON(),
            server_default=sa.text("'{}'::json"),
            nullable=False,
        ),
        _created_at(),
    )
    op.execute(
        "CREATE INDEX ix_deal_activities_deal_created "
        "ON deal_activities(deal_id, created_at)"
    )

    # ── security_audit_log table ────────────────────────────────────────

    op.create_table(
        "security_audit_log",
        _id_column(),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column(
            "event_data",
            sa.JSON(),
            server_default=sa.text("'{}'::json"),
            nullable=False,
        ),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        _created_at(),
    )
    op.execute(
        "CREATE INDEX ix_security_audit_log_event_type ON security_audit_log(event_type)"
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("security_audit_log")
    op.drop_table("deal_activities")
    op.drop_table("deal_requests")
    op.drop_table("deal_stage_history")
    op.drop_table("deals")
    op.drop_table("profiles")
