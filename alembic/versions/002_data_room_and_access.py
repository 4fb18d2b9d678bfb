"""Create data room, team, NDA, and investor invitation tables.

Revision ID: 002_data_room_and_access
Revises: 001_profiles_and_deals
Create Date: 2026-03-09

- data_room_templates / data_room_folders / data_room_documents
- deal_team_members: Per-deal team with permission flags
- partner_deal_access: Partner team grants, optionally time-boxed
- company_nda_acceptances / nda_extension_tokens
- investor_invitations
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "002_data_room_and_access"
down_revision: Union[str, None] = "001_profiles_and_deals"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _deal_fk(nullable: bool = False) -> sa.Column:
    return sa.Column(
        "deal_id",
        UUID(as_uuid=True),
        sa.ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=nullable,
    )


def _flag(name: str, default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Boolean(),
        server_default=sa.text("true" if default else "false"),
        nullable=False,
    )


def upgrade() -> None:
    # ── data room tables ────────────────────────────────────────────────

    op.create_table(
        "data_room_templates",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "folder_structure",
            sa.JSON(),
            server_default=sa.text("'[]'::json"),
            nullable=False,
        ),
        _flag("is_active", default=True),
        _created_at(),
        sa.UniqueConstraint("name", name="uq_data_room_templates_name"),
    )

    op.create_table(
        "data_room_folders",
        _id_column(),
        _deal_fk(),
        sa.Column(
            "parent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("data_room_folders.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("index_number", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _flag("is_required", default=True),
        _flag("is_loi_restricted"),
        _flag("is_not_applicable"),
        sa.Column(
            "sort_order",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("CREATE INDEX ix_data_room_folders_deal_id ON data_room_folders(deal_id)")

    op.create_table(
        "data_room_documents",
        _id_column(),
        _deal_fk(),
        sa.Column(
            "folder_id",
            UUID(as_uuid=True),
            sa.ForeignKey("data_room_folders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("file_type", sa.String(20), nullable=True),
        sa.Column("mime_type", sa.String(150), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("uploaded_by", UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_by", UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column(
            "version",
            sa.Integer(),
            server_default=sa.text("1"),
            nullable=False,
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("CREATE INDEX ix_data_room_documents_deal_id ON data_room_documents(deal_id)")
    op.execute(
        "CREATE INDEX ix_data_room_documents_folder_id ON data_room_documents(folder_id)"
    )

    # ── team tables ─────────────────────────────────────────────────────

    op.create_table(
        "deal_team_members",
        _id_column(),
        _deal_fk(),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        _flag("can_view_all_folders"),
        _flag("can_upload_documents"),
        _flag("can_delete_documents"),
        _flag("can_create_requests"),
        _flag("can_edit_requests"),
        _flag("can_approve_documents"),
        sa.Column(
            "restricted_folders",
            sa.JSON(),
            server_default=sa.text("'[]'::json"),
            nullable=False,
        ),
        sa.Column("added_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("deal_id", "user_id", name="uq_deal_team_member"),
    )
    op.execute("CREATE INDEX ix_deal_team_members_user_id ON deal_team_members(user_id)")

    op.create_table(
        "partner_deal_access",
        _id_column(),
        _deal_fk(),
        sa.Column("partner_team_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "partner_role",
            sa.String(50),
            server_default=sa.text("'partner'"),
            nullable=False,
        ),
        _flag("can_view_data_room", default=True),
        _flag("can_upload_documents"),
        _flag("can_edit_deal_info"),
        _flag("can_answer_dd_questions"),
        _flag("can_view_buyer_activity"),
        _flag("can_message_buyers"),
        _flag("can_approve_data_room"),
        _flag("can_manage_users"),
        sa.Column("access_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("access_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("granted_by", UUID(as_uuid=True), nullable=True),
        _created_at("granted_at"),
    )
    op.execute(
        "CREATE INDEX ix_partner_deal_access_team_deal "
        "ON partner_deal_access(partner_team_id, deal_id)"
    )

    # ── NDA tables ──────────────────────────────────────────────────────

    op.create_table(
        "company_nda_acceptances",
        _id_column(),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("company_id", UUID(as_uuid=True), nullable=False),
        sa.Column("company_name", sa.String(300), nullable=True),
        sa.Column("signer_name", sa.String(200), nullable=False),
        sa.Column("signer_email", sa.String(255), nullable=False),
        sa.Column("signer_title", sa.String(200), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'active'"),
            nullable=False,
        ),
        _created_at("accepted_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "company_id", name="uq_nda_user_company"),
    )
    op.execute(
        "CREATE INDEX ix_company_nda_acceptances_company_id "
        "ON company_nda_acceptances(company_id)"
    )
    op.execute(
        "CREATE INDEX ix_nda_status_expires ON company_nda_acceptances(status, expires_at)"
    )

    op.create_table(
        "nda_extension_tokens",
        _id_column(),
        sa.Column(
            "nda_id",
            UUID(as_uuid=True),
            sa.ForeignKey("company_nda_acceptances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("token", name="uq_nda_extension_tokens_token"),
    )

    # ── investor_invitations table ──────────────────────────────────────

    op.create_table(
        "investor_invitations",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("investor_name", sa.String(200), nullable=True),
        sa.Column("access_type", sa.String(20), nullable=False),
        _deal_fk(nullable=True),
        sa.Column(
            "deal_ids",
            sa.JSON(),
            server_default=sa.text("'[]'::json"),
            nullable=False,
        ),
        _flag("portfolio_access"),
        _flag("master_nda"),
        sa.Column("invitation_code", sa.String(64), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invited_by", UUID(as_uuid=True), nullable=True),
        sa.Column("accepted_by", UUID(as_uuid=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "send_count",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("last_sent_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("invitation_code", name="uq_investor_invitations_code"),
    )
    op.execute("CREATE INDEX ix_investor_invitations_email ON investor_invitations(email)")
    op.execute("CREATE INDEX ix_investor_invitations_status ON investor_invitations(status)")
    op.execute(
        "CREATE INDEX ix_investor_invitations_accepted_by "
        "ON investor_invitations(accepted_by)"
    )


def downgrade() -> None:
    # Drop tables in reverse order
    for table in (
        "investor_invitations",
        "nda_extension_tokens",
        "company_nda_acceptances",
        "partner_deal_access",
        "deal_team_members",
        "data_room_documents",
        "data_room_folders",
        "data_room_templates",
    ):
        op.drop_table(table)
