"""Create financing pipeline tables.

Revision ID: 003_financing
Revises: 002_data_room_and_access
Create Date: 2026-03-16

- lenders
- financing_applications: One per deal and lender, tracked by stage
- financing_documents / financing_conditions: Per-application checklists
- financing_activity: Application timeline
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "003_financing"
down_revision: Union[str, None] = "002_data_room_and_access"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _application_fk() -> sa.Column:
    return sa.Column(
        "application_id",
        UUID(as_uuid=True),
        sa.ForeignKey("financing_applications.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # ── lenders table ───────────────────────────────────────────────────

    op.create_table(
        "lenders",
        _id_column(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("contact_name", sa.String(200), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("avg_close_days", sa.Integer(), nullable=True),
        sa.Column("success_rate", sa.Float(), nullable=True),
        sa.Column(
            "is_preferred",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        *_timestamps(),
    )

    # ── financing_applications table ────────────────────────────────────

    op.create_table(
        "financing_applications",
        _id_column(),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lender_id",
            UUID(as_uuid=True),
            sa.ForeignKey("lenders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("application_number", sa.String(100), nullable=True),
        sa.Column(
            "financing_type",
            sa.String(30),
            server_default=sa.text("'conventional'"),
            nullable=False,
        ),
        sa.Column(
            "stage",
            sa.String(40),
            server_default=sa.text("'pre_qualification'"),
            nullable=False,
        ),
        sa.Column("loan_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("interest_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("term_months", sa.Integer(), nullable=True),
        sa.Column("amortization_months", sa.Integer(), nullable=True),
        sa.Column("down_payment_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closing_date", sa.Date(), nullable=True),
        sa.Column("funded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", UUID(as_uuid=True), nullable=True),
        sa.Column("partner_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "priority",
            sa.String(10),
            server_default=sa.text("'normal'"),
            nullable=False,
        ),
        sa.Column(
            "health_score",
            sa.Integer(),
            server_default=sa.text("100"),
            nullable=False,
        ),
        sa.Column(
            "stage_entered_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        sa.Column(
            "is_primary",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )
    op.execute(
        "CREATE INDEX ix_financing_applications_deal_id ON financing_applications(deal_id)"
    )
    op.execute(
        "CREATE INDEX ix_financing_applications_lender_id ON financing_applications(lender_id)"
    )
    op.execute("CREATE INDEX ix_financing_applications_stage ON financing_applications(stage)")
    op.execute(
        "CREATE INDEX ix_financing_applications_assigned_to "
        "ON financing_applications(assigned_to)"
    )

    # ── financing_documents table ───────────────────────────────────────

    op.create_table(
        "financing_documents",
        _id_column(),
        _application_fk(),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'required'"),
            nullable=False,
        ),
        sa.Column("file_path", sa.String(1000), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("file_type", sa.String(50), nullable=True),
        sa.Column(
            "requested_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.execute(
        "CREATE INDEX ix_financing_documents_application_id "
        "ON financing_documents(application_id)"
    )

    # ── financing_conditions table ──────────────────────────────────────

    op.create_table(
        "financing_conditions",
        _id_column(),
        _application_fk(),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_to", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "order_index",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.execute(
        "CREATE INDEX ix_financing_conditions_application_id "
        "ON financing_conditions(application_id)"
    )

    # ── financing_activity table ────────────────────────────────────────

    op.create_table(
        "financing_activity",
        _id_column(),
        _application_fk(),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_id", UUID(as_uuid=True), nullable=True),
        sa.Column("condition_id", UUID(as_uuid=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.execute(
        "CREATE INDEX ix_financing_activity_application_created "
        "ON financing_activity(application_id, created_at)"
    )


def downgrade() -> None:
    # Drop tables in reverse order
    for table in (
        "financing_activity",
        "financing_conditions",
        "financing_documents",
        "financing_applications",
        "lenders",
    ):
        op.drop_table(table)
