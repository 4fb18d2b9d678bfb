"""Create team invitation and redeemed link tables.

Revision ID: 004_team_invitations_and_links
Revises: 003_financing
Create Date: 2026-10-19

- team_invitations: Platform and deal team invitations, accepted by token
- redeemed_action_tokens: jti of every invite, recovery and magic link used
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "004_team_invitations_and_links"
down_revision: Union[str, None] = "003_financing"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── team_invitations table ──────────────────────────────────────────

    op.create_table(
        "team_invitations",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("inviter_id", UUID(as_uuid=True), nullable=True),
        sa.Column("invitee_email", sa.String(255), nullable=False),
        sa.Column("invitee_name", sa.String(200), nullable=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("personal_message", sa.Text(), nullable=True),
        sa.Column("invitation_token", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("permissions", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_by", UUID(as_uuid=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_team_invitations_invitee_email", "team_invitations", ["invitee_email"])
    op.create_index("ix_team_invitations_status", "team_invitations", ["status"])

    # ── redeemed_action_tokens table ────────────────────────────────────

    op.create_table(
        "redeemed_action_tokens",
        sa.Column("jti", sa.String(64), primary_key=True),
        sa.Column(
            "profile_id",
            UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "redeemed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_redeemed_action_tokens_profile_id", "redeemed_action_tokens", ["profile_id"]
    )


def downgrade() -> None:
    op.drop_table("redeemed_action_tokens")
    op.drop_table("team_invitations")
