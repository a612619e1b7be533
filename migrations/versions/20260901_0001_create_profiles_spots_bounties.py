from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260901_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("handle", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_profiles_handle", "profiles", ["handle"])

    op.create_table(
        "spots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_spots_owner_id", "spots", ["owner_id"])

    op.create_table(
        "bounties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("trick", sa.String(length=120), nullable=False),
        sa.Column("reward_kind", sa.String(length=16), nullable=True),
        sa.Column("reward_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("reward_currency", sa.String(length=8), nullable=True),
        sa.Column("reward_text", sa.String(length=120), nullable=True),
        sa.Column("reward_type", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
        sa.Column("spot_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("spots.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("status IN ('open','closed')", name="ck_bounty_status"),
        sa.CheckConstraint("reward_amount IS NULL OR reward_amount > 0", name="ck_bounty_reward_positive"),
    )
    op.create_index("ix_bounties_owner_id", "bounties", ["owner_id"])
    op.create_index("ix_bounties_spot_id", "bounties", ["spot_id"])
    op.create_index("ix_bounties_created_at", "bounties", ["created_at"])

def downgrade() -> None:
    op.drop_index("ix_bounties_created_at", table_name="bounties")
    op.drop_index("ix_bounties_spot_id", table_name="bounties")
    op.drop_index("ix_bounties_owner_id", table_name="bounties")
    op.drop_table("bounties")
    op.drop_index("ix_spots_owner_id", table_name="spots")
    op.drop_table("spots")
    op.drop_index("ix_profiles_handle", table_name="profiles")
    op.drop_table("profiles")
