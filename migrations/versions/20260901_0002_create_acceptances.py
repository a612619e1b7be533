from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260901_0002"
down_revision = "20260901_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "bounty_acceptances",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("bounty_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bounties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("bounty_id", "user_id", name="uq_acceptance_once_per_user"),
    )
    op.create_index("ix_bounty_acceptances_bounty_id", "bounty_acceptances", ["bounty_id"])
    op.create_index("ix_bounty_acceptances_user_id", "bounty_acceptances", ["user_id"])

def downgrade() -> None:
    op.drop_index("ix_bounty_acceptances_user_id", table_name="bounty_acceptances")
    op.drop_index("ix_bounty_acceptances_bounty_id", table_name="bounty_acceptances")
    op.drop_table("bounty_acceptances")
