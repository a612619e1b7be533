from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from skatebounty.models.submission import POSTED_AFTER_FUNCTION, POSTED_AFTER_TRIGGER

# revision identifiers
revision = "20260902_0003"
down_revision = "20260901_0002"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("bounty_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bounties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("media_url", sa.Text(), nullable=False),
        sa.Column("external_posted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("bounty_id", "user_id", name="uq_submission_once_per_user"),
        sa.CheckConstraint("status IN ('pending','verified','rejected')", name="ck_submission_status"),
    )
    op.create_index("ix_submissions_bounty_id", "submissions", ["bounty_id"])
    op.create_index("ix_submissions_user_id", "submissions", ["user_id"])

    # Post must not predate the bounty, whichever client wrote the row
    op.execute(POSTED_AFTER_FUNCTION)
    op.execute(POSTED_AFTER_TRIGGER)

def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_submissions_posted_after_bounty ON submissions")
    op.execute("DROP FUNCTION IF EXISTS enforce_submission_posted_after_bounty()")
    op.drop_index("ix_submissions_user_id", table_name="submissions")
    op.drop_index("ix_submissions_bounty_id", table_name="submissions")
    op.drop_table("submissions")
