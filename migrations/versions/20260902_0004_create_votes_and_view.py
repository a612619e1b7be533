from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from skatebounty.models.submission import VIEW_SELECT

# revision identifiers
revision = "20260902_0004"
down_revision = "20260902_0003"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "submission_votes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("submission_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_submission_votes_submission_id", "submission_votes", ["submission_id"])
    op.create_index("ix_submission_votes_user_id", "submission_votes", ["user_id"])
    op.create_unique_constraint("uq_vote_once_per_voter", "submission_votes", ["submission_id", "user_id"])

    op.execute(f"CREATE OR REPLACE VIEW v_submissions_with_votes AS {VIEW_SELECT}")

def downgrade() -> None:
    op.execute("DROP VIEW IF EXISTS v_submissions_with_votes")
    op.drop_constraint("uq_vote_once_per_voter", "submission_votes", type_="unique")
    op.drop_index("ix_submission_votes_user_id", table_name="submission_votes")
    op.drop_index("ix_submission_votes_submission_id", table_name="submission_votes")
    op.drop_table("submission_votes")
