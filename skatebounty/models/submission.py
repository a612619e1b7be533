from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    DDL, Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text, UniqueConstraint, Uuid, event, func,
)
from skatebounty.db import Base


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bounty_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("bounties.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    media_url: Mapped[str] = mapped_column(Text(), nullable=False)  # normalized Instagram permalink
    external_posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    caption: Mapped[str | None] = mapped_column(Text(), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|verified|rejected

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("bounty_id", "user_id", name="uq_submission_once_per_user"),
    )


# Read-only projection; lives outside Base.metadata so create_all never builds it as a table.
view_metadata = MetaData()

submissions_with_votes = Table(
    "v_submissions_with_votes",
    view_metadata,
    Column("id", Uuid, primary_key=True),
    Column("bounty_id", Uuid),
    Column("user_id", Uuid),
    Column("media_url", Text()),
    Column("external_posted_at", DateTime(timezone=True)),
    Column("caption", Text()),
    Column("status", String(16)),
    Column("created_at", DateTime(timezone=True)),
    Column("vote_count", Integer),
)

VIEW_SELECT = """
SELECT s.id, s.bounty_id, s.user_id, s.media_url, s.external_posted_at, s.caption, s.status, s.created_at,
       COUNT(v.id) AS vote_count
FROM submissions s
LEFT JOIN submission_votes v ON v.submission_id = s.id
GROUP BY s.id, s.bounty_id, s.user_id, s.media_url, s.external_posted_at, s.caption, s.status, s.created_at
"""

POSTED_AFTER_FUNCTION = """
CREATE OR REPLACE FUNCTION enforce_submission_posted_after_bounty() RETURNS trigger AS $$
DECLARE
    b_created timestamptz;
BEGIN
    IF NEW.external_posted_at IS NULL THEN
        RETURN NEW;
    END IF;
    SELECT created_at INTO b_created FROM bounties WHERE id = NEW.bounty_id;
    IF b_created IS NOT NULL AND NEW.external_posted_at < b_created THEN
        RAISE EXCEPTION 'posted_before_bounty' USING ERRCODE = 'check_violation';
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql
"""

POSTED_AFTER_TRIGGER = """
CREATE TRIGGER trg_submissions_posted_after_bounty
BEFORE INSERT OR UPDATE ON submissions
FOR EACH ROW EXECUTE FUNCTION enforce_submission_posted_after_bounty()
"""

# create_all/drop_all hooks (dev + tests); production schema comes from alembic.
event.listen(Base.metadata, "after_create", DDL(f"CREATE OR REPLACE VIEW v_submissions_with_votes AS {VIEW_SELECT}").execute_if(dialect="postgresql"))
event.listen(Base.metadata, "after_create", DDL(f"CREATE VIEW IF NOT EXISTS v_submissions_with_votes AS {VIEW_SELECT}").execute_if(dialect="sqlite"))
event.listen(Base.metadata, "after_create", DDL(POSTED_AFTER_FUNCTION).execute_if(dialect="postgresql"))
event.listen(Base.metadata, "after_create", DDL(POSTED_AFTER_TRIGGER).execute_if(dialect="postgresql"))
event.listen(Base.metadata, "before_drop", DDL("DROP VIEW IF EXISTS v_submissions_with_votes"))
