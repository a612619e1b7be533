from __future__ import annotations
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.config import settings
from skatebounty.errors import ConstraintViolation, Forbidden, ValidationError
from skatebounty.identity import Identity
from skatebounty.models.submission import Submission
from skatebounty.schemas.submission import InstagramEmbed, ProofSubmit, SubmissionPublic
from skatebounty.services.bounties import get_bounty_or_404, has_accepted
from skatebounty.services.instagram import TimestampLookup
from skatebounty.services.realtime import Notifier, publish_change
from skatebounty.services.validators import (
    POSTED_BEFORE_BOUNTY, as_utc, assert_posted_after, extract_embed, normalize_instagram_url, parse_timestamp,
)
from skatebounty.services.votes import Tally, is_verified, tally, voted_ids

log = structlog.get_logger()

ALREADY_SUBMITTED = "You already submitted proof for this bounty"

def is_duplicate_submission(e: IntegrityError) -> bool:
    """Unique (bounty_id, user_id) hit. SQLite names the columns instead of the constraint."""
    msg = str(e.orig)
    return "uq_submission_once_per_user" in msg or "submissions.bounty_id, submissions.user_id" in msg

def to_public(s: Submission, vote_count: int = 0, voted_by_me: bool = False) -> SubmissionPublic:
    embed = extract_embed(s.media_url)
    return SubmissionPublic(
        id=s.id,
        bounty_id=s.bounty_id,
        user_id=s.user_id,
        media_url=s.media_url,
        external_posted_at=as_utc(s.external_posted_at) if s.external_posted_at else None,
        caption=s.caption,
        status=s.status,
        created_at=as_utc(s.created_at),
        vote_count=vote_count,
        verified=is_verified(vote_count),
        voted_by_me=voted_by_me,
        embed=InstagramEmbed(**embed) if embed else None,
    )

def rank_by_votes(items: list[SubmissionPublic]) -> list[SubmissionPublic]:
    """Most votes first; earliest submission wins a tie."""
    return sorted(items, key=lambda s: (-s.vote_count, s.created_at, str(s.id)))

async def resolve_posted_at(
    raw: str | None,
    permalink: str,
    lookup: TimestampLookup | None,
    mode: str,
) -> datetime | None:
    """
    best_effort: use the caller's timestamp if given, otherwise ask the lookup;
                 no timestamp at all is fine.
    strict:      the caller must supply a parseable ISO-8601 timestamp.
    """
    supplied = (raw or "").strip()
    if mode == "strict":
        if not supplied:
            raise ValidationError("Enter when the post was published (ISO-8601).", field="posted_at")
        return parse_timestamp(supplied)
    if supplied:
        return parse_timestamp(supplied)
    if lookup is None:
        return None
    ts = await lookup(permalink)
    if ts is None:
        log.info("submission_without_timestamp", permalink=permalink)
    return ts

async def submit_proof(
    session: AsyncSession,
    identity: Identity,
    bounty_id: UUID,
    payload: ProofSubmit,
    lookup: TimestampLookup | None = None,
    notifier: Notifier | None = None,
    require_acceptance: bool | None = None,
    timestamp_mode: str | None = None,
) -> Submission:
    user_id = identity.require("submit proof")
    if require_acceptance is None:
        require_acceptance = settings.require_acceptance_before_submission
    if timestamp_mode is None:
        timestamp_mode = settings.submission_timestamp_mode

    bounty = await get_bounty_or_404(session, bounty_id)
    if bounty.status == "closed":
        raise ConstraintViolation("This bounty is closed")
    if require_acceptance and not await has_accepted(session, bounty.id, user_id):
        raise Forbidden("Accept this bounty before submitting proof")

    permalink = normalize_instagram_url(payload.post_url)
    posted_at = await resolve_posted_at(payload.posted_at, permalink, lookup, timestamp_mode)
    if posted_at is not None:
        assert_posted_after(bounty.created_at, posted_at)

    existing = await session.scalar(
        select(Submission.id).where(Submission.bounty_id == bounty.id, Submission.user_id == user_id)
    )
    if existing:
        raise ConstraintViolation(ALREADY_SUBMITTED, field="post_url")

    caption = (payload.caption or "").strip() or None
    sub = Submission(
        bounty_id=bounty.id,
        user_id=user_id,
        media_url=permalink,
        external_posted_at=posted_at,
        caption=caption,
        status="pending",
    )
    session.add(sub)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if "posted_before_bounty" in str(e.orig):
            raise ValidationError(POSTED_BEFORE_BOUNTY, field="posted_at") from e
        if is_duplicate_submission(e):
            raise ConstraintViolation(ALREADY_SUBMITTED, field="post_url") from e
        log.warning("submission_insert_rejected", bounty_id=str(bounty_id), error=str(e.orig))
        raise ConstraintViolation("Could not save submission") from e
    await session.refresh(sub)
    log.info(
        "proof_submitted",
        bounty_id=str(bounty_id), submission_id=str(sub.id), user_id=str(user_id),
        has_timestamp=posted_at is not None,
    )
    await publish_change(notifier, "submissions", "INSERT", to_public(sub).model_dump(mode="json"))
    return sub

async def _project(
    session: AsyncSession, rows: list[Submission], viewer: Identity,
) -> tuple[list[SubmissionPublic], Tally]:
    ids = [s.id for s in rows]
    t = await tally(session, ids)
    mine = await voted_ids(session, viewer.user_id, ids)
    return [to_public(s, t.get(s.id), s.id in mine) for s in rows], t

async def list_for_bounty(
    session: AsyncSession, bounty_id: UUID, viewer: Identity,
) -> tuple[list[SubmissionPublic], bool]:
    await get_bounty_or_404(session, bounty_id)
    rows = (await session.execute(
        select(Submission).where(Submission.bounty_id == bounty_id).order_by(Submission.created_at.asc())
    )).scalars().all()
    items, t = await _project(session, list(rows), viewer)
    return rank_by_votes(items), t.degraded

async def list_for_user(
    session: AsyncSession, user_id: UUID, viewer: Identity,
) -> tuple[list[SubmissionPublic], bool]:
    rows = (await session.execute(
        select(Submission).where(Submission.user_id == user_id).order_by(Submission.created_at.desc())
    )).scalars().all()
    items, t = await _project(session, list(rows), viewer)
    items.sort(key=lambda s: (s.created_at, str(s.id)), reverse=True)
    return items, t.degraded

async def get_my_submission(session: AsyncSession, bounty_id: UUID, user_id: UUID | None) -> Submission | None:
    if user_id is None:
        return None
    return await session.scalar(
        select(Submission).where(Submission.bounty_id == bounty_id, Submission.user_id == user_id)
    )
