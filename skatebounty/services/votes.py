"""
Votes and the derived vote_count.

vote_count is never stored. `tally()` is the one place it is computed:
it reads the aggregated `v_submissions_with_votes` view and, if the view
cannot be queried, counts rows of `submission_votes` instead and reports
`degraded=True`. Both sources agree whenever no write is in flight.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.config import settings
from skatebounty.errors import ConstraintViolation, NotFound
from skatebounty.identity import Identity
from skatebounty.models.review import Vote
from skatebounty.models.submission import Submission, submissions_with_votes
from skatebounty.schemas.review import VoteResult
from skatebounty.services.persistence import commit_or_raise
from skatebounty.services.realtime import Notifier, publish_change

log = structlog.get_logger()


@dataclass
class Tally:
    counts: dict[UUID, int] = field(default_factory=dict)
    degraded: bool = False

    def get(self, submission_id: UUID) -> int:
        return self.counts.get(submission_id, 0)


def is_verified(vote_count: int, threshold: int | None = None) -> bool:
    """Display-only label; crossing the threshold changes no stored status."""
    if threshold is None:
        threshold = settings.verified_vote_threshold
    return vote_count >= threshold


async def _counts_from_view(session: AsyncSession, ids: list[UUID]) -> dict[UUID, int]:
    v = submissions_with_votes
    q = select(v.c.id, v.c.vote_count).where(v.c.id.in_(ids))
    if session.get_bind().dialect.name == "postgresql":
        # A failed statement aborts the whole transaction in postgres; keep it in a savepoint
        async with session.begin_nested():
            rows = (await session.execute(q)).all()
    else:
        rows = (await session.execute(q)).all()
    counts = {sid: 0 for sid in ids}
    for sid, cnt in rows:
        counts[sid] = int(cnt or 0)
    return counts


async def _counts_from_votes(session: AsyncSession, ids: list[UUID]) -> dict[UUID, int]:
    counts = {sid: 0 for sid in ids}
    voted = (await session.execute(select(Vote.submission_id).where(Vote.submission_id.in_(ids)))).scalars().all()
    for sid in voted:
        counts[sid] = counts.get(sid, 0) + 1
    return counts


async def tally(session: AsyncSession, submission_ids: Iterable[UUID], use_view: bool = True) -> Tally:
    ids = list(dict.fromkeys(submission_ids))
    if not ids:
        return Tally()
    if use_view:
        try:
            return Tally(await _counts_from_view(session, ids))
        except DBAPIError as e:
            log.warning("tally_view_unavailable", error=str(e.orig), submissions=len(ids))
    return Tally(await _counts_from_votes(session, ids), degraded=True)


async def voted_ids(session: AsyncSession, user_id: UUID | None, submission_ids: Iterable[UUID]) -> set[UUID]:
    ids = list(dict.fromkeys(submission_ids))
    if user_id is None or not ids:
        return set()
    q = select(Vote.submission_id).where(Vote.user_id == user_id, Vote.submission_id.in_(ids))
    return set((await session.execute(q)).scalars().all())


async def _get_submission_or_404(session: AsyncSession, submission_id: UUID) -> Submission:
    s = await session.get(Submission, submission_id)
    if not s:
        raise NotFound("Submission not found")
    return s


async def _result(session: AsyncSession, submission_id: UUID, voted: bool) -> VoteResult:
    t = await tally(session, [submission_id])
    count = t.get(submission_id)
    return VoteResult(
        submission_id=submission_id, voted=voted, vote_count=count,
        verified=is_verified(count), degraded=t.degraded,
    )


async def vote(
    session: AsyncSession, identity: Identity, submission_id: UUID, notifier: Notifier | None = None,
) -> VoteResult:
    user_id = identity.require("vote")
    s = await _get_submission_or_404(session, submission_id)
    v = Vote(submission_id=s.id, user_id=user_id)
    session.add(v)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConstraintViolation("You already voted for this submission") from e
    log.info("vote_cast", submission_id=str(submission_id), user_id=str(user_id))
    await publish_change(notifier, "submission_votes", "INSERT", {
        "id": str(v.id), "submission_id": str(submission_id), "user_id": str(user_id),
    })
    return await _result(session, submission_id, voted=True)


async def unvote(
    session: AsyncSession, identity: Identity, submission_id: UUID, notifier: Notifier | None = None,
) -> VoteResult:
    user_id = identity.require("remove your vote")
    await _get_submission_or_404(session, submission_id)
    vote_id = await session.scalar(
        select(Vote.id).where(Vote.submission_id == submission_id, Vote.user_id == user_id)
    )
    if vote_id is None:
        raise ConstraintViolation("You have not voted for this submission")
    res = await session.execute(delete(Vote).where(Vote.id == vote_id))
    if res.rowcount == 0:
        # Removed concurrently by another request from the same user
        await session.rollback()
        raise ConstraintViolation("You have not voted for this submission")
    await commit_or_raise(session, "Could not remove vote")
    log.info("vote_removed", submission_id=str(submission_id), user_id=str(user_id))
    await publish_change(notifier, "submission_votes", "DELETE", {
        "id": str(vote_id), "submission_id": str(submission_id), "user_id": str(user_id),
    })
    return await _result(session, submission_id, voted=False)
