from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.auth_deps import get_identity
from skatebounty.db import get_session
from skatebounty.identity import Identity
from skatebounty.schemas.review import VoteResult
from skatebounty.schemas.submission import SubmissionList
from skatebounty.services import submissions, votes
from skatebounty.services.realtime import Notifier, get_notifier

router = APIRouter(prefix="/submissions", tags=["reviews"])

@router.get("", response_model=SubmissionList)
async def list_by_user(
    user_id: UUID | None = Query(default=None, description="defaults to the caller"),
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    target = user_id or identity.require("see your submissions")
    items, degraded = await submissions.list_for_user(session, target, identity)
    return SubmissionList(items=items, degraded=degraded)

@router.post("/{submission_id}/vote", response_model=VoteResult)
async def cast_vote(
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    notifier: Notifier = Depends(get_notifier),
):
    return await votes.vote(session, identity, submission_id, notifier)

@router.delete("/{submission_id}/vote", response_model=VoteResult)
async def remove_vote(
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    notifier: Notifier = Depends(get_notifier),
):
    return await votes.unvote(session, identity, submission_id, notifier)
