from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.auth_deps import get_identity
from skatebounty.db import get_session
from skatebounty.identity import Identity
from skatebounty.models.profile import Profile
from skatebounty.models.spot import Spot
from skatebounty.schemas.bounty import (
    AcceptancePublic, BountyCreate, BountyDetail, BountyPublic, FeedItem, StatusFilter,
)
from skatebounty.schemas.submission import ProofSubmit, SubmissionList, SubmissionPublic
from skatebounty.services import bounties, feed, profiles, spots, submissions
from skatebounty.services.instagram import TimestampLookup, get_timestamp_lookup
from skatebounty.services.realtime import Notifier, get_notifier

router = APIRouter(prefix="/bounties", tags=["bounties"])

@router.post("", response_model=BountyPublic, status_code=201)
async def create_bounty(
    payload: BountyCreate,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    notifier: Notifier = Depends(get_notifier),
):
    b = await bounties.create_bounty(session, identity, payload, notifier)
    return bounties.to_public(b)

@router.get("", response_model=list[FeedItem])
async def list_bounties(
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    mine: int = Query(default=0, ge=0, le=1),
    status: StatusFilter = Query(default="all"),
    q: str | None = Query(default=None, max_length=100, description="search trick, reward, spot, handle"),
):
    return await feed.list_feed(session, identity, mine=bool(mine), status=status, q=q)

@router.get("/{bounty_id}", response_model=BountyDetail)
async def get_bounty(
    bounty_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    b = await bounties.get_bounty_or_404(session, bounty_id)
    spot = await session.get(Spot, b.spot_id) if b.spot_id else None
    owner = await session.get(Profile, b.owner_id)
    return BountyDetail(
        bounty=bounties.to_public(b),
        spot=spots.to_public(spot) if spot else None,
        owner=profiles.to_public(owner) if owner else None,
        owner_display=profiles.display_name(b.owner_id, owner.handle if owner else None),
        accepted=await bounties.has_accepted(session, b.id, identity.user_id),
    )

@router.post("/{bounty_id}/close", response_model=BountyPublic)
async def close_bounty(
    bounty_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    notifier: Notifier = Depends(get_notifier),
):
    b = await bounties.close_bounty(session, identity, bounty_id, notifier)
    return bounties.to_public(b)

@router.post("/{bounty_id}/accept", response_model=AcceptancePublic, status_code=201)
async def accept_bounty(
    bounty_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    acc = await bounties.accept_bounty(session, identity, bounty_id)
    return bounties.acceptance_public(acc)

@router.post("/{bounty_id}/submissions", response_model=SubmissionPublic, status_code=201)
async def submit_proof(
    bounty_id: UUID,
    payload: ProofSubmit,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
    lookup: TimestampLookup = Depends(get_timestamp_lookup),
    notifier: Notifier = Depends(get_notifier),
):
    sub = await submissions.submit_proof(session, identity, bounty_id, payload, lookup=lookup, notifier=notifier)
    return submissions.to_public(sub)

@router.get("/{bounty_id}/submissions", response_model=SubmissionList)
async def list_submissions(
    bounty_id: UUID,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    items, degraded = await submissions.list_for_bounty(session, bounty_id, identity)
    return SubmissionList(items=items, degraded=degraded)
