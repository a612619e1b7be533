from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.identity import Identity
from skatebounty.models.bounty import Bounty
from skatebounty.models.profile import Profile
from skatebounty.models.spot import Spot
from skatebounty.schemas.bounty import FeedItem
from skatebounty.services.bounties import to_public
from skatebounty.services.profiles import display_name

def to_feed_item(b: Bounty, spot_title: str | None, owner_handle: str | None, now: datetime) -> FeedItem:
    pub = to_public(b, now)
    return FeedItem(
        **pub.model_dump(),
        spot_title=spot_title,
        owner_handle=owner_handle,
        owner_display=display_name(b.owner_id, owner_handle),
    )

def matches_status(item: FeedItem, status: str) -> bool:
    if status == "open":
        return item.state == "open"
    if status == "closed":
        # expired bounties count as closed for filtering
        return item.state in ("closed", "expired")
    return True

def matches_query(item: FeedItem, q: str | None) -> bool:
    needle = (q or "").strip().lower()
    if not needle:
        return True
    haystack = (item.trick, item.reward_label, item.reward_type, item.spot_title, item.owner_handle)
    return any(needle in field.lower() for field in haystack if field)

def newest_first(items: Iterable[FeedItem]) -> list[FeedItem]:
    return sorted(items, key=lambda i: (i.created_at, str(i.id)), reverse=True)

async def list_feed(
    session: AsyncSession,
    identity: Identity,
    mine: bool = False,
    status: str = "all",
    q: str | None = None,
    now: datetime | None = None,
) -> list[FeedItem]:
    now = now or datetime.now(dt_tz.utc)
    stmt = (
        select(Bounty, Spot.title, Profile.handle)
        .outerjoin(Spot, Spot.id == Bounty.spot_id)
        .outerjoin(Profile, Profile.id == Bounty.owner_id)
        .order_by(Bounty.created_at.desc(), Bounty.id.desc())
    )
    if mine:
        stmt = stmt.where(Bounty.owner_id == identity.require("see your bounties"))
    rows = (await session.execute(stmt)).all()
    items = [to_feed_item(b, title, handle, now) for (b, title, handle) in rows]
    return newest_first(i for i in items if matches_status(i, status) and matches_query(i, q))
