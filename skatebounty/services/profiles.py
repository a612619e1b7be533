from __future__ import annotations
from typing import Iterable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.identity import Identity
from skatebounty.models.profile import Profile
from skatebounty.schemas.profile import ProfilePublic
from skatebounty.services.persistence import commit_or_raise
from skatebounty.services.validators import as_utc, validate_handle

log = structlog.get_logger()

def display_name(user_id: UUID | str, handle: str | None) -> str:
    """`@handle`, or a short id when the user has not picked one yet."""
    if handle:
        return f"@{handle}"
    return f"{str(user_id)[:6]}…"

def to_public(p: Profile) -> ProfilePublic:
    return ProfilePublic(id=p.id, handle=p.handle, created_at=as_utc(p.created_at), display_name=display_name(p.id, p.handle))

async def get_or_create(session: AsyncSession, identity: Identity) -> Profile:
    user_id = identity.require("view your profile")
    p = await session.get(Profile, user_id)
    if p:
        return p
    p = Profile(id=user_id)
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        # Created concurrently by another request
        await session.rollback()
        p = await session.get(Profile, user_id)
        if p:
            return p
        raise
    await session.refresh(p)
    log.info("profile_created", user_id=str(user_id))
    return p

async def upsert_handle(session: AsyncSession, identity: Identity, handle: str) -> Profile:
    user_id = identity.require("set a handle")
    value = validate_handle(handle)
    p = await get_or_create(session, identity)
    p.handle = value
    await commit_or_raise(session, "Could not save handle", field="handle")
    await session.refresh(p)
    log.info("profile_handle_set", user_id=str(user_id))
    return p

async def batch_lookup(session: AsyncSession, ids: Iterable[UUID]) -> list[Profile]:
    """Known profiles for the given ids. Unknown ids are simply absent from the result."""
    unique = list(dict.fromkeys(i for i in ids if i is not None))
    if not unique:
        return []
    rows = (await session.execute(select(Profile).where(Profile.id.in_(unique)))).scalars().all()
    return list(rows)

async def handles_for(session: AsyncSession, ids: Iterable[UUID]) -> dict[UUID, str | None]:
    return {p.id: p.handle for p in await batch_lookup(session, ids)}
