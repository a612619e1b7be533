from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.auth_deps import get_identity
from skatebounty.db import get_session
from skatebounty.identity import Identity
from skatebounty.schemas.profile import HandleUpdate, ProfileLookup, ProfilePublic
from skatebounty.services import profiles

router = APIRouter(prefix="/profiles", tags=["profiles"])

@router.get("/me", response_model=ProfilePublic)
async def my_profile(session: AsyncSession = Depends(get_session), identity: Identity = Depends(get_identity)):
    return profiles.to_public(await profiles.get_or_create(session, identity))

@router.put("/me/handle", response_model=ProfilePublic)
async def set_handle(
    payload: HandleUpdate,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    return profiles.to_public(await profiles.upsert_handle(session, identity, payload.handle))

@router.post("/lookup", response_model=list[ProfilePublic])
async def lookup(payload: ProfileLookup, session: AsyncSession = Depends(get_session)):
    # Unknown ids are left out; callers fall back to a short id for display
    return [profiles.to_public(p) for p in await profiles.batch_lookup(session, payload.ids)]
