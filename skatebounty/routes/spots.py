from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.auth_deps import get_identity
from skatebounty.db import get_session
from skatebounty.identity import Identity
from skatebounty.schemas.bounty import SpotCreate, SpotDetail, SpotPublic
from skatebounty.services import bounties, spots

router = APIRouter(prefix="/spots", tags=["spots"])

@router.post("", response_model=SpotPublic, status_code=201)
async def create_spot(
    payload: SpotCreate,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    s = await spots.create_spot(session, identity, payload)
    return spots.to_public(s)

@router.get("", response_model=list[SpotPublic])
async def list_spots(session: AsyncSession = Depends(get_session)):
    return [spots.to_public(s) for s in await spots.list_spots(session)]

@router.post("/images", status_code=201)
async def upload_image(
    image: UploadFile = File(..., description="JPEG or PNG"),
    identity: Identity = Depends(get_identity),
):
    data = await image.read()
    return {"url": await spots.upload_spot_image(identity, data)}

@router.get("/{spot_id}", response_model=SpotDetail)
async def get_spot(spot_id: UUID, session: AsyncSession = Depends(get_session)):
    s = await spots.get_spot_or_404(session, spot_id)
    rows = await spots.bounties_at_spot(session, s.id)
    return SpotDetail(spot=spots.to_public(s), bounties=[bounties.to_public(b) for b in rows])
