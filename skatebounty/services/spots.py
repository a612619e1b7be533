from __future__ import annotations
import uuid
from uuid import UUID

import structlog
import urllib3
from minio.error import S3Error
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from skatebounty.errors import NotFound, TransientError
from skatebounty.identity import Identity
from skatebounty.models.bounty import Bounty
from skatebounty.models.spot import Spot
from skatebounty.schemas.bounty import SpotCreate, SpotPublic
from skatebounty.services import storage
from skatebounty.services.media import ext_for_mime, validate_image
from skatebounty.services.persistence import commit_or_raise
from skatebounty.services.validators import as_utc, validate_coordinates, validate_title

log = structlog.get_logger()

def to_public(s: Spot) -> SpotPublic:
    return SpotPublic(
        id=s.id, owner_id=s.owner_id, title=s.title, image_url=s.image_url,
        lat=s.lat, lng=s.lng, created_at=as_utc(s.created_at),
    )

async def create_spot(session: AsyncSession, identity: Identity, payload: SpotCreate) -> Spot:
    user_id = identity.require("add a spot")
    title = validate_title(payload.title)
    lat, lng = validate_coordinates(payload.lat, payload.lng)
    s = Spot(owner_id=user_id, title=title, image_url=(payload.image_url or "").strip() or None, lat=lat, lng=lng)
    session.add(s)
    await commit_or_raise(session, "Could not create spot")
    await session.refresh(s)
    log.info("spot_created", spot_id=str(s.id), owner_id=str(user_id), geocoded=lat is not None)
    return s

async def list_spots(session: AsyncSession) -> list[Spot]:
    q = select(Spot).order_by(Spot.created_at.desc(), Spot.id.desc())
    return list((await session.execute(q)).scalars().all())

async def get_spot_or_404(session: AsyncSession, spot_id: UUID) -> Spot:
    s = await session.get(Spot, spot_id)
    if not s:
        raise NotFound("Spot not found")
    return s

async def bounties_at_spot(session: AsyncSession, spot_id: UUID) -> list[Bounty]:
    q = select(Bounty).where(Bounty.spot_id == spot_id).order_by(Bounty.created_at.desc(), Bounty.id.desc())
    return list((await session.execute(q)).scalars().all())

async def upload_spot_image(identity: Identity, data: bytes) -> str:
    """Validate and store a spot photo; returns the public URL to put on the spot."""
    user_id = identity.require("upload an image")
    mime = validate_image(data)
    key = f"user_{user_id}/{uuid.uuid4().hex}.{ext_for_mime(mime)}"
    try:
        url = await run_in_threadpool(storage.upload, key, data, mime)
    except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
        log.error("spot_image_upload_failed", key=key, error=str(e))
        raise TransientError("Could not store the image, try again", field="image") from e
    log.info("spot_image_uploaded", key=key, bytes=len(data))
    return url
