from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy import select, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skatebounty.config import settings
from skatebounty.errors import ConstraintViolation, Forbidden, NotFound, ValidationError
from skatebounty.identity import Identity
from skatebounty.models.bounty import Bounty, Acceptance
from skatebounty.models.spot import Spot
from skatebounty.schemas.bounty import (
    AcceptancePublic, BountyCreate, BountyPublic, FreeTextReward, NumericReward,
)
from skatebounty.services.persistence import commit_or_raise
from skatebounty.services.realtime import Notifier, publish_change
from skatebounty.services.validators import as_utc, parse_reward, reward_label, validate_trick

log = structlog.get_logger()

def derive_state(b: Bounty, now: datetime) -> str:
    if b.status == "closed":
        return "closed"
    if b.expires_at is not None and as_utc(now) > as_utc(b.expires_at):
        return "expired"
    return "open"

def load_reward(b: Bounty) -> NumericReward | FreeTextReward | None:
    if b.reward_kind == "numeric" and b.reward_amount is not None:
        return NumericReward(amount=b.reward_amount, currency_hint=b.reward_currency)
    if b.reward_kind == "text" and b.reward_text:
        return FreeTextReward(text=b.reward_text)
    return None

def store_reward(b: Bounty, reward: NumericReward | FreeTextReward | None) -> None:
    b.reward_kind = b.reward_amount = b.reward_currency = b.reward_text = None
    if isinstance(reward, NumericReward):
        b.reward_kind = "numeric"
        b.reward_amount = reward.amount
        b.reward_currency = reward.currency_hint
    elif isinstance(reward, FreeTextReward):
        b.reward_kind = "text"
        b.reward_text = reward.text

def to_public(b: Bounty, now: datetime | None = None) -> BountyPublic:
    now = now or datetime.now(dt_tz.utc)
    reward = load_reward(b)
    return BountyPublic(
        id=b.id,
        owner_id=b.owner_id,
        trick=b.trick,
        reward=reward,
        reward_label=reward_label(reward),
        reward_type=b.reward_type,
        status=b.status,
        state=derive_state(b, now),
        spot_id=b.spot_id,
        expires_at=as_utc(b.expires_at) if b.expires_at else None,
        created_at=as_utc(b.created_at),
    )

def acceptance_public(a: Acceptance) -> AcceptancePublic:
    return AcceptancePublic(id=a.id, bounty_id=a.bounty_id, user_id=a.user_id, created_at=as_utc(a.created_at))

async def get_bounty_or_404(session: AsyncSession, bounty_id: UUID) -> Bounty:
    b = await session.get(Bounty, bounty_id)
    if not b:
        raise NotFound("Bounty not found")
    return b

async def create_bounty(
    session: AsyncSession,
    identity: Identity,
    payload: BountyCreate,
    notifier: Notifier | None = None,
    allow_free_text: bool | None = None,
) -> Bounty:
    user_id = identity.require("post a bounty")
    trick = validate_trick(payload.trick)
    if allow_free_text is None:
        allow_free_text = settings.allow_free_text_rewards
    reward = parse_reward(payload.reward, allow_free_text=allow_free_text)
    reward_type = (payload.reward_type or "").strip() or None

    expires_at = None
    if payload.expires_at is not None:
        expires_at = as_utc(payload.expires_at)
        if expires_at <= datetime.now(dt_tz.utc):
            raise ValidationError("Expiry must be in the future.", field="expires_at")

    if payload.spot_id is not None and not await session.get(Spot, payload.spot_id):
        raise NotFound("Spot not found", field="spot_id")

    b = Bounty(
        owner_id=user_id,
        trick=trick,
        reward_type=reward_type,
        status="open",
        spot_id=payload.spot_id,
        expires_at=expires_at,
    )
    store_reward(b, reward)
    session.add(b)
    await commit_or_raise(session, "Could not create bounty")
    await session.refresh(b)
    log.info("bounty_created", bounty_id=str(b.id), owner_id=str(user_id), reward_kind=b.reward_kind)

    await publish_change(notifier, "bounties", "INSERT", to_public(b).model_dump(mode="json"))
    return b

async def close_bounty(
    session: AsyncSession,
    identity: Identity,
    bounty_id: UUID,
    notifier: Notifier | None = None,
) -> Bounty:
    """Administrative open -> closed. Owner only; closing twice is a no-op."""
    user_id = identity.require("close this bounty")
    b = await get_bounty_or_404(session, bounty_id)
    if b.owner_id != user_id:
        raise Forbidden("Only the owner can close this bounty")
    if b.status == "closed":
        return b
    b.status = "closed"
    await commit_or_raise(session, "Could not close bounty")
    log.info("bounty_closed", bounty_id=str(b.id))
    await publish_change(notifier, "bounties", "UPDATE", to_public(b).model_dump(mode="json"))
    return b

async def has_accepted(session: AsyncSession, bounty_id: UUID, user_id: UUID | None) -> bool:
    if user_id is None:
        return False
    return bool(await session.scalar(
        select(exists().where(Acceptance.bounty_id == bounty_id, Acceptance.user_id == user_id))
    ))

async def accept_bounty(session: AsyncSession, identity: Identity, bounty_id: UUID) -> Acceptance:
    user_id = identity.require("accept this bounty")
    b = await get_bounty_or_404(session, bounty_id)
    if b.status == "closed":
        raise ConstraintViolation("This bounty is closed")

    # The unique (bounty_id, user_id) constraint serializes concurrent attempts
    acc = Acceptance(bounty_id=b.id, user_id=user_id)
    session.add(acc)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        log.info("accept_duplicate", bounty_id=str(bounty_id), user_id=str(user_id))
        raise ConstraintViolation("You already accepted this bounty") from e
    await session.refresh(acc)
    log.info("bounty_accepted", bounty_id=str(bounty_id), user_id=str(user_id))
    return acc
