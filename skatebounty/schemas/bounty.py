from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Annotated, Literal, Union
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from skatebounty.schemas.profile import ProfilePublic

BountyStatus = Literal["open", "closed"]
DerivedState = Literal["open", "expired", "closed"]
StatusFilter = Literal["open", "closed", "all"]

class NumericReward(BaseModel):
    kind: Literal["numeric"] = "numeric"
    amount: Decimal = Field(gt=0)
    currency_hint: str | None = None

class FreeTextReward(BaseModel):
    kind: Literal["text"] = "text"
    text: str = Field(min_length=1, max_length=120)

Reward = Annotated[Union[NumericReward, FreeTextReward], Field(discriminator="kind")]

class BountyCreate(BaseModel):
    trick: str = Field(max_length=120)
    # Raw input ("20", "$20", "pizza") or an already-tagged reward
    reward: NumericReward | FreeTextReward | Decimal | str | None = None
    reward_type: str | None = Field(default=None, max_length=32)
    spot_id: UUID | None = None
    expires_at: datetime | None = None

class BountyPublic(BaseModel):
    id: UUID
    owner_id: UUID
    trick: str
    reward: Reward | None = None
    reward_label: str | None = None
    reward_type: str | None = None
    status: BountyStatus
    state: DerivedState
    spot_id: UUID | None = None
    expires_at: datetime | None = None
    created_at: datetime

class FeedItem(BountyPublic):
    spot_title: str | None = None
    owner_handle: str | None = None
    owner_display: str

class AcceptancePublic(BaseModel):
    id: UUID
    bounty_id: UUID
    user_id: UUID
    created_at: datetime

class SpotCreate(BaseModel):
    title: str = Field(max_length=120)
    image_url: str | None = None
    lat: float | None = None
    lng: float | None = None

class SpotPublic(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    image_url: str | None = None
    lat: float | None = None
    lng: float | None = None
    created_at: datetime

class SpotDetail(BaseModel):
    spot: SpotPublic
    bounties: list[BountyPublic]

class BountyDetail(BaseModel):
    bounty: BountyPublic
    spot: SpotPublic | None = None
    owner: ProfilePublic | None = None
    owner_display: str
    accepted: bool = False
