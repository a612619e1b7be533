from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime


class ProofSubmit(BaseModel):
    post_url: str = ""
    # ISO-8601; kept as text so the validation pipeline can report a field error
    posted_at: str | None = None
    caption: str | None = Field(default=None, max_length=500)


class InstagramEmbed(BaseModel):
    kind: str
    slug: str
    permalink: str
    embed_url: str
    media_url: str


class SubmissionPublic(BaseModel):
    id: UUID
    bounty_id: UUID
    user_id: UUID
    media_url: str
    external_posted_at: datetime | None = None
    caption: str | None = None
    status: str
    created_at: datetime
    vote_count: int = 0
    verified: bool = False
    voted_by_me: bool = False
    embed: InstagramEmbed | None = None


class SubmissionList(BaseModel):
    items: list[SubmissionPublic]
    # True when counts came from enumerating votes because the aggregated view was unavailable
    degraded: bool = False
