from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime

class HandleUpdate(BaseModel):
    handle: str

class ProfilePublic(BaseModel):
    id: UUID
    handle: str | None = None
    created_at: datetime
    display_name: str

class ProfileLookup(BaseModel):
    ids: list[UUID] = Field(default_factory=list, max_length=500)
