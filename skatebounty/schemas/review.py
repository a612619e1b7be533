from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID

class VoteResult(BaseModel):
    submission_id: UUID
    voted: bool
    vote_count: int
    verified: bool
    degraded: bool = False
