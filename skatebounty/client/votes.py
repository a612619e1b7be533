from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable

import structlog

from skatebounty.client.api import BountyClient
from skatebounty.services.votes import is_verified

log = structlog.get_logger()


class _Pending:
    __slots__ = ("voted",)

    def __init__(self, voted: bool):
        self.voted = voted


@dataclass
class _Entry:
    # last authoritative value (load or server response)
    base_count: int = 0
    base_voted: bool = False
    # optimistic changes still in flight, oldest first
    pending: list[_Pending] = field(default_factory=list)

    @property
    def count(self) -> int:
        n = self.base_count
        for p in self.pending:
            n = n + 1 if p.voted else max(0, n - 1)
        return n

    @property
    def voted(self) -> bool:
        return self.pending[-1].voted if self.pending else self.base_voted


class VoteBoard:
    """
    Optimistic vote state for one screen of submissions.

    What is shown is the last authoritative value with every in-flight
    vote/unvote replayed over it. A failed request drops only its own change,
    so overlapping failures land back on exactly the prior state; a success
    makes the server's count the new base. load() replaces the base and
    forgets in-flight changes.
    """

    def __init__(self, client: BountyClient, threshold: int | None = None):
        self.client = client
        self.threshold = threshold
        self._entries: dict[str, _Entry] = {}

    def load(self, submissions: Iterable[dict]) -> None:
        for s in submissions:
            self._entries[str(s["id"])] = _Entry(
                base_count=int(s.get("vote_count") or 0), base_voted=bool(s.get("voted_by_me")),
            )

    def count(self, submission_id) -> int:
        e = self._entries.get(str(submission_id))
        return e.count if e else 0

    def has_voted(self, submission_id) -> bool:
        e = self._entries.get(str(submission_id))
        return bool(e and e.voted)

    def verified(self, submission_id) -> bool:
        return is_verified(self.count(submission_id), self.threshold)

    async def vote(self, submission_id) -> dict:
        return await self._apply(submission_id, voted=True)

    async def unvote(self, submission_id) -> dict:
        return await self._apply(submission_id, voted=False)

    def _discard(self, key: str, op: _Pending) -> _Entry | None:
        e = self._entries.get(key)
        if e is None or op not in e.pending:
            return None
        e.pending.remove(op)
        return e

    async def _apply(self, submission_id, voted: bool) -> dict:
        key = str(submission_id)
        op = _Pending(voted)
        self._entries.setdefault(key, _Entry()).pending.append(op)
        try:
            if voted:
                result = await self.client.vote(submission_id)
            else:
                result = await self.client.unvote(submission_id)
        except Exception:
            self._discard(key, op)
            log.info("vote_rolled_back", submission_id=key, voted=voted)
            raise
        e = self._discard(key, op) or self._entries[key]
        e.base_count = int(result["vote_count"])
        e.base_voted = bool(result["voted"])
        return result
