from __future__ import annotations
import asyncio
from datetime import datetime, timezone
from contextlib import suppress
from typing import Any, Iterable

import structlog

from skatebounty.client.api import BountyClient
from skatebounty.errors import TransientError, ValidationError
from skatebounty.services.realtime import Notifier, RealtimeEvent, Unsubscribe
from skatebounty.services.validators import parse_timestamp

log = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(row: dict[str, Any]) -> tuple[datetime, str]:
    # Rows carry ISO-8601 strings whose fractional part is omitted when zero,
    # so they have to be compared as datetimes
    try:
        created = parse_timestamp(row.get("created_at"), field="created_at") or _EPOCH
    except ValidationError:
        created = _EPOCH
    return created, str(row["id"])


class LiveBountyFeed:
    """
    Bounty list kept current by row-level change events.

    Rows are merged by id, so an INSERT that arrives twice (or after the
    row was already loaded) never produces a duplicate.
    """

    def __init__(self, rows: Iterable[dict[str, Any]] = ()):
        self._rows: dict[str, dict[str, Any]] = {}
        self.replace(rows)
        self._unsubscribe: Unsubscribe | None = None
        self._task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, bounty_id) -> bool:
        return str(bounty_id) in self._rows

    def replace(self, rows: Iterable[dict[str, Any]]) -> None:
        self._rows = {str(r["id"]): dict(r) for r in rows}

    def apply_insert(self, row: dict[str, Any]) -> bool:
        key = str(row["id"])
        if key in self._rows:
            return False
        self._rows[key] = dict(row)
        return True

    def apply_update(self, row: dict[str, Any]) -> None:
        key = str(row["id"])
        self._rows[key] = {**self._rows.get(key, {}), **row}

    def apply_delete(self, row: dict[str, Any]) -> None:
        self._rows.pop(str(row["id"]), None)

    def apply(self, event: RealtimeEvent) -> None:
        if event.type == "INSERT":
            self.apply_insert(event.row)
        elif event.type == "UPDATE":
            self.apply_update(event.row)
        else:
            self.apply_delete(event.row)

    def snapshot(self) -> list[dict[str, Any]]:
        return sorted(self._rows.values(), key=_created_key, reverse=True)

    async def attach(self, notifier: Notifier, table: str = "bounties") -> None:
        """In-process subscription, used when the feed lives next to the API."""
        await self.detach()
        self._unsubscribe = await notifier.subscribe(
            table, on_insert=self.apply_insert, on_update=self.apply_update, on_delete=self.apply_delete,
        )

    async def follow(self, client: BountyClient, table: str = "bounties", reload: bool = True) -> asyncio.Task:
        """Follow the server's SSE stream in a background task."""
        if reload:
            self.replace(await client.list_bounties())

        async def run() -> None:
            try:
                async for event in client.stream_events(table):
                    self.apply(event)
            except TransientError as e:
                log.warning("live_feed_disconnected", error=e.message)

        self._task = asyncio.create_task(run())
        return self._task

    async def detach(self) -> None:
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None

    async def aclose(self) -> None:
        await self.detach()
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
