"""
Row-level change feed.

`subscribe(table, on_insert, on_update, on_delete)` returns an async
`unsubscribe()`. Handlers receive the row as a JSON-ready dict and may be
plain functions or coroutines. Delivery is at-least-once from the consumer's
point of view, so consumers merge rows by primary key.

Only tables listed in settings.realtime_tables are published; bounties by
default. Submissions and votes use the same path once listed there.
"""
from __future__ import annotations
import asyncio
import inspect
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

import structlog
from pydantic import BaseModel

from skatebounty.config import settings

log = structlog.get_logger()

EventType = Literal["INSERT", "UPDATE", "DELETE"]
Handler = Callable[[dict[str, Any]], Any]
Unsubscribe = Callable[[], Awaitable[None]]


class RealtimeEvent(BaseModel):
    table: str
    type: EventType
    row: dict[str, Any]


@dataclass
class _Subscription:
    table: str
    on_insert: Handler | None = None
    on_update: Handler | None = None
    on_delete: Handler | None = None

    async def dispatch(self, event: RealtimeEvent) -> None:
        handler = {"INSERT": self.on_insert, "UPDATE": self.on_update, "DELETE": self.on_delete}[event.type]
        if handler is None:
            return
        result = handler(event.row)
        if inspect.isawaitable(result):
            await result


class Notifier(ABC):
    @abstractmethod
    async def publish(self, table: str, type: EventType, row: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        on_insert: Handler | None = None,
        on_update: Handler | None = None,
        on_delete: Handler | None = None,
    ) -> Unsubscribe:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class MemoryNotifier(Notifier):
    """Single-process fan-out. Default for dev and tests."""

    def __init__(self) -> None:
        self._subs: dict[str, list[_Subscription]] = defaultdict(list)

    async def publish(self, table, type, row):
        event = RealtimeEvent(table=table, type=type, row=row)
        for sub in list(self._subs[table]):
            try:
                await sub.dispatch(event)
            except Exception:
                # One broken subscriber must not stop the others
                log.exception("realtime_handler_failed", table=table, type=type)

    async def subscribe(self, table, on_insert=None, on_update=None, on_delete=None):
        sub = _Subscription(table, on_insert, on_update, on_delete)
        self._subs[table].append(sub)

        async def unsubscribe() -> None:
            if sub in self._subs[table]:
                self._subs[table].remove(sub)

        return unsubscribe

    def subscriber_count(self, table: str) -> int:
        return len(self._subs[table])


class RedisNotifier(Notifier):
    """Cross-process fan-out over Redis pub/sub, one channel per table."""

    def __init__(self, url: str, prefix: str) -> None:
        import redis.asyncio as aioredis
        self._redis = aioredis.from_url(url)
        self._prefix = prefix

    def channel(self, table: str) -> str:
        return f"{self._prefix}:{table}"

    async def publish(self, table, type, row):
        event = RealtimeEvent(table=table, type=type, row=row)
        await self._redis.publish(self.channel(table), event.model_dump_json())

    async def subscribe(self, table, on_insert=None, on_update=None, on_delete=None):
        sub = _Subscription(table, on_insert, on_update, on_delete)
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel(table))
        task = asyncio.create_task(self._listen(pubsub, sub))

        async def unsubscribe() -> None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            await pubsub.unsubscribe(self.channel(table))
            await pubsub.aclose()

        return unsubscribe

    async def _listen(self, pubsub, sub: _Subscription) -> None:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                event = RealtimeEvent.model_validate_json(message["data"])
                await sub.dispatch(event)
            except Exception:
                log.exception("realtime_handler_failed", table=sub.table)

    async def aclose(self) -> None:
        await self._redis.aclose()


_notifier: Notifier | None = None

def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        if settings.realtime_backend == "redis":
            _notifier = RedisNotifier(settings.redis_url, settings.realtime_channel_prefix)
        else:
            _notifier = MemoryNotifier()
    return _notifier

async def publish_change(notifier: Notifier | None, table: str, type: EventType, row: dict[str, Any]) -> None:
    """Publish if the table is on the realtime list; a failed publish never fails the write."""
    if notifier is None or table not in settings.realtime_tables:
        return
    try:
        await notifier.publish(table, type, row)
    except Exception:
        log.exception("realtime_publish_failed", table=table, type=type)
