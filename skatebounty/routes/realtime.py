from __future__ import annotations
import asyncio
import json
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from skatebounty.config import settings
from skatebounty.services.realtime import Notifier, get_notifier

router = APIRouter(prefix="/realtime", tags=["realtime"])

KEEPALIVE_SECONDS = 15

@router.get("/{table}")
async def stream_changes(table: str, request: Request, notifier: Notifier = Depends(get_notifier)):
    """Server-sent events: one `event: INSERT|UPDATE|DELETE` frame per changed row."""
    if table not in settings.realtime_tables:
        raise HTTPException(status_code=404, detail="No realtime channel for that table")

    queue: asyncio.Queue[tuple[str, dict]] = asyncio.Queue()
    unsubscribe = await notifier.subscribe(
        table,
        on_insert=lambda row: queue.put_nowait(("INSERT", row)),
        on_update=lambda row: queue.put_nowait(("UPDATE", row)),
        on_delete=lambda row: queue.put_nowait(("DELETE", row)),
    )

    async def frames():
        try:
            while not await request.is_disconnected():
                try:
                    kind, row = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {kind}\ndata: {json.dumps(row)}\n\n"
        finally:
            await unsubscribe()

    return StreamingResponse(frames(), media_type="text/event-stream")
