from __future__ import annotations
from datetime import datetime
from typing import Awaitable, Callable
import httpx
import structlog

from skatebounty.config import settings
from skatebounty.errors import ValidationError
from skatebounty.services.validators import parse_timestamp

log = structlog.get_logger()

TimestampLookup = Callable[[str], Awaitable[datetime | None]]

async def fetch_post_timestamp(permalink: str, client: httpx.AsyncClient | None = None) -> datetime | None:
    """
    Ask the oEmbed endpoint when the post was published.
    Any failure (network, status, payload) yields None; callers decide whether
    a missing timestamp is acceptable.
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
    try:
        resp = await client.get(settings.instagram_oembed_url, params={"url": permalink})
        if resp.status_code != 200:
            log.warning("oembed_lookup_failed", permalink=permalink, status=resp.status_code)
            return None
        data = resp.json()
        raw = data.get("timestamp") if isinstance(data, dict) else None
        if not raw:
            log.info("oembed_no_timestamp", permalink=permalink)
            return None
        return parse_timestamp(str(raw))
    except (httpx.HTTPError, ValueError, ValidationError) as e:
        log.warning("oembed_lookup_error", permalink=permalink, error=str(e))
        return None
    finally:
        if owns_client:
            await client.aclose()

def get_timestamp_lookup() -> TimestampLookup:
    return fetch_post_timestamp
