"""
Async SDK for the skatebounty API.

Every mutating call validates its input locally first (same rules the
server applies) and refuses to go out without a signed-in user, so local
mistakes never cost a round trip. Remote failures come back as the
classes in `skatebounty.errors`.
"""
from __future__ import annotations
import asyncio
import json
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator
from uuid import UUID

import httpx

from skatebounty.config import settings
from skatebounty.errors import ERRORS_BY_STATUS, BountyError, TransientError
from skatebounty.client.session import SessionStore
from skatebounty.services.realtime import RealtimeEvent
from skatebounty.services.validators import (
    assert_posted_after, normalize_instagram_url, parse_reward, parse_timestamp, validate_coordinates, validate_handle,
    validate_title, validate_trick,
)

def _error_from_response(resp: httpx.Response) -> BountyError:
    field = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail", resp.text)
        field = body.get("field")
    else:
        detail = resp.text
    if isinstance(detail, list):
        # FastAPI request validation: [{"loc": [...], "msg": "..."}]
        first = detail[0] if detail else {}
        loc = first.get("loc") or []
        field = str(loc[-1]) if loc else None
        detail = "; ".join(str(d.get("msg", d)) for d in detail)
    cls = ERRORS_BY_STATUS.get(resp.status_code)
    if cls is None:
        cls = TransientError if resp.status_code >= 500 else BountyError
    return cls(str(detail), field)

class BountyClient:
    def __init__(
        self,
        base_url: str,
        session: SessionStore | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        allow_free_text_rewards: bool = True,
    ):
        self.session = session or SessionStore()
        self.allow_free_text_rewards = allow_free_text_rewards
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout if timeout is not None else settings.http_timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> "BountyClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        token = self.session.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _require_user(self, action: str) -> UUID:
        return self.session.identity().require(action)

    async def _request(self, method: str, path: str, *, json_body: Any = None, params: dict | None = None, **kw) -> Any:
        try:
            resp = await self._http.request(method, path, json=json_body, params=params, headers=self._headers(), **kw)
        except httpx.TimeoutException as e:
            raise TransientError("The request timed out, try again") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Connection error: {e}") from e
        if resp.is_success:
            return resp.json() if resp.content else None
        raise _error_from_response(resp)

    # ---------- bounties ----------

    async def create_bounty(
        self,
        trick: str,
        reward: str | int | float | Decimal | None = None,
        reward_type: str | None = None,
        spot_id: UUID | None = None,
        expires_at: datetime | None = None,
    ) -> dict:
        self._require_user("post a bounty")
        parsed = parse_reward(reward, allow_free_text=self.allow_free_text_rewards)
        body = {
            "trick": validate_trick(trick),
            "reward": parsed.model_dump(mode="json") if parsed else None,
            "reward_type": reward_type,
            "spot_id": str(spot_id) if spot_id else None,
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
        return await self._request("POST", "/bounties", json_body=body)

    async def list_bounties(self, mine: bool = False, status: str = "all", q: str | None = None) -> list[dict]:
        if mine:
            self._require_user("see your bounties")
        params: dict[str, Any] = {"mine": int(mine), "status": status}
        if q:
            params["q"] = q
        return await self._request("GET", "/bounties", params=params)

    async def get_bounty(self, bounty_id: UUID) -> dict:
        return await self._request("GET", f"/bounties/{bounty_id}")

    async def close_bounty(self, bounty_id: UUID) -> dict:
        self._require_user("close this bounty")
        return await self._request("POST", f"/bounties/{bounty_id}/close")

    async def accept_bounty(self, bounty_id: UUID) -> dict:
        self._require_user("accept this bounty")
        return await self._request("POST", f"/bounties/{bounty_id}/accept")

    # ---------- proof + votes ----------

    async def submit_proof(
        self,
        bounty_id: UUID,
        post_url: str,
        posted_at: str | datetime | None = None,
        caption: str | None = None,
        bounty_created_at: str | datetime | None = None,
    ) -> dict:
        """
        Pass `bounty_created_at` when the bounty is already on screen; otherwise
        it is fetched so a backdated post is refused before anything is sent.
        """
        self._require_user("submit proof")
        permalink = normalize_instagram_url(post_url)
        ts = parse_timestamp(posted_at) if posted_at is not None else None
        if ts is not None:
            if bounty_created_at is None:
                bounty_created_at = (await self.get_bounty(bounty_id))["bounty"]["created_at"]
            assert_posted_after(parse_timestamp(bounty_created_at, field="created_at"), ts)
        body = {"post_url": permalink, "posted_at": ts.isoformat() if ts else None, "caption": caption}
        return await self._request("POST", f"/bounties/{bounty_id}/submissions", json_body=body)

    async def list_submissions(self, bounty_id: UUID) -> dict:
        return await self._request("GET", f"/bounties/{bounty_id}/submissions")

    async def submissions_by_user(self, user_id: UUID | None = None) -> dict:
        if user_id is None:
            user_id = self._require_user("see your submissions")
        return await self._request("GET", "/submissions", params={"user_id": str(user_id)})

    async def vote(self, submission_id: UUID) -> dict:
        self._require_user("vote")
        return await self._request("POST", f"/submissions/{submission_id}/vote")

    async def unvote(self, submission_id: UUID) -> dict:
        self._require_user("remove your vote")
        return await self._request("DELETE", f"/submissions/{submission_id}/vote")

    # ---------- spots + profiles ----------

    async def create_spot(
        self, title: str, image_url: str | None = None, lat: float | None = None, lng: float | None = None,
    ) -> dict:
        self._require_user("add a spot")
        lat, lng = validate_coordinates(lat, lng)
        body = {"title": validate_title(title), "image_url": image_url, "lat": lat, "lng": lng}
        return await self._request("POST", "/spots", json_body=body)

    async def upload_spot_image(self, data: bytes, content_type: str = "image/jpeg", filename: str = "spot.jpg") -> str:
        self._require_user("upload an image")
        out = await self._request("POST", "/spots/images", files={"image": (filename, data, content_type)})
        return out["url"]

    async def list_spots(self) -> list[dict]:
        return await self._request("GET", "/spots")

    async def get_spot(self, spot_id: UUID) -> dict:
        return await self._request("GET", f"/spots/{spot_id}")

    async def my_profile(self) -> dict:
        self._require_user("view your profile")
        return await self._request("GET", "/profiles/me")

    async def set_handle(self, handle: str) -> dict:
        self._require_user("set a handle")
        return await self._request("PUT", "/profiles/me/handle", json_body={"handle": validate_handle(handle)})

    async def lookup_profiles(self, ids: list[UUID]) -> dict[str, dict]:
        unique = list(dict.fromkeys(str(i) for i in ids))
        if not unique:
            return {}
        rows = await self._request("POST", "/profiles/lookup", json_body={"ids": unique})
        return {row["id"]: row for row in rows}

    # ---------- composite reads ----------

    async def load_bounty_screen(self, bounty_id: UUID) -> dict:
        """Bounty detail, ranked submissions and the profiles behind them, fetched concurrently."""
        detail, subs = await asyncio.gather(self.get_bounty(bounty_id), self.list_submissions(bounty_id))
        user_ids = [detail["bounty"]["owner_id"]] + [s["user_id"] for s in subs["items"]]
        profiles = await self.lookup_profiles(user_ids)
        return {"detail": detail, "submissions": subs, "profiles": profiles}

    async def stream_events(self, table: str = "bounties") -> AsyncIterator[RealtimeEvent]:
        """Follow the server-sent change feed. Runs until cancelled or the server closes it."""
        kind = None
        try:
            async with self._http.stream("GET", f"/realtime/{table}", headers=self._headers(), timeout=None) as resp:
                if not resp.is_success:
                    await resp.aread()
                    raise _error_from_response(resp)
                async for line in resp.aiter_lines():
                    if line.startswith("event:"):
                        kind = line.split(":", 1)[1].strip()
                    elif line.startswith("data:") and kind:
                        row = json.loads(line.split(":", 1)[1])
                        yield RealtimeEvent(table=table, type=kind, row=row)
                        kind = None
        except httpx.HTTPError as e:
            raise TransientError(f"Realtime connection lost: {e}") from e
