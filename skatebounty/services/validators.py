"""
Input rules shared by the service layer and the client SDK.

Everything here is pure: no I/O, no session. Each failure raises
`ValidationError` carrying the offending field so callers can render it
next to the input.
"""
from __future__ import annotations
import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from skatebounty.errors import ValidationError
from skatebounty.schemas.bounty import NumericReward, FreeTextReward

IG_URL_RE = re.compile(
    r"^https?://(?:www\.)?instagram\.com/(p|reel|tv)/([A-Za-z0-9_-]+)(?:[/?#].*)?$",
    re.IGNORECASE,
)
IG_HOST_RE = re.compile(r"^https?://(?:www\.)?instagram\.com(?:[/?#:]|$)", re.IGNORECASE)
HANDLE_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")
REWARD_RE = re.compile(r"^(-)?\s*([$€£])?\s*(-)?\s*(\d[\d,]*(?:\.\d+)?)\s*([A-Za-z]{3})?$")

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}
CENTS = Decimal("0.01")
MAX_REWARD = Decimal("10000000000")  # NUMERIC(12, 2)

POSTED_BEFORE_BOUNTY = "Instagram post must be on/after the bounty creation date"


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken as UTC (SQLite hands them back without tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def validate_trick(trick: str | None) -> str:
    value = (trick or "").strip()
    if not value:
        raise ValidationError("Please enter a trick.", field="trick")
    if len(value) > 120:
        raise ValidationError("Trick must be at most 120 characters.", field="trick")
    return value


def validate_title(title: str | None) -> str:
    value = (title or "").strip()
    if not value:
        raise ValidationError("Please enter a spot title.", field="title")
    if len(value) > 120:
        raise ValidationError("Title must be at most 120 characters.", field="title")
    return value


def validate_handle(handle: str | None) -> str:
    value = (handle or "").strip()
    if not HANDLE_RE.match(value):
        raise ValidationError("Handle must be 3-20 letters, numbers or underscores.", field="handle")
    return value


def validate_coordinates(lat: float | None, lng: float | None) -> tuple[float | None, float | None]:
    if lat is None and lng is None:
        return None, None
    if lat is None or lng is None:
        missing = "lat" if lat is None else "lng"
        raise ValidationError("Latitude and longitude must be provided together.", field=missing)
    if not math.isfinite(lat) or not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90.", field="lat")
    if not math.isfinite(lng) or not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180.", field="lng")
    return float(lat), float(lng)


def _positive_amount(amount: Decimal) -> Decimal:
    if amount >= MAX_REWARD:
        raise ValidationError("Reward is too large.", field="reward")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError("Reward must be a positive number.", field="reward")
    return amount


def parse_reward(raw, allow_free_text: bool = True) -> NumericReward | FreeTextReward | None:
    """
    Turn what the user typed into the reward union.

      None / ""          -> None
      20, "20", "$20"    -> NumericReward(20.00, USD for "$")
      "15 eur"           -> NumericReward(15.00, "EUR")
      "0", "-5"          -> ValidationError
      "pizza"            -> FreeTextReward when allowed, else ValidationError
    """
    if raw is None:
        return None
    if isinstance(raw, NumericReward):
        return NumericReward(amount=_positive_amount(raw.amount), currency_hint=raw.currency_hint)
    if isinstance(raw, FreeTextReward):
        if not allow_free_text:
            raise ValidationError("Reward must be a positive number.", field="reward")
        return raw
    if isinstance(raw, bool):
        raise ValidationError("Reward must be a positive number.", field="reward")
    if isinstance(raw, (int, float, Decimal)):
        try:
            amount = Decimal(str(raw))
        except InvalidOperation:
            raise ValidationError("Reward must be a positive number.", field="reward")
        if not amount.is_finite():
            raise ValidationError("Reward must be a positive number.", field="reward")
        return NumericReward(amount=_positive_amount(amount))

    text = str(raw).strip()
    if not text:
        return None
    m = REWARD_RE.match(text)
    if m:
        neg_before, symbol, neg_after, digits, code = m.groups()
        if neg_before or neg_after:
            raise ValidationError("Reward must be a positive number.", field="reward")
        amount = Decimal(digits.replace(",", ""))
        currency = CURRENCY_SYMBOLS.get(symbol) if symbol else (code.upper() if code else None)
        return NumericReward(amount=_positive_amount(amount), currency_hint=currency)
    if not allow_free_text:
        raise ValidationError("Reward must be a positive number.", field="reward")
    if len(text) > 120:
        raise ValidationError("Reward must be at most 120 characters.", field="reward")
    return FreeTextReward(text=text)


def reward_label(reward: NumericReward | FreeTextReward | None) -> str | None:
    if reward is None:
        return None
    if isinstance(reward, FreeTextReward):
        return reward.text
    amount = reward.amount
    shown = str(int(amount)) if amount == amount.to_integral_value() else f"{amount:.2f}"
    if reward.currency_hint == "USD":
        return f"${shown}"
    if reward.currency_hint:
        return f"{shown} {reward.currency_hint}"
    return shown


def normalize_instagram_url(url: str | None) -> str:
    """
    Canonical permalink used as the duplicate-detection key:
    https, www host, lower-case post kind, slug only (trailing path, query and
    fragment dropped), trailing slash.
    """
    value = (url or "").strip()
    if not value:
        raise ValidationError("Paste your Instagram post URL.", field="post_url")
    m = IG_URL_RE.match(value)
    if not m:
        if IG_HOST_RE.match(value):
            raise ValidationError("Use a post, reel or tv URL (not a profile or home link).", field="post_url")
        raise ValidationError("That is not a valid Instagram URL.", field="post_url")
    kind, slug = m.group(1).lower(), m.group(2)
    return f"https://www.instagram.com/{kind}/{slug}/"


def extract_embed(url: str | None) -> dict[str, str] | None:
    if not url:
        return None
    m = IG_URL_RE.match(url.strip())
    if not m:
        return None
    kind, slug = m.group(1).lower(), m.group(2)
    base = f"https://www.instagram.com/{kind}/{slug}"
    return {
        "kind": kind,
        "slug": slug,
        "permalink": f"{base}/",
        "embed_url": f"{base}/embed",
        "media_url": f"{base}/media/?size=l",
    }


def parse_timestamp(value: str | datetime | None, field: str = "posted_at") -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError("Timestamp must be an ISO-8601 date and time.", field=field)
    return as_utc(parsed)


def assert_posted_after(bounty_created_at: datetime, posted_at: datetime) -> None:
    if as_utc(posted_at) < as_utc(bounty_created_at):
        raise ValidationError(POSTED_BEFORE_BOUNTY, field="posted_at")
