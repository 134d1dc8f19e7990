"""Normalize raw listing API documents to Listing objects."""

import re
from datetime import datetime, timezone

from catalog_feed.models import Listing, ListingStatus


def extract_price(raw_price: str | int | float | None) -> float | None:
    """Extract a numeric price from various formats.

    Handles: 350000, "350,000", "$350,000 MXN", "350000.50", etc.
    """
    if raw_price is None or isinstance(raw_price, bool):
        return None
    if isinstance(raw_price, (int, float)):
        return float(raw_price)
    cleaned = re.sub(r"[^\d.]", "", str(raw_price))
    if not cleaned or cleaned.count(".") > 1:
        return None
    return float(cleaned)


def parse_timestamp(value) -> datetime | None:
    """Parse ISO timestamps (with trailing Z) or epoch millis into UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, dict) and "$date" in value:
        return parse_timestamp(value["$date"])
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _count(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _int_or_none(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


TRUE_STRINGS = {"true", "1", "yes", "y", "on"}


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _status(value) -> ListingStatus:
    try:
        return ListingStatus(str(value).lower())
    except ValueError:
        return ListingStatus.ACTIVE


def _listing_id(raw: dict) -> str:
    lid = raw.get("id") or raw.get("_id")
    if isinstance(lid, dict):
        lid = lid.get("$oid")
    return str(lid or "")


def normalize_listing(raw: dict) -> Listing:
    """Convert a raw listing document to a Listing."""
    listing_id = _listing_id(raw)
    if not listing_id:
        raise ValueError("Listing document has no id")

    created_at = parse_timestamp(raw.get("createdAt") or raw.get("created_at"))
    if created_at is None:
        raise ValueError(f"Listing {listing_id} has no valid createdAt")

    location = raw.get("location") if isinstance(raw.get("location"), dict) else {}

    return Listing(
        id=listing_id,
        created_at=created_at,
        views_count=_count(raw.get("viewsCount", raw.get("views_count"))),
        likes_count=_count(raw.get("likesCount", raw.get("likes_count"))),
        status=_status(raw.get("status", "active")),
        is_featured=_flag(raw.get("isFeatured", raw.get("is_featured", False))),
        title=raw.get("title"),
        brand=raw.get("brand"),
        model=raw.get("model"),
        year=_int_or_none(raw.get("year")),
        price=extract_price(raw.get("price")),
        description=raw.get("description"),
        city=location.get("city") or raw.get("city"),
        state=location.get("state") or raw.get("state"),
        updated_at=parse_timestamp(raw.get("updatedAt") or raw.get("updated_at")),
    )
