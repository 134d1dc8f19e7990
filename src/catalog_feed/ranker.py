"""Deterministic feed ordering for each sort mode."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from catalog_feed.hotness import classify
from catalog_feed.models import Listing, SortMode

logger = logging.getLogger(__name__)

DEFAULT_SORT_MODE = SortMode.HOT


def parse_sort_mode(value: str | SortMode | None) -> SortMode:
    """Map a wire name like ``price_low`` to a SortMode, defaulting to hot."""
    if isinstance(value, SortMode):
        return value
    if not value:
        return DEFAULT_SORT_MODE
    try:
        return SortMode(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown sort mode %r, falling back to %s", value, DEFAULT_SORT_MODE.value)
        return DEFAULT_SORT_MODE


def _ts(listing: Listing) -> float:
    return listing.created_at.timestamp()


def _price_key(listing: Listing, descending: bool) -> tuple[int, float]:
    # Unpriced listings go last in both directions.
    if listing.price is None:
        return (1, 0.0)
    return (0, -listing.price if descending else listing.price)


def sort_key(sort_mode: SortMode, now: datetime) -> Callable[[Listing], tuple]:
    """Return a total-order key function; every key ends with the listing id."""
    if sort_mode == SortMode.RECENT:
        return lambda x: (-_ts(x), x.id)
    if sort_mode == SortMode.OLDEST:
        return lambda x: (_ts(x), x.id)
    if sort_mode == SortMode.PRICE_LOW:
        return lambda x: (_price_key(x, False), -_ts(x), x.id)
    if sort_mode == SortMode.PRICE_HIGH:
        return lambda x: (_price_key(x, True), -_ts(x), x.id)
    if sort_mode == SortMode.POPULAR:
        return lambda x: (-x.likes_count, -_ts(x), x.id)
    if sort_mode == SortMode.VIEWS:
        return lambda x: (-x.views_count, -_ts(x), x.id)
    return lambda x: (-classify(x, now).rank, -x.views_count, -_ts(x), x.id)


def rank_batch(
    listings: Iterable[Listing],
    sort_mode: SortMode | str | None,
    now: datetime,
) -> list[Listing]:
    """Sort a batch of listings for the given mode at a fixed ``now``."""
    mode = parse_sort_mode(sort_mode)
    return sorted(listings, key=sort_key(mode, now))
