"""Popularity tiers for listings based on views against an age-decaying threshold."""

from __future__ import annotations

import logging
from datetime import datetime

from catalog_feed.models import Listing, Tier

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

# (max age in days, inclusive; views threshold)
AGE_THRESHOLDS = (
    (1.0, 20),
    (7.0, 35),
    (30.0, 50),
)
DEFAULT_THRESHOLD = 100
SUPER_HOT_MULTIPLIER = 2


def age_in_days(listing: Listing, now: datetime) -> float:
    """Return listing age in days, clamping future timestamps to 0."""
    age = (now - listing.created_at).total_seconds() / SECONDS_PER_DAY
    if age < 0:
        logger.debug(
            "Clock skew for listing %s: created_at %s is after now %s",
            listing.id, listing.created_at.isoformat(), now.isoformat(),
        )
        return 0.0
    return age


def threshold_for_age(age_days: float) -> int:
    for max_age, threshold in AGE_THRESHOLDS:
        if age_days <= max_age:
            return threshold
    return DEFAULT_THRESHOLD


def classify(listing: Listing, now: datetime) -> Tier:
    """Classify a listing as normal, hot or super-hot.

    Younger listings need fewer views to be flagged. ``now`` must be the
    same value for every listing in one ranking pass.
    """
    threshold = threshold_for_age(age_in_days(listing, now))
    views = listing.views_count
    if views >= SUPER_HOT_MULTIPLIER * threshold:
        return Tier.SUPER_HOT
    if views >= threshold:
        return Tier.HOT
    return Tier.NORMAL
