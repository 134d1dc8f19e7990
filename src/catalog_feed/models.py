"""Shared listing, query and result types for the catalog feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

# Fraction of all listings reported as the matching total, regardless of filters.
ESTIMATE_RATIO = 0.8


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    RESERVED = "reserved"
    INACTIVE = "inactive"


class Tier(str, Enum):
    NORMAL = "normal"
    HOT = "hot"
    SUPER_HOT = "super-hot"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]


_TIER_RANKS = {Tier.NORMAL: 0, Tier.HOT: 1, Tier.SUPER_HOT: 2}


class SortMode(str, Enum):
    HOT = "hot"
    RECENT = "recent"
    OLDEST = "oldest"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    POPULAR = "popular"
    VIEWS = "views"


@dataclass(frozen=True)
class Listing:
    id: str
    created_at: datetime
    views_count: int = 0
    likes_count: int = 0
    status: ListingStatus = ListingStatus.ACTIVE
    is_featured: bool = False
    title: str | None = None
    brand: str | None = None
    model: str | None = None
    year: int | None = None
    price: float | None = None
    description: str | None = None
    city: str | None = None
    state: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class FeedFilter:
    status: ListingStatus | None = ListingStatus.ACTIVE
    brand: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_year: int | None = None
    max_year: int | None = None
    city: str | None = None
    state: str | None = None
    search_text: str | None = None


@dataclass(frozen=True)
class FeedQuery:
    filter: FeedFilter = field(default_factory=FeedFilter)
    sort_mode: SortMode = SortMode.HOT
    skip: int = 0
    limit: int = 12


@dataclass
class FeedPage:
    items: list[Listing]
    approximate_total: int | None = None


@dataclass(frozen=True)
class IngestResult:
    appended_count: int
    exhausted: bool
    rejected: bool = False


class ListingStore(Protocol):
    """Read side of the listing store consumed by the feed.

    ``query_listings`` returns ``None`` when no page could be delivered.
    ``estimate_matching_total`` is approximate and must not be used to
    decide when pagination ends.
    """

    def query_listings(
        self,
        query_filter: FeedFilter,
        sort_mode: SortMode,
        skip: int,
        limit: int,
    ) -> list[Listing] | None: ...

    def estimate_matching_total(self, query_filter: FeedFilter) -> int | None: ...
