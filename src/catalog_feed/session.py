"""One browsing session: fetch pages from a store, rank them, accumulate the feed."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from catalog_feed.accumulator import DEFAULT_PAGE_SIZE, FeedAccumulator
from catalog_feed.models import (
    FeedFilter,
    FeedPage,
    FeedQuery,
    IngestResult,
    Listing,
    ListingStore,
    SortMode,
)
from catalog_feed.ranker import parse_sort_mode, rank_batch

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FeedSession:
    """Drives infinite-scroll pagination against a ListingStore.

    At most one fetch runs at a time; a second trigger while one is pending
    is coalesced. A failed fetch delivers no page and leaves the feed state
    untouched, so the caller can simply retry.
    """

    def __init__(
        self,
        store: ListingStore,
        *,
        query_filter: FeedFilter | None = None,
        sort_mode: SortMode | str | None = SortMode.HOT,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.query_filter = query_filter or FeedFilter()
        self.sort_mode = parse_sort_mode(sort_mode)
        self.clock = clock
        self.accumulator = FeedAccumulator(page_size, self.query_filter)
        self.last_page: FeedPage | None = None
        self._in_flight = threading.Lock()
        self._state_lock = threading.Lock()
        self._generation = 0
        self._approximate_total: int | None = None

    @property
    def page_size(self) -> int:
        return self.accumulator.page_size

    @property
    def visible_feed(self) -> list[Listing]:
        return self.accumulator.get_visible_feed()

    def is_exhausted(self) -> bool:
        return self.accumulator.is_exhausted()

    @property
    def approximate_total(self) -> int | None:
        """Store estimate of matching listings. Informational only."""
        if self._approximate_total is None:
            try:
                self._approximate_total = self.store.estimate_matching_total(self.query_filter)
            except Exception as e:
                logger.warning("Total estimate unavailable: %s", e)
        return self._approximate_total

    def load_more(self) -> IngestResult | None:
        """Fetch and ingest the next page.

        Returns None when nothing was ingested: a fetch is already in flight,
        the feed is exhausted, the store failed, or the session was reset
        while the fetch was pending.
        """
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Fetch already in flight; coalescing trigger")
            return None
        try:
            if self.accumulator.is_exhausted():
                return None

            with self._state_lock:
                generation = self._generation
                query_filter = self.query_filter
                sort_mode = self.sort_mode
            page_index = self.accumulator.cursor
            query = FeedQuery(
                filter=query_filter,
                sort_mode=sort_mode,
                skip=(page_index - 1) * self.page_size,
                limit=self.page_size,
            )

            try:
                items = self.store.query_listings(query.filter, query.sort_mode, query.skip, query.limit)
            except Exception as e:
                logger.error("Fetching page %d failed: %s", page_index, e)
                return None
            if items is None:
                logger.warning("No page delivered for page %d", page_index)
                return None

            ranked = rank_batch(items, sort_mode, self.clock())
            approximate_total = self.approximate_total

            with self._state_lock:
                if generation != self._generation:
                    logger.info("Dropping page %d fetched before a reset", page_index)
                    return None
                self.last_page = FeedPage(items=ranked, approximate_total=approximate_total)
                result = self.accumulator.ingest_page(ranked, page_index)

            logger.info(
                "Page %d: +%d listings (visible %d, exhausted=%s)",
                page_index, result.appended_count, len(self.accumulator.get_visible_feed()),
                result.exhausted,
            )
            return result
        finally:
            self._in_flight.release()

    def reset(self, query_filter: FeedFilter | None = None, sort_mode: SortMode | str | None = None) -> None:
        """Start over, optionally with a new filter and/or sort mode."""
        with self._state_lock:
            self._generation += 1
            if query_filter is not None:
                self.query_filter = query_filter
            if sort_mode is not None:
                self.sort_mode = parse_sort_mode(sort_mode)
            self._approximate_total = None
            self.last_page = None
            self.accumulator.reset(self.query_filter)
        logger.info("Feed session reset (sort=%s)", self.sort_mode.value)

    def browse(self, max_pages: int) -> list[Listing]:
        """Load pages until exhausted, a page delivers nothing, or max_pages."""
        for _ in range(max_pages):
            if self.is_exhausted():
                break
            result = self.load_more()
            if result is None or result.appended_count == 0:
                break
        return self.visible_feed
