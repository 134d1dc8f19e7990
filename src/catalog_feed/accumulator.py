"""Merge successive feed pages into a duplicate-free, growing client feed."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from catalog_feed.models import FeedFilter, IngestResult, Listing

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12


class FeedAccumulator:
    """Client-visible feed state for one browsing session.

    The store pages with plain skip/limit and re-ranks on every query, so a
    listing can show up on two pages or move back past the fetched window.
    Deduplication by id plus the empty/short/all-seen page signals keep the
    visible feed correct without a stable server cursor.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, query_filter: FeedFilter | None = None):
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self.page_size = page_size
        self.query_filter = query_filter
        self._lock = threading.Lock()
        self._seen_ids: set[str] = set()
        self._buffer: list[Listing] = []
        self._cursor = 1
        self._exhausted = False

    @property
    def cursor(self) -> int:
        return self._cursor

    def ingest_page(self, page_items: Iterable[Listing], page_index_requested: int) -> IngestResult:
        """Append the unseen listings of page ``page_index_requested``.

        Out-of-sequence pages are rejected and logged, never raised.
        """
        items = list(page_items)
        with self._lock:
            if page_index_requested != self._cursor:
                logger.warning(
                    "Rejected out-of-sequence page %d (expected %d)",
                    page_index_requested, self._cursor,
                )
                return IngestResult(appended_count=0, exhausted=self._exhausted, rejected=True)

            if self._exhausted:
                logger.debug("Feed already exhausted; ignoring page %d", page_index_requested)
                return IngestResult(appended_count=0, exhausted=True)

            if not items:
                self._exhausted = True
                logger.info("Page %d is empty; feed exhausted", page_index_requested)
                return IngestResult(appended_count=0, exhausted=True)

            new_items: list[Listing] = []
            page_ids: set[str] = set()
            for item in items:
                if item.id in self._seen_ids or item.id in page_ids:
                    continue
                page_ids.add(item.id)
                new_items.append(item)

            if not new_items:
                self._exhausted = True
                logger.info(
                    "Page %d had %d items, all already seen; feed exhausted",
                    page_index_requested, len(items),
                )
                return IngestResult(appended_count=0, exhausted=True)

            self._buffer.extend(new_items)
            self._seen_ids.update(page_ids)
            self._cursor += 1

            if len(items) < self.page_size:
                self._exhausted = True

            logger.debug(
                "Page %d: %d/%d new, buffer=%d, exhausted=%s",
                page_index_requested, len(new_items), len(items),
                len(self._buffer), self._exhausted,
            )
            return IngestResult(appended_count=len(new_items), exhausted=self._exhausted)

    def get_visible_feed(self) -> list[Listing]:
        """Return delivered listings in delivery order."""
        with self._lock:
            return list(self._buffer)

    def is_exhausted(self) -> bool:
        with self._lock:
            return self._exhausted

    def reset(self, new_filter: FeedFilter | None = None) -> None:
        """Discard all state; used when the active filter or sort changes."""
        with self._lock:
            self.query_filter = new_filter
            self._seen_ids = set()
            self._buffer = []
            self._cursor = 1
            self._exhausted = False
        logger.debug("Feed accumulator reset")
