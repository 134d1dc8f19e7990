"""HTTP client for the catalog listings paging endpoint."""

from __future__ import annotations

import logging
import time

import requests

from catalog_feed.config import ApiConfig
from catalog_feed.models import ESTIMATE_RATIO, FeedFilter, FeedQuery, Listing, SortMode
from catalog_feed.normalizer import normalize_listing

logger = logging.getLogger(__name__)

USER_AGENT = "catalog-feed/0.1"


def build_query_params(query: FeedQuery) -> dict:
    """Build ``GET /listings`` query params; unset filters are omitted."""
    query_filter = query.filter
    params = {
        "status": query_filter.status.value if query_filter.status else None,
        "brand": query_filter.brand,
        "minPrice": query_filter.min_price,
        "maxPrice": query_filter.max_price,
        "minYear": query_filter.min_year,
        "maxYear": query_filter.max_year,
        "city": query_filter.city,
        "state": query_filter.state,
        "search": query_filter.search_text,
        "sortBy": SortMode(query.sort_mode).value,
        "skip": query.skip,
        "limit": query.limit,
    }
    return {k: v for k, v in params.items() if v is not None and v != ""}


class ListingsApiClient:
    def __init__(self, config: ApiConfig, session: requests.Session | None = None):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json", "User-Agent": USER_AGENT}

    def _request(self, method: str, path: str, **kwargs):
        """Send a request with retries. Returns decoded JSON or None on failure."""
        url = f"{self.base_url}{path}"
        attempts = max(1, self.config.max_retries + 1)
        for attempt in range(1, attempts + 1):
            try:
                resp = self.session.request(
                    method, url, headers=self.headers, timeout=self.config.timeout, **kwargs
                )
                if resp.status_code == 200 or resp.status_code == 201:
                    return resp.json()
                if resp.status_code < 500:
                    logger.error("%s %s returned %d: %s", method, path, resp.status_code, resp.text[:200])
                    return None
                logger.warning(
                    "%s %s returned %d (attempt %d/%d)",
                    method, path, resp.status_code, attempt, attempts,
                )
            except (requests.RequestException, ValueError) as e:
                logger.warning("%s %s failed (attempt %d/%d): %s", method, path, attempt, attempts, e)
            if attempt < attempts and self.config.retry_delay > 0:
                time.sleep(self.config.retry_delay)
        logger.error("%s %s gave up after %d attempts", method, path, attempts)
        return None

    def query_listings(
        self,
        query_filter: FeedFilter,
        sort_mode: SortMode,
        skip: int,
        limit: int,
    ) -> list[Listing] | None:
        """Fetch one page of listings. None means no page was delivered."""
        params = build_query_params(FeedQuery(query_filter, SortMode(sort_mode), skip, limit))
        logger.info("Fetching listings skip=%d limit=%d sort=%s", skip, limit, params["sortBy"])
        body = self._request("GET", "/listings", params=params)
        if body is None:
            return None
        if not isinstance(body, list):
            logger.error("Unexpected listings payload type: %s", type(body).__name__)
            return None

        listings = []
        for raw in body:
            try:
                listings.append(normalize_listing(raw))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed listing document: %s", e)
        return listings

    def estimate_matching_total(self, query_filter: FeedFilter) -> int | None:
        """Approximate total from ``/listings/stats``; ignores the filter."""
        body = self._request("GET", "/listings/stats")
        if not isinstance(body, dict):
            return None
        try:
            return int(int(body.get("total", 0)) * ESTIMATE_RATIO)
        except (TypeError, ValueError):
            return None

    def increment_view(self, listing_id: str) -> int | None:
        body = self._request("POST", f"/listings/{listing_id}/view")
        if not isinstance(body, dict):
            return None
        return body.get("viewsCount")

    def close(self):
        self.session.close()
