"""Match engine: filter listings by feed filter criteria."""

from catalog_feed.models import FeedFilter, Listing


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def match_status(listing: Listing, query_filter: FeedFilter) -> bool:
    if query_filter.status is None:
        return True
    return listing.status == query_filter.status


def match_brand(listing: Listing, query_filter: FeedFilter) -> bool:
    """Case-insensitive partial brand match."""
    if not query_filter.brand:
        return True
    return _contains(listing.brand, query_filter.brand)


def match_price(listing: Listing, query_filter: FeedFilter) -> bool:
    """Check price range. A missing price fails any active bound."""
    if query_filter.min_price is None and query_filter.max_price is None:
        return True
    price = listing.price
    if price is None:
        return False
    if query_filter.min_price is not None and price < query_filter.min_price:
        return False
    if query_filter.max_price is not None and price > query_filter.max_price:
        return False
    return True


def match_year(listing: Listing, query_filter: FeedFilter) -> bool:
    if query_filter.min_year is None and query_filter.max_year is None:
        return True
    year = listing.year
    if year is None:
        return False
    if query_filter.min_year is not None and year < query_filter.min_year:
        return False
    if query_filter.max_year is not None and year > query_filter.max_year:
        return False
    return True


def match_location(listing: Listing, query_filter: FeedFilter) -> bool:
    if query_filter.city and not _contains(listing.city, query_filter.city):
        return False
    if query_filter.state and not _contains(listing.state, query_filter.state):
        return False
    return True


def match_search(listing: Listing, query_filter: FeedFilter) -> bool:
    """Free-text search across title, brand, model and description."""
    text = (query_filter.search_text or "").strip()
    if not text:
        return True
    fields = (listing.title, listing.brand, listing.model, listing.description)
    return any(_contains(value, text) for value in fields)


MATCHERS = (
    match_status,
    match_brand,
    match_price,
    match_year,
    match_location,
    match_search,
)


def matches_filter(listing: Listing, query_filter: FeedFilter) -> bool:
    return all(matcher(listing, query_filter) for matcher in MATCHERS)
