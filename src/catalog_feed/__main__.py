"""Entry point for catalog_feed: browse, import and inspect the listing feed."""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from catalog_feed.client import ListingsApiClient
from catalog_feed.config import load_config
from catalog_feed.hotness import classify
from catalog_feed.log import set_log_level, setup_logging
from catalog_feed.models import SortMode
from catalog_feed.normalizer import normalize_listing
from catalog_feed.session import FeedSession, utc_now
from catalog_feed.storage import Storage

logger = logging.getLogger("catalog_feed")


def _format_listing(listing, now) -> str:
    price = f"{listing.price:,.0f}" if listing.price is not None else "-"
    name = listing.title or " ".join(p for p in (listing.brand, listing.model) if p) or listing.id
    return (
        f"{listing.id}\t{classify(listing, now).value}\t{price}\t"
        f"views={listing.views_count} likes={listing.likes_count}\t{name}"
    )


def cmd_browse(config, *, source: str, sort_mode: str | None, pages: int | None) -> int:
    """Page through the feed and print every delivered listing."""
    if source == "api":
        store = ListingsApiClient(config.api)
    else:
        store = Storage(config.database_path)
    try:
        session = FeedSession(
            store,
            query_filter=config.feed.filter,
            sort_mode=sort_mode or config.feed.sort_mode,
            page_size=config.feed.page_size,
        )
        feed = session.browse(pages or config.feed.max_pages)
        now = utc_now()
        for listing in feed:
            print(_format_listing(listing, now))
        last_page = session.last_page
        logger.info(
            "Browse complete: %d listings, last page %d, exhausted=%s, approximate total=%s",
            len(feed), len(last_page.items) if last_page else 0, session.is_exhausted(),
            last_page.approximate_total if last_page else session.approximate_total,
        )
        return 0
    finally:
        store.close()


def cmd_import(config, path: str) -> int:
    """Import a JSON array of listing documents into the local store."""
    try:
        with open(path, encoding="utf-8") as f:
            documents = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read import file %s: %s", path, e)
        return 1
    if not isinstance(documents, list):
        logger.error("Import file must contain a JSON array, got %s", type(documents).__name__)
        return 1

    storage = Storage(config.database_path)
    try:
        inserted = skipped = 0
        for raw in documents:
            try:
                listing = normalize_listing(raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping document: %s", e)
                skipped += 1
                continue
            if storage.insert_listing(listing):
                inserted += 1
            else:
                skipped += 1
        logger.info("Import complete: %d inserted, %d skipped (of %d)", inserted, skipped, len(documents))
        return 0
    finally:
        storage.close()


def cmd_stats(config) -> int:
    storage = Storage(config.database_path)
    try:
        analytics = storage.get_analytics()
        for key, value in analytics.items():
            if key in ("popular", "recent"):
                value = ",".join(listing.id for listing in value) or "-"
            print(f"{key}\t{value}")
        return 0
    finally:
        storage.close()


def cmd_classify(config, listing_id: str) -> int:
    storage = Storage(config.database_path)
    try:
        listing = storage.get_listing_by_id(listing_id)
        if listing is None:
            logger.error("Listing not found: %s", listing_id)
            return 1
        print(_format_listing(listing, utc_now()))
        return 0
    finally:
        storage.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog_feed",
        description="Vehicle catalog feed: ranking and infinite-scroll pagination",
    )
    parser.add_argument(
        "--config", "-c",
        default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level name (DEBUG, INFO, WARNING, ERROR); overrides LOG_LEVEL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    browse_parser = subparsers.add_parser("browse", help="Page through the feed")
    browse_parser.add_argument("--source", choices=("api", "db"), default="api")
    browse_parser.add_argument("--sort", choices=[m.value for m in SortMode], default=None)
    browse_parser.add_argument("--pages", type=int, default=None)

    import_parser = subparsers.add_parser("import", help="Import listings from a JSON file")
    import_parser.add_argument("path")

    subparsers.add_parser("stats", help="Show local store totals and top listings")

    classify_parser = subparsers.add_parser("classify", help="Show the hotness tier of a listing")
    classify_parser.add_argument("listing_id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        setup_logging()
        logger.error("%s", e)
        return 1

    setup_logging(log_dir=config.log_dir)
    if args.log_level:
        try:
            set_log_level(args.log_level)
        except ValueError as e:
            logger.error("%s", e)
            return 1

    if args.command == "browse":
        return cmd_browse(config, source=args.source, sort_mode=args.sort, pages=args.pages)
    if args.command == "import":
        return cmd_import(config, args.path)
    if args.command == "stats":
        return cmd_stats(config)
    return cmd_classify(config, args.listing_id)


if __name__ == "__main__":
    sys.exit(main())
