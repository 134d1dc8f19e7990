"""SQLite listing store answering filtered, ranked, paged feed queries."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from catalog_feed.filters import matches_filter
from catalog_feed.models import ESTIMATE_RATIO, FeedFilter, Listing, ListingStatus, SortMode
from catalog_feed.normalizer import parse_timestamp
from catalog_feed.ranker import rank_batch

logger = logging.getLogger(__name__)

ANALYTICS_LIMIT = 3

SCHEMA = """
CREATE TABLE IF NOT EXISTS listings (
    id TEXT PRIMARY KEY,
    title TEXT,
    brand TEXT,
    model TEXT,
    year INTEGER,
    price REAL,
    description TEXT,
    city TEXT,
    state TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    is_featured INTEGER NOT NULL DEFAULT 0,
    views_count INTEGER NOT NULL DEFAULT 0,
    likes_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_listings_status ON listings(status);
CREATE INDEX IF NOT EXISTS idx_listings_created_at ON listings(created_at);
"""

COLUMNS = (
    "id", "title", "brand", "model", "year", "price", "description", "city",
    "state", "status", "is_featured", "views_count", "likes_count",
    "created_at", "updated_at",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Storage:
    def __init__(self, db_path: str):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # check_same_thread=False lets a session thread share the handle with the CLI.
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def _to_row(self, listing: Listing) -> tuple:
        return (
            listing.id,
            listing.title,
            listing.brand,
            listing.model,
            listing.year,
            listing.price,
            listing.description,
            listing.city,
            listing.state,
            listing.status.value,
            int(listing.is_featured),
            listing.views_count,
            listing.likes_count,
            listing.created_at.isoformat(),
            listing.updated_at.isoformat() if listing.updated_at else None,
        )

    def _from_row(self, row: sqlite3.Row) -> Listing:
        return Listing(
            id=row["id"],
            created_at=parse_timestamp(row["created_at"]),
            views_count=row["views_count"],
            likes_count=row["likes_count"],
            status=ListingStatus(row["status"]),
            is_featured=bool(row["is_featured"]),
            title=row["title"],
            brand=row["brand"],
            model=row["model"],
            year=row["year"],
            price=row["price"],
            description=row["description"],
            city=row["city"],
            state=row["state"],
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def insert_listing(self, listing: Listing) -> bool:
        """Insert a listing. Returns False if the id already exists."""
        placeholders = ",".join("?" for _ in COLUMNS)
        cur = self.conn.execute(
            f"INSERT OR IGNORE INTO listings ({','.join(COLUMNS)}) VALUES ({placeholders})",
            self._to_row(listing),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def upsert_listing(self, listing: Listing) -> None:
        placeholders = ",".join("?" for _ in COLUMNS)
        updates = ",".join(f"{c} = excluded.{c}" for c in COLUMNS if c != "id")
        self.conn.execute(
            f"""INSERT INTO listings ({','.join(COLUMNS)}) VALUES ({placeholders})
                ON CONFLICT(id) DO UPDATE SET {updates}""",
            self._to_row(listing),
        )
        self.conn.commit()

    def get_listing_by_id(self, listing_id: str) -> Listing | None:
        row = self.conn.execute(
            "SELECT * FROM listings WHERE id = ?", (listing_id,)
        ).fetchone()
        return self._from_row(row) if row else None

    def get_all_listings(self) -> list[Listing]:
        rows = self.conn.execute(
            "SELECT * FROM listings ORDER BY created_at DESC, id ASC"
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def get_listing_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM listings").fetchone()
        return row[0]

    def query_listings(
        self,
        query_filter: FeedFilter,
        sort_mode: SortMode,
        skip: int,
        limit: int,
        *,
        now: datetime | None = None,
    ) -> list[Listing]:
        """Filter, rank and slice listings. Rank is re-evaluated on every call."""
        if query_filter.status is not None:
            rows = self.conn.execute(
                "SELECT * FROM listings WHERE status = ?", (query_filter.status.value,)
            ).fetchall()
        else:
            rows = self.conn.execute("SELECT * FROM listings").fetchall()

        matched = [
            listing
            for listing in (self._from_row(row) for row in rows)
            if matches_filter(listing, query_filter)
        ]
        ranked = rank_batch(matched, sort_mode, now or _now())
        skip = max(0, skip)
        page = ranked[skip:skip + max(0, limit)]
        logger.debug(
            "Query sort=%s skip=%d limit=%d: %d matched, %d returned",
            sort_mode, skip, limit, len(matched), len(page),
        )
        return page

    def estimate_matching_total(self, query_filter: FeedFilter) -> int:
        """Approximate matching count: a fixed share of all listings.

        Ignores the filter entirely, so it can be far off for narrow filters.
        """
        return int(self.get_listing_count() * ESTIMATE_RATIO)

    def increment_view(self, listing_id: str) -> int:
        """Increment the view counter; returns the new count (0 if missing)."""
        self.conn.execute(
            "UPDATE listings SET views_count = views_count + 1, updated_at = ? WHERE id = ?",
            (_now().isoformat(), listing_id),
        )
        self.conn.commit()
        row = self.conn.execute(
            "SELECT views_count FROM listings WHERE id = ?", (listing_id,)
        ).fetchone()
        return row["views_count"] if row else 0

    def toggle_like(self, listing_id: str) -> int:
        """Register a like; per-user like tracking is not kept, so this always increments."""
        self.conn.execute(
            "UPDATE listings SET likes_count = likes_count + 1 WHERE id = ?",
            (listing_id,),
        )
        self.conn.commit()
        row = self.conn.execute(
            "SELECT likes_count FROM listings WHERE id = ?", (listing_id,)
        ).fetchone()
        return row["likes_count"] if row else 0

    def update_status(self, listing_id: str, status: ListingStatus) -> bool:
        cur = self.conn.execute(
            "UPDATE listings SET status = ?, updated_at = ? WHERE id = ?",
            (ListingStatus(status).value, _now().isoformat(), listing_id),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def get_featured(self, limit: int = 6) -> list[Listing]:
        rows = self.conn.execute(
            """SELECT * FROM listings
               WHERE is_featured = 1 AND status = 'active'""",
        ).fetchall()
        listings = [self._from_row(row) for row in rows]
        return rank_batch(listings, SortMode.VIEWS, _now())[:limit]

    def get_stats(self) -> dict[str, int]:
        row = self.conn.execute(
            """SELECT COUNT(*) AS total,
                      COALESCE(SUM(status = 'active'), 0) AS active,
                      COALESCE(SUM(status = 'sold'), 0) AS sold,
                      COALESCE(SUM(views_count), 0) AS views,
                      COALESCE(SUM(likes_count), 0) AS likes
               FROM listings"""
        ).fetchone()
        return {k: int(row[k]) for k in ("total", "active", "sold", "views", "likes")}

    def get_analytics(self) -> dict:
        """Store totals plus a likes/views rate and the top listings by views and age.

        The rate is a percentage rounded to one decimal, 0.0 when nothing was viewed.
        """
        stats = self.get_stats()
        listings = self.get_all_listings()
        now = _now()
        rate = round(stats["likes"] / stats["views"] * 100, 1) if stats["views"] else 0.0
        return {
            **stats,
            "conversion_rate": rate,
            "popular": rank_batch(listings, SortMode.VIEWS, now)[:ANALYTICS_LIMIT],
            "recent": rank_batch(listings, SortMode.RECENT, now)[:ANALYTICS_LIMIT],
        }

    def close(self):
        self.conn.close()
