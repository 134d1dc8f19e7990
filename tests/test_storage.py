"""Tests for the SQLite listing store."""

from datetime import datetime, timedelta, timezone

import pytest

from catalog_feed.models import FeedFilter, Listing, ListingStatus, SortMode
from catalog_feed.storage import Storage

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db(tmp_path):
    s = Storage(str(tmp_path / "test.db"))
    yield s
    s.close()


def _make_listing(lid="l-1", **overrides):
    base = {
        "id": lid,
        "created_at": NOW - timedelta(days=2),
        "title": "Nissan Versa Advance",
        "brand": "Nissan",
        "model": "Versa",
        "year": 2020,
        "price": 210000.0,
        "city": "Monterrey",
        "state": "Nuevo León",
        "views_count": 10,
        "likes_count": 1,
    }
    base.update(overrides)
    return Listing(**base)


def test_init_creates_tables(db):
    tables = db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()
    assert "listings" in {row["name"] for row in tables}


def test_insert_and_get_roundtrip(db):
    listing = _make_listing(is_featured=True, status=ListingStatus.RESERVED)
    assert db.insert_listing(listing) is True
    assert db.get_listing_by_id("l-1") == listing


def test_insert_duplicate_id(db):
    db.insert_listing(_make_listing())
    assert db.insert_listing(_make_listing(title="other")) is False
    assert db.get_listing_count() == 1


def test_upsert_updates_existing(db):
    db.insert_listing(_make_listing())
    db.upsert_listing(_make_listing(views_count=99))
    assert db.get_listing_by_id("l-1").views_count == 99
    assert db.get_listing_count() == 1


def test_get_missing_listing(db):
    assert db.get_listing_by_id("nope") is None


def test_query_filters_ranks_and_pages(db):
    for i in range(5):
        db.insert_listing(_make_listing(f"l-{i}", created_at=NOW - timedelta(hours=i)))
    db.insert_listing(_make_listing("sold", status=ListingStatus.SOLD))
    db.insert_listing(_make_listing("other-brand", brand="Kia"))

    f = FeedFilter(brand="nissan")
    first = db.query_listings(f, SortMode.RECENT, 0, 2, now=NOW)
    second = db.query_listings(f, SortMode.RECENT, 2, 2, now=NOW)
    third = db.query_listings(f, SortMode.RECENT, 4, 2, now=NOW)
    assert [l.id for l in first] == ["l-0", "l-1"]
    assert [l.id for l in second] == ["l-2", "l-3"]
    assert [l.id for l in third] == ["l-4"]


def test_query_status_none_includes_sold(db):
    db.insert_listing(_make_listing("a"))
    db.insert_listing(_make_listing("b", status=ListingStatus.SOLD))
    result = db.query_listings(FeedFilter(status=None), SortMode.RECENT, 0, 10, now=NOW)
    assert {l.id for l in result} == {"a", "b"}


def test_query_hot_uses_tiers(db):
    # 2 days old: threshold 35
    db.insert_listing(_make_listing("normal", views_count=34))
    db.insert_listing(_make_listing("super", views_count=70))
    db.insert_listing(_make_listing("hot", views_count=35))
    result = db.query_listings(FeedFilter(), SortMode.HOT, 0, 10, now=NOW)
    assert [l.id for l in result] == ["super", "hot", "normal"]


def test_view_churn_reorders_between_queries(db):
    db.insert_listing(_make_listing("a", views_count=5))
    db.insert_listing(_make_listing("b", views_count=4))
    assert [l.id for l in db.query_listings(FeedFilter(), SortMode.VIEWS, 0, 1, now=NOW)] == ["a"]
    db.increment_view("b")
    db.increment_view("b")
    assert [l.id for l in db.query_listings(FeedFilter(), SortMode.VIEWS, 0, 1, now=NOW)] == ["b"]


def test_estimate_matching_total_ignores_filter(db):
    for i in range(10):
        db.insert_listing(_make_listing(f"l-{i}"))
    assert db.estimate_matching_total(FeedFilter()) == 8
    assert db.estimate_matching_total(FeedFilter(brand="Ferrari")) == 8


def test_increment_view_and_toggle_like(db):
    db.insert_listing(_make_listing())
    assert db.increment_view("l-1") == 11
    assert db.toggle_like("l-1") == 2
    assert db.increment_view("missing") == 0


def test_update_status(db):
    db.insert_listing(_make_listing())
    assert db.update_status("l-1", ListingStatus.SOLD) is True
    assert db.get_listing_by_id("l-1").status == ListingStatus.SOLD
    assert db.update_status("missing", "sold") is False


def test_get_featured(db):
    db.insert_listing(_make_listing("f1", is_featured=True, views_count=3))
    db.insert_listing(_make_listing("f2", is_featured=True, views_count=30))
    db.insert_listing(_make_listing("f3", is_featured=True, status=ListingStatus.SOLD))
    db.insert_listing(_make_listing("plain", views_count=100))
    assert [l.id for l in db.get_featured()] == ["f2", "f1"]


def test_get_stats(db):
    assert db.get_stats() == {"total": 0, "active": 0, "sold": 0, "views": 0, "likes": 0}
    db.insert_listing(_make_listing("a", views_count=10, likes_count=2))
    db.insert_listing(_make_listing("b", views_count=5, likes_count=1, status=ListingStatus.SOLD))
    assert db.get_stats() == {"total": 2, "active": 1, "sold": 1, "views": 15, "likes": 3}


def test_get_all_listings_newest_first(db):
    db.insert_listing(_make_listing("old", created_at=NOW - timedelta(days=9)))
    db.insert_listing(_make_listing("new", created_at=NOW - timedelta(hours=1)))
    db.insert_listing(_make_listing("sold", status=ListingStatus.SOLD))
    assert [l.id for l in db.get_all_listings()] == ["new", "sold", "old"]


def test_get_analytics(db):
    db.insert_listing(_make_listing("a", views_count=40, likes_count=3, created_at=NOW - timedelta(days=5)))
    db.insert_listing(_make_listing("b", views_count=10, likes_count=1, created_at=NOW - timedelta(days=1)))
    db.insert_listing(_make_listing("c", views_count=30, likes_count=0, created_at=NOW - timedelta(days=3)))
    db.insert_listing(_make_listing("d", views_count=20, likes_count=2, created_at=NOW - timedelta(hours=2)))
    analytics = db.get_analytics()
    assert analytics["total"] == 4
    assert analytics["views"] == 100
    assert analytics["conversion_rate"] == 6.0
    assert [l.id for l in analytics["popular"]] == ["a", "c", "d"]
    assert [l.id for l in analytics["recent"]] == ["d", "b", "c"]


def test_get_analytics_empty_store(db):
    analytics = db.get_analytics()
    assert analytics["conversion_rate"] == 0.0
    assert analytics["popular"] == []
    assert analytics["recent"] == []
