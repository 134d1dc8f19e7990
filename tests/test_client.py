"""Tests for the listings API client (fake sessions, no real HTTP)."""

import importlib
import sys

import pytest
import requests

from catalog_feed.client import ListingsApiClient, build_query_params
from catalog_feed.config import ApiConfig
from catalog_feed.models import ESTIMATE_RATIO, FeedFilter, FeedQuery, ListingStatus, SortMode


class FakeResp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def close(self):
        pass


def _client(responses, **config_overrides):
    config = ApiConfig(base_url="http://api.test/", timeout=5, max_retries=2, retry_delay=0)
    for key, value in config_overrides.items():
        setattr(config, key, value)
    session = FakeSession(responses)
    return ListingsApiClient(config, session=session), session


DOC = {"id": "a1", "createdAt": "2025-05-01T00:00:00Z", "viewsCount": 3, "price": "150,000"}


def test_build_query_params_omits_unset():
    params = build_query_params(FeedQuery(FeedFilter(), SortMode.HOT, 0, 12))
    assert params == {"status": "active", "sortBy": "hot", "skip": 0, "limit": 12}


def test_build_query_params_full_filter():
    f = FeedFilter(
        status=ListingStatus.SOLD, brand="Kia", min_price=1, max_price=2,
        min_year=2010, max_year=2020, city="León", state="Guanajuato", search_text="rio",
    )
    params = build_query_params(FeedQuery(f, SortMode.PRICE_HIGH, 24, 12))
    assert params["status"] == "sold"
    assert params["minPrice"] == 1
    assert params["maxYear"] == 2020
    assert params["search"] == "rio"
    assert params["sortBy"] == "price_high"
    assert params["skip"] == 24


def test_query_listings_parses_documents():
    client, session = _client([FakeResp(body=[DOC, {"title": "no id"}])])
    listings = client.query_listings(FeedFilter(), SortMode.RECENT, 12, 12)
    assert [l.id for l in listings] == ["a1"]
    assert listings[0].price == 150000.0
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("GET", "http://api.test/listings")
    assert kwargs["params"]["skip"] == 12
    assert kwargs["timeout"] == 5


def test_query_listings_retries_server_errors():
    client, session = _client([FakeResp(status_code=503), FakeResp(body=[DOC])])
    listings = client.query_listings(FeedFilter(), SortMode.HOT, 0, 12)
    assert len(listings) == 1
    assert len(session.requests) == 2


def test_query_listings_retries_connection_errors_then_gives_up():
    errors = [requests.ConnectionError("refused")] * 3
    client, session = _client(errors)
    assert client.query_listings(FeedFilter(), SortMode.HOT, 0, 12) is None
    assert len(session.requests) == 3


def test_query_listings_client_error_not_retried():
    client, session = _client([FakeResp(status_code=400, text="bad")])
    assert client.query_listings(FeedFilter(), SortMode.HOT, 0, 12) is None
    assert len(session.requests) == 1


def test_query_listings_invalid_json():
    client, _ = _client([FakeResp(body=ValueError("no json"))], max_retries=0)
    assert client.query_listings(FeedFilter(), SortMode.HOT, 0, 12) is None


def test_query_listings_unexpected_payload():
    client, _ = _client([FakeResp(body={"items": []})])
    assert client.query_listings(FeedFilter(), SortMode.HOT, 0, 12) is None


def test_estimate_matching_total():
    client, session = _client([FakeResp(body={"total": 25, "active": 20})])
    assert client.estimate_matching_total(FeedFilter(brand="x")) == int(25 * ESTIMATE_RATIO) == 20
    assert session.requests[0][1] == "http://api.test/listings/stats"


def test_estimate_matching_total_failure():
    client, _ = _client([FakeResp(status_code=404)])
    assert client.estimate_matching_total(FeedFilter()) is None


def test_increment_view():
    client, session = _client([FakeResp(status_code=201, body={"viewsCount": 8})])
    assert client.increment_view("a1") == 8
    assert session.requests[0][:2] == ("POST", "http://api.test/listings/a1/view")


@pytest.mark.parametrize("status", [500, 502])
def test_increment_view_gives_up(status):
    client, _ = _client([FakeResp(status_code=status)] * 3)
    assert client.increment_view("a1") is None


def test_client_import_does_not_load_sqlite_store(monkeypatch):
    for name in [m for m in sys.modules if m.startswith("catalog_feed")]:
        monkeypatch.delitem(sys.modules, name)
    importlib.import_module("catalog_feed.client")
    assert "catalog_feed.storage" not in sys.modules
