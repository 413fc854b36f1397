"""Tests for market_client.py — response parsing, scope/fallback and status classification."""

import pytest
import requests

from conftest import FakeClock
from market_client import (
    FETCH_ERROR,
    FETCH_NOT_FOUND,
    FETCH_OK,
    FETCH_RATE_LIMITED,
    FETCH_UNREACHABLE,
    MarketDataResponse,
    UniversalisClient,
    is_likely_marketable,
)

WORLDS = {"Twintania": "Light", "Odin": "Light", "Gilgamesh": "Aether"}

SAMPLE = {
    "itemID": 5111,
    "lastUploadTime": 1700000000000,
    "listings": [
        {"pricePerUnit": 120, "quantity": 5, "hq": False, "total": 600, "worldName": "Odin"},
        {"pricePerUnit": 95, "quantity": 99, "hq": True, "total": 9405, "worldName": "Twintania"},
        {"pricePerUnit": 101, "quantity": 1, "hq": False, "total": 101, "worldName": "Odin"},
    ],
    "averagePrice": 105.3,
    "averagePriceNQ": 110.0,
    "averagePriceHQ": 95.0,
}


# ── Fakes ────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """Returns (or raises) queued outcomes in order and records requested URLs."""

    def __init__(self, *outcomes):
        self.headers = {}
        self.outcomes = list(outcomes)
        self.urls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.urls.append(url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


def make_client(*outcomes, clock=None, sleeps=None):
    clock = clock or FakeClock()
    session = FakeSession(*outcomes)
    sleeps = sleeps if sleeps is not None else []

    def sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds)

    client = UniversalisClient(
        base_url="https://market.test/api/v2/",
        world_to_data_center=WORLDS,
        session=session,
        clock=clock,
        sleep=sleep,
    )
    return client, session


# ── Response model ───────────────────────────────────────

class TestMarketDataResponse:

    def test_parse(self):
        data = MarketDataResponse.from_json(SAMPLE, scope="Light")
        assert data.item_id == 5111
        assert len(data.listings) == 3
        assert data.average_price_hq == 95.0
        assert data.scope == "Light"

    def test_cheapest_listing(self):
        cheapest = MarketDataResponse.from_json(SAMPLE).cheapest_listing()
        assert cheapest.price_per_unit == 95
        assert cheapest.hq is True
        assert cheapest.world_name == "Twintania"

    def test_cheapest_listing_empty(self):
        assert MarketDataResponse.from_json({"itemID": 1, "listings": []}).cheapest_listing() is None

    def test_listings_by_world_sorted(self):
        by_world = MarketDataResponse.from_json(SAMPLE).listings_by_world()
        assert set(by_world) == {"Odin", "Twintania"}
        assert [l.price_per_unit for l in by_world["Odin"]] == [101, 120]

    @pytest.mark.parametrize("raw", [None, [], "text", {"listings": [{"pricePerUnit": "x"}]}])
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            MarketDataResponse.from_json(raw)


class TestMarketable:

    @pytest.mark.parametrize("item_id,expected", [
        (1, False), (19, False), (20, True), (5111, True), (50000, True), (50001, False),
    ])
    def test_bounds(self, item_id, expected):
        assert is_likely_marketable(item_id) is expected


# ── Client ───────────────────────────────────────────────

class TestUniversalisClient:

    def test_headers(self):
        client, session = make_client()
        assert session.headers["Accept"] == "application/json"
        assert session.headers["X-FFXIV-Using-Unofficial-Parse-API"] == "true"
        assert "User-Agent" in session.headers

    def test_url(self):
        client, _ = make_client()
        url = client.build_url("Light", 5111)
        assert url.startswith("https://market.test/api/v2/Light/5111?")
        assert "listings=5" in url
        assert "entries=0" in url

    def test_scope_data_center(self):
        client, _ = make_client()
        assert client.resolve_scope("twintania", use_data_center=True) == "Light"
        assert client.resolve_scope("Twintania", use_data_center=False) == "Twintania"
        # Unknown worlds are queried as-is
        assert client.resolve_scope("Nowhere", use_data_center=True) == "Nowhere"

    def test_ok(self):
        client, session = make_client(FakeResponse(200, SAMPLE))
        result = client.fetch(5111, "Twintania", use_data_center=True)
        assert result.status == FETCH_OK
        assert result.ok
        assert result.scope == "Light"
        assert result.data.cheapest_listing().price_per_unit == 95
        assert "/Light/5111" in session.urls[0]

    def test_no_world(self):
        client, session = make_client()
        assert client.fetch(5111, "").status == FETCH_ERROR
        assert session.urls == []

    def test_404_falls_back_to_data_center(self):
        client, session = make_client(FakeResponse(404), FakeResponse(200, SAMPLE))
        result = client.fetch(5111, "Twintania", use_data_center=False, fallback_to_data_center=True)
        assert result.ok
        assert result.scope == "Light"
        assert "/Twintania/5111" in session.urls[0]
        assert "/Light/5111" in session.urls[1]

    def test_timeout_falls_back_once(self):
        client, session = make_client(requests.Timeout("slow"), requests.Timeout("still slow"))
        result = client.fetch(5111, "Twintania", use_data_center=False, fallback_to_data_center=True)
        assert result.status == FETCH_UNREACHABLE
        assert len(session.urls) == 2

    def test_connection_error_falls_back(self):
        client, session = make_client(requests.ConnectionError("down"), FakeResponse(200, SAMPLE))
        result = client.fetch(5111, "Odin", use_data_center=False)
        assert result.ok

    def test_no_fallback_when_disabled(self):
        client, session = make_client(FakeResponse(404))
        result = client.fetch(5111, "Twintania", use_data_center=False, fallback_to_data_center=False)
        assert result.status == FETCH_NOT_FOUND
        assert len(session.urls) == 1

    def test_no_fallback_when_already_data_center(self):
        client, session = make_client(FakeResponse(404))
        result = client.fetch(5111, "Twintania", use_data_center=True, fallback_to_data_center=True)
        assert result.status == FETCH_NOT_FOUND
        assert len(session.urls) == 1

    def test_no_fallback_for_unknown_world(self):
        client, session = make_client(FakeResponse(404))
        result = client.fetch(5111, "Nowhere", use_data_center=False)
        assert result.status == FETCH_NOT_FOUND
        assert len(session.urls) == 1

    def test_429_never_retried(self):
        client, session = make_client(FakeResponse(429))
        result = client.fetch(5111, "Twintania", use_data_center=False)
        assert result.status == FETCH_RATE_LIMITED
        assert len(session.urls) == 1

    def test_server_error_not_retried(self):
        client, session = make_client(FakeResponse(500))
        result = client.fetch(5111, "Twintania", use_data_center=False)
        assert result.status == FETCH_ERROR
        assert len(session.urls) == 1

    def test_bad_json(self):
        client, _ = make_client(FakeResponse(200, bad_json=True))
        assert client.fetch(5111, "Odin").status == FETCH_ERROR

    def test_wrong_shape(self):
        client, _ = make_client(FakeResponse(200, ["not", "an", "object"]))
        assert client.fetch(5111, "Odin").status == FETCH_ERROR

    def test_rate_limit_spacing(self):
        clock = FakeClock()
        sleeps = []
        client, _ = make_client(FakeResponse(200, SAMPLE), FakeResponse(200, SAMPLE),
                                clock=clock, sleeps=sleeps)
        client.fetch(5111, "Odin")
        clock.advance(0.2)
        client.fetch(5106, "Odin")
        assert sleeps == [pytest.approx(0.3)]

    def test_no_sleep_when_spaced(self):
        clock = FakeClock()
        sleeps = []
        client, _ = make_client(FakeResponse(200, SAMPLE), FakeResponse(200, SAMPLE),
                                clock=clock, sleeps=sleeps)
        client.fetch(5111, "Odin")
        clock.advance(1.0)
        client.fetch(5106, "Odin")
        assert sleeps == []

    def test_close(self):
        client, session = make_client()
        client.close()
        assert session.closed
