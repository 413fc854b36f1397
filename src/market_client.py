"""
IDM - Market Data Client
Queries the Universalis API for current market board listings.

Pipeline:
1. Resolve the query scope: the player's data center, or their world
2. GET {base}/{scope}/{item_id}?listings=5&entries=0 → listings + averages
3. On a world query that 404s, times out or can't connect, retry once at
   data center scope (if enabled)
4. Classify the outcome into a FetchResult; nothing here raises

Rate limiting: one request per MARKET_MIN_REQUEST_INTERVAL across the whole
process, enforced by a single throttle lock shared by every worker thread.
Caching lives in price_cache.py, not here.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import requests

from config import (
    MARKET_API_BASE,
    MARKET_USER_AGENT,
    MARKET_MIN_REQUEST_INTERVAL,
    MARKET_REQUEST_TIMEOUT,
    MARKET_LISTING_COUNT,
    MARKET_STATS_WITHIN_MS,
    MARKET_MIN_MARKETABLE_ID,
    MARKET_MAX_MARKETABLE_ID,
)

logger = logging.getLogger(__name__)

# FetchResult.status values
FETCH_OK = "ok"
FETCH_NOT_FOUND = "not_found"          # 404: no data for this item at this scope
FETCH_RATE_LIMITED = "rate_limited"    # 429: back off hard, no immediate retry
FETCH_UNREACHABLE = "unreachable"      # timeout / connection failure
FETCH_ERROR = "error"                  # any other HTTP status or a bad body


@dataclass
class MarketDataListing:
    price_per_unit: int
    quantity: int = 1
    hq: bool = False
    total: int = 0
    world_name: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "MarketDataListing":
        return cls(
            price_per_unit=int(raw.get("pricePerUnit", 0)),
            quantity=int(raw.get("quantity", 1)),
            hq=bool(raw.get("hq", False)),
            total=int(raw.get("total", 0)),
            world_name=str(raw.get("worldName") or ""),
        )


@dataclass
class MarketDataResponse:
    item_id: int
    last_upload_time: int = 0           # ms since epoch, as reported by the API
    listings: List[MarketDataListing] = field(default_factory=list)
    average_price: float = 0.0
    average_price_nq: float = 0.0
    average_price_hq: float = 0.0
    scope: str = ""                     # world or data center that answered
    fetched_at: float = 0.0

    @classmethod
    def from_json(cls, raw, scope: str = "") -> "MarketDataResponse":
        """Parse an API body. Raises ValueError when the shape is unusable."""
        if not isinstance(raw, dict):
            raise ValueError(f"expected JSON object, got {type(raw).__name__}")
        try:
            listings = [
                MarketDataListing.from_dict(entry)
                for entry in raw.get("listings") or []
                if isinstance(entry, dict)
            ]
            return cls(
                item_id=int(raw.get("itemID", 0)),
                last_upload_time=int(raw.get("lastUploadTime", 0) or 0),
                listings=listings,
                average_price=float(raw.get("averagePrice", 0) or 0),
                average_price_nq=float(raw.get("averagePriceNQ", 0) or 0),
                average_price_hq=float(raw.get("averagePriceHQ", 0) or 0),
                scope=scope,
            )
        except (TypeError, AttributeError) as e:
            raise ValueError(f"malformed market data: {e}") from e

    def cheapest_listing(self) -> Optional[MarketDataListing]:
        if not self.listings:
            return None
        return min(self.listings, key=lambda l: l.price_per_unit)

    def listings_by_world(self) -> Dict[str, List[MarketDataListing]]:
        """World name → that world's listings, cheapest first."""
        by_world: Dict[str, List[MarketDataListing]] = {}
        for listing in self.listings:
            by_world.setdefault(listing.world_name, []).append(listing)
        for listings in by_world.values():
            listings.sort(key=lambda l: l.price_per_unit)
        return by_world


@dataclass
class FetchResult:
    status: str
    data: Optional[MarketDataResponse] = None
    scope: str = ""
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == FETCH_OK


def is_likely_marketable(item_id: int) -> bool:
    """Cheap pre-filter: very low ids are currencies, very high ids are system items."""
    return MARKET_MIN_MARKETABLE_ID <= item_id <= MARKET_MAX_MARKETABLE_ID


class UniversalisClient:
    """
    Fetches market listings for one item at a time.

    Usage:
        client = UniversalisClient(world_to_data_center=game.world_to_data_center)
        result = client.fetch(5057, "Twintania", use_data_center=True)
        if result.ok:
            cheapest = result.data.cheapest_listing()
    """

    def __init__(self, base_url: str = MARKET_API_BASE,
                 world_to_data_center: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None,
                 min_interval: float = MARKET_MIN_REQUEST_INTERVAL,
                 timeout: float = MARKET_REQUEST_TIMEOUT,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip("/")
        self._world_to_dc = {k.lower(): v for k, v in (world_to_data_center or {}).items()}
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": MARKET_USER_AGENT,
            "Accept": "application/json",
            "X-FFXIV-Using-Unofficial-Parse-API": "true",
        })
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep

        # Rate limiting: one shared throttle token for all callers
        self._min_interval = min_interval
        self._last_request_time: Optional[float] = None
        self._rate_lock = threading.Lock()

    # ─── Scope ────────────────────────────────────

    def data_center_for(self, world: str) -> Optional[str]:
        if not world:
            return None
        return self._world_to_dc.get(world.lower())

    def resolve_scope(self, world: str, use_data_center: bool) -> str:
        """Data center name when requested and known, else the world itself."""
        if use_data_center:
            dc = self.data_center_for(world)
            if dc:
                return dc
        return world

    def build_url(self, scope: str, item_id: int) -> str:
        return (
            f"{self.base_url}/{scope}/{item_id}"
            f"?listings={MARKET_LISTING_COUNT}&entries=0"
            f"&statsWithin={MARKET_STATS_WITHIN_MS}&entriesWithin={MARKET_STATS_WITHIN_MS}"
        )

    # ─── Fetch ────────────────────────────────────

    def fetch(self, item_id: int, world: str,
              use_data_center: bool = True,
              fallback_to_data_center: bool = True) -> FetchResult:
        """Fetch listings for one item, with at most one wider-scope retry."""
        if not world:
            return FetchResult(FETCH_ERROR, detail="no world")

        scope = self.resolve_scope(world, use_data_center)
        result = self._fetch_once(item_id, scope)

        if result.status in (FETCH_NOT_FOUND, FETCH_UNREACHABLE) and \
                not use_data_center and fallback_to_data_center:
            dc = self.data_center_for(world)
            if dc and dc != scope:
                logger.debug(
                    f"MarketClient: {item_id} {result.status} on {scope}, "
                    f"retrying at data center {dc}")
                result = self._fetch_once(item_id, dc)

        return result

    def _fetch_once(self, item_id: int, scope: str) -> FetchResult:
        url = self.build_url(scope, item_id)
        self._rate_limit()
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"MarketClient: {item_id}@{scope} {type(e).__name__}: {e}")
            return FetchResult(FETCH_UNREACHABLE, scope=scope, detail=type(e).__name__)
        except requests.RequestException as e:
            logger.warning(f"MarketClient: {item_id}@{scope} request failed: {e}")
            return FetchResult(FETCH_ERROR, scope=scope, detail=str(e))

        if resp.status_code == 404:
            logger.debug(f"MarketClient: no data for {item_id} on {scope}")
            return FetchResult(FETCH_NOT_FOUND, scope=scope, detail="HTTP 404")
        if resp.status_code == 429:
            logger.warning(f"MarketClient: rate limited on {item_id}@{scope}")
            return FetchResult(FETCH_RATE_LIMITED, scope=scope, detail="HTTP 429")
        if resp.status_code != 200:
            logger.warning(f"MarketClient: {item_id}@{scope} returned HTTP {resp.status_code}")
            return FetchResult(FETCH_ERROR, scope=scope, detail=f"HTTP {resp.status_code}")

        try:
            data = MarketDataResponse.from_json(resp.json(), scope=scope)
        except ValueError as e:
            logger.warning(f"MarketClient: bad response for {item_id}@{scope}: {e}")
            return FetchResult(FETCH_ERROR, scope=scope, detail="bad body")

        data.fetched_at = self._clock()
        return FetchResult(FETCH_OK, data=data, scope=scope)

    # ─── Rate Limiting ────────────────────────────

    def _rate_limit(self):
        """Block until at least min_interval has passed since the last request."""
        with self._rate_lock:
            now = self._clock()
            if self._last_request_time is not None:
                elapsed = now - self._last_request_time
                if elapsed < self._min_interval:
                    self._sleep(self._min_interval - elapsed)
            self._last_request_time = self._clock()

    def close(self):
        self._session.close()
