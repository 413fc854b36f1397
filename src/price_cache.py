"""
IDM - Market Price Cache
Enriches displayed inventory items with market prices without ever blocking
the caller.

Three pieces of state:
- positive cache: item id → PriceCacheEntry, fresh for the configured TTL
- negative cache: item id → time before which we won't ask again
- in-flight set: item id → when its fetch started, bounded by a ceiling

clear() forgets the in-flight set, but fetches it had started keep running
until they return; they still count against the ceiling so a refresh never
raises the number of live fetch threads above it.

Each fetch runs on its own daemon thread. The in-flight set is the only
state shared under a lock; caches are written only by finished fetches and
read without locking.
"""

import time
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from config import (
    MARKET_MAX_CONCURRENT_FETCHES,
    MARKET_FETCH_STUCK_TIMEOUT,
    MARKET_FAILURE_BACKOFF,
    MARKET_RATE_LIMIT_BACKOFF,
)
from market_client import FETCH_RATE_LIMITED, FetchResult, MarketDataResponse, UniversalisClient
from settings import MarketPriceSettings
from snapshot import InventoryItemInfo

logger = logging.getLogger(__name__)


@dataclass
class PriceCacheEntry:
    price: Optional[int]                 # cheapest unit price; None when nothing is listed
    is_hq: Optional[bool]
    fetched_at: float
    data: Optional[MarketDataResponse] = None


@dataclass
class _InFlight:
    started_at: float
    item: InventoryItemInfo
    generation: int


def _spawn_daemon(target, *args):
    t = threading.Thread(target=target, args=args, daemon=True)
    t.start()


class MarketPriceCache:
    """
    Non-blocking price lookups with bounded background fetching.

    Usage:
        cache = MarketPriceCache(client, settings.market_price)
        cache.batch_request(visible_items, "Twintania")   # each frame / refresh
        entry = cache.get_cached_or_none(item_id)
    """

    def __init__(self, client: UniversalisClient, settings: MarketPriceSettings,
                 max_concurrent: int = MARKET_MAX_CONCURRENT_FETCHES,
                 stuck_timeout: float = MARKET_FETCH_STUCK_TIMEOUT,
                 failure_backoff: float = MARKET_FAILURE_BACKOFF,
                 rate_limit_backoff: float = MARKET_RATE_LIMIT_BACKOFF,
                 clock: Callable[[], float] = time.monotonic,
                 spawn: Callable = _spawn_daemon):
        self.client = client
        self.settings = settings
        self.max_concurrent = max_concurrent
        self.stuck_timeout = stuck_timeout
        self.failure_backoff = failure_backoff
        self.rate_limit_backoff = rate_limit_backoff
        self._clock = clock
        self._spawn = spawn

        self._prices: Dict[int, PriceCacheEntry] = {}
        self._failed_until: Dict[int, float] = {}
        self._in_flight: Dict[int, _InFlight] = {}
        # Started before the last clear() and not finished yet
        self._retired: List[_InFlight] = []
        self._lock = threading.Lock()
        # Bumped by clear(); fetches started before a clear don't write back
        self._generation = 0

    # ─── Lookups ──────────────────────────────────

    @property
    def ttl(self) -> float:
        return max(1, self.settings.cache_timeout_minutes) * 60.0

    def get_cached_or_none(self, item_id: int) -> Optional[PriceCacheEntry]:
        """Fresh cache entry for the item, or None. Never blocks, never fetches."""
        entry = self._prices.get(item_id)
        if entry is None or self._clock() - entry.fetched_at >= self.ttl:
            return None
        return entry

    def is_backing_off(self, item_id: int) -> bool:
        until = self._failed_until.get(item_id)
        return until is not None and self._clock() < until

    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def is_in_flight(self, item_id: int) -> bool:
        with self._lock:
            return item_id in self._in_flight

    # ─── Dispatch ─────────────────────────────────

    def request_fetch(self, item: InventoryItemInfo, world: str) -> bool:
        """Start a background fetch for one item if allowed. Returns True if dispatched.

        A fresh cache hit is copied onto the item instead of fetching.
        """
        if not self.settings.show_prices:
            return False
        if item.market_price_loading or item.market_price is not None:
            return False
        if self._apply_cached(item):
            return False
        if self.is_backing_off(item.item_id):
            return False
        if not world:
            return False

        with self._lock:
            self._sweep_stuck()
            if self._busy() >= self.max_concurrent or item.item_id in self._in_flight:
                return False
            token = _InFlight(self._clock(), item, self._generation)
            self._in_flight[item.item_id] = token

        item.market_price_loading = True
        logger.debug(f"PriceCache: fetching {item.item_id} ({item.name}) on {world}")
        try:
            self._spawn(self._fetch_worker, item, world, token)
        except RuntimeError as e:
            logger.warning(f"PriceCache: could not start fetch for {item.item_id}: {e}")
            item.market_price_loading = False
            self._release(item.item_id, token)
            return False
        return True

    def batch_request(self, items: Iterable[InventoryItemInfo], world: str) -> List[InventoryItemInfo]:
        """Dispatch fetches for the first items needing a price, up to the free budget.

        Input order is preserved. Returns the items that were dispatched.
        """
        if not self.settings.show_prices:
            return []

        with self._lock:
            self._sweep_stuck()
            budget = self.max_concurrent - self._busy()
            in_flight = set(self._in_flight)

        wanted = []
        for item in items:
            if budget <= 0:
                break
            if item.market_price_loading or item.market_price is not None:
                continue
            if item.item_id in in_flight or self._apply_cached(item):
                continue
            if self.is_backing_off(item.item_id):
                continue
            wanted.append(item)
            budget -= 1

        return [item for item in wanted if self.request_fetch(item, world)]

    def clear(self):
        """Drop cached prices, backoffs and in-flight state."""
        with self._lock:
            for token in self._in_flight.values():
                token.item.market_price_loading = False
            self._retired.extend(self._in_flight.values())
            self._in_flight.clear()
            self._generation += 1
        self._prices = {}
        self._failed_until = {}
        logger.debug("PriceCache: cleared")

    # ─── Internals ────────────────────────────────

    def _apply_cached(self, item: InventoryItemInfo) -> bool:
        entry = self.get_cached_or_none(item.item_id)
        if entry is None:
            return False
        item.market_price = entry.price
        item.market_price_is_hq = entry.is_hq
        item.market_data = entry.data
        return True

    def _busy(self) -> int:
        """Live fetches, including ones started before a clear. Caller holds the lock."""
        return len(self._in_flight) + len(self._retired)

    def _sweep_stuck(self):
        """Evict fetches older than the stuck timeout. Caller holds the lock."""
        now = self._clock()
        self._retired = [t for t in self._retired if now - t.started_at <= self.stuck_timeout]
        stuck = [i for i, t in self._in_flight.items() if now - t.started_at > self.stuck_timeout]
        for item_id in stuck:
            token = self._in_flight.pop(item_id)
            token.item.market_price_loading = False
            logger.warning(f"PriceCache: fetch for {item_id} stuck for {self.stuck_timeout:.0f}s, evicted")

    def _release(self, item_id: int, token: _InFlight):
        with self._lock:
            # A sweep or clear may already have replaced our entry
            if self._in_flight.get(item_id) is token:
                del self._in_flight[item_id]
            else:
                self._retired = [t for t in self._retired if t is not token]

    def _fetch_worker(self, item: InventoryItemInfo, world: str, token: _InFlight):
        item_id = item.item_id
        try:
            result = self.client.fetch(
                item_id, world,
                use_data_center=self.settings.use_data_center,
                fallback_to_data_center=self.settings.fallback_to_data_center,
            )
            if token.generation == self._generation:
                self._record(item, result)
        except Exception as e:
            logger.warning(f"PriceCache: fetch for {item_id} failed: {e}")
            if token.generation == self._generation:
                self._failed_until[item_id] = self._clock() + self.failure_backoff
        finally:
            item.market_price_loading = False
            self._release(item_id, token)

    def _record(self, item: InventoryItemInfo, result: FetchResult):
        item_id = item.item_id
        if result.ok:
            cheapest = result.data.cheapest_listing()
            entry = PriceCacheEntry(
                price=cheapest.price_per_unit if cheapest else None,
                is_hq=cheapest.hq if cheapest else None,
                fetched_at=self._clock(),
                data=result.data,
            )
            self._prices[item_id] = entry
            self._failed_until.pop(item_id, None)
            item.market_price = entry.price
            item.market_price_is_hq = entry.is_hq
            item.market_data = entry.data
            logger.debug(f"PriceCache: {item_id} → {entry.price} ({result.scope})")
            return

        backoff = self.rate_limit_backoff if result.status == FETCH_RATE_LIMITED else self.failure_backoff
        self._failed_until[item_id] = self._clock() + backoff
        logger.info(f"PriceCache: no price for {item_id} ({result.status}), retry in {backoff:.0f}s")
