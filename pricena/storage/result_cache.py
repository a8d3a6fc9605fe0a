# pricena/storage/result_cache.py

"""In-memory TTL cache of processed search results."""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from pricena.config.settings import Settings
from pricena.models.product import Product
from pricena.models.search_query import SearchQuery

logger = logging.getLogger("pricena.cache")


@dataclass
class CacheEntry:
    """The filtered and sorted (pre-pagination) results of one query."""

    key: str
    created_at: float
    products: list[Product]


class ResultCache:
    """Query-keyed result cache with a fixed time-to-live.

    Entries hold results before pagination, so every page of a query
    is served from the same entry.  Expired entries are evicted when
    they are next looked up.
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl: float = Settings.RESULT_CACHE_TTL if ttl is None else ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(query: SearchQuery) -> str:
        """Serialise every result-affecting field except the page."""
        return json.dumps(
            [
                query.term,
                query.category,
                query.price_range,
                query.sort.value,
                sorted(query.sources),
            ],
            ensure_ascii=False,
        )

    def get(self, key: str) -> list[Product] | None:
        """Return a copy of the cached list, or ``None`` on miss/expiry."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry.created_at >= self._ttl:
                del self._entries[key]
                logger.debug("Evicted expired cache entry %s", key)
                return None
            products = list(entry.products)
        logger.info("Cache hit for %s (%d results)", key, len(products))
        return products

    def store(self, key: str, products: list[Product]) -> None:
        """Insert or replace the entry for ``key``."""
        entry = CacheEntry(
            key=key, created_at=self._clock(), products=list(products)
        )
        with self._lock:
            self._entries[key] = entry
        logger.info("Cached %d results for %s", len(products), key)

    def clear(self) -> int:
        """Purge all entries; returns how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Result cache purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
