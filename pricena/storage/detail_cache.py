# pricena/storage/detail_cache.py

"""Per-product cache filled by searches and detail lookups."""

import threading
from collections.abc import Iterable

from pricena.models.product import Product


class DetailCache:
    """Maps ``(source, local_id)`` to the last normalised product seen."""

    def __init__(self) -> None:
        self._items: dict[tuple[str, str], Product] = {}
        self._lock = threading.Lock()

    def get(self, source: str, local_id: str) -> Product | None:
        with self._lock:
            return self._items.get((source, local_id))

    def put(self, product: Product) -> None:
        with self._lock:
            self._items[(product.source, product.local_id)] = product

    def put_many(self, products: Iterable[Product]) -> None:
        with self._lock:
            for product in products:
                self._items[(product.source, product.local_id)] = product

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
