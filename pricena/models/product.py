# pricena/models/product.py

"""Product data models shared by adapters, normaliser and orchestrator."""

from dataclasses import dataclass, field
from typing import Any, TypedDict


class RawItem(TypedDict, total=False):
    """Loosely typed listing as scraped by a source adapter.

    Values are stored exactly as found on the page or in the JSON
    payload (strings such as ``"EGP 1,299.00"``, numbers, ``None``,
    relative URLs).  Only :class:`ProductNormalizer` interprets them.
    """

    id: Any
    title: Any
    price: Any
    original_price: Any
    discount: Any
    image: Any
    url: Any
    rating: Any
    review_count: Any
    brand: Any
    description: Any
    specs: Any
    is_promotional: Any
    is_free_delivery: Any


@dataclass(frozen=True)
class ProductSpec:
    """A single specification row, e.g. ``Weight: 1kg``."""

    key: str
    value: str


@dataclass(frozen=True)
class Product:
    """A validated listing from one source.

    Instances are immutable; the ranker marks the best price by
    producing a copy with ``is_best_price=True``.
    """

    source: str
    local_id: str
    title: str
    price: float
    url: str
    image_url: str = ""
    currency: str = "EGP"
    original_price: float | None = None
    discount_percent: int | None = None
    rating: float | None = None
    review_count: int | None = None
    brand: str = ""
    description: str = ""
    specs: tuple[ProductSpec, ...] = field(default_factory=tuple)
    is_promotional: bool = False
    is_free_delivery: bool = False
    is_best_price: bool = False

    @property
    def product_id(self) -> str:
        """Globally unique id: source name joined with the local id."""
        return f"{self.source}-{self.local_id}"

    def to_dict(self) -> dict[str, object]:
        """Serialise to the camelCase shape consumed by API clients."""
        return {
            "id": self.product_id,
            "title": self.title,
            "price": self.price,
            "currency": self.currency,
            "originalPrice": self.original_price,
            "discount": self.discount_percent,
            "image": self.image_url,
            "url": self.url,
            "platform": self.source,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "brand": self.brand or None,
            "description": self.description or None,
            "specs": [
                {"key": s.key, "value": s.value} for s in self.specs
            ],
            "isPromotional": self.is_promotional,
            "isFreeDelivery": self.is_free_delivery,
            "isBestPrice": self.is_best_price,
        }
