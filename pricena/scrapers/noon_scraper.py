# pricena/scrapers/noon_scraper.py

"""Adapter for noon.com (Egypt) using their internal catalog API."""

import urllib.parse
from typing import Any

from pricena.models.product import RawItem
from pricena.scrapers.base_scraper import BaseScraper, FetchPlan
from pricena.scrapers.extraction import (
    PagePayload,
    dig,
    first_list,
    first_of,
    next_data,
)

_IMAGE_TEMPLATE = "/p/{key}.jpg"


def _parse_hit(hit: dict[str, Any]) -> RawItem:
    """Parse a single catalog hit into a raw item."""
    sku = str(hit.get("sku") or hit.get("sku_config") or "")
    image_key = hit.get("image_key")
    image = (
        _IMAGE_TEMPLATE.format(key=image_key)
        if image_key
        else first_of(hit, "image_url", "image")
    )
    url = first_of(hit, "url")
    if url is None and sku:
        url = f"/egypt-en/{sku}/p/"
    return RawItem(
        id=sku,
        title=first_of(hit, "name", "name_en", "title"),
        price=first_of(hit, "sale_price", "price"),
        original_price=hit.get("price") if hit.get("sale_price") else None,
        image=image,
        url=url,
        rating=dig(hit, "product_rating", "value") or hit.get("rating"),
        review_count=dig(hit, "product_rating", "count"),
        brand=hit.get("brand"),
        is_free_delivery=bool(
            hit.get("is_free_delivery") or hit.get("free_delivery")
        ),
        is_promotional=bool(hit.get("is_bestseller") or hit.get("flags")),
    )


def extract_api_hits(payload: PagePayload) -> list[RawItem]:
    """Catalog search API JSON (``hits`` list)."""
    hits = first_list(payload.data, [("hits",), ("results",)])
    return [_parse_hit(h) for h in hits if isinstance(h, dict)]


def extract_next_data_hits(payload: PagePayload) -> list[RawItem]:
    """``__NEXT_DATA__`` on the HTML search page."""
    hits = first_list(
        next_data(payload),
        [
            ("props", "pageProps", "catalog", "hits"),
            ("props", "pageProps", "props", "catalog", "hits"),
            ("props", "pageProps", "searchResult", "hits"),
        ],
    )
    return [_parse_hit(h) for h in hits if isinstance(h, dict)]


def extract_api_product(payload: PagePayload) -> list[RawItem]:
    """Product detail API JSON (``product`` object)."""
    product = dig(payload.data, "product")
    if not isinstance(product, dict):
        return []
    item = _parse_hit(product)
    variants = product.get("variants") or []
    offers = dig(variants, 0, "offers") or []
    offer = offers[0] if offers and isinstance(offers[0], dict) else {}
    if offer:
        item["price"] = first_of(offer, "sale_price", "price")
        item["original_price"] = (
            offer.get("price") if offer.get("sale_price") else None
        )
    specs = [
        {"key": s.get("name"), "value": s.get("value")}
        for s in product.get("specifications") or []
        if isinstance(s, dict)
    ]
    item["specs"] = specs
    item["description"] = " ".join(
        str(line) for line in product.get("feature_bullets") or []
    )
    image_keys = product.get("image_keys") or []
    if image_keys:
        item["image"] = _IMAGE_TEMPLATE.format(key=image_keys[0])
    return [item]


class NoonScraper(BaseScraper):
    """Adapter for noon.com (Egypt) via its internal JSON API.

    Noon is a Next.js SPA that frequently returns 403 for plain HTML
    requests, so the catalog API is tried first and the HTML search
    page is only a fallback.
    """

    SEARCH_API = (
        "/_svc/catalog/api/v3/u/search"
        "?q={query}&page=1&limit=40&locale=en-eg"
    )
    PRODUCT_API = "/_svc/catalog/api/v3/u/{sku}/p/?locale=en-eg"

    def __init__(self) -> None:
        super().__init__("noon")

    def _get_homepage(self) -> str:
        """Return the Noon Egypt homepage URL."""
        return f"{self.base_url}/egypt-en/"

    def _api_headers(self, referer: str) -> dict[str, str]:
        return {
            "Referer": referer,
            "Accept": "application/json",
            "X-Locale": "en-eg",
            "X-Content": "V6",
        }

    def _search_plans(self, term: str) -> list[FetchPlan]:
        encoded = urllib.parse.quote(term)
        html_url = f"{self.base_url}/egypt-en/search/?q={encoded}"
        return [
            FetchPlan(
                label="catalog API",
                url=self.base_url + self.SEARCH_API.format(query=encoded),
                strategies=(extract_api_hits,),
                headers=self._api_headers(html_url),
                allow_fallback=False,
            ),
            FetchPlan(
                label="search page",
                url=html_url,
                strategies=(extract_next_data_hits,),
            ),
        ]

    def _detail_plans(self, local_id: str) -> list[FetchPlan]:
        sku = urllib.parse.quote(local_id, safe="")
        return [
            FetchPlan(
                label="product API",
                url=self.base_url + self.PRODUCT_API.format(sku=sku),
                strategies=(extract_api_product,),
                headers=self._api_headers(
                    f"{self.base_url}/egypt-en/{sku}/p/"
                ),
                allow_fallback=False,
            ),
        ]
