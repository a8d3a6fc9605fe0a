# pricena/scrapers/talabat_scraper.py

"""Adapter for talabat.com grocery (Egypt)."""

import urllib.parse
from typing import Any

from bs4 import BeautifulSoup, Tag

from pricena.models.product import RawItem
from pricena.scrapers.base_scraper import BaseScraper, FetchPlan
from pricena.scrapers.extraction import (
    PagePayload,
    attr_of,
    first_list,
    first_of,
    last_path_segment,
    text_of,
)

ITEM_PATH = "/egypt/grocery/item/{id}"
NO_IMAGE = (
    "https://images.deliveryhero.io/image/talabat/"
    "Menuitems/no_image_available.jpg"
)


def _json_specs(item: dict[str, Any]) -> list[dict[str, Any]]:
    specs: list[dict[str, Any]] = []
    for spec in item.get("specs") or []:
        if isinstance(spec, dict):
            specs.append({"key": spec.get("key"), "value": spec.get("value")})
    if specs:
        return specs
    for attr in item.get("attributes") or []:
        if isinstance(attr, dict):
            specs.append({"key": attr.get("name"), "value": attr.get("value")})
    return specs


def _parse_json_item(item: dict[str, Any], fallback_id: str = "") -> RawItem:
    product_id = str(first_of(item, "id", "sku") or fallback_id)
    return RawItem(
        id=product_id,
        title=item.get("title") or item.get("name"),
        price=item.get("price"),
        original_price=first_of(item, "originalPrice", "oldPrice"),
        discount=item.get("discount"),
        image=item.get("image") or NO_IMAGE,
        url=ITEM_PATH.format(id=product_id) if product_id else None,
        rating=item.get("rating"),
        review_count=item.get("reviewCount"),
        brand=item.get("brand") or "Talabat",
        description=item.get("description"),
        specs=_json_specs(item),
        is_promotional=item.get("isPromotional"),
        is_free_delivery=bool(item.get("isFreeDelivery")),
    )


def extract_api_items(payload: PagePayload) -> list[RawItem]:
    """Groceries API JSON (``items`` list)."""
    items = first_list(payload.data, [("items",), ("data", "items")])
    return [_parse_json_item(i) for i in items if isinstance(i, dict)]


def _parse_html_block(node: Tag | BeautifulSoup, href: str) -> RawItem:
    specs: list[dict[str, str]] = []
    for li in node.select(".product-specs li"):
        key, sep, value = li.get_text(" ", strip=True).partition(":")
        if sep and key.strip() and value.strip():
            specs.append({"key": key.strip(), "value": value.strip()})
    return RawItem(
        id=last_path_segment(href),
        title=text_of(node, ".product-title"),
        price=text_of(node, ".product-price"),
        original_price=text_of(node, ".product-old-price"),
        discount=text_of(node, ".discount-badge"),
        image=attr_of(node, ".product-image img", "src", "data-src"),
        url=href,
        rating=text_of(node, ".product-rating") or None,
        review_count=text_of(node, ".product-reviews-count") or None,
        brand=text_of(node, ".product-brand") or "Talabat",
        description=text_of(node, ".product-description"),
        specs=specs,
        is_promotional=node.select_one(".promotional-badge") is not None,
        is_free_delivery=node.select_one(".free-delivery-badge") is not None,
    )


def extract_html_items(payload: PagePayload) -> list[RawItem]:
    """HTML search page ``.product-item`` cards."""
    items: list[RawItem] = []
    for card in payload.soup.select(".product-item"):
        href = attr_of(card, "a.product-link", "href")
        if href:
            items.append(_parse_html_block(card, href))
    return items


def extract_api_product(payload: PagePayload) -> list[RawItem]:
    """Catalog item API JSON (a single product object)."""
    data = payload.data
    if isinstance(data, dict) and isinstance(data.get("item"), dict):
        data = data["item"]
    if not isinstance(data, dict) or not data.get("title"):
        return []
    fallback_id = last_path_segment(payload.url.split("?")[0])
    return [_parse_json_item(data, fallback_id)]


def extract_html_product(payload: PagePayload) -> list[RawItem]:
    """Product detail page."""
    soup = payload.soup
    if not text_of(soup, ".product-title"):
        return []
    return [_parse_html_block(soup, payload.url)]


class TalabatScraper(BaseScraper):
    """Adapter for the talabat.com Egypt grocery darkstore.

    The JSON API is tried first; the HTML search page is a fallback.
    """

    STORE_ID = "0bbe2d06-bbf4-4992-b74f-d19304dd4fc8"
    SEARCH_API = (
        "/nextApi/groceries/stores/{store}/products"
        "?countryId=9&query={query}&limit=50&offset=0"
        "&isDarkstore=true&isMigrated=false"
    )
    PRODUCT_API = "/api/catalog/item/{id}?country=eg&language=en"

    def __init__(self) -> None:
        super().__init__("talabat")

    def _get_homepage(self) -> str:
        """Return the Talabat Egypt homepage URL."""
        return f"{self.base_url}/egypt"

    _API_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "appbrand": "1",
        "sourceapp": "web",
        "x-device-source": "0",
    }

    def _search_plans(self, term: str) -> list[FetchPlan]:
        encoded = urllib.parse.quote(term)
        return [
            FetchPlan(
                label="groceries API",
                url=self.base_url
                + self.SEARCH_API.format(store=self.STORE_ID, query=encoded),
                strategies=(extract_api_items,),
                headers=self._API_HEADERS,
                allow_fallback=False,
            ),
            FetchPlan(
                label="search page",
                url=f"{self.base_url}/egypt/grocery/search?q={encoded}",
                strategies=(extract_html_items,),
            ),
        ]

    def _detail_plans(self, local_id: str) -> list[FetchPlan]:
        code = local_id
        if "/item/" in code:
            code = code.split("/item/")[1].split("/")[0]
        code = urllib.parse.quote(code, safe="")
        return [
            FetchPlan(
                label="item API",
                url=self.base_url + self.PRODUCT_API.format(id=code),
                strategies=(extract_api_product,),
                headers=self._API_HEADERS,
                allow_fallback=False,
            ),
            FetchPlan(
                label="item page",
                url=self.base_url + ITEM_PATH.format(id=code),
                strategies=(extract_html_product,),
            ),
        ]
