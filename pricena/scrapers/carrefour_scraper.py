# pricena/scrapers/carrefour_scraper.py

"""Adapter for carrefouregypt.com with layered JSON/HTML extraction.

Carrefour pages change shape often.  Search results are read from,
in order: the ``window.__INITIAL_STATE__`` store, ``__NEXT_DATA__``,
a JSON-LD ``ItemList``, product cards, the product grid, and finally
bare product links.
"""

import urllib.parse
from typing import Any

from bs4 import Tag

from pricena.models.product import RawItem
from pricena.scrapers.base_scraper import BaseScraper, FetchPlan
from pricena.scrapers.extraction import (
    PagePayload,
    assigned_json,
    attr_of,
    dig,
    first_list,
    first_of,
    json_ld_blocks,
    last_path_segment,
    next_data,
    text_of,
)

PRODUCT_PATH = "/mafegy/en/products/{id}"


def _json_price(item: dict[str, Any]) -> Any:
    price = item.get("price")
    if isinstance(price, dict):
        return first_of(price, "value", "current", "price")
    return price if price is not None else first_of(
        item, "salePrice", "offerPrice"
    )


def _json_original_price(item: dict[str, Any]) -> Any:
    price = item.get("price")
    if isinstance(price, dict):
        nested = first_of(price, "was", "original")
        if nested is not None:
            return nested
    return first_of(item, "originalPrice", "listPrice")


def _json_image(item: dict[str, Any]) -> Any:
    image = item.get("image")
    if isinstance(image, list) and image:
        image = image[0]
    if isinstance(image, dict):
        return first_of(image, "url", "src")
    if image:
        return image
    images = item.get("images")
    if isinstance(images, list) and images:
        first = images[0]
        return first_of(first, "url", "src") if isinstance(first, dict) else first
    return item.get("imageUrl")


def _parse_json_item(item: dict[str, Any]) -> RawItem | None:
    """Map one product object from any embedded JSON store."""
    if isinstance(item.get("item"), dict):
        item = item["item"]
    product_id = first_of(item, "id", "productId", "code", "sku")
    if product_id is None:
        return None
    offers = item.get("offers")
    price = _json_price(item)
    if price is None and isinstance(offers, dict):
        price = offers.get("price")
    brand = item.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")
    return RawItem(
        id=str(product_id),
        title=first_of(item, "name", "title", "displayName"),
        price=price,
        original_price=_json_original_price(item),
        discount=first_of(item, "discountPercentage", "discount"),
        image=_json_image(item),
        url=first_of(item, "url")
        or PRODUCT_PATH.format(id=product_id),
        brand=brand,
        is_free_delivery=bool(
            item.get("freeDelivery") or item.get("freeShipping")
        ),
    )


def _parse_json_list(raw: list[Any]) -> list[RawItem]:
    items: list[RawItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        parsed = _parse_json_item(entry)
        if parsed is not None:
            items.append(parsed)
    return items


def extract_initial_state(payload: PagePayload) -> list[RawItem]:
    """Redux store assigned to ``window.__INITIAL_STATE__``."""
    state = assigned_json(payload, "window.__INITIAL_STATE__")
    return _parse_json_list(
        first_list(
            state,
            [
                ("search", "products"),
                ("catalog", "products"),
                ("plp", "items"),
            ],
        )
    )


def extract_next_data(payload: PagePayload) -> list[RawItem]:
    """Next.js page props."""
    return _parse_json_list(
        first_list(
            next_data(payload),
            [
                ("props", "pageProps", "searchResult", "products"),
                ("props", "pageProps", "initialState", "search", "products"),
                ("props", "pageProps", "products"),
            ],
        )
    )


def extract_json_ld_item_list(payload: PagePayload) -> list[RawItem]:
    """Schema.org ``ItemList`` blocks."""
    for block in json_ld_blocks(payload):
        if not isinstance(block, dict):
            continue
        if block.get("@type") != "ItemList":
            continue
        elements = block.get("itemListElement")
        if isinstance(elements, list) and elements:
            return _parse_json_list(elements)
    return []


def _parse_html_tile(tile: Tag, href: str) -> RawItem:
    return RawItem(
        id=last_path_segment(href),
        title=text_of(
            tile,
            '[data-testid="product-name"]',
            ".product-name",
            ".product-title",
            '[class*="title"]',
            '[class*="name"]',
            "h2",
            "h3",
            "h4",
        ),
        price=text_of(
            tile,
            '[data-testid="current-price"]',
            ".current-price",
            '[class*="price"]:not([class*="old"])',
            '[class*="Price"]',
        ),
        original_price=text_of(
            tile, '[data-testid="old-price"]', '[class*="old-price"]'
        ),
        image=attr_of(tile, "img", "src", "data-src"),
        url=href,
    )


def extract_product_cards(payload: PagePayload) -> list[RawItem]:
    """Current card layout (``product-card`` / ``ProductCard`` classes)."""
    items: list[RawItem] = []
    for card in payload.soup.select(
        '.product-card, [class*="productCard"], [class*="ProductCard"]'
    ):
        href = attr_of(card, "a", "href")
        if href and last_path_segment(href):
            items.append(_parse_html_tile(card, href))
    return items


def extract_product_grid(payload: PagePayload) -> list[RawItem]:
    """Older ``plp-products-grid`` list layout."""
    items: list[RawItem] = []
    for tile in payload.soup.select(
        'ul[data-testid="plp-products-grid"] li'
    ):
        href = attr_of(
            tile, 'a[data-testid="product-tile"], a[href*="/product"]', "href"
        ) or attr_of(tile, "a", "href")
        if href:
            items.append(_parse_html_tile(tile, href))
    return items


def extract_product_links(payload: PagePayload) -> list[RawItem]:
    """Last resort: any link into a product page, priced nearby."""
    items: list[RawItem] = []
    for link in payload.soup.select('a[href*="/product"]'):
        href = str(link.get("href") or "")
        if not last_path_segment(href):
            continue
        container = link.find_parent("div") or link
        title = link.get_text(" ", strip=True)
        if len(title) > 100:
            title = ""
        items.append(
            RawItem(
                id=last_path_segment(href),
                title=title,
                price=text_of(container, '[class*="price"]'),
                image=attr_of(container, "img", "src", "data-src"),
                url=href,
            )
        )
    return items


def extract_detail_page(payload: PagePayload) -> list[RawItem]:
    """Product detail page selectors, enriched from JSON-LD ``Product``."""
    soup = payload.soup
    title = text_of(
        soup, 'h1[data-testid="pdp-product-title"]', "h1.product-title", "h1"
    )
    ld_product: dict[str, Any] = {}
    for block in json_ld_blocks(payload):
        if isinstance(block, dict) and block.get("@type") == "Product":
            ld_product = block
            break
    if not title and not ld_product:
        return []

    specs: list[dict[str, str]] = []
    for row in soup.select(
        '[data-testid="product-attributes-table"] tr, '
        ".product-specifications tr, .product-attributes tr"
    ):
        key = text_of(row, "th", "td:first-child")
        value = text_of(row, "td:last-child")
        if key and value and key != value:
            specs.append({"key": key, "value": value})

    page_text = soup.get_text(" ").lower()
    brand = text_of(soup, '[data-testid="product-brand"]') or dig(
        ld_product, "brand", "name"
    )
    return [
        RawItem(
            title=title or ld_product.get("name"),
            price=text_of(soup, 'span[data-testid="current-price"]')
            or dig(ld_product, "offers", "price"),
            original_price=text_of(soup, 'span[data-testid="old-price"]'),
            discount=text_of(soup, '[data-testid="product-discount"]'),
            image=attr_of(
                soup,
                'img[data-testid="product-image"], img.carousel-image',
                "src",
            )
            or ld_product.get("image"),
            url=payload.url,
            description=text_of(
                soup,
                '[data-testid="product-details-description"]',
                ".product-description",
            )
            or ld_product.get("description"),
            brand=brand or "Carrefour",
            specs=specs,
            is_free_delivery=(
                "free delivery" in page_text or "توصيل مجاني" in page_text
            ),
        )
    ]


class CarrefourScraper(BaseScraper):
    """Adapter for carrefouregypt.com."""

    def __init__(self) -> None:
        super().__init__("carrefour")

    def _get_homepage(self) -> str:
        """Return the Carrefour Egypt homepage URL."""
        return f"{self.base_url}/"

    def _search_plans(self, term: str) -> list[FetchPlan]:
        encoded = urllib.parse.quote(term)
        return [
            FetchPlan(
                label="search page",
                url=f"{self.base_url}/mafegy/en/v4/search?keyword={encoded}",
                strategies=(
                    extract_initial_state,
                    extract_next_data,
                    extract_json_ld_item_list,
                    extract_product_cards,
                    extract_product_grid,
                    extract_product_links,
                ),
                headers={"Sec-Fetch-Site": "same-origin"},
            ),
        ]

    def _detail_plans(self, local_id: str) -> list[FetchPlan]:
        code = local_id
        if "/product/" in code:
            code = code.split("/product/")[1].split("/")[0]
        code = urllib.parse.quote(code, safe="")
        return [
            FetchPlan(
                label="product page",
                url=self.base_url + PRODUCT_PATH.format(id=code),
                strategies=(extract_detail_page,),
            ),
        ]
