# pricena/scrapers/amazon_scraper.py

"""Adapter for amazon.eg (Egypt)."""

import urllib.parse

from bs4 import Tag

from pricena.models.product import RawItem
from pricena.scrapers.base_scraper import BaseScraper, FetchPlan
from pricena.scrapers.extraction import PagePayload, attr_of, text_of

_CARD_SELECTOR = 'div[data-component-type="s-search-result"]'


def _parse_card(card: Tag) -> RawItem:
    """Parse a single search result card."""
    asin = str(card.get("data-asin") or "")
    href = attr_of(
        card,
        "h2 a, a.a-link-normal.s-no-outline, a.a-link-normal[href*='/dp/']",
        "href",
    )
    rating_text = text_of(card, "span.a-icon-alt")
    return RawItem(
        id=asin,
        title=text_of(
            card,
            "h2 span",
            "h2",
            "span.a-size-base-plus.a-color-base.a-text-normal",
        ),
        price=text_of(card, "span.a-price:not(.a-text-price) span.a-offscreen"),
        original_price=text_of(
            card, "span.a-price.a-text-price span.a-offscreen"
        ),
        image=attr_of(card, "img.s-image", "src", "data-src"),
        url=href or (f"/dp/{asin}" if asin else ""),
        rating=rating_text.split(" ")[0] if rating_text else None,
        review_count=text_of(
            card,
            "span.a-size-base.s-underline-text",
            "a[href*='customerReviews'] span",
        ),
        is_free_delivery="free delivery" in card.get_text(" ").lower(),
        is_promotional=bool(card.select_one("span.a-badge-text")),
    )


def extract_result_cards(payload: PagePayload) -> list[RawItem]:
    """Structured search-result cards carrying a non-empty ASIN."""
    return [
        _parse_card(card)
        for card in payload.soup.select(_CARD_SELECTOR)
        if card.get("data-asin")
    ]


def extract_asin_blocks(payload: PagePayload) -> list[RawItem]:
    """Any element with an ASIN and a price; used when the layout changes."""
    items: list[RawItem] = []
    for block in payload.soup.select("[data-asin]"):
        if not block.get("data-asin"):
            continue
        if not block.select_one("span.a-offscreen"):
            continue
        items.append(_parse_card(block))
    return items


def extract_detail_page(payload: PagePayload) -> list[RawItem]:
    """Product detail page (``/dp/<asin>``)."""
    soup = payload.soup
    title = text_of(soup, "#productTitle", "h1#title")
    if not title:
        return []
    specs: list[dict[str, str]] = []
    for row in soup.select(
        "#productDetails_techSpec_section_1 tr, "
        "#productOverview_feature_div tr"
    ):
        key = text_of(row, "th", "td:first-child")
        value = text_of(row, "td:last-child")
        if key and value and key != value:
            specs.append({"key": key, "value": value})
    bullets = [
        li.get_text(" ", strip=True)
        for li in soup.select("#feature-bullets li")
    ]
    asin = attr_of(soup, "input#ASIN", "value")
    rating_text = text_of(soup, "#acrPopover span.a-icon-alt")
    return [
        RawItem(
            id=asin or None,
            title=title,
            price=text_of(
                soup,
                "#corePrice_feature_div span.a-offscreen",
                "#corePriceDisplay_desktop_feature_div span.a-offscreen",
                "span.a-price span.a-offscreen",
            ),
            original_price=text_of(
                soup, "span.a-price.a-text-price span.a-offscreen"
            ),
            image=attr_of(
                soup, "#landingImage", "data-old-hires", "src"
            ),
            url=payload.url,
            rating=rating_text.split(" ")[0] if rating_text else None,
            review_count=text_of(soup, "#acrCustomerReviewText"),
            brand=text_of(soup, "#bylineInfo").removeprefix("Brand: "),
            description=" ".join(b for b in bullets if b),
            specs=specs,
        )
    ]


class AmazonScraper(BaseScraper):
    """Adapter for amazon.eg (Egypt)."""

    def __init__(self) -> None:
        super().__init__("amazon")

    def _get_homepage(self) -> str:
        """Return the Amazon Egypt homepage URL."""
        return f"{self.base_url}/"

    def _search_plans(self, term: str) -> list[FetchPlan]:
        encoded = urllib.parse.quote_plus(term)
        return [
            FetchPlan(
                label="search page",
                url=f"{self.base_url}/s?k={encoded}&language=en_AE",
                strategies=(
                    extract_result_cards,
                    extract_asin_blocks,
                ),
            ),
        ]

    def _detail_plans(self, local_id: str) -> list[FetchPlan]:
        asin = urllib.parse.quote(local_id, safe="")
        return [
            FetchPlan(
                label="detail page",
                url=f"{self.base_url}/dp/{asin}",
                strategies=(extract_detail_page,),
            ),
        ]
