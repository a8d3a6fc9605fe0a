# tests/test_talabat_scraper.py

"""Tests for the Talabat Egypt grocery adapter."""

import json
import unittest
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from pricena.scrapers.extraction import PagePayload
from pricena.scrapers.talabat_scraper import (
    NO_IMAGE,
    TalabatScraper,
    extract_api_items,
    extract_api_product,
    extract_html_items,
    extract_html_product,
)

API_ITEMS: dict[str, Any] = {
    "items": [
        {
            "id": "a1b2",
            "title": "Doha Rice 1kg",
            "price": 38.95,
            "originalPrice": 45,
            "discount": 13,
            "image": "https://images.deliveryhero.io/rice.jpg",
            "attributes": [{"name": "Weight", "value": "1 kg"}],
            "isPromotional": True,
        },
        {"sku": "c3d4", "name": "Falfla Rice 5kg", "price": "189"},
    ]
}

SEARCH_HTML = """
<html><body>
<div class="product-item">
  <a class="product-link" href="/egypt/grocery/item/x9"></a>
  <div class="product-title">Rice Bag</div>
  <div class="product-price">EGP 55.00</div>
  <div class="product-old-price">EGP 60.00</div>
  <div class="product-image"><img data-src="/img/x9.jpg"></div>
  <ul class="product-specs"><li>Origin: Egypt</li><li>no separator</li></ul>
  <span class="free-delivery-badge">Free</span>
</div>
<div class="product-item"><div class="product-title">No link</div></div>
</body></html>
"""

DETAIL_HTML = """
<html><body>
<h1 class="product-title">Rice Bag</h1>
<div class="product-price">EGP 55.00</div>
<div class="product-description">Short grain</div>
</body></html>
"""


def _response(body: Any, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = body if isinstance(body, str) else json.dumps(body)
    return resp


class TestTalabatExtraction(unittest.TestCase):
    """Pure strategy functions."""

    def test_api_items(self) -> None:
        items = extract_api_items(PagePayload(json.dumps(API_ITEMS)))
        self.assertEqual(len(items), 2)
        first, second = items
        self.assertEqual(first["id"], "a1b2")
        self.assertEqual(first["url"], "/egypt/grocery/item/a1b2")
        self.assertEqual(first["original_price"], 45)
        self.assertEqual(first["specs"], [{"key": "Weight", "value": "1 kg"}])
        self.assertEqual(first["brand"], "Talabat")
        self.assertEqual(second["id"], "c3d4")
        self.assertEqual(second["title"], "Falfla Rice 5kg")
        self.assertEqual(second["image"], NO_IMAGE)

    def test_html_items(self) -> None:
        items = extract_html_items(PagePayload(SEARCH_HTML))
        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item["id"], "x9")
        self.assertEqual(item["price"], "EGP 55.00")
        self.assertEqual(item["image"], "/img/x9.jpg")
        self.assertEqual(item["specs"], [{"key": "Origin", "value": "Egypt"}])
        self.assertTrue(item["is_free_delivery"])
        self.assertFalse(item["is_promotional"])

    def test_api_product_unwraps_item(self) -> None:
        payload = PagePayload(
            json.dumps({"item": {"title": "Rice", "price": 20}}),
            "https://www.talabat.com/api/catalog/item/zz1?country=eg",
        )
        items = extract_api_product(payload)
        self.assertEqual(items[0]["id"], "zz1")

    def test_html_product(self) -> None:
        items = extract_html_product(
            PagePayload(
                DETAIL_HTML, "https://www.talabat.com/egypt/grocery/item/x9"
            )
        )
        self.assertEqual(items[0]["id"], "x9")
        self.assertEqual(items[0]["description"], "Short grain")


class TestTalabatScraper(unittest.IsolatedAsyncioTestCase):
    """Adapter wiring over a mocked session."""

    async def test_search_uses_groceries_api(self) -> None:
        scraper = TalabatScraper()
        scraper.session = MagicMock()
        scraper.session.get = AsyncMock(return_value=_response(API_ITEMS))
        items = await scraper.search("rice")
        self.assertEqual(len(items), 2)
        url = scraper.session.get.await_args.args[0]
        self.assertIn(TalabatScraper.STORE_ID, url)
        self.assertIn("query=rice", url)
        headers = scraper.session.get.await_args.kwargs["headers"]
        self.assertEqual(headers["sourceapp"], "web")

    async def test_detail_falls_back_to_item_page(self) -> None:
        scraper = TalabatScraper()
        scraper.session = MagicMock()
        scraper.session.get = AsyncMock(
            side_effect=[_response("", 404), _response(DETAIL_HTML)]
        )
        item = await scraper.get_details("x9")
        self.assertIsNotNone(item)
        assert item is not None
        self.assertEqual(item["title"], "Rice Bag")


if __name__ == "__main__":
    unittest.main()
