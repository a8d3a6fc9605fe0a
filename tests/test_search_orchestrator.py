# tests/test_search_orchestrator.py

"""Tests for SearchOrchestrator fan-out, caching and detail lookups."""

import asyncio
import json
import time
import unittest
from typing import Any

from pricena.models.product import RawItem
from pricena.models.search_query import SearchQuery, UnknownSourceError
from pricena.services.search_orchestrator import SearchOrchestrator
from pricena.storage.result_cache import ResultCache


def _raw(local_id: str, title: str, price: Any, **extra: Any) -> RawItem:
    item = RawItem(
        id=local_id,
        title=title,
        price=price,
        url=f"/item/{local_id}",
    )
    item.update(extra)  # type: ignore[typeddict-item]
    return item


class FakeAdapter:
    """Stub adapter returning canned raw items."""

    def __init__(
        self,
        items: list[RawItem] | None = None,
        details: dict[str, RawItem] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.items = items or []
        self.details = details or {}
        self.delay = delay
        self.error = error
        self.search_calls: list[str] = []
        self.detail_calls: list[str] = []
        self.closed = False

    async def search(self, term: str) -> list[RawItem]:
        self.search_calls.append(term)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [dict(i) for i in self.items]  # type: ignore[misc]

    async def get_details(self, local_id: str) -> RawItem | None:
        self.detail_calls.append(local_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.details.get(local_id)

    async def close(self) -> None:
        self.closed = True


def _orchestrator(
    adapters: dict[str, FakeAdapter], **kwargs: Any
) -> SearchOrchestrator:
    kwargs.setdefault("search_timeout", 1.0)
    kwargs.setdefault("detail_timeout", 1.0)
    return SearchOrchestrator(adapters=adapters, **kwargs)  # type: ignore[arg-type]


class TestSearch(unittest.IsolatedAsyncioTestCase):
    """search() end to end over fake adapters."""

    async def test_best_price_across_sources(self) -> None:
        """The cheapest 'Rice 1kg' is marked and listed first."""
        adapters = {
            "amazon": FakeAdapter([_raw("A1", "Rice 1kg", 45)]),
            "noon": FakeAdapter([_raw("N1", "Rice 1kg", 40)]),
            "carrefour": FakeAdapter([_raw("C1", "Rice 1kg", 50)]),
        }
        orch = _orchestrator(adapters)
        query = SearchQuery.build(
            "rice", sources=["amazon", "noon", "carrefour"]
        )
        result = await orch.search(query)

        self.assertEqual(result.total_count, 3)
        self.assertEqual(
            [(p.source, p.price) for p in result.items],
            [("noon", 40.0), ("amazon", 45.0), ("carrefour", 50.0)],
        )
        self.assertEqual(
            [p.is_best_price for p in result.items], [True, False, False]
        )
        self.assertFalse(result.cache_hit)
        self.assertEqual(result.failed_sources, [])

    async def test_invalid_items_dropped(self) -> None:
        """A zero-priced listing never reaches the response."""
        adapters = {
            "noon": FakeAdapter(
                [_raw("N1", "Rice", 0), _raw("N2", "Rice 5kg", "EGP 199")]
            ),
        }
        result = await _orchestrator(adapters).search(
            SearchQuery.build("rice", sources=["noon"])
        )
        self.assertEqual([p.local_id for p in result.items], ["N2"])
        self.assertEqual(result.rejected_count, 1)
        self.assertTrue(all(p.price > 0 for p in result.items))

    async def test_malformed_item_does_not_fail_search(self) -> None:
        """One broken listing is dropped; every other source still counts."""
        cases = {
            "bad host": RawItem(
                id="A1",
                title="Rice",
                price=10,
                url="https://[www.amazon.eg/dp/A1",
            ),
            "infinite count": _raw(
                "A1", "Rice", 10, review_count=json.loads('{"n": 1e999}')["n"]
            ),
        }
        for name, broken in cases.items():
            with self.subTest(name):
                adapters = {
                    "amazon": FakeAdapter([broken]),
                    "noon": FakeAdapter([_raw("N1", "Rice 5kg", 40)]),
                }
                result = await _orchestrator(adapters).search(
                    SearchQuery.build("rice", sources=["amazon", "noon"])
                )
                self.assertIn("noon", [p.source for p in result.items])
                self.assertEqual(result.failed_sources, [])

    async def test_slow_source_is_isolated(self) -> None:
        """A hanging source times out alone; others are returned."""
        adapters = {
            "noon": FakeAdapter([_raw("N1", "Rice", 40)]),
            "talabat": FakeAdapter([_raw("T1", "Rice", 30)], delay=10),
        }
        orch = _orchestrator(adapters, search_timeout=0.05)
        start = time.monotonic()
        result = await orch.search(
            SearchQuery.build("rice", sources=["noon", "talabat"])
        )
        self.assertLess(time.monotonic() - start, 2.0)
        self.assertEqual([p.source for p in result.items], ["noon"])
        self.assertEqual(result.failed_sources, ["talabat"])
        statuses = {o.source: o.status for o in result.source_outcomes}
        self.assertEqual(statuses, {"noon": "ok", "talabat": "timeout"})

    async def test_raising_source_is_isolated(self) -> None:
        adapters = {
            "amazon": FakeAdapter(error=RuntimeError("blocked")),
            "noon": FakeAdapter([_raw("N1", "Rice", 40)]),
        }
        result = await _orchestrator(adapters).search(
            SearchQuery.build("rice", sources=["amazon", "noon"])
        )
        self.assertEqual(result.total_count, 1)
        self.assertEqual(result.failed_sources, ["amazon"])

    async def test_all_sources_failed_is_empty_result(self) -> None:
        adapters = {
            "amazon": FakeAdapter(error=RuntimeError("blocked")),
            "noon": FakeAdapter(delay=10),
        }
        orch = _orchestrator(adapters, search_timeout=0.05)
        with self.assertLogs("pricena.orchestrator", level="WARNING") as logs:
            result = await orch.search(
                SearchQuery.build("rice", sources=["amazon", "noon"])
            )
        self.assertEqual(result.items, [])
        self.assertEqual(result.total_count, 0)
        self.assertEqual(result.to_dict()["totalCount"], 0)
        self.assertTrue(
            any("All 2 sources failed" in line for line in logs.output)
        )
        self.assertEqual(len(orch.result_cache), 0)

    async def test_empty_source_is_not_failed(self) -> None:
        adapters = {"noon": FakeAdapter([])}
        result = await _orchestrator(adapters).search(
            SearchQuery.build("rice", sources=["noon"])
        )
        self.assertEqual(result.failed_sources, [])
        self.assertEqual(result.source_outcomes[0].status, "empty")

    async def test_unknown_source_rejected_before_fan_out(self) -> None:
        noon = FakeAdapter([_raw("N1", "Rice", 40)])
        orch = _orchestrator({"noon": noon})
        with self.assertRaises(UnknownSourceError):
            await orch.search(
                SearchQuery.build("rice", sources=["noon", "amazon"])
            )
        self.assertEqual(noon.search_calls, [])

    async def test_filters_and_pagination_applied(self) -> None:
        adapters = {
            "noon": FakeAdapter(
                [_raw(f"N{i}", f"Rice {i}", 10 * (i + 1)) for i in range(5)]
                + [_raw("OIL", "Olive Oil", 5)]
            ),
        }
        query = SearchQuery.build(
            "rice",
            sources=["noon"],
            category="rice",
            price_range="20-50",
            sort="price_desc",
            page=2,
            page_size=2,
        )
        result = await _orchestrator(adapters).search(query)
        self.assertEqual(result.total_count, 4)
        self.assertEqual(result.page_count, 2)
        self.assertEqual([p.price for p in result.items], [30.0, 20.0])


class TestSearchCache(unittest.IsolatedAsyncioTestCase):
    """Result cache behaviour through the orchestrator."""

    async def test_repeat_query_served_from_cache(self) -> None:
        noon = FakeAdapter([_raw("N1", "Rice", 40), _raw("N2", "Rice", 20)])
        orch = _orchestrator({"noon": noon})
        query = SearchQuery.build("rice", sources=["noon"])

        first = await orch.search(query)
        second = await orch.search(query)

        self.assertEqual(len(noon.search_calls), 1)
        self.assertTrue(second.cache_hit)
        self.assertEqual(first.items, second.items)
        self.assertEqual(first.total_count, second.total_count)

    async def test_other_pages_share_cache_entry(self) -> None:
        noon = FakeAdapter([_raw(f"N{i}", f"Rice {i}", i + 1) for i in range(3)])
        orch = _orchestrator({"noon": noon})
        await orch.search(SearchQuery.build("rice", sources=["noon"], page_size=2))
        page_two = await orch.search(
            SearchQuery.build("rice", sources=["noon"], page=2, page_size=2)
        )
        self.assertEqual(len(noon.search_calls), 1)
        self.assertEqual([p.local_id for p in page_two.items], ["N2"])

    async def test_expired_cache_refetches(self) -> None:
        noon = FakeAdapter([_raw("N1", "Rice", 40)])
        now = [0.0]
        cache = ResultCache(ttl=10, clock=lambda: now[0])
        orch = _orchestrator({"noon": noon}, result_cache=cache)
        query = SearchQuery.build("rice", sources=["noon"])
        await orch.search(query)
        now[0] = 11.0
        result = await orch.search(query)
        self.assertFalse(result.cache_hit)
        self.assertEqual(len(noon.search_calls), 2)


class TestProductDetails(unittest.IsolatedAsyncioTestCase):
    """get_product_details()."""

    async def test_served_from_search_results(self) -> None:
        noon = FakeAdapter([_raw("N1", "Rice", 40)])
        orch = _orchestrator({"noon": noon})
        await orch.search(SearchQuery.build("rice", sources=["noon"]))

        product = await orch.get_product_details("noon", "noon-N1")
        self.assertIsNotNone(product)
        assert product is not None
        self.assertEqual(product.local_id, "N1")
        self.assertEqual(noon.detail_calls, [])

    async def test_fetched_normalised_and_cached(self) -> None:
        noon = FakeAdapter(
            details={"N9": _raw("N9", "Rice 5kg", "EGP 199", brand="Abu Kass")}
        )
        orch = _orchestrator({"noon": noon})
        product = await orch.get_product_details("noon", "N9")
        again = await orch.get_product_details("noon", "noon-N9")

        self.assertIsNotNone(product)
        assert product is not None
        self.assertEqual(product.price, 199.0)
        self.assertEqual(product.brand, "Abu Kass")
        self.assertIn("utm_campaign=product_details", product.url)
        self.assertEqual(again, product)
        self.assertEqual(noon.detail_calls, ["N9"])

    async def test_absent_product(self) -> None:
        orch = _orchestrator({"noon": FakeAdapter()})
        self.assertIsNone(await orch.get_product_details("noon", "missing"))

    async def test_invalid_detail_rejected(self) -> None:
        noon = FakeAdapter(details={"N0": _raw("N0", "Rice", 0)})
        orch = _orchestrator({"noon": noon})
        self.assertIsNone(await orch.get_product_details("noon", "N0"))

    async def test_detail_timeout(self) -> None:
        noon = FakeAdapter(details={"N1": _raw("N1", "Rice", 5)}, delay=10)
        orch = _orchestrator({"noon": noon}, detail_timeout=0.05)
        self.assertIsNone(await orch.get_product_details("noon", "N1"))

    async def test_unknown_source(self) -> None:
        orch = _orchestrator({"noon": FakeAdapter()})
        with self.assertRaises(UnknownSourceError):
            await orch.get_product_details("ebay", "1")


class TestComparePrices(unittest.IsolatedAsyncioTestCase):
    """compare_prices() and close()."""

    async def test_all_listings_cheapest_first(self) -> None:
        adapters = {
            "amazon": FakeAdapter(
                [_raw(f"A{i}", f"Rice {i}", 100 - i) for i in range(15)]
            ),
            "noon": FakeAdapter(
                [_raw(f"N{i}", f"Rice {i}", 50 + i) for i in range(15)]
            ),
        }
        orch = _orchestrator(adapters)
        products = await orch.compare_prices("rice", ["amazon", "noon"])
        self.assertEqual(len(products), 30)
        prices = [p.price for p in products]
        self.assertEqual(prices, sorted(prices))

    async def test_close_closes_adapters(self) -> None:
        adapters = {"amazon": FakeAdapter(), "noon": FakeAdapter()}
        await _orchestrator(adapters).close()
        self.assertTrue(all(a.closed for a in adapters.values()))


if __name__ == "__main__":
    unittest.main()
