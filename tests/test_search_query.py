# tests/test_search_query.py

"""Tests for request validation and the result envelope."""

import math
import unittest

from pricena.models.product import Product
from pricena.models.search_query import (
    InvalidSearchError,
    SearchQuery,
    SearchResult,
    SortMode,
    UnknownSourceError,
    parse_price_range,
)


class TestSortMode(unittest.TestCase):
    """Sort mode parsing."""

    def test_default_is_price_ascending(self) -> None:
        self.assertIs(SortMode.parse(None), SortMode.PRICE_ASC)
        self.assertIs(SortMode.parse("  "), SortMode.PRICE_ASC)

    def test_case_and_separator_insensitive(self) -> None:
        self.assertIs(SortMode.parse("Price-Desc"), SortMode.PRICE_DESC)
        self.assertIs(SortMode.parse("RELEVANCE"), SortMode.RELEVANCE)
        self.assertIs(SortMode.parse("rating_desc"), SortMode.RATING)

    def test_unknown_mode_rejected(self) -> None:
        with self.assertRaises(InvalidSearchError):
            SortMode.parse("cheapest")


class TestParsePriceRange(unittest.TestCase):
    """``min-max`` / ``min+`` parsing."""

    def test_closed_range(self) -> None:
        self.assertEqual(parse_price_range("100-500"), (100.0, 500.0))
        self.assertEqual(parse_price_range(" 9.5 - 20 "), (9.5, 20.0))

    def test_open_range(self) -> None:
        self.assertEqual(parse_price_range("1000+"), (1000.0, math.inf))

    def test_no_filter_values(self) -> None:
        for raw in (None, "", "  ", "all", "ALL"):
            with self.subTest(raw=raw):
                self.assertIsNone(parse_price_range(raw))

    def test_malformed_rejected(self) -> None:
        for raw in ("cheap", "100", "-5", "10-", "a-b", "5--6"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidSearchError):
                    parse_price_range(raw)

    def test_min_greater_than_max_rejected(self) -> None:
        with self.assertRaises(InvalidSearchError):
            parse_price_range("500-100")


class TestSearchQueryBuild(unittest.TestCase):
    """SearchQuery.build validation."""

    def test_defaults(self) -> None:
        query = SearchQuery.build("rice")
        self.assertEqual(query.term, "rice")
        self.assertIsNone(query.category)
        self.assertIsNone(query.price_range)
        self.assertIs(query.sort, SortMode.PRICE_ASC)
        self.assertEqual(
            query.sources, ("amazon", "carrefour", "noon", "talabat")
        )
        self.assertEqual(query.page, 1)
        self.assertEqual(query.page_size, 20)

    def test_term_is_trimmed_and_decoded(self) -> None:
        self.assertEqual(SearchQuery.build("  rice  ").term, "rice")
        self.assertEqual(
            SearchQuery.build("basmati%20rice").term, "basmati rice"
        )
        self.assertEqual(
            SearchQuery.build("%D8%A7%D8%B1%D8%B2").term, "ارز"
        )

    def test_empty_term_rejected(self) -> None:
        for term in (None, "", "   ", "%20"):
            with self.subTest(term=term):
                with self.assertRaises(InvalidSearchError):
                    SearchQuery.build(term)

    def test_bad_page_rejected(self) -> None:
        with self.assertRaises(InvalidSearchError):
            SearchQuery.build("rice", page=0)
        with self.assertRaises(InvalidSearchError):
            SearchQuery.build("rice", page_size=0)

    def test_sources_normalised_and_sorted(self) -> None:
        query = SearchQuery.build("rice", sources=["Noon", " amazon "])
        self.assertEqual(query.sources, ("amazon", "noon"))

    def test_empty_sources_means_all(self) -> None:
        self.assertEqual(len(SearchQuery.build("rice", sources=[]).sources), 4)

    def test_unknown_source_rejected(self) -> None:
        with self.assertRaises(UnknownSourceError) as ctx:
            SearchQuery.build("rice", sources=["noon", "ebay"])
        self.assertEqual(ctx.exception.source_id, "ebay")
        self.assertIsInstance(ctx.exception, InvalidSearchError)

    def test_category_all_means_none(self) -> None:
        self.assertIsNone(SearchQuery.build("x", category="All").category)
        self.assertEqual(
            SearchQuery.build("x", category=" grocery ").category, "grocery"
        )

    def test_price_range_validated_eagerly(self) -> None:
        with self.assertRaises(InvalidSearchError):
            SearchQuery.build("rice", price_range="cheap")
        self.assertIsNone(
            SearchQuery.build("rice", price_range="all").price_range
        )


class TestSearchResult(unittest.TestCase):
    """Envelope and page arithmetic."""

    def test_page_count_and_envelope(self) -> None:
        query = SearchQuery.build("rice", page=2, page_size=2)
        item = Product(
            source="noon",
            local_id="A",
            title="Rice",
            price=10.0,
            url="https://www.noon.com/a",
        )
        result = SearchResult(query=query, items=[item], total_count=3)
        self.assertEqual(result.page_count, 2)
        data = result.to_dict()
        self.assertEqual(data["totalCount"], 3)
        self.assertEqual(data["page"], 2)
        self.assertEqual(data["pageSize"], 2)
        self.assertEqual(len(data["items"]), 1)  # type: ignore[arg-type]

    def test_empty_result_has_zero_pages(self) -> None:
        result = SearchResult(query=SearchQuery.build("rice"))
        self.assertEqual(result.page_count, 0)
        self.assertEqual(result.to_dict()["items"], [])


if __name__ == "__main__":
    unittest.main()
