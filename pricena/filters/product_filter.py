# pricena/filters/product_filter.py

"""Post-ranking category/price filtering, sorting, and pagination."""

import logging

from pricena.models.product import Product
from pricena.models.search_query import (
    SearchQuery,
    SortMode,
    parse_price_range,
)

logger = logging.getLogger("pricena.filters")


class ResultPipeline:
    """Filter, sort and slice a ranked product list.

    Steps always run in this order: category, price range, sort,
    page.  Every step is stable, so ties keep fan-in order.
    """

    parse_price_range = staticmethod(parse_price_range)

    @staticmethod
    def filter_by_category(
        products: list[Product],
        category: str | None,
    ) -> list[Product]:
        """Keep products whose title contains the category token."""
        if not category or category.strip().lower() == "all":
            return products
        token = category.strip().casefold()
        kept = [p for p in products if token in p.title.casefold()]
        if len(kept) < len(products):
            logger.info(
                "Category '%s' filtered out %d products",
                category,
                len(products) - len(kept),
            )
        return kept

    @staticmethod
    def filter_by_price_range(
        products: list[Product],
        price_range: str | None,
    ) -> list[Product]:
        """Keep products priced within ``"min-max"`` or ``"min+"`` inclusive."""
        bounds = parse_price_range(price_range)
        if bounds is None:
            return products
        low, high = bounds
        kept = [p for p in products if low <= p.price <= high]
        if len(kept) < len(products):
            logger.info(
                "Price range '%s' filtered out %d products",
                price_range,
                len(products) - len(kept),
            )
        return kept

    @staticmethod
    def sort_products(
        products: list[Product],
        sort: SortMode,
    ) -> list[Product]:
        """Order products; relevance keeps the incoming order."""
        if sort is SortMode.PRICE_ASC:
            return sorted(products, key=lambda p: p.price)
        if sort is SortMode.PRICE_DESC:
            return sorted(products, key=lambda p: -p.price)
        if sort is SortMode.RATING:
            return sorted(products, key=lambda p: -(p.rating or 0.0))
        return list(products)

    @staticmethod
    def paginate(
        products: list[Product],
        page: int,
        page_size: int,
    ) -> list[Product]:
        """Slice one page; pages past the end are empty."""
        start = (page - 1) * page_size
        return products[start : start + page_size]

    @classmethod
    def process(
        cls,
        products: list[Product],
        query: SearchQuery,
    ) -> list[Product]:
        """Filter and sort, without pagination."""
        results = cls.filter_by_category(products, query.category)
        results = cls.filter_by_price_range(results, query.price_range)
        return cls.sort_products(results, query.sort)

    @classmethod
    def apply(
        cls,
        products: list[Product],
        query: SearchQuery,
    ) -> tuple[list[Product], int]:
        """Run the full pipeline.

        Returns the requested page and the pre-pagination total.
        """
        processed = cls.process(products, query)
        return (
            cls.paginate(processed, query.page, query.page_size),
            len(processed),
        )
