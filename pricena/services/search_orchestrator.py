# pricena/services/search_orchestrator.py

"""Orchestrates multi-source product searches and detail lookups."""

import asyncio
import importlib
import logging
from collections.abc import Mapping
from typing import Any

from pricena.config.settings import Settings
from pricena.filters.product_filter import ResultPipeline
from pricena.filters.product_normalizer import ProductNormalizer
from pricena.filters.ranker import BestPriceRanker
from pricena.models.product import Product
from pricena.models.search_query import (
    SearchQuery,
    SearchResult,
    SortMode,
    SourceOutcome,
    UnknownSourceError,
)
from pricena.scrapers.base_scraper import BaseScraper
from pricena.services.bounded import BoundedOutcome, run_bounded
from pricena.storage.detail_cache import DetailCache
from pricena.storage.result_cache import ResultCache

logger = logging.getLogger("pricena.orchestrator")


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def build_adapters() -> dict[str, BaseScraper]:
    """Instantiate one adapter per registered source, in registry order."""
    adapters: dict[str, BaseScraper] = {}
    for source in Settings.AVAILABLE_SOURCES:
        scraper_cls = _load_scraper_class(source["scraper"])
        adapters[source["id"]] = scraper_cls()
    return adapters


class SearchOrchestrator:
    """Fans a query out to every selected source and merges the results.

    Each source branch runs under its own deadline; a slow or failing
    source contributes nothing and never delays or breaks the others.
    Adapters and caches are injectable for tests.
    """

    def __init__(
        self,
        adapters: Mapping[str, BaseScraper] | None = None,
        result_cache: ResultCache | None = None,
        detail_cache: DetailCache | None = None,
        search_timeout: float | None = None,
        detail_timeout: float | None = None,
    ) -> None:
        self.adapters: dict[str, BaseScraper] = (
            dict(adapters) if adapters is not None else build_adapters()
        )
        self.result_cache = result_cache or ResultCache()
        self.detail_cache = detail_cache or DetailCache()
        self.search_timeout = (
            Settings.SEARCH_TIMEOUT
            if search_timeout is None
            else search_timeout
        )
        self.detail_timeout = (
            Settings.DETAIL_TIMEOUT
            if detail_timeout is None
            else detail_timeout
        )

    def _adapter(self, source: str) -> BaseScraper:
        adapter = self.adapters.get(source)
        if adapter is None:
            raise UnknownSourceError(source)
        return adapter

    # ── Search ───────────────────────────────────────────

    async def _fan_out(
        self, query: SearchQuery
    ) -> tuple[list[Product], int, list[SourceOutcome]]:
        """Query every selected source concurrently.

        Returns the normalised products in source order, the number of
        rejected raw items, and one outcome per source.
        """
        adapters = [(s, self._adapter(s)) for s in query.sources]
        outcomes: list[BoundedOutcome] = await asyncio.gather(
            *(
                run_bounded(
                    adapter.search(query.term),
                    self.search_timeout,
                    f"{source} search",
                )
                for source, adapter in adapters
            )
        )

        products: list[Product] = []
        rejected = 0
        source_outcomes: list[SourceOutcome] = []
        for (source, _), outcome in zip(adapters, outcomes):
            raws = (outcome.value or []) if outcome.ok else []
            accepted, dropped = ProductNormalizer.normalize_all(
                raws, source
            )
            products.extend(accepted)
            rejected += dropped
            if not outcome.ok:
                status = outcome.status
            else:
                status = "ok" if raws else "empty"
            source_outcomes.append(
                SourceOutcome(
                    source=source,
                    status=status,
                    raw_count=len(raws),
                    accepted_count=len(accepted),
                    elapsed_ms=outcome.elapsed_ms,
                    message=outcome.error,
                )
            )
            logger.info(
                "%s: %s, %d raw, %d accepted (%.0fms)",
                source,
                status,
                len(raws),
                len(accepted),
                outcome.elapsed_ms,
            )
        return products, rejected, source_outcomes

    async def _collect(
        self, query: SearchQuery
    ) -> tuple[list[Product], SearchResult]:
        """Return the full processed list plus an unpaginated result."""
        for source in query.sources:
            self._adapter(source)

        result = SearchResult(query=query)
        key = self.result_cache.make_key(query)
        processed = self.result_cache.get(key)

        if processed is not None:
            result.cache_hit = True
        else:
            products, result.rejected_count, result.source_outcomes = (
                await self._fan_out(query)
            )
            result.failed_sources = [
                o.source
                for o in result.source_outcomes
                if o.status in ("timeout", "error")
            ]
            all_failed = len(result.failed_sources) == len(query.sources)

            self.detail_cache.put_many(products)
            ranked = BestPriceRanker.mark_best_prices(products)
            processed = ResultPipeline.process(ranked, query)
            if all_failed:
                # Not cached, so the next request retries the sources
                logger.warning(
                    "All %d sources failed for '%s'",
                    len(query.sources),
                    query.term,
                )
            else:
                self.result_cache.store(key, processed)

        result.total_count = len(processed)
        return processed, result

    async def search(self, query: SearchQuery) -> SearchResult:
        """Run a validated query and return the requested page.

        Cached results for the same query are served without contacting
        any source.  A search where every source fails is an empty
        result, not an error.

        Raises:
            UnknownSourceError: A selected source has no adapter.
        """
        processed, result = await self._collect(query)
        result.items = ResultPipeline.paginate(
            processed, query.page, query.page_size
        )
        logger.info(
            "Search '%s': %d results, page %d/%d%s",
            query.term,
            result.total_count,
            query.page,
            result.page_count,
            " (cached)" if result.cache_hit else "",
        )
        return result

    # ── Details ──────────────────────────────────────────

    async def get_product_details(
        self, source: str, product_id: str
    ) -> Product | None:
        """Look up one product by local or composite id.

        Returns ``None`` when the source has no such product, the item
        fails validation, or the lookup times out or fails.

        Raises:
            UnknownSourceError: ``source`` has no adapter.
        """
        source = source.strip().lower()
        adapter = self._adapter(source)
        prefix = f"{source}-"
        local_id = product_id.strip()
        if local_id.startswith(prefix):
            local_id = local_id[len(prefix):]
        if not local_id:
            return None

        cached = self.detail_cache.get(source, local_id)
        if cached is not None:
            logger.info("Detail cache hit for %s-%s", source, local_id)
            return cached

        outcome = await run_bounded(
            adapter.get_details(local_id),
            self.detail_timeout,
            f"{source} details {local_id}",
        )
        if not outcome.ok or outcome.value is None:
            return None

        accepted, _ = ProductNormalizer.normalize_all(
            [outcome.value], source, campaign="product_details"
        )
        if not accepted:
            return None
        product = accepted[0]
        self.detail_cache.put(product)
        return product

    # ── Comparison ───────────────────────────────────────

    async def compare_prices(
        self,
        product_name: str,
        sources: list[str] | None = None,
    ) -> list[Product]:
        """Return every matching listing across sources, cheapest first."""
        query = SearchQuery.build(
            product_name, sources=sources, sort=SortMode.PRICE_ASC
        )
        processed, _ = await self._collect(query)
        return processed

    async def close(self) -> None:
        """Close every adapter's HTTP session."""
        await asyncio.gather(
            *(adapter.close() for adapter in self.adapters.values())
        )
