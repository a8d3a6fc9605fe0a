# pricena/filters/ranker.py

"""Best-price marking across sources by canonical title."""

import dataclasses
import logging
import re

from pricena.models.product import Product

logger = logging.getLogger("pricena.filters")

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def canonical_title(title: str) -> str:
    """Normalise a title to its grouping key.

    Lowercases, strips punctuation, and collapses whitespace.  Word
    characters are Unicode-aware, so Arabic titles keep their letters.
    """
    lowered = title.lower()
    stripped = _PUNCTUATION_RE.sub("", lowered)
    return " ".join(stripped.split())


class BestPriceRanker:
    """Mark the cheapest listing of every same-title group.

    Titles are compared exactly after :func:`canonical_title`; two
    different products whose titles normalise identically share a
    group.
    """

    @staticmethod
    def mark_best_prices(products: list[Product]) -> list[Product]:
        """Return ``products`` in the same order with best prices marked.

        Exactly one member per group gets ``is_best_price=True``: the
        first one (in input order) carrying the group's minimum price.
        """
        best_index: dict[str, int] = {}
        for idx, product in enumerate(products):
            key = canonical_title(product.title)
            current = best_index.get(key)
            if current is None or product.price < products[current].price:
                best_index[key] = idx

        winners = set(best_index.values())
        ranked = [
            dataclasses.replace(
                product, is_best_price=idx in winners
            )
            if product.is_best_price != (idx in winners)
            else product
            for idx, product in enumerate(products)
        ]

        if len(best_index) < len(products):
            logger.info(
                "Ranked %d products into %d title groups",
                len(products),
                len(best_index),
            )
        return ranked
