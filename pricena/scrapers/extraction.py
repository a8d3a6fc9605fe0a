# pricena/scrapers/extraction.py

"""Building blocks for per-source extraction strategies.

A strategy is a pure function taking a :class:`PagePayload` and
returning raw listings.  Adapters declare an ordered tuple of
strategies per fetch and :func:`run_strategies` stops at the first
one that yields anything.
"""

import json
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from typing import Any

from bs4 import BeautifulSoup, Tag

from pricena.models.product import RawItem

ExtractionStrategy = Callable[["PagePayload"], list[RawItem]]

_PRICE_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass
class PagePayload:
    """A fetched response body with lazily parsed views."""

    text: str
    url: str = ""

    @cached_property
    def soup(self) -> BeautifulSoup:
        """The body parsed as HTML."""
        return BeautifulSoup(self.text, "lxml")

    @cached_property
    def data(self) -> Any:
        """The body parsed as JSON, or ``None`` if it is not JSON."""
        body = self.text.lstrip()
        if not body.startswith(("{", "[")):
            return None
        try:
            return json.loads(body)
        except ValueError:
            return None


def run_strategies(
    payload: PagePayload,
    strategies: Sequence[ExtractionStrategy],
    logger: logging.Logger,
) -> list[RawItem]:
    """Apply strategies in order, returning the first non-empty result.

    A strategy that raises is logged and skipped; the next one runs.
    """
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            items = strategy(payload)
        except Exception as exc:
            logger.debug(
                "Strategy %s raised %s: %s",
                name,
                type(exc).__name__,
                exc,
            )
            continue
        if items:
            logger.debug(
                "Strategy %s extracted %d items", name, len(items)
            )
            return items
    return []


def extract_price(text: Any) -> float:
    """Extract a numeric price from values like ``'EGP 1,299.00'`` or ``42``."""
    if text is None or isinstance(text, bool):
        return 0.0
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = str(text).replace(",", "").replace("٫", ".")
    numbers = _PRICE_RE.findall(cleaned)
    return float(numbers[0]) if numbers else 0.0


def first_of(mapping: Any, *keys: str) -> Any:
    """Return the first truthy value of ``keys`` in a dict, else ``None``."""
    if not isinstance(mapping, dict):
        return None
    for key in keys:
        value = mapping.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` on any missing step."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
        if current is None:
            return None
    return current


def first_list(data: Any, paths: Iterable[tuple[str | int, ...]]) -> list[Any]:
    """Return the first non-empty list found at any of ``paths``."""
    for path in paths:
        value = dig(data, *path)
        if isinstance(value, list) and value:
            return value
    return []


def next_data(payload: PagePayload) -> Any:
    """Return the parsed ``__NEXT_DATA__`` JSON of a Next.js page."""
    script = payload.soup.find("script", id="__NEXT_DATA__")
    if not script or not script.string:
        return None
    try:
        return json.loads(script.string)
    except ValueError:
        return None


def assigned_json(payload: PagePayload, variable: str) -> Any:
    """Return the JSON object assigned to a JS global like ``window.X = {...}``."""
    marker = re.search(
        rf"{re.escape(variable)}\s*=\s*", payload.text
    )
    if not marker:
        return None
    try:
        value, _ = json.JSONDecoder().raw_decode(
            payload.text, marker.end()
        )
    except ValueError:
        return None
    return value


def json_ld_blocks(payload: PagePayload) -> list[Any]:
    """Return every parseable ``application/ld+json`` block on the page."""
    blocks: list[Any] = []
    for script in payload.soup.find_all(
        "script", attrs={"type": "application/ld+json"}
    ):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            blocks.append(json.loads(raw))
        except ValueError:
            continue
    return blocks


def text_of(node: Tag | BeautifulSoup, *selectors: str) -> str:
    """Return the stripped text of the first selector that matches."""
    for selector in selectors:
        el = node.select_one(selector)
        if el:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return ""


def attr_of(
    node: Tag | BeautifulSoup,
    selector: str,
    *attrs: str,
) -> str:
    """Return the first non-empty attribute among ``attrs`` of a match."""
    el = node.select_one(selector)
    if not el:
        return ""
    for attr in attrs:
        value = el.get(attr)
        if value:
            return str(value)
    return ""


def last_path_segment(url: str) -> str:
    """Return the last non-empty path segment of a URL or path."""
    path = re.sub(r"[?#].*$", "", url or "")
    parts = [p for p in path.split("/") if p]
    return parts[-1] if parts else ""
