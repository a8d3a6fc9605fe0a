# pricena/scrapers/base_scraper.py

"""Abstract base class for all storefront adapters."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from pricena.config.settings import Settings
from pricena.models.product import RawItem
from pricena.scrapers.extraction import (
    ExtractionStrategy,
    PagePayload,
    run_strategies,
)


@dataclass(frozen=True)
class FetchPlan:
    """One request to try plus the strategies that read its response."""

    label: str
    url: str
    strategies: tuple[ExtractionStrategy, ...]
    headers: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )
    allow_fallback: bool = True


class BaseScraper(ABC):
    """Abstract base class for all storefront adapters.

    Public entry points never raise: a network error, block page or
    parse failure is logged and degrades to ``[]`` / ``None``.
    Cancellation of the awaiting task is propagated so a timed-out
    search abandons its in-flight request.
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"pricena.{source_name}"
        )
        self.settings = Settings()
        source = Settings.get_source(source_name) or {}
        self.base_url: str = source.get("base_url", "")
        self.image_base_url: str = source.get(
            "image_base_url", self.base_url
        )
        self.session: Any = None
        self._current_delay: float = (
            self.settings.REQUEST_DELAY
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )

    def _get_session(self) -> Any:
        """Create the impersonating async session on first use."""
        if self.session is None:
            self.session = curl_requests.AsyncSession(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        return self.session

    async def close(self) -> None:
        """Release the underlying HTTP session."""
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def _wait(self) -> None:
        """Sleep using the current (possibly escalated) delay."""
        if self._current_delay > 0:
            await asyncio.sleep(self._current_delay)

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def _validate_response(self, text: str) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        if text.lstrip().startswith(("{", "[")):
            return True
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Cloudflare challenge detected "
                    "(marker: '%s')",
                    self.source_name,
                    marker,
                )
                return False

        # Skip the keyword scan on content-rich pages to avoid
        # false positives from footer scripts
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' "
                        "detected",
                        self.source_name,
                        keyword,
                    )
                    return False
        return True

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.source_name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful fetch."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0
        self._current_delay = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        threshold = (
            self.settings.CIRCUIT_BREAKER_THRESHOLD
        )
        if self._consecutive_failures >= threshold:
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.source_name,
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(
            self._current_delay * 2, max_delay
        )
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.source_name,
            self._current_delay,
        )

    async def _fetch_get(
        self,
        url: str,
        headers: dict[str, str],
    ) -> PagePayload | None:
        """GET with retries, adaptive delay, and circuit breaker."""
        if self._check_circuit():
            return None
        session = self._get_session()
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = await session.get(
                    url,
                    headers=headers,
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    text = str(resp.text)
                    if not self._validate_response(text):
                        self._escalate_delay()
                        await asyncio.sleep(self._current_delay)
                        continue
                    self._record_success()
                    return PagePayload(text=text, url=url)
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt + 1,
                )
                if resp.status_code == 404:
                    return None
                if resp.status_code in (429, 403):
                    self._escalate_delay()
                    await asyncio.sleep(self._current_delay)
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                await asyncio.sleep(
                    self._current_delay * (attempt + 1)
                )
        self._record_failure()
        return None

    def _fetch_cloudscraper(
        self,
        url: str,
        headers: dict[str, str],
    ) -> PagePayload | None:
        """Blocking cloudscraper fetch; runs in a worker thread."""
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if resp.status_code == 200:
                text = str(resp.text)
                if self._validate_response(text):
                    return PagePayload(text=text, url=url)
            self.logger.warning(
                "[%s] cloudscraper HTTP %d",
                self.source_name,
                resp.status_code,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_name,
                exc,
                exc_info=True,
            )
        return None

    async def _get_page(
        self,
        url: str,
        extra_headers: dict[str, str] | None = None,
        allow_fallback: bool = True,
    ) -> PagePayload | None:
        """Fetch a page, falling back to cloudscraper on failure.

        The fallback runs in a worker thread; if the search is
        cancelled meanwhile, that thread finishes on its own request
        timeout and its result is discarded.
        """
        if self._check_circuit():
            return None
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self._get_homepage(),
            **(extra_headers or {}),
        }
        await self._wait()

        page = await self._fetch_get(url, headers)
        if page is not None or not allow_fallback:
            return page

        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_name,
        )
        return await asyncio.to_thread(
            self._fetch_cloudscraper, url, headers
        )

    async def _run_plans(
        self,
        plans: Sequence[FetchPlan],
    ) -> list[RawItem]:
        """Fetch each plan in order until one yields items."""
        for plan in plans:
            page = await self._get_page(
                plan.url, plan.headers, plan.allow_fallback
            )
            if page is None:
                self.logger.info(
                    "[%s] %s fetch returned nothing",
                    self.source_name,
                    plan.label,
                )
                continue
            items = run_strategies(
                page, plan.strategies, self.logger
            )
            if items:
                self.logger.info(
                    "[%s] %s yielded %d raw items",
                    self.source_name,
                    plan.label,
                    len(items),
                )
                return items
        return []

    async def search(self, term: str) -> list[RawItem]:
        """Search the source; returns at most MAX_ITEMS_PER_SOURCE raw items."""
        try:
            items = await self._run_plans(self._search_plans(term))
            return items[: self.settings.MAX_ITEMS_PER_SOURCE]
        except Exception as exc:
            self.logger.error(
                "[%s] Search failed: %s",
                self.source_name,
                exc,
                exc_info=True,
            )
            return []

    async def get_details(self, local_id: str) -> RawItem | None:
        """Look up one product by its source-local id."""
        try:
            items = await self._run_plans(
                self._detail_plans(local_id)
            )
        except Exception as exc:
            self.logger.error(
                "[%s] Detail lookup for %s failed: %s",
                self.source_name,
                local_id,
                exc,
                exc_info=True,
            )
            return None
        if not items:
            return None
        item = items[0]
        item.setdefault("id", local_id)
        return item

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def _search_plans(self, term: str) -> list[FetchPlan]:
        """Return the ordered fetches to try for a search term."""
        ...

    @abstractmethod
    def _detail_plans(self, local_id: str) -> list[FetchPlan]:
        """Return the ordered fetches to try for one product id."""
        ...
