# pricena/services/health_checker.py

"""Source connectivity health checker."""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass

from pricena.scrapers.base_scraper import BaseScraper

logger = logging.getLogger("pricena.health")

_HEALTH_TIMEOUT = 10  # seconds per source
_SLOW_THRESHOLD_MS = 5000


@dataclass
class HealthResult:
    """Result of a single source health check."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


async def probe_source(source_id: str, scraper: BaseScraper) -> HealthResult:
    """Fetch one adapter's homepage and classify the response."""
    start = time.monotonic()
    try:
        homepage = scraper._get_homepage()
        headers = {
            **scraper.settings.DEFAULT_HEADERS,
            "Referer": homepage,
        }
        resp = await scraper._get_session().get(
            homepage,
            headers=headers,
            timeout=_HEALTH_TIMEOUT,
        )
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )

    elapsed_ms = (time.monotonic() - start) * 1000
    if resp.status_code != 200:
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=elapsed_ms,
            message=f"HTTP {resp.status_code}",
        )
    if elapsed_ms > _SLOW_THRESHOLD_MS:
        return HealthResult(
            source_id=source_id,
            status="slow",
            latency_ms=elapsed_ms,
            message="High latency",
        )
    return HealthResult(
        source_id=source_id,
        status="ok",
        latency_ms=elapsed_ms,
        message="",
    )


class HealthChecker:
    """Runs concurrent health probes against every adapter."""

    def __init__(self, adapters: Mapping[str, BaseScraper]) -> None:
        self.adapters = adapters

    async def check_all(self) -> list[HealthResult]:
        """Probe every adapter concurrently, in registry order."""
        results: list[HealthResult] = list(
            await asyncio.gather(
                *(
                    probe_source(source_id, scraper)
                    for source_id, scraper in self.adapters.items()
                )
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
