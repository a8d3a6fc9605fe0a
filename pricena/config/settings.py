# pricena/config/settings.py

"""Central configuration for the pricena aggregation engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pricena aggregation engine."""

    # --- Scraping ---
    REQUEST_DELAY: float = 0.5          # Seconds before each page fetch
    REQUEST_TIMEOUT: int = 12           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Retry count on transient failures
    MAX_ITEMS_PER_SOURCE: int = 20      # Cap on raw items per adapter

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 120.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Aggregation ---
    SEARCH_TIMEOUT: float = float(
        os.getenv("PRICENA_SEARCH_TIMEOUT", "15")
    )
    DETAIL_TIMEOUT: float = float(
        os.getenv("PRICENA_DETAIL_TIMEOUT", "10")
    )
    RESULT_CACHE_TTL: float = float(
        os.getenv("PRICENA_RESULT_CACHE_TTL", "1800")
    )
    PAGE_SIZE: int = int(os.getenv("PRICENA_PAGE_SIZE", "20"))
    CURRENCY: str = "EGP"

    # Appended to every product URL; empty dict disables tracking
    TRACKING_PARAMS: dict[str, str] = {
        "utm_source": "pricena",
        "utm_medium": "comparison",
    }

    # Titles sources emit when they have no real title ("*" = every source)
    PLACEHOLDER_TITLE_PATTERNS: dict[str, list[str]] = {
        "*": [r"^n/?a$", r"^unknown$", r"^untitled$"],
        "amazon": [r"^Amazon Product \(\d+\)$"],
        "carrefour": [r"^Carrefour Product \(\d+\)$"],
    }

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9,ar;q=0.8",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = Path(
        os.getenv("PRICENA_LOGS_DIR", str(BASE_DIR / "logs"))
    )
    CONSOLE_LOG_LEVEL: str = os.getenv(
        "PRICENA_CONSOLE_LOG_LEVEL", "WARNING"
    ).upper()

    # --- Sources ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon Egypt",
            "scraper": "pricena.scrapers.amazon_scraper.AmazonScraper",
            "base_url": os.getenv(
                "PRICENA_AMAZON_BASE_URL", "https://www.amazon.eg"
            ),
            "image_base_url": "https://m.media-amazon.com",
        },
        {
            "id": "noon",
            "label": "Noon Egypt",
            "scraper": "pricena.scrapers.noon_scraper.NoonScraper",
            "base_url": os.getenv(
                "PRICENA_NOON_BASE_URL", "https://www.noon.com"
            ),
            "image_base_url": "https://f.nooncdn.com",
        },
        {
            "id": "carrefour",
            "label": "Carrefour Egypt",
            "scraper": (
                "pricena.scrapers.carrefour_scraper.CarrefourScraper"
            ),
            "base_url": os.getenv(
                "PRICENA_CARREFOUR_BASE_URL",
                "https://www.carrefouregypt.com",
            ),
            "image_base_url": "https://www.carrefouregypt.com",
        },
        {
            "id": "talabat",
            "label": "Talabat Egypt",
            "scraper": "pricena.scrapers.talabat_scraper.TalabatScraper",
            "base_url": os.getenv(
                "PRICENA_TALABAT_BASE_URL", "https://www.talabat.com"
            ),
            "image_base_url": "https://images.deliveryhero.io",
        },
    ]

    @classmethod
    def source_ids(cls) -> list[str]:
        """Return the ids of every registered source, in registry order."""
        return [s["id"] for s in cls.AVAILABLE_SOURCES]

    @classmethod
    def get_source(cls, source_id: str) -> dict[str, str] | None:
        """Look up a registered source by id."""
        for source in cls.AVAILABLE_SOURCES:
            if source["id"] == source_id:
                return source
        return None
