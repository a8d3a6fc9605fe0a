# tests/conftest.py

"""Shared pytest fixtures for all tests."""

from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from pricena.config.settings import Settings


@pytest.fixture(autouse=True)
def no_request_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Zero the adapter delay so retry loops run instantly."""
    monkeypatch.setattr(Settings, "REQUEST_DELAY", 0.0)


@pytest.fixture(autouse=True)
def offline_cloudscraper() -> Generator[MagicMock, None, None]:
    """Make the cloudscraper fallback fail without touching the network."""
    fallback = MagicMock()
    fallback.get.return_value = MagicMock(status_code=503, text="")
    with patch(
        "pricena.scrapers.base_scraper.cloudscraper.create_scraper",
        return_value=fallback,
    ):
        yield fallback
