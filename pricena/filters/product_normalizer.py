# pricena/filters/product_normalizer.py

"""Raw listing normalisation: validate, coerce, absolutise."""

import functools
import logging
import math
import re
import urllib.parse
from collections.abc import Iterable
from typing import Any

from pricena.config.settings import Settings
from pricena.models.product import Product, ProductSpec, RawItem
from pricena.scrapers.extraction import extract_price, last_path_segment

logger = logging.getLogger("pricena.filters")

_DIGITS_RE = re.compile(r"\d+")


def _clean_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return " ".join(str(value).split())


def _optional_price(value: Any) -> float | None:
    price = extract_price(value) if value not in (None, "") else 0.0
    return price if math.isfinite(price) and price > 0 else None


def _optional_rating(value: Any) -> float | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    rating = extract_price(value)
    if not math.isfinite(rating) or not 0 <= rating <= 5:
        return None
    return rating


def _optional_count(value: Any) -> int | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value)
    digits = _DIGITS_RE.findall(str(value).replace(",", ""))
    return int(digits[0]) if digits else None


def _optional_flag(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _specs(value: Any) -> tuple[ProductSpec, ...]:
    if not isinstance(value, list):
        return ()
    specs: list[ProductSpec] = []
    for entry in value:
        if isinstance(entry, dict):
            key, val = entry.get("key"), entry.get("value")
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            key, val = entry
        else:
            continue
        key_text, val_text = _clean_text(key), _clean_text(val)
        if key_text and val_text:
            specs.append(ProductSpec(key=key_text, value=val_text))
    return tuple(specs)


@functools.lru_cache(maxsize=64)
def _compile_patterns(
    patterns: tuple[str, ...],
) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


class ProductNormalizer:
    """Turn adapter output into validated :class:`Product` objects."""

    @staticmethod
    def _placeholders(source: str) -> tuple[re.Pattern[str], ...]:
        # Keyed on the pattern text, so runtime changes to Settings apply
        patterns = (
            *Settings.PLACEHOLDER_TITLE_PATTERNS.get("*", []),
            *Settings.PLACEHOLDER_TITLE_PATTERNS.get(source, []),
        )
        return _compile_patterns(patterns)

    @classmethod
    def is_placeholder_title(cls, title: str, source: str) -> bool:
        """True if ``title`` is a stand-in the source emits for untitled items."""
        return any(p.match(title) for p in cls._placeholders(source))

    @staticmethod
    def is_web_url(url: str) -> bool:
        """True for an absolute http(s) URL with a host.

        Raises:
            ValueError: ``url`` cannot be split (e.g. a broken IPv6 host).
        """
        parts = urllib.parse.urlsplit(url)
        return parts.scheme in ("http", "https") and bool(parts.netloc)

    @staticmethod
    def absolutize(url: str, base_url: str) -> str:
        """Resolve a possibly relative URL against a source base URL."""
        if not url:
            return ""
        if url.startswith("//"):
            return f"https:{url}"
        if url.startswith(("http://", "https://")):
            return url
        return urllib.parse.urljoin(base_url.rstrip("/") + "/", url)

    @classmethod
    def _image_url(cls, raw_image: str, base_url: str) -> str:
        """Absolute http(s) image URL, or ``""`` when unusable."""
        try:
            image_url = cls.absolutize(raw_image, base_url)
            return image_url if cls.is_web_url(image_url) else ""
        except ValueError:
            return ""

    @staticmethod
    def add_tracking(url: str, campaign: str) -> str:
        """Append tracking parameters, keeping any existing query string."""
        params = dict(Settings.TRACKING_PARAMS)
        if not params:
            return url
        params["utm_campaign"] = campaign
        parts = urllib.parse.urlsplit(url)
        existing = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
        names = {k for k, _ in existing}
        merged = existing + [
            (k, v) for k, v in params.items() if k not in names
        ]
        return urllib.parse.urlunsplit(
            parts._replace(query=urllib.parse.urlencode(merged))
        )

    @classmethod
    def normalize(
        cls,
        raw: RawItem,
        source: str,
        campaign: str = "product",
    ) -> Product | None:
        """Validate one raw item; returns ``None`` when it is rejected.

        Rules, in order: positive price, real title, product URL,
        absolute URLs, derived discount, ``is_best_price=False``.
        """
        price = extract_price(raw.get("price"))
        if not math.isfinite(price) or price <= 0:
            logger.debug(
                "Rejected %s item with missing/zero price "
                "(id=%s, price=%r)",
                source,
                raw.get("id"),
                raw.get("price"),
            )
            return None

        title = _clean_text(raw.get("title"))
        if not title or cls.is_placeholder_title(title, source):
            logger.debug(
                "Rejected %s item with empty/placeholder title "
                "(id=%s, title=%r)",
                source,
                raw.get("id"),
                raw.get("title"),
            )
            return None

        raw_url = _clean_text(raw.get("url"))
        if not raw_url:
            logger.debug(
                "Rejected %s item without product URL (title=%s)",
                source,
                title,
            )
            return None

        config = Settings.get_source(source) or {}
        base_url = config.get("base_url", "")
        try:
            url = cls.absolutize(raw_url, base_url)
            web_url = cls.is_web_url(url)
        except ValueError as exc:
            logger.debug(
                "Rejected %s item with malformed URL %r: %s",
                source,
                raw_url,
                exc,
            )
            return None
        if not web_url:
            logger.debug(
                "Rejected %s item with non-web URL %r",
                source,
                raw_url,
            )
            return None

        local_id = _clean_text(raw.get("id")) or last_path_segment(url)
        if not local_id:
            logger.debug(
                "Rejected %s item without a derivable id (url=%s)",
                source,
                url,
            )
            return None
        url = cls.add_tracking(url, campaign)
        image_url = cls._image_url(
            _clean_text(raw.get("image")),
            config.get("image_base_url", base_url),
        )

        original_price = _optional_price(raw.get("original_price"))
        if original_price is not None and original_price <= price:
            original_price = None

        discount = _optional_count(raw.get("discount"))
        if discount is not None and not 0 < discount < 100:
            discount = None
        if discount is None and original_price is not None:
            discount = _round_half_up(
                100 * (original_price - price) / original_price
            )

        promotional = _optional_flag(raw.get("is_promotional"))
        if promotional is None:
            promotional = bool(discount)

        return Product(
            source=source,
            local_id=local_id,
            title=title,
            price=price,
            url=url,
            image_url=image_url,
            currency=Settings.CURRENCY,
            original_price=original_price,
            discount_percent=discount,
            rating=_optional_rating(raw.get("rating")),
            review_count=_optional_count(raw.get("review_count")),
            brand=_clean_text(raw.get("brand")),
            description=_clean_text(raw.get("description")),
            specs=_specs(raw.get("specs")),
            is_promotional=promotional,
            is_free_delivery=bool(_optional_flag(raw.get("is_free_delivery"))),
            is_best_price=False,
        )

    @classmethod
    def normalize_all(
        cls,
        raws: Iterable[RawItem],
        source: str,
        campaign: str = "product",
    ) -> tuple[list[Product], int]:
        """Normalise a batch from one source.

        Returns the accepted products and the count of rejected items.
        An item that raises while being normalised counts as rejected.
        """
        products: list[Product] = []
        rejected = 0
        for raw in raws:
            try:
                product = cls.normalize(raw, source, campaign)
            except Exception as exc:
                logger.warning(
                    "Rejected malformed %s item (id=%r): %s",
                    source,
                    raw.get("id") if isinstance(raw, dict) else None,
                    exc,
                    exc_info=True,
                )
                product = None
            if product is None:
                rejected += 1
            else:
                products.append(product)

        if rejected:
            logger.info(
                "Normalisation dropped %d invalid %s items",
                rejected,
                source,
            )

        return products, rejected
