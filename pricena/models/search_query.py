# pricena/models/search_query.py

"""Search request and response models with synchronous validation."""

import math
import re
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum

from pricena.config.settings import Settings
from pricena.models.product import Product

_PRICE_RANGE_RE = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*(?:-\s*(\d+(?:\.\d+)?)|(\+))\s*$"
)


class InvalidSearchError(ValueError):
    """The search request is malformed and was rejected before fan-out."""


class UnknownSourceError(InvalidSearchError):
    """A requested source id is not registered."""

    def __init__(self, source_id: str) -> None:
        valid = ", ".join(Settings.source_ids())
        super().__init__(
            f"Unknown source '{source_id}' (available: {valid})"
        )
        self.source_id = source_id


class SortMode(str, Enum):
    """Result ordering applied after filtering."""

    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"
    RELEVANCE = "relevance"

    @classmethod
    def parse(cls, raw: "str | SortMode | None") -> "SortMode":
        """Parse a user-supplied sort mode; ``None`` means price ascending."""
        if raw is None or isinstance(raw, SortMode):
            return raw or cls.PRICE_ASC
        key = raw.strip().lower().replace("-", "_")
        if not key:
            return cls.PRICE_ASC
        aliases = {"rating_desc": cls.RATING}
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise InvalidSearchError(
                f"Unknown sort mode '{raw}' (expected one of: {valid})"
            ) from None


def parse_price_range(
    raw: str | None,
) -> tuple[float, float] | None:
    """Parse ``"min-max"`` or ``"min+"`` into inclusive bounds.

    ``None``, blank and ``"all"`` mean no price filter.  The open
    form returns ``math.inf`` as the upper bound.

    Raises:
        InvalidSearchError: The string is neither form, or min > max.
    """
    if raw is None or not raw.strip() or raw.strip().lower() == "all":
        return None
    match = _PRICE_RANGE_RE.match(raw)
    if not match:
        raise InvalidSearchError(
            f"Malformed price range '{raw}' "
            "(expected 'min-max' or 'min+')"
        )
    low = float(match.group(1))
    high = math.inf if match.group(3) else float(match.group(2))
    if low > high:
        raise InvalidSearchError(
            f"Price range '{raw}' has min greater than max"
        )
    return low, high


def _decode_term(term: str) -> str:
    """Trim a search term and decode it if it arrived percent-encoded."""
    stripped = term.strip()
    if "%" in stripped:
        stripped = urllib.parse.unquote(stripped).strip()
    return stripped


@dataclass(frozen=True)
class SearchQuery:
    """A validated search request.

    Build instances with :meth:`build`, which normalises and validates
    every field before any source is contacted.
    """

    term: str
    category: str | None = None
    price_range: str | None = None
    sort: SortMode = SortMode.PRICE_ASC
    sources: tuple[str, ...] = ()
    page: int = 1
    page_size: int = 20

    @classmethod
    def build(
        cls,
        term: str | None,
        *,
        category: str | None = None,
        price_range: str | None = None,
        sort: "str | SortMode | None" = None,
        sources: "list[str] | tuple[str, ...] | None" = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> "SearchQuery":
        """Validate raw request parameters into a :class:`SearchQuery`.

        Raises:
            InvalidSearchError: Empty term, bad page, sort or price range.
            UnknownSourceError: A source id is not registered.
        """
        decoded = _decode_term(term or "")
        if not decoded:
            raise InvalidSearchError("Search term is required")

        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidSearchError(
                f"Page must be a positive integer, got {page!r}"
            )

        size = Settings.PAGE_SIZE if page_size is None else page_size
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise InvalidSearchError(
                f"Page size must be a positive integer, got {size!r}"
            )

        known = Settings.source_ids()
        requested = [
            s.strip().lower() for s in (sources or []) if s.strip()
        ]
        for source_id in requested:
            if source_id not in known:
                raise UnknownSourceError(source_id)
        selected = tuple(sorted(set(requested or known)))

        cat = (category or "").strip()
        if not cat or cat.lower() == "all":
            cat_value = None
        else:
            cat_value = cat

        # Validates eagerly; the pipeline re-parses the stored string
        bounds = parse_price_range(price_range)
        range_value = price_range.strip() if bounds is not None else None

        return cls(
            term=decoded,
            category=cat_value,
            price_range=range_value,
            sort=SortMode.parse(sort),
            sources=selected,
            page=page,
            page_size=size,
        )


@dataclass
class SourceOutcome:
    """How one source branch of a fan-out settled."""

    source: str
    status: str  # "ok", "empty", "timeout", "error"
    raw_count: int = 0
    accepted_count: int = 0
    elapsed_ms: float = 0.0
    message: str = ""


@dataclass
class SearchResult:
    """One page of a completed search plus fan-out diagnostics."""

    query: SearchQuery
    items: list[Product] = field(
        default_factory=lambda: list[Product]()
    )
    total_count: int = 0
    cache_hit: bool = False
    rejected_count: int = 0
    failed_sources: list[str] = field(
        default_factory=lambda: list[str]()
    )
    source_outcomes: list[SourceOutcome] = field(
        default_factory=lambda: list[SourceOutcome]()
    )

    @property
    def page(self) -> int:
        return self.query.page

    @property
    def page_size(self) -> int:
        return self.query.page_size

    @property
    def page_count(self) -> int:
        """Number of pages needed for ``total_count`` items."""
        return math.ceil(self.total_count / self.page_size)

    def to_dict(self) -> dict[str, object]:
        """Serialise to the ``{items, totalCount}`` response envelope."""
        return {
            "items": [p.to_dict() for p in self.items],
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
            "pageCount": self.page_count,
        }
