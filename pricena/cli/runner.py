# pricena/cli/runner.py

"""Headless CLI runner on top of the async orchestrator."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from pricena.models.product import Product
from pricena.models.search_query import InvalidSearchError, SearchQuery
from pricena.services.health_checker import HealthChecker
from pricena.services.search_orchestrator import SearchOrchestrator

logger = logging.getLogger("pricena.cli")

EXIT_OK = 0
EXIT_EMPTY = 1
EXIT_INVALID = 2

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def resolve_sources(source_csv: str | None) -> list[str] | None:
    """Split a comma-separated source list; ``None`` means all sources."""
    if source_csv is None:
        return None
    return [s.strip() for s in source_csv.split(",") if s.strip()]


def parse_detail_ref(ref: str) -> tuple[str, str]:
    """Split ``SOURCE:ID`` into its parts.

    Raises:
        InvalidSearchError: Either part is missing.
    """
    source, sep, product_id = ref.partition(":")
    if not sep or not source.strip() or not product_id.strip():
        raise InvalidSearchError(
            f"Expected SOURCE:ID for a detail lookup, got '{ref}'"
        )
    return source.strip(), product_id.strip()


def _format_price(p: Product) -> str:
    text = f"{p.currency} {p.price:,.2f}"
    if p.original_price is not None:
        text += f"\n[dim strike]{p.original_price:,.2f}[/dim strike]"
    return text


def _print_table(products: list[Product], title: str) -> None:
    """Render a Rich table of products to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Off", justify="right")
    table.add_column("Rating", justify="center")
    table.add_column("Source", style="magenta")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, p in enumerate(products, 1):
        name = p.title[:60]
        if p.is_best_price:
            name = f"[bold green]★[/bold green] {name}"
        table.add_row(
            str(idx),
            name,
            _format_price(p),
            f"{p.discount_percent}%" if p.discount_percent else "—",
            f"{p.rating:.1f}" if p.rating is not None else "—",
            p.source,
            p.url,
        )

    Console().print(table)


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


async def cli_search(
    query: str,
    source_csv: str | None = None,
    category: str | None = None,
    price_range: str | None = None,
    sort: str | None = None,
    page: int = 1,
    output_format: str = "json",
    orchestrator: SearchOrchestrator | None = None,
) -> int:
    """Run one search and print it; returns the process exit code."""
    try:
        search_query = SearchQuery.build(
            query,
            category=category,
            price_range=price_range,
            sort=sort,
            sources=resolve_sources(source_csv),
            page=page,
        )
    except InvalidSearchError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_INVALID

    orchestrator = orchestrator or SearchOrchestrator()
    _err.print(
        f"[bold]Searching:[/bold] {search_query.term}  "
        f"[dim]sources={', '.join(search_query.sources)}[/dim]"
    )
    try:
        result = await orchestrator.search(search_query)
    except InvalidSearchError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_INVALID
    finally:
        await orchestrator.close()

    for outcome in result.source_outcomes:
        if outcome.status in ("timeout", "error"):
            _err.print(
                f"[red]{outcome.source}: {outcome.status}"
                f" {outcome.message}[/red]"
            )

    if not result.total_count:
        _err.print("[yellow]No products found.[/yellow]")
        if output_format == "json":
            _dump_json(result.to_dict())
        return EXIT_EMPTY

    cached = " (cached)" if result.cache_hit else ""
    rejected = (
        f", {result.rejected_count} invalid dropped"
        if result.rejected_count
        else ""
    )
    _err.print(
        f"[green]✓ {result.total_count} products, page "
        f"{result.page}/{result.page_count}{rejected}{cached}[/green]"
    )

    if output_format == "table":
        _print_table(
            result.items,
            f"Results for '{search_query.term}' "
            f"(page {result.page}/{result.page_count})",
        )
    else:
        _dump_json(result.to_dict())
    return EXIT_OK


async def run_details(
    ref: str,
    output_format: str = "json",
    orchestrator: SearchOrchestrator | None = None,
) -> int:
    """Look up one product by ``SOURCE:ID`` and print it."""
    try:
        source, product_id = parse_detail_ref(ref)
        orchestrator = orchestrator or SearchOrchestrator()
        try:
            product = await orchestrator.get_product_details(
                source, product_id
            )
        finally:
            await orchestrator.close()
    except InvalidSearchError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_INVALID

    if product is None:
        _err.print(f"[yellow]Product {ref} not found.[/yellow]")
        return EXIT_EMPTY

    if output_format == "table":
        _print_table([product], product.product_id)
        if product.specs:
            specs = Table(title="Specifications", show_header=False)
            specs.add_column("Key", style="bold")
            specs.add_column("Value")
            for spec in product.specs:
                specs.add_row(spec.key, spec.value)
            Console().print(specs)
    else:
        _dump_json(product.to_dict())
    return EXIT_OK


async def run_health_check(
    orchestrator: SearchOrchestrator | None = None,
) -> int:
    """Run a connectivity health check on all sources."""
    _err.print("[bold]Running source health check...[/bold]")
    orchestrator = orchestrator or SearchOrchestrator()
    try:
        results = await HealthChecker(orchestrator.adapters).check_all()
    finally:
        await orchestrator.close()

    table = Table(
        title="Source Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = f"{r.latency_ms:.0f}ms" if r.latency_ms > 0 else "—"
        table.add_row(r.source_id, status, latency, r.message)

    Console().print(table)
    return EXIT_EMPTY if any_down else EXIT_OK
