# main.py

"""Entry point for the pricena command-line price comparison tool."""

import argparse
import asyncio
import logging
import sys

from pricena.config.logging_config import setup_logging
from pricena.config.settings import Settings
from pricena.models.search_query import SortMode

logger = logging.getLogger("pricena.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(Settings.source_ids())
    sort_modes = ", ".join(m.value for m in SortMode)

    parser = argparse.ArgumentParser(
        prog="pricena",
        description="Egypt e-commerce price comparison engine.",
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search term.",
    )
    parser.add_argument(
        "-s",
        "--sources",
        default=None,
        help="Comma-separated source IDs (default: all).",
    )
    parser.add_argument(
        "-c",
        "--category",
        default=None,
        help="Keep only titles containing this word.",
    )
    parser.add_argument(
        "-p",
        "--price-range",
        default=None,
        dest="price_range",
        help="Price range as 'min-max' or 'min+'.",
    )
    parser.add_argument(
        "--sort",
        default=None,
        help=f"Sort mode: {sort_modes} (default: price_asc).",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Result page, starting at 1.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--details",
        default=None,
        metavar="SOURCE:ID",
        help="Show one product instead of searching.",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Run a connectivity health check on all sources.",
    )
    return parser


def main() -> None:
    """Route to search, detail lookup or health check."""
    log_file = setup_logging()
    logger.info("pricena starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from pricena.cli import runner

    if args.health:
        exit_code = asyncio.run(runner.run_health_check())
    elif args.details is not None:
        exit_code = asyncio.run(
            runner.run_details(args.details, args.output_format)
        )
    elif args.query is None:
        parser.print_usage(sys.stderr)
        exit_code = runner.EXIT_INVALID
    else:
        exit_code = asyncio.run(
            runner.cli_search(
                query=args.query,
                source_csv=args.sources,
                category=args.category,
                price_range=args.price_range,
                sort=args.sort,
                page=args.page,
                output_format=args.output_format,
            )
        )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
