# main.py

"""Entry point for the price_watch command-line interface."""

import argparse
import asyncio
import logging
import sys

from price_watch.config.logging_config import setup_logging
from price_watch.config.settings import Settings

logger = logging.getLogger("price_watch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.SEARCH_SOURCES)

    parser = argparse.ArgumentParser(
        prog="price_watch",
        description="Monitor product prices across online stores.",
        epilog=f"Search stores: {valid_ids}",
    )
    parser.add_argument(
        "-u",
        "--user",
        default=Settings.DEFAULT_USER_ID,
        dest="user_id",
        help=f"User id (default: {Settings.DEFAULT_USER_ID}).",
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
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Also log INFO messages to the console.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Start monitoring a product.")
    add.add_argument("url", nargs="?", default=None, help="Product URL.")
    add.add_argument(
        "--search",
        default=None,
        dest="search_term",
        help="Search term, used with --store instead of a URL.",
    )
    add.add_argument(
        "--store",
        default=None,
        dest="store_id",
        help="Store id to search in.",
    )

    sub.add_parser("refresh", help="Re-scrape the stalest products.")
    sub.add_parser("list", help="List monitored products.")

    history = sub.add_parser("history", help="Show a price timeline.")
    history.add_argument("product_id", type=int)

    target = sub.add_parser("target", help="Set or clear a price target.")
    target.add_argument("product_id", type=int)
    target.add_argument("price", type=float, nargs="?", default=None)
    target.add_argument(
        "--clear",
        action="store_true",
        default=False,
        help="Remove the current target.",
    )

    remove = sub.add_parser("remove", help="Stop monitoring a product.")
    remove.add_argument("product_id", type=int)
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Run the selected subcommand and return its exit code."""
    from price_watch.cli import runner
    from price_watch.storage.product_store import ProductStore

    store = ProductStore()
    try:
        if args.command == "add":
            return runner.run_add(
                store,
                args.user_id,
                args.url,
                args.search_term,
                args.store_id,
                args.output_format,
            )
        if args.command == "refresh":
            return asyncio.run(
                runner.run_refresh(store, args.output_format)
            )
        if args.command == "list":
            return runner.run_list(
                store, args.user_id, args.output_format
            )
        if args.command == "history":
            return runner.run_history(
                store, args.product_id, args.output_format
            )
        if args.command == "target":
            return runner.run_target(
                store,
                args.product_id,
                None if args.clear else args.price,
            )
        return runner.run_remove(store, args.product_id)
    finally:
        store.close()


def main() -> None:
    """Parse arguments and run one subcommand."""
    parser = _build_parser()
    args = parser.parse_args()
    if (
        args.command == "target"
        and args.price is None
        and not args.clear
    ):
        parser.error("target requires PRICE or --clear")

    log_file = setup_logging(verbose=args.verbose)
    logger.info("price_watch starting, log file: %s", log_file)

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    finally:
        logger.info("price_watch shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
