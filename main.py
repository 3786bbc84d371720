# main.py

"""Entry point for the trustmart back-end (moderation TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("trustmart.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="trustmart",
        description=(
            "Marketplace back-end with evidence-cited trust scoring "
            "and a moderation workflow."
        ),
        epilog="Run without arguments to launch the moderation dashboard.",
    )
    commands = parser.add_mutually_exclusive_group()
    commands.add_argument(
        "--products",
        action="store_true",
        default=False,
        help="List products (optionally filtered with --category).",
    )
    commands.add_argument(
        "--flagged",
        action="store_true",
        default=False,
        help="List flagged products and reviews.",
    )
    commands.add_argument(
        "--add-review",
        nargs=4,
        metavar=("PRODUCT", "USER", "RATING", "COMMENT"),
        default=None,
        dest="add_review",
        help="Submit a review (one per user and product).",
    )
    commands.add_argument(
        "--approve",
        nargs=2,
        metavar=("KIND", "ID"),
        default=None,
        help="Approve a product or review.",
    )
    commands.add_argument(
        "--dismiss",
        nargs=2,
        metavar=("KIND", "ID"),
        default=None,
        help="Dismiss (delete) a product or review.",
    )
    commands.add_argument(
        "--clear-flag",
        nargs=2,
        metavar=("KIND", "ID"),
        default=None,
        dest="clear_flag",
        help="Clear the flag on a product or review.",
    )
    commands.add_argument(
        "--analyze",
        nargs=2,
        metavar=("KIND", "ID"),
        default=None,
        help="Produce a trust report for a product or review.",
    )
    commands.add_argument(
        "--import-catalog",
        default=None,
        metavar="FILE",
        dest="import_catalog",
        help="Import products from a JSON array file.",
    )
    commands.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Check the store and external providers.",
    )
    parser.add_argument(
        "--category",
        default=None,
        help="Category filter for --products.",
    )
    parser.add_argument(
        "--save-score",
        action="store_true",
        default=False,
        dest="save_score",
        help="Persist the trust score produced by --analyze.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    return parser


def _run_tui() -> None:
    """Launch the interactive Textual moderation dashboard."""
    from src.ui.app import ModerationApp

    try:
        app = ModerationApp()
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("trustmart TUI shutting down")


def _run_cli(args: argparse.Namespace) -> int:
    """Dispatch one headless command and return its exit code."""
    from src.cli import runner
    from src.services.bootstrap import build_services

    services = build_services()
    fmt = args.output_format
    try:
        if args.products:
            return runner.run_products(services, args.category, fmt)
        if args.flagged:
            return runner.run_flagged(services, fmt)
        if args.add_review:
            product_id, user_id, rating, comment = args.add_review
            return runner.run_add_review(
                services, product_id, user_id, rating, comment, fmt,
            )
        if args.approve:
            return runner.run_moderation(services, "approve", *args.approve, fmt)
        if args.dismiss:
            return runner.run_moderation(services, "dismiss", *args.dismiss, fmt)
        if args.clear_flag:
            return runner.run_moderation(
                services, "clear-flag", *args.clear_flag, fmt,
            )
        if args.analyze:
            kind, entity_id = args.analyze
            return asyncio.run(
                runner.run_analyze(
                    services, kind, entity_id, args.save_score, fmt,
                )
            )
        if args.import_catalog:
            return runner.run_import_catalog(services, args.import_catalog, fmt)
        return asyncio.run(runner.run_health_check(services))
    finally:
        services.close()


def main() -> None:
    """Route to the TUI (no command) or a headless CLI command."""
    log_file = setup_logging()
    logger.info("trustmart starting (log file: %s)", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    has_command = any((
        args.products, args.flagged, args.add_review, args.approve,
        args.dismiss, args.clear_flag, args.analyze, args.import_catalog,
        args.health,
    ))
    if not has_command:
        _run_tui()
        return
    sys.exit(_run_cli(args))


if __name__ == "__main__":
    main()
