"""CLI entry point for the Solana buy tracker.

Usage:
    python -m solana_buy_tracker [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from solana_buy_tracker import __version__
from solana_buy_tracker.config import Settings, clear_settings_cache, get_settings
from solana_buy_tracker.pipeline import Pipeline
from solana_buy_tracker.shutdown import GracefulShutdown

APP_NAME = "Solana Buy Tracker"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="solana-buy-tracker",
        description="Watch Solana token mints for buys and alert a Telegram chat.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m solana_buy_tracker                    Run the tracker
  python -m solana_buy_tracker --config-check     Validate config and exit
  python -m solana_buy_tracker --dry-run          Log alerts instead of sending them
  python -m solana_buy_tracker --log-level DEBUG  Enable debug logging
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without polling",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Poll and classify but log alerts instead of sending them",
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Override health check port (default: from settings)",
    )
    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Request logs would leak the bot token embedded in Telegram URLs
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings, dry_run: bool) -> None:
    """Print a summary of the configuration."""
    summary = settings.redacted_summary()
    solana = settings.solana
    polling = settings.polling

    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration:")
    print(f"  RPC: {solana.rpc_url} (fallback: {solana.fallback_rpc_url or '(not set)'})")
    print(f"  Poll Interval: {polling.interval_seconds}s")
    print(f"  Min SOL Spent: {polling.min_sol_spent}")
    print(f"  Min Value USD: {polling.min_value_usd}")
    print(f"  Tracked Tokens File: {summary['tracked_tokens_file']}")
    print(f"  Cursor Store: {summary['cursor_store']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Health Port: {summary['health_port']}")
    print(f"  Dry Run: {dry_run}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            print(f"  {field}: {error['msg']}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration and exit."""
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run)
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_pipeline(
    settings: Settings,
    dry_run: bool,
    shutdown_timeout: float = 30.0,
) -> int:
    """Run the pipeline until a shutdown signal arrives.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    try:
        async with GracefulShutdown(timeout=shutdown_timeout) as shutdown:
            pipeline = Pipeline(settings, dry_run=dry_run)
            shutdown.register_cleanup(pipeline.stop)

            await pipeline.start()
            logger.info("Watching for buys. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping pipeline...")
            await pipeline.stop()

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Pipeline failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    if args.health_port is not None:
        settings = settings.model_copy(update={"health_port": args.health_port})

    configure_logging(args.log_level or settings.log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    print_config_summary(settings, dry_run)

    sys.exit(asyncio.run(run_pipeline(settings, dry_run)))


if __name__ == "__main__":
    main()
