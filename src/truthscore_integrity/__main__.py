"""CLI entry point for the TruthScore integrity engine.

The engine is a library; this entry point only validates configuration
and prepares the database schema.

Usage:
    python -m truthscore_integrity [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from truthscore_integrity import __version__
from truthscore_integrity.config import Settings, clear_settings_cache, get_settings
from truthscore_integrity.storage.database import DatabaseManager

# Application info
APP_NAME = "TruthScore Integrity Engine"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="truthscore-integrity",
        description="Gaming-resistant trader scoring and manipulation detection.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m truthscore_integrity --config-check        Validate config and exit
  python -m truthscore_integrity --init-db             Create database tables
  python -m truthscore_integrity --log-level DEBUG     Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit (the default action)",
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database schema after validating configuration",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
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
        # Quieter logging for noisy libraries
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "aiosqlite": {"level": "WARNING"},
            "asyncpg": {"level": "WARNING"},
            "redis": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Database: {summary['database_url']}")
    print(f"  Redis: {summary['redis_url']}")
    print(f"  Log Level: {summary['log_level']}")
    for section in ("scoring", "detector"):
        values = summary[section]
        if isinstance(values, dict):
            print(f"  {section.capitalize()}:")
            for key, value in values.items():
                print(f"    {key}: {value}")
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
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print(f"{APP_NAME} v{APP_VERSION}")
    print("Configuration is valid!")
    print()
    print_config_summary(settings)
    return EXIT_SUCCESS


async def init_database(settings: Settings) -> int:
    """Create the database schema.

    Args:
        settings: Application settings.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    db = DatabaseManager(settings.database.url)
    try:
        await db.init_schema()
    except SQLAlchemyError as e:
        logger.error("Schema creation failed: %s", e)
        return EXIT_ERROR
    finally:
        await db.dispose()

    logger.info("Database schema ready")
    return EXIT_SUCCESS


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

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    exit_code = run_config_check(settings)
    if args.init_db and not args.config_check:
        exit_code = asyncio.run(init_database(settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
