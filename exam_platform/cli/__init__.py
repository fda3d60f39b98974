#!/usr/bin/env python3
"""
Exam Platform CLI

Usage:
    python -m exam_platform.cli <command> [options]

Commands:
    init-db     Create missing tables
    sweep       Auto-submit attempts whose time has run out
    config      Show effective configuration

Environment:
    DATABASE_URL    SQLAlchemy async URL (default: local SQLite file)
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import json
import asyncio
import argparse
import logging
from typing import Optional

from exam_platform import __version__


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="exam-platform",
        description="Exam Platform management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db
  %(prog)s sweep
  %(prog)s sweep --loop --interval 30
  %(prog)s config
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create missing database tables")

    sweep_parser = subparsers.add_parser("sweep", help="Auto-submit expired attempts")
    sweep_parser.add_argument("--loop", action="store_true", help="Keep sweeping until interrupted")
    sweep_parser.add_argument("--interval", type=int, default=None,
                              help="Seconds between sweeps with --loop (default: EXPIRY_SWEEP_INTERVAL_SECONDS)")

    subparsers.add_parser("config", help="Show effective configuration")

    return parser


def _init_db() -> int:
    from exam_platform.database import init_db, close_db

    async def run():
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(run())
    print("Database initialized")
    return 0


def _sweep(args) -> int:
    from exam_platform.config import settings
    from exam_platform.database import close_db
    from exam_platform.tasks.expiry_sweep import run_sweep_once, sweep_loop

    async def run():
        try:
            if args.loop:
                await sweep_loop(args.interval or settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
                return 0
            return await run_sweep_once()
        finally:
            await close_db()

    try:
        closed = asyncio.run(run())
    except KeyboardInterrupt:
        print("Sweep stopped")
        return 0
    except Exception as e:
        print(f"Error: sweep failed: {e}")
        return 1

    print(f"Auto-submitted {closed} expired attempts")
    return 0


def _config() -> int:
    from exam_platform.config import settings

    print(json.dumps(settings.as_dict(), indent=2, default=str))
    return 0


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    if parsed.command == "init-db":
        return _init_db()
    if parsed.command == "sweep":
        return _sweep(parsed)
    if parsed.command == "config":
        return _config()

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
