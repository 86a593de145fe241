"""
Collector - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the sonar security collector.

- Provides argparse-based CLI
- Loads settings from a YAML file or the environment
- Runs a single cycle or loops at the configured interval

============================================================
USAGE
============================================================
python -m collector.cli --single-cycle
python -m collector.cli --config collector.yaml --interval 600
python -m collector.cli --create-tables --single-cycle

============================================================
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from collector.config import CollectorSettings, set_settings
from collector.task import CycleResult, SonarSecurityCollectorTask
from core.exceptions import ConfigurationError
from storage.database import (
    DatabasePersistenceError,
    create_all_tables,
    get_db_session,
    verify_database_connection,
)
from storage.repositories.exceptions import RepositoryException


logger = logging.getLogger("collector.cli")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sonar-security-collector",
        description="Collects security quality data from SonarQube servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --single-cycle                   # One cycle with settings from the environment
  %(prog)s --config collector.yaml          # Loop with settings from a YAML file
  %(prog)s --create-tables --single-cycle   # Create tables, then run once
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="YAML settings file (default: environment variables)",
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--single-cycle",
        action="store_true",
        help="Run a single cycle and exit (no loop)",
    )

    execution_group.add_argument(
        "--interval",
        type=int,
        metavar="SECONDS",
        help="Seconds between cycles (default: from settings)",
    )

    execution_group.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing database tables before running",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if args.interval is not None and args.interval < 1:
        errors.append("--interval must be at least 1 second")

    if args.config and not Path(args.config).is_file():
        errors.append(f"--config file not found: {args.config}")

    return errors


def load_settings(args: argparse.Namespace) -> CollectorSettings:
    """Build settings from the config file or the environment."""
    if args.config:
        settings = CollectorSettings.from_yaml(Path(args.config))
    else:
        settings = CollectorSettings.from_env()
    if args.interval is not None:
        settings.interval_seconds = args.interval
    return settings


# ============================================================
# MAIN ENTRY POINT
# ============================================================

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_stop_handlers(loop: asyncio.AbstractEventLoop, on_stop: Callable[[], None]) -> bool:
    """
    Route SIGTERM and SIGINT to on_stop.

    Returns False on Windows, where SIGINT keeps surfacing as
    KeyboardInterrupt.
    """
    if sys.platform == "win32":
        return False
    for sig in STOP_SIGNALS:
        loop.add_signal_handler(sig, on_stop)
    return True


def restore_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    """Restore the default handlers for the stop signals."""
    for sig in STOP_SIGNALS:
        loop.remove_signal_handler(sig)


async def run_once(settings: CollectorSettings) -> CycleResult:
    """
    Run one cycle in its own session.

    A stop signal received mid-cycle stops it before the next
    server; the aborted cycle deletes nothing.
    """
    loop = asyncio.get_running_loop()
    with get_db_session() as session:
        task = SonarSecurityCollectorTask(session, settings)

        def on_stop() -> None:
            logger.info("Stop signal received, finishing current server")
            task.request_stop()

        installed = install_stop_handlers(loop, on_stop)
        try:
            return await task.run_cycle()
        finally:
            if installed:
                restore_signal_handlers(loop)


async def async_main(args: argparse.Namespace, settings: CollectorSettings) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    try:
        verify_database_connection()
        if args.create_tables:
            create_all_tables()

        if args.single_cycle:
            await run_once(settings)
            return 0

        while True:
            result = await run_once(settings)
            if result.aborted:
                logger.info("Collector stopped")
                return 0
            logger.info(f"Next cycle in {settings.interval_seconds}s")
            await asyncio.sleep(settings.interval_seconds)

    except (RepositoryException, DatabasePersistenceError) as e:
        logger.error(f"Store failure: {e}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        settings = load_settings(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    set_settings(settings)

    print_banner(args, settings)

    try:
        return asyncio.run(async_main(args, settings))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


def print_banner(args: argparse.Namespace, settings: CollectorSettings) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  SONAR SECURITY COLLECTOR")
    print("=" * 60)
    print(f"  Collector:  {settings.collector_name}")
    print(f"  Servers:    {len(settings.servers)}")
    print(f"  Log Level:  {args.log_level}")
    if args.single_cycle:
        print("  Mode:       single cycle")
    else:
        print(f"  Interval:   {settings.interval_seconds}s")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
