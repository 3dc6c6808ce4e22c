"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the DCA agent.

- Provides argparse-based CLI
- Loads .env with python-dotenv, then the environment
- Runs one cycle or the weekly schedule
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli                     # weekly schedule
python -m orchestrator.cli --once --dry-run    # one cycle, no orders
python -m orchestrator.cli --exchange mock --once
python -m orchestrator.cli --show-schedule 5

============================================================
EXIT CODES
============================================================
0    success
1    configuration error
2    exchange unreachable
130  interrupted

============================================================
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from core.exceptions import ConfigurationError, ConnectivityError
from dca.config import LOG_FORMATS, LOG_LEVELS, DCAConfig
from exchange.base import MarketDataGateway
from exchange.binance import BinanceSpotAdapter
from exchange.mock import MockExchangeAdapter
from exchange.types import find_balance

from .core import DCAOrchestrator, setup_logging
from .scheduler import CycleScheduler


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNREACHABLE = 2
EXIT_INTERRUPTED = 130


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dca-agent",
        description="Momentum-weighted weekly DCA agent for Binance Spot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from the environment and from a .env file
(API_KEY, API_SECRET, SYMBOLS, BASE_USDT, ...).

Examples:
  %(prog)s                          # Run on the weekly schedule
  %(prog)s --once --dry-run         # Plan one cycle without ordering
  %(prog)s --exchange mock --once   # Offline cycle on a demo market
  %(prog)s --show-schedule 4        # Print the next 4 fire times
        """
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle now and exit",
    )

    execution_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan and size orders without submitting them",
    )

    execution_group.add_argument(
        "--exchange",
        type=str,
        choices=["binance", "mock"],
        default="binance",
        help="Exchange gateway (default: binance)",
    )

    execution_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Load environment from this file (default: .env)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=list(LOG_LEVELS),
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=list(LOG_FORMATS),
        help="Logging format (default: LOG_FORMAT or text)",
    )

    # --------------------------------------------------------
    # Version/Info
    # --------------------------------------------------------
    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    parser.add_argument(
        "--show-schedule",
        type=int,
        nargs="?",
        const=5,
        metavar="N",
        help="Print the next N fire times and exit (default N: 5)",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> DCAConfig:
    """
    Build agent configuration from the environment and CLI overrides.

    Raises:
        ConfigurationError: Missing or invalid settings
    """
    if args.env_file:
        load_dotenv(args.env_file, override=True)
    else:
        load_dotenv()

    config = DCAConfig.from_env()

    if args.dry_run:
        config.dry_run = True
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    require_credentials = args.exchange == "binance" and not config.dry_run
    return config.ensure_valid(require_credentials=require_credentials)


def build_gateway(exchange: str, config: DCAConfig) -> MarketDataGateway:
    """Create the exchange gateway selected on the command line."""
    if exchange == "mock":
        return MockExchangeAdapter.with_demo_market(config.symbols)
    return BinanceSpotAdapter(config.exchange)


# ============================================================
# SHOW SCHEDULE
# ============================================================

def show_schedule(config: DCAConfig, count: int) -> None:
    """Print upcoming fire times."""
    scheduler = CycleScheduler(_no_cycle, config.cron, config.timezone)

    print(f"\nSchedule: '{config.cron}' ({config.timezone})")
    print("=" * 60)
    for i, when in enumerate(scheduler.upcoming(count), 1):
        print(f"  {i:2d}. {scheduler.format_time(when)}")
    print()


async def _no_cycle():
    return None


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, config: DCAConfig) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments
        config: Validated configuration

    Returns:
        Exit code
    """
    gateway = build_gateway(args.exchange, config)

    async with gateway:
        orchestrator = DCAOrchestrator(gateway, config)

        if args.once:
            try:
                await orchestrator.run_cycle()
            except ConnectivityError as e:
                logger.error(e.to_log_format())
                return EXIT_UNREACHABLE
            return EXIT_OK

        if not await gateway.probe_connectivity():
            logger.error("Exchange unreachable at startup")
            return EXIT_UNREACHABLE
        await log_usdt_balance(gateway)

        scheduler = CycleScheduler(
            orchestrator.run_cycle,
            config.cron,
            config.timezone,
        )
        _install_signal_handlers(scheduler)
        await scheduler.run_forever()

    return EXIT_OK


async def log_usdt_balance(gateway: MarketDataGateway) -> None:
    result = await gateway.fetch_account_balances()
    if not result.ok:
        logger.warning(f"Could not read account balance: {result.error_message}")
        return
    usdt = find_balance(result.value, "USDT")
    logger.info(f"USDT balance: {usdt.free if usdt else 0}")


def _install_signal_handlers(scheduler: CycleScheduler) -> None:
    """Stop the scheduler on SIGINT/SIGTERM."""
    if sys.platform == "win32":
        return
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, scheduler.stop)


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

    try:
        config = build_config(args)
        if args.show_schedule:
            show_schedule(config, args.show_schedule)
            return EXIT_OK
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.log_level, config.log_format, config.log_file)
    print_banner(args, config)

    try:
        return asyncio.run(async_main(args, config))
    except ConfigurationError as e:
        logger.error(e.to_log_format())
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


def print_banner(args: argparse.Namespace, config: DCAConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  DCA AGENT")
    print("  Momentum-weighted weekly buys")
    print("=" * 60)
    print(f"  Exchange:   {args.exchange}")
    print(f"  Symbols:    {', '.join(config.symbols)}")
    print(f"  Budget:     {config.base_usdt} USDT")
    print(f"  Dry Run:    {config.dry_run}")
    if args.once:
        print("  Schedule:   single cycle")
    else:
        print(f"  Schedule:   '{config.cron}' ({config.timezone})")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
