"""Command-line entry point for the futures signal bot."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .config import BotConfig
from .exceptions import ConfigError, StartupError
from .exchanges.lnm_client import LNMarketsClient
from .exchanges.price_feed import PriceFeed
from .execution.runtime import TradingBot
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="futures-bot",
        description="Indicator-driven futures trading bot. Settings are read from the environment.",
    )
    parser.add_argument("--dry-run", action="store_true", help="evaluate trades without placing orders")
    parser.add_argument("--log-level", help="override LOG_LEVEL")
    return parser.parse_args(argv)


async def run_bot(config: BotConfig) -> None:
    """
    Build the collaborators and run the bot until SIGINT/SIGTERM.

    Args:
        config: Validated bot configuration
    """
    async with LNMarketsClient(config.exchange) as client:
        bot = TradingBot(config, client, PriceFeed(config.exchange))

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, bot.request_shutdown)
            except NotImplementedError:
                # Signal handlers are unavailable on some platforms
                pass

        await bot.initialize()
        await bot.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    config = BotConfig.from_env()
    if args.dry_run:
        config.dry_run = True
    if args.log_level:
        config.log_level = args.log_level.upper()

    configure_logging(config.log_level, config.log_file)

    try:
        config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run_bot(config))
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
