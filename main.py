#!/usr/bin/env python
"""
Crypto Quote Poller - Main Application

Periodically fetches CoinMarketCap quotes for the tracked coins and posts
a summary (or one chart per coin) to a Telegram channel.

Usage:
  python main.py                    # Poll forever (variant from POLL_VARIANT)
  python main.py --variant chart    # Post price charts every 15 minutes
  python main.py --once             # Run a single cycle and exit
  python main.py --env-file prod.env --interval 60

Configuration is read from the env file (see config.py). Exit codes:
  0  graceful stop (SIGINT/SIGTERM)
  1  fatal error
"""

import argparse
import asyncio
import logging
import math
import signal
import sys
from typing import Optional, Sequence

# Fix Windows console encoding for emoji support
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")

from bot.telegram_bot import build_application, create_publisher
from config import DEFAULT_ENV_FILE, PollVariant, Settings, load_env_file
from connectors.quote_fetcher import QuoteFetcher
from errors import QuotePollerError
from poller.loop import PollLoop

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING
# =============================================================================


def configure_logging(level: str = "WARNING") -> None:
    """Log to stdout; warning and above by default."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout, force=True)
    # httpx logs every Telegram request URL, which includes the bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# SERVICE
# =============================================================================


def install_signal_handlers(poll_loop: PollLoop) -> None:
    """Route SIGINT/SIGTERM to a graceful loop stop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, poll_loop.stop)
        except (NotImplementedError, RuntimeError):
            # Windows: KeyboardInterrupt still stops the process
            logger.debug(f"Signal handler for {sig.name} not supported")


async def run_service(settings: Settings, once: bool = False, listen: bool = True) -> int:
    """
    Run the poll loop next to the Telegram update receive loop.

    Args:
        settings: Startup configuration
        once: Run a single cycle instead of looping
        listen: Start the Telegram update polling (commands)

    Returns:
        Number of cycles completed
    """
    fetcher = QuoteFetcher(
        api_key=settings.api_key,
        api_base_url=settings.api_base_url,
        timeout=settings.request_timeout,
    )
    app = build_application(settings.bot_token) if listen and not once else None
    publisher = create_publisher(
        settings.bot_token, app=app, raise_on_failure=settings.strict_delivery
    )
    poll_loop = PollLoop(settings, fetcher, publisher)
    install_signal_handlers(poll_loop)

    try:
        if app is not None:
            await app.initialize()
            await app.start()
            await app.updater.start_polling()
        else:
            await publisher.initialize()

        if once:
            await poll_loop.run_once()
            return poll_loop.cycles
        return await poll_loop.run()
    finally:
        if app is not None:
            if app.updater.running:
                await app.updater.stop()
            if app.running:
                await app.stop()
            await app.shutdown()
        else:
            await publisher.shutdown()
        fetcher.close()


# =============================================================================
# CLI
# =============================================================================


def positive_seconds(raw: str) -> float:
    """argparse type for --interval: a finite number above zero."""
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crypto Quote Poller")
    parser.add_argument(
        "--env-file", default=DEFAULT_ENV_FILE, help="Env file to load (default: .env)"
    )
    parser.add_argument(
        "--variant",
        choices=[v.value for v in PollVariant],
        help="Publish text summaries or price charts",
    )
    parser.add_argument("--interval", type=positive_seconds, help="Seconds between cycles")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--no-listener",
        action="store_true",
        help="Do not poll Telegram for bot commands",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        load_env_file(args.env_file)
        settings = Settings.from_env().with_overrides(
            variant=PollVariant(args.variant) if args.variant else None,
            interval_seconds=args.interval,
        )
        configure_logging(settings.log_level)
        logger.warning("INIT")

        cycles = asyncio.run(
            run_service(settings, once=args.once, listen=not args.no_listener)
        )
    except QuotePollerError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Stopped by user")
        return 0
    except Exception:
        logger.exception("Unexpected error")
        return 1

    logger.warning(f"Exiting after {cycles} cycles")
    return 0


if __name__ == "__main__":
    sys.exit(main())
