"""CartTracker Entry Point.

This module is the bootstrap and wiring layer. It contains NO business
logic - all functional code resides in /carttracker.

Responsibilities:
    1. Initialize logging infrastructure (fail-fast on error)
    2. Load and validate configuration
    3. Render the last stored quote as a provisional value
    4. Wire fetcher, extractor, publisher and scheduler, then run until stopped
    5. Map OS signals onto the scheduler's pause/resume/refresh operations

Signals:
    SIGINT / SIGTERM  shut down
    SIGUSR1           pause polling (host going to sleep)
    SIGUSR2           resume polling (host woke up)
    SIGHUP            fetch once now

Usage:
    python main.py
"""

import asyncio
import signal
import sys
from typing import NoReturn

from loguru import logger

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import (
    CartTrackerError,
    LoggingInitializationError,
)
from carttracker.extractor import QuoteExtractor
from carttracker.fetcher import QuoteFetcher
from carttracker.logger import configure_logging
from carttracker.market_hours import TradingCalendar
from carttracker.publisher import UpdatePublisher
from carttracker.scheduler import PollingScheduler
from carttracker.store import QuoteStore
from carttracker.validator import QuoteUpdate


def render_status(update: QuoteUpdate) -> None:
    """Render a quote the way the status item shows it."""
    if update.market_notice:
        logger.info(f"{update.title} | {update.market_notice}")
    else:
        logger.info(update.title)


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    scheduler: PollingScheduler,
    stop: asyncio.Event,
) -> None:
    """Bind OS signals to scheduler transitions where the platform allows it."""
    bindings = {
        "SIGINT": stop.set,
        "SIGTERM": stop.set,
        "SIGUSR1": scheduler.pause,
        "SIGUSR2": scheduler.resume,
        "SIGHUP": scheduler.poke,
    }

    for name, handler in bindings.items():
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            loop.add_signal_handler(signum, handler)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handling unavailable", signal=name)


async def _run_tracker(config: GlobalConfig, stop: asyncio.Event | None = None) -> int:
    """Run the polling pipeline until ``stop`` is set.

    Args:
        config: The validated GlobalConfig instance.
        stop: Optional shutdown event; signals set it when not provided.

    Returns:
        Exit code (0 for success, non-zero for failure).

    Raises:
        ConfigValidationError: If the trading calendar cannot be built.
    """
    calendar = TradingCalendar.from_config(config)

    logger.info(
        "Tracker starting",
        app_name=config.app_name,
        symbol=config.symbol,
        quote_url=config.quote_url,
        exchange_timezone=config.exchange_timezone,
    )

    publisher = UpdatePublisher()
    store = QuoteStore(config)

    provisional = store.load()
    if provisional is not None:
        render_status(provisional)

    publisher.subscribe(render_status, name="status")
    publisher.subscribe(store.save, name="state-store")

    extractor = QuoteExtractor(config)
    external_stop = stop is not None
    stop = stop or asyncio.Event()

    async with QuoteFetcher.create(config) as client:
        scheduler = PollingScheduler(client, extractor, publisher, calendar, config)

        if not external_stop:
            _install_signal_handlers(asyncio.get_running_loop(), scheduler, stop)

        scheduler.resume()
        try:
            await stop.wait()
        finally:
            scheduler.pause()
            await scheduler.drain()

    logger.info(
        "Extraction monitoring summary",
        **extractor.monitor.get_summary(),
    )
    logger.info("Tracker stopped")
    return 0


def _handle_fatal_error(exc: Exception) -> NoReturn:
    """Handle fatal errors with structured logging and graceful exit.

    Args:
        exc: The exception that caused the fatal error.
    """
    if isinstance(exc, CartTrackerError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(1)

    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(1)


def main() -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    # Step 1: Load configuration (validates via Pydantic)
    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    # Step 2: Initialize logging (fail-fast)
    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    # Step 3: Run until stopped
    try:
        return asyncio.run(_run_tracker(config))
    except KeyboardInterrupt:
        logger.warning("Tracker interrupted by user (Ctrl+C)")
        return 130
    except Exception as exc:
        _handle_fatal_error(exc)


if __name__ == "__main__":
    sys.exit(main())
