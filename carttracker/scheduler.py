"""Market-aware polling scheduler.

The scheduler decides when the quote page is fetched. It is a small
state machine owning exactly one timer handle:

    IDLE ──resume()──► IN_SESSION   repeating tick every poll interval
      ▲          └───► SLEEPING     one-shot wake at the next market open
      └──pause()── (any state)

- resume() picks IN_SESSION or SLEEPING from the trading calendar and,
  in both cases, runs one quote cycle immediately.
- An IN_SESSION tick re-checks the calendar. Inside the session it runs a
  cycle and re-arms; once the session has closed it calls resume(), which
  performs a final end-of-session fetch and falls asleep.
- A SLEEPING wake calls resume().
- pause() cancels the timer and returns to IDLE. In-flight cycles are not
  cancelled and may still publish.

Arming a timer always cancels the previous handle first, so no two fetch
loops can ever run side by side.

Quote cycles (fetch, extract, publish) run as tasks on the event loop and
never block the timer. Overlapping cycles are not sequenced: a slow cycle
finishing after a faster, later one publishes last, and the latest
publish wins at the consumer.
"""

import asyncio
from datetime import UTC, datetime
from enum import Enum
from typing import Callable

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import FetchError
from carttracker.extractor import QuoteExtractor
from carttracker.fetcher import QuoteFetcher
from carttracker.logger import get_logger
from carttracker.market_hours import TradingCalendar
from carttracker.publisher import UpdatePublisher

log = get_logger(__name__)

Clock = Callable[[], datetime]


class SchedulerMode(str, Enum):
    """Current scheduling regime."""

    IDLE = "idle"
    IN_SESSION = "in_session"
    SLEEPING = "sleeping"


class CycleOutcome(str, Enum):
    """Result of a single quote cycle."""

    PUBLISHED = "published"
    SKIPPED = "skipped"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PollingScheduler:
    """Drives fetch-and-publish cycles according to the trading calendar.

    Not thread-safe: resume(), pause() and poke() must be called from the
    thread running the event loop.

    Attributes:
        client: QuoteFetcher retrieving the page.
        extractor: QuoteExtractor parsing it.
        publisher: UpdatePublisher receiving each extracted quote.
        calendar: TradingCalendar deciding the cadence.
        config: GlobalConfig holding the poll interval and quote URL.

    Example:
        scheduler = PollingScheduler(client, extractor, publisher, calendar)
        scheduler.resume()
        ...
        scheduler.pause()
        await scheduler.drain()
    """

    def __init__(
        self,
        client: QuoteFetcher,
        extractor: QuoteExtractor,
        publisher: UpdatePublisher,
        calendar: TradingCalendar,
        config: GlobalConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the scheduler in IDLE mode.

        Args:
            client: Initialized QuoteFetcher.
            extractor: QuoteExtractor for the tracked symbol.
            publisher: UpdatePublisher fanning out quotes.
            calendar: TradingCalendar of the exchange.
            config: Optional GlobalConfig. Uses singleton if not provided.
            clock: Optional source of the current instant, for tests.
        """
        self.config = config or get_config()
        self.client = client
        self.extractor = extractor
        self.publisher = publisher
        self.calendar = calendar
        self._clock = clock or _utc_now
        self._mode = SchedulerMode.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._cycles: set[asyncio.Task] = set()

    @property
    def mode(self) -> SchedulerMode:
        return self._mode

    @property
    def timer(self) -> asyncio.TimerHandle | None:
        """The single armed timer handle, or None when nothing is armed."""
        return self._timer

    @property
    def in_flight(self) -> int:
        """Number of quote cycles still running."""
        return len(self._cycles)

    def resume(self) -> None:
        """Enter IN_SESSION or SLEEPING and run one cycle right away.

        Must be called from within the running event loop.
        """
        now = self._clock()

        if self.calendar.is_during_trading_hours(now):
            self._mode = SchedulerMode.IN_SESSION
            self._arm(self.config.poll_interval_sec, self._on_session_tick)
            log.info(
                "Scheduler resumed in session",
                interval_sec=self.config.poll_interval_sec,
            )
        else:
            wake_at = self.calendar.next_market_open(now)
            delay = self.calendar.seconds_until_open(now)
            self._mode = SchedulerMode.SLEEPING
            self._arm(delay, self._on_wake)
            log.info(
                "Scheduler sleeping until market open",
                wake_at=wake_at.isoformat(),
                sleep_sec=round(delay, 1),
            )

        self._spawn_cycle()

    def pause(self) -> None:
        """Cancel the armed timer and return to IDLE. Idempotent."""
        if self._mode is SchedulerMode.IDLE and self._timer is None:
            log.debug("Scheduler already paused")
            return

        self._cancel_timer()
        self._mode = SchedulerMode.IDLE
        log.info("Scheduler paused", in_flight=self.in_flight)

    def poke(self) -> None:
        """Run one out-of-band cycle without touching the timer or mode."""
        log.debug("Manual refresh requested", mode=self._mode.value)
        self._spawn_cycle()

    async def drain(self) -> None:
        """Wait until every in-flight cycle has finished."""
        while self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    async def run_cycle(self) -> CycleOutcome:
        """Fetch, extract and publish one quote.

        Fetch failures are logged and the cycle is skipped; scheduler state
        is left untouched so the next tick retries.

        Returns:
            CycleOutcome.PUBLISHED or CycleOutcome.SKIPPED.
        """
        try:
            html = await self.client.fetch(self.config.quote_url)
        except FetchError as exc:
            log.warning(
                "Quote cycle skipped",
                error_type=type(exc).__name__,
                url=exc.url,
                reason=exc.reason,
            )
            return CycleOutcome.SKIPPED

        update = self.extractor.extract(html)
        self.publisher.publish(update)

        log.info(
            "Quote published",
            symbol=update.symbol,
            price=update.price,
            delta=update.delta,
            market_notice=update.market_notice,
        )
        return CycleOutcome.PUBLISHED

    def _arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Install the single timer, cancelling any previous handle first."""
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, callback)
        log.debug(
            "Timer armed",
            mode=self._mode.value,
            delay_sec=round(delay, 3),
            callback=callback.__name__,
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_session_tick(self) -> None:
        self._timer = None

        if self.calendar.is_during_trading_hours(self._clock()):
            self._arm(self.config.poll_interval_sec, self._on_session_tick)
            self._spawn_cycle()
            return

        log.info("Trading session closed")
        self.resume()

    def _on_wake(self) -> None:
        self._timer = None
        log.info("Market open wake-up")
        self.resume()

    def _spawn_cycle(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._on_cycle_done)
        return task

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        self._cycles.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            log.opt(exception=exc).error(
                "Quote cycle crashed",
                error_type=type(exc).__name__,
            )
