"""Trading calendar for the tracked exchange.

Answers two questions against the exchange's local clock:
- is an instant inside the regular session?
- when does the next session open?

Sessions run Monday to Friday from the open hour (inclusive) to the
close hour (exclusive). Exchange holidays are not modelled: the tracker
wakes on a holiday morning, finds the session "open", and polls a page
whose price does not move.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import ConfigValidationError

MARKET_OPEN_HOUR = 9
MARKET_CLOSE_HOUR = 16

# datetime.weekday(): Monday == 0 ... Saturday == 5, Sunday == 6
_SATURDAY = 5


class TradingCalendar:
    """Session window of a single exchange in its local timezone.

    Attributes:
        tz: Exchange timezone.
        open_hour: Local hour at which trading starts.
        close_hour: Local hour at which trading stops (exclusive).

    Raises:
        ConfigValidationError: If the timezone id is unknown to the host
            or the hours do not describe a session within one day.
    """

    def __init__(
        self,
        timezone: str,
        open_hour: int = MARKET_OPEN_HOUR,
        close_hour: int = MARKET_CLOSE_HOUR,
    ) -> None:
        try:
            self.tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigValidationError(
                field="exchange_timezone",
                value=timezone,
                reason=f"Timezone is not available on this host: {exc}",
            ) from exc

        if not 0 <= open_hour < close_hour <= 24:
            raise ConfigValidationError(
                field="market_hours",
                value=(open_hour, close_hour),
                reason="Open hour must precede close hour within a single day",
            )

        self.open_hour = open_hour
        self.close_hour = close_hour

    @classmethod
    def from_config(cls, config: GlobalConfig | None = None) -> "TradingCalendar":
        """Build the calendar described by the application configuration."""
        config = config or get_config()
        return cls(
            timezone=config.exchange_timezone,
            open_hour=config.market_open_hour,
            close_hour=config.market_close_hour,
        )

    def localize(self, moment: datetime) -> datetime:
        """Express an instant in exchange-local time.

        Naive datetimes are taken to already be exchange-local.
        """
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.tz)
        return moment.astimezone(self.tz)

    def now(self) -> datetime:
        """Current exchange-local time."""
        return datetime.now(self.tz)

    @staticmethod
    def is_weekend(day: datetime) -> bool:
        return day.weekday() >= _SATURDAY

    def is_during_trading_hours(self, moment: datetime) -> bool:
        """Return whether ``moment`` falls inside a regular session.

        Hour boundaries are half-open: the open hour counts as open and
        the close hour counts as closed.
        """
        local = self.localize(moment)
        if self.is_weekend(local):
            return False
        return self.open_hour <= local.hour < self.close_hour

    def next_market_open(self, after: datetime) -> datetime:
        """Return the first session open at or after ``after``.

        The candidate starts at the open hour on the same local date and
        advances one calendar day at a time, so daylight-saving changes
        never shift the result off the open hour. An instant that is
        exactly a weekday open is returned unchanged.

        Args:
            after: Reference instant (naive values are exchange-local).

        Returns:
            Exchange-local datetime at the open hour of a weekday.
        """
        local = self.localize(after)
        reference = local.astimezone(UTC)
        day = local.date()
        open_time = time(hour=self.open_hour)

        while True:
            candidate = datetime.combine(day, open_time, tzinfo=self.tz)
            if candidate.astimezone(UTC) >= reference and not self.is_weekend(candidate):
                return candidate
            day += timedelta(days=1)

    def seconds_until_open(self, after: datetime) -> float:
        """Seconds between ``after`` and the next session open, never negative."""
        reference = self.localize(after)
        # Same-tzinfo subtraction ignores DST offsets, so compare in UTC.
        delta = self.next_market_open(reference).astimezone(UTC) - reference.astimezone(UTC)
        return max(delta.total_seconds(), 0.0)
