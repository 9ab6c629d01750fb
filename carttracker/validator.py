"""Quote schema and layout monitoring.

This module implements:
- QuoteUpdate, the immutable record published after every successful cycle
- QuoteMonitor (Watchdog) for detecting when the quote page layout drifts

Design Rationale:
    Consumers render whatever the page showed, so price and change stay
    display strings exactly as formatted by the source. The schema only
    guarantees that there is always something displayable: a missing price
    becomes the "??" sentinel and a missing change becomes "".

    The page layout is outside our control. Instead of failing a cycle when
    selectors stop matching, the Watchdog counts consecutive priceless
    extractions and raises an alert in the logs.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import GlobalConfig, get_config
from carttracker.logger import get_logger

log = get_logger(__name__)

PRICE_SENTINEL = "??"


def _normalize_whitespace(value: str) -> str:
    return " ".join(value.split())


class QuoteUpdate(BaseModel):
    """Validated, immutable quote extracted from the quote page.

    Attributes:
        symbol: Ticker symbol (required, non-empty).
        price: Display-formatted price; "??" when the page had none.
        delta: Display-formatted change, may carry a sign glyph; "" when absent.
        market_notice: Supplemental notice shown by the page, if any.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1, description="Ticker symbol")
    price: str = Field(default=PRICE_SENTINEL, description="Display price")
    delta: str = Field(default="", description="Display change")
    market_notice: str | None = Field(default=None, description="Market notice")

    @field_validator("symbol", mode="before")
    @classmethod
    def clean_symbol(cls, value: Any) -> str:
        """Strip whitespace from the symbol.

        Raises:
            ValueError: If symbol is not a string.
        """
        if not isinstance(value, str):
            raise ValueError(f"Symbol must be a string, got {type(value).__name__}")
        return value.strip()

    @field_validator("price", mode="before")
    @classmethod
    def default_price(cls, value: Any) -> Any:
        """Substitute the sentinel for a price the page did not provide."""
        if value is None:
            return PRICE_SENTINEL
        if isinstance(value, str):
            return _normalize_whitespace(value)
        return value

    @field_validator("delta", mode="before")
    @classmethod
    def default_delta(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return _normalize_whitespace(value)
        return value

    @field_validator("market_notice", mode="before")
    @classmethod
    def clean_notice(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _normalize_whitespace(value)
        return value

    @property
    def has_price(self) -> bool:
        """Whether the page actually provided a price."""
        return self.price != PRICE_SENTINEL

    @property
    def title(self) -> str:
        """Status line rendering, e.g. ``CART $31.20 (+0.45)``."""
        return f"{self.symbol} ${self.price} ({self.delta})"


class QuoteMonitor:
    """Watchdog for monitoring extraction quality and detecting layout shifts.

    Every extracted quote is recorded. A quote without a price means the
    price selector matched nothing; a streak of them usually means the
    page layout changed. When the streak reaches the configured threshold
    a single critical alert is logged. The alert re-arms once a real price
    is seen again.

    The monitor never raises and never alters quotes: the sentinel is still
    published so consumers keep rendering something.

    Attributes:
        config: GlobalConfig with threshold settings.
        _consecutive_misses: Current streak of priceless extractions.
        _total_extractions: Cumulative extraction counter.
        _total_misses: Cumulative priceless extraction counter.
        _alerts_raised: Number of layout shift alerts logged.

    Example:
        monitor = QuoteMonitor()
        for html in pages:
            monitor.record(extractor.extract(html))
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        """Initialize the quote monitor.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.
        """
        self.config = config or get_config()
        self._consecutive_misses: int = 0
        self._total_extractions: int = 0
        self._total_misses: int = 0
        self._alerts_raised: int = 0

    def record(self, update: QuoteUpdate) -> None:
        """Record one extraction and alert when the miss streak hits the threshold.

        Args:
            update: The quote produced by the extractor.
        """
        self._total_extractions += 1

        if update.has_price:
            if self._consecutive_misses >= self.config.layout_alert_threshold:
                log.info(
                    "Price extraction recovered",
                    symbol=update.symbol,
                    missed_cycles=self._consecutive_misses,
                )
            self._consecutive_misses = 0
            return

        self._total_misses += 1
        self._consecutive_misses += 1

        log.debug(
            "Extraction produced no price",
            symbol=update.symbol,
            consecutive_misses=self._consecutive_misses,
        )

        if self._consecutive_misses == self.config.layout_alert_threshold:
            self._alerts_raised += 1
            log.critical(
                "WATCHDOG ALERT: Layout shift suspected",
                symbol=update.symbol,
                consecutive_misses=self._consecutive_misses,
                threshold=self.config.layout_alert_threshold,
            )

    @property
    def consecutive_misses(self) -> int:
        return self._consecutive_misses

    @property
    def alert_active(self) -> bool:
        """Whether the current miss streak has reached the threshold."""
        return self._consecutive_misses >= self.config.layout_alert_threshold

    @property
    def miss_ratio(self) -> float:
        """Cumulative ratio of priceless extractions.

        Returns:
            Float between 0.0 and 1.0.
        """
        if self._total_extractions == 0:
            return 0.0
        return self._total_misses / self._total_extractions

    def get_summary(self) -> dict[str, Any]:
        """Generate summary statistics for shutdown logging.

        Returns:
            Dictionary with cumulative extraction metrics.
        """
        return {
            "total_extractions": self._total_extractions,
            "total_misses": self._total_misses,
            "miss_rate": f"{self.miss_ratio:.1%}",
            "consecutive_misses": self._consecutive_misses,
            "alerts_raised": self._alerts_raised,
            "threshold": self.config.layout_alert_threshold,
        }

    def reset(self) -> None:
        """Reset all counters for a fresh monitoring session."""
        self._consecutive_misses = 0
        self._total_extractions = 0
        self._total_misses = 0
        self._alerts_raised = 0
        log.debug("Quote monitor reset")
