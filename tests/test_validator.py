"""Tests for the quote schema and layout Watchdog.

Validates QuoteUpdate and QuoteMonitor using:
- Parametrized tests for field defaults and normalization
- Property-based testing (hypothesis) for counter invariants
- Log capture for alert behaviour

Testing Philosophy:
    Every published quote must be displayable. If these tests pass,
    consumers never see an absent price or change.
"""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from pydantic import ValidationError

from config.settings import GlobalConfig
from carttracker.validator import PRICE_SENTINEL, QuoteMonitor, QuoteUpdate


class TestQuoteUpdateSchema:
    """Test suite for QuoteUpdate construction rules."""

    def test_defaults_are_displayable(self) -> None:
        update = QuoteUpdate(symbol="CART")

        assert update.price == PRICE_SENTINEL
        assert update.delta == ""
        assert update.market_notice is None
        assert not update.has_price

    def test_none_fields_fall_back_to_defaults(self) -> None:
        update = QuoteUpdate(symbol="CART", price=None, delta=None, market_notice=None)

        assert update.price == "??"
        assert update.delta == ""

    @pytest.mark.parametrize("symbol", ["", "   "])
    def test_empty_symbol_is_rejected(self, symbol: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            QuoteUpdate(symbol=symbol)
        assert "symbol" in str(exc_info.value).lower()

    def test_non_string_symbol_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QuoteUpdate(symbol=42)

    def test_updates_are_immutable(self) -> None:
        update = QuoteUpdate(symbol="CART", price="10.50")

        with pytest.raises(ValidationError):
            update.price = "11.00"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("10.50", "10.50"),
            ("  10.50\n", "10.50"),
            ("1,031.20", "1,031.20"),
        ],
    )
    def test_price_is_kept_as_displayed(self, raw: str, expected: str) -> None:
        assert QuoteUpdate(symbol="CART", price=raw).price == expected

    def test_notice_whitespace_is_collapsed(self) -> None:
        update = QuoteUpdate(symbol="CART", market_notice="Market\n   closed")
        assert update.market_notice == "Market closed"

    @pytest.mark.parametrize(
        "price,delta,expected",
        [
            ("10.50", "+0.25", "CART $10.50 (+0.25)"),
            ("??", "", "CART $?? ()"),
        ],
    )
    def test_title_rendering(self, price: str, delta: str, expected: str) -> None:
        assert QuoteUpdate(symbol="CART", price=price, delta=delta).title == expected

    def test_json_round_trip_preserves_optional_notice(self) -> None:
        original = QuoteUpdate(symbol="CART", price="10.50", delta="+0.25")

        restored = QuoteUpdate.model_validate_json(original.model_dump_json())

        assert restored == original
        assert restored.market_notice is None


class TestQuoteMonitorWatchdog:
    """Test suite for QuoteMonitor (Watchdog) logic."""

    def test_alert_fires_once_at_threshold(
        self, mock_config: GlobalConfig, log_messages: list
    ) -> None:
        monitor = QuoteMonitor(mock_config)
        miss = QuoteUpdate(symbol="CART")

        for _ in range(mock_config.layout_alert_threshold + 2):
            monitor.record(miss)

        alerts = [m for m in log_messages if "Layout shift suspected" in str(m)]
        assert len(alerts) == 1
        assert monitor.get_summary()["alerts_raised"] == 1

    def test_below_threshold_no_alert(self, mock_config: GlobalConfig) -> None:
        monitor = QuoteMonitor(mock_config)

        for _ in range(mock_config.layout_alert_threshold - 1):
            monitor.record(QuoteUpdate(symbol="CART"))

        assert not monitor.alert_active

    def test_real_price_resets_streak_and_rearms(self, mock_config: GlobalConfig) -> None:
        monitor = QuoteMonitor(mock_config)
        miss = QuoteUpdate(symbol="CART")
        hit = QuoteUpdate(symbol="CART", price="10.50")

        for _ in range(mock_config.layout_alert_threshold):
            monitor.record(miss)
        assert monitor.alert_active

        monitor.record(hit)
        assert monitor.consecutive_misses == 0
        assert not monitor.alert_active

        for _ in range(mock_config.layout_alert_threshold):
            monitor.record(miss)
        assert monitor.get_summary()["alerts_raised"] == 2

    def test_monitor_never_raises(self, mock_config: GlobalConfig) -> None:
        monitor = QuoteMonitor(mock_config)

        for _ in range(50):
            monitor.record(QuoteUpdate(symbol="CART"))

        assert monitor.miss_ratio == 1.0

    def test_empty_monitor_ratio(self, mock_config: GlobalConfig) -> None:
        assert QuoteMonitor(mock_config).miss_ratio == 0.0

    def test_reset_clears_counters(self, mock_config: GlobalConfig) -> None:
        monitor = QuoteMonitor(mock_config)
        monitor.record(QuoteUpdate(symbol="CART"))

        monitor.reset()

        summary = monitor.get_summary()
        assert summary["total_extractions"] == 0
        assert summary["total_misses"] == 0
        assert summary["consecutive_misses"] == 0

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(outcomes=st.lists(st.booleans(), max_size=60))
    def test_invariant_misses_never_exceed_extractions(
        self, mock_config: GlobalConfig, outcomes: list[bool]
    ) -> None:
        """Property: total_misses <= total_extractions and the streak is a suffix."""
        monitor = QuoteMonitor(mock_config)

        for has_price in outcomes:
            monitor.record(QuoteUpdate(symbol="CART", price="1.00" if has_price else None))

        summary = monitor.get_summary()
        assert summary["total_extractions"] == len(outcomes)
        assert summary["total_misses"] == outcomes.count(False)

        trailing = 0
        for has_price in reversed(outcomes):
            if has_price:
                break
            trailing += 1
        assert monitor.consecutive_misses == trailing
