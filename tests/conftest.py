"""Pytest configuration and shared fixtures for the CartTracker test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No external network requests (Playwright is always mocked)
- Deterministic execution (injected clocks, generated HTML)
- Isolated state (no cross-test contamination)

Design Rationale:
    Factory fixtures over static fixtures enable dynamic test case generation
    without code duplication. The mock_config fixture overrides the singleton
    GlobalConfig to prevent state leakage between tests.
"""

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger
from pytest_mock import MockerFixture

from config.settings import GlobalConfig


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Overrides the lru_cache singleton to prevent state leakage between tests.
    Uses tmp_path for all file operations to avoid polluting the filesystem.

    Args:
        tmp_path: Pytest temporary directory fixture.
        monkeypatch: Pytest monkeypatch fixture for patching.

    Returns:
        GlobalConfig instance with test-safe defaults.
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    test_env = {
        "APP_NAME": "CartTracker-Test",
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "SYMBOL": "CART",
        "QUOTE_URL": "https://quotes.test.example.com/quote/CART/",
        "EXCHANGE_TIMEZONE": "America/New_York",
        "MARKET_OPEN_HOUR": "9",
        "MARKET_CLOSE_HOUR": "16",
        "POLL_INTERVAL_SEC": "30",
        "REQUEST_TIMEOUT_MS": "10000",
        "STATE_PATH": str(tmp_path / "state" / "quote_state.json"),
        "STATE_KEY": "lastTickerUpdate",
        "LAYOUT_ALERT_THRESHOLD": "3",
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


@pytest.fixture
def quote_html_factory() -> Callable[..., str]:
    """Factory fixture for generating quote page HTML.

    Pass None for a field to omit its element entirely. Extra streaming
    elements can be injected to exercise unknown fields and other symbols.

    Returns:
        Factory function that generates HTML strings.

    Example:
        def test_extraction(quote_html_factory):
            html = quote_html_factory(price="10.50", delta="+0.25", notice=None)
    """

    def _generate_html(
        price: str | None = "10.50",
        delta: str | None = "+0.25",
        notice: str | None = None,
        symbol: str = "CART",
        extra_streamers: list[dict[str, Any]] | None = None,
    ) -> str:
        streamers = []
        if price is not None:
            streamers.append(
                f'<fin-streamer class="Fw(b) Fz(36px)" data-symbol="{symbol}" '
                f'data-field="regularMarketPrice" data-trend="none" '
                f'active="">{price}</fin-streamer>'
            )
        if delta is not None:
            streamers.append(
                f'<fin-streamer class="Fw(500)" data-symbol="{symbol}" '
                f'data-field="regularMarketChange" data-trend="txt" '
                f'active=""><span class="C($positiveColor)">{delta}</span></fin-streamer>'
            )
        for extra in extra_streamers or []:
            streamers.append(
                f'<fin-streamer data-symbol="{extra["symbol"]}" '
                f'data-field="{extra["field"]}">{extra["value"]}</fin-streamer>'
            )

        notice_html = (
            f'<div id="quote-market-notice" class="C($tertiaryColor)">'
            f"<span>{notice}</span></div>"
            if notice is not None
            else ""
        )

        return f"""
        <!DOCTYPE html>
        <html>
        <head><title>Maplebear Inc. (CART) Stock Price, News, Quote</title></head>
        <body>
            <div id="quote-header-info">
                <h1>Maplebear Inc. (CART)</h1>
                <div class="D(ib) Mend(20px)">
                    {"".join(streamers)}
                    {notice_html}
                </div>
            </div>
        </body>
        </html>
        """

    return _generate_html


@pytest.fixture
def api_response_factory() -> Callable[..., MagicMock]:
    """Factory for mocked Playwright APIResponse objects."""

    def _make_response(status: int = 200, body: bytes = b"<html></html>") -> MagicMock:
        response = MagicMock()
        response.status = status
        response.ok = 200 <= status < 300
        response.body = AsyncMock(return_value=body)
        response.dispose = AsyncMock()
        return response

    return _make_response


@pytest.fixture
def mock_request_context(mocker: MockerFixture, api_response_factory: Callable) -> MagicMock:
    """Provide mocked Playwright APIRequestContext answering 200 OK."""
    context = mocker.MagicMock()
    context.get = mocker.AsyncMock(return_value=api_response_factory())
    context.dispose = mocker.AsyncMock()
    return context


@pytest.fixture
def mock_playwright(mocker: MockerFixture, mock_request_context: MagicMock) -> MagicMock:
    """Provide mocked Playwright instance whose request API yields the mock context."""
    playwright = mocker.MagicMock()
    playwright.request.new_context = mocker.AsyncMock(return_value=mock_request_context)
    playwright.stop = mocker.AsyncMock()
    return playwright


@pytest.fixture
def patched_playwright(mocker: MockerFixture, mock_playwright: MagicMock) -> MagicMock:
    """Patch async_playwright() so that .start() returns mock_playwright."""
    async_pw = mocker.MagicMock()
    async_pw.start = mocker.AsyncMock(return_value=mock_playwright)
    mocker.patch("carttracker.fetcher.async_playwright", return_value=async_pw)
    return mock_playwright


@pytest.fixture
def log_messages() -> list[Any]:
    """Capture loguru messages emitted during a test."""
    messages: list[Any] = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers and settings.

    Args:
        config: Pytest config object.
    """
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
