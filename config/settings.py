"""Global configuration management using pydantic-settings.

This module implements the 12-factor app methodology for configuration,
loading values from environment variables with strict type validation.
The Singleton pattern ensures consistent configuration state across the application.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    All configuration values are loaded from environment variables,
    with sensible defaults for development. Production deployments
    should override these via .env or environment injection.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment (development/staging/production).
        debug: Enable verbose debugging output.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        log_rotation: Log file rotation interval.
        log_retention: Log file retention period.
        symbol: Ticker symbol tracked by this deployment.
        quote_url: Quote page fetched on every cycle.
        exchange_timezone: IANA timezone of the exchange's local clock.
        market_open_hour: Local hour at which the session opens.
        market_close_hour: Local hour at which the session closes (exclusive).
        poll_interval_sec: Cadence of the in-session polling timer.
        request_timeout_ms: Upper bound for a single quote page request.
        response_encoding: Encoding used to decode the response body.
        user_agents: User-agent pool; one is chosen per fetch client.
        state_path: JSON file holding the last published quote.
        state_key: Key under which the last quote is stored.
        layout_alert_threshold: Consecutive priceless extractions before alerting.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="CartTracker", description="Application identifier")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Target Configuration
    symbol: str = Field(default="CART", description="Tracked ticker symbol")
    quote_url: str = Field(
        default="https://finance.yahoo.com/quote/CART/",
        description="Quote page URL",
    )

    # Trading Calendar
    exchange_timezone: str = Field(
        default="America/New_York", min_length=1, description="Exchange timezone"
    )
    market_open_hour: int = Field(default=9, ge=0, le=23, description="Session open hour")
    market_close_hour: int = Field(default=16, ge=1, le=24, description="Session close hour")

    # Polling Parameters
    poll_interval_sec: float = Field(
        default=30.0, ge=1.0, le=3600.0, description="In-session polling interval"
    )
    request_timeout_ms: int = Field(
        default=10000, ge=1000, le=120000, description="Request timeout in milliseconds"
    )
    response_encoding: str = Field(default="utf-8", description="Response body encoding")

    # User Agent Pool
    user_agents: list[str] = Field(
        default=[
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        ],
        min_length=1,
        description="User-agent pool",
    )

    # State Persistence
    state_path: Path = Field(
        default=Path("carttracker_state.json"), description="Last quote state file"
    )
    state_key: str = Field(
        default="lastTickerUpdate", min_length=1, description="Last quote state key"
    )

    # Watchdog Configuration
    layout_alert_threshold: int = Field(
        default=3, ge=1, le=100, description="Priceless extractions before alerting"
    )

    @field_validator("log_dir", "state_path", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        """Strip and upper-case the ticker symbol, rejecting empty values."""
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("Symbol cannot be empty")
        return cleaned

    @field_validator("quote_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Ensure quote_url ends with trailing slash, matching the page's canonical form."""
        return value if value.endswith("/") else f"{value}/"

    @model_validator(mode="after")
    def validate_session_window(self) -> "GlobalConfig":
        """Ensure the trading session is a non-empty window within one day."""
        if self.market_close_hour <= self.market_open_hour:
            raise ValueError(
                f"market_close_hour ({self.market_close_hour}) must be later than "
                f"market_open_hour ({self.market_open_hour})"
            )
        return self


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the singleton GlobalConfig instance.

    Uses LRU cache to ensure single instantiation across the application lifecycle.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()
