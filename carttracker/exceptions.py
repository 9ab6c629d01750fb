"""Custom exception hierarchy for CartTracker.

This module defines domain-specific exceptions that provide semantic clarity
and enable targeted error handling throughout the application. Each exception
includes contextual information to aid debugging and observability.

Error Taxonomy:
    - Fetch-level (recoverable): TransportError, UnexpectedStatusError,
      DecodingError. The scheduler skips the cycle and waits for its next tick.
    - Parse-level (recoverable): MalformedDocumentError. Handled inside the
      extractor, which degrades to default field values.
    - Start-up (fatal): ConfigValidationError, ClientInitializationError,
      LoggingInitializationError.
"""

from datetime import UTC, datetime
from typing import Any


class CartTrackerError(Exception):
    """Base exception for all CartTracker errors.

    All custom exceptions inherit from this base, enabling blanket catches
    for application-specific errors while distinguishing from system errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional debugging information.
        timestamp: UTC timestamp when the exception was raised.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(UTC)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format exception message with context for logging."""
        base = f"[{self.timestamp.isoformat()}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} | Context: {context_str}"
        return base


class ConfigValidationError(CartTrackerError):
    """Raised when configuration validation fails.

    This exception indicates a critical startup failure - the application
    cannot proceed without valid configuration. The trading calendar raises
    it when the exchange timezone is unavailable on the host.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            message=f"Configuration validation failed for '{field}': {reason}",
            context={"field": field, "value": value, "reason": reason},
        )


class ClientInitializationError(CartTrackerError):
    """Raised when the HTTP request context fails to initialize.

    Common causes include a missing or broken Playwright driver installation.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize quote fetch client: {reason}",
            context={"reason": reason},
        )


class FetchError(CartTrackerError):
    """Base class for failures retrieving the quote page.

    Every subclass is recoverable: the current cycle is skipped and the
    next scheduled tick retries.
    """

    def __init__(
        self,
        url: str,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.url = url
        self.reason = reason
        super().__init__(
            message=f"Fetching '{url}' failed: {reason}",
            context={"url": url, "reason": reason, **(context or {})},
        )


class TransportError(FetchError):
    """Raised on connection failures and request timeouts."""


class UnexpectedStatusError(FetchError):
    """Raised when the quote page answers with a non-2xx status.

    Attributes:
        status_code: The HTTP status returned by the server.
    """

    def __init__(self, url: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            url=url,
            reason=f"HTTP {status_code}",
            context={"status_code": status_code},
        )


class DecodingError(FetchError):
    """Raised when the response body cannot be decoded as text."""

    def __init__(self, url: str, encoding: str, reason: str) -> None:
        self.encoding = encoding
        super().__init__(
            url=url,
            reason=f"Body is not valid {encoding}: {reason}",
            context={"encoding": encoding},
        )


class MalformedDocumentError(CartTrackerError):
    """Raised when the fetched markup cannot be parsed into a document.

    The extractor handles this itself and falls back to default fields,
    so it never reaches the scheduler.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Quote page markup could not be parsed: {reason}",
            context={"reason": reason},
        )


class StateStoreError(CartTrackerError):
    """Raised when the last-quote state file cannot be written."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to persist quote state at '{path}': {reason}",
            context={"path": path, "reason": reason},
        )


class LoggingInitializationError(CartTrackerError):
    """Raised when the logging system fails to initialize.

    This is a startup-blocking error - the application cannot proceed
    without a functioning logging infrastructure.
    """

    def __init__(self, log_dir: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to initialize logging at '{log_dir}': {reason}",
            context={"log_dir": log_dir, "reason": reason},
        )
