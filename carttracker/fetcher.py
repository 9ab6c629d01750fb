"""Quote page retrieval through Playwright's API request context.

A plain HTTP GET is all the quote page needs, so no browser is launched:
Playwright's APIRequestContext issues the request directly while keeping
the same driver, timeout and header handling as browser navigation.

Each call:
- is bounded by the configured request timeout
- asks every cache on the way to revalidate with the origin
- is attempted exactly once; retrying is the scheduler's business

Failures surface as FetchError subclasses so the caller can skip the
cycle with a single except clause.
"""

import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Self

from playwright.async_api import (
    APIRequestContext,
    APIResponse,
    Error as PlaywrightError,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import (
    ClientInitializationError,
    DecodingError,
    TransportError,
    UnexpectedStatusError,
)
from carttracker.logger import get_logger

log = get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, max-age=0",
    "Pragma": "no-cache",
}

ACCEPT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class QuoteFetcher:
    """Manages the Playwright request context used to fetch the quote page.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        _playwright: Playwright instance (initialized on context entry).
        _request: APIRequestContext issuing the GET requests.

    Example:
        async with QuoteFetcher.create() as client:
            html = await client.fetch()
    """

    def __init__(self, config: GlobalConfig) -> None:
        """Initialize QuoteFetcher with configuration.

        Args:
            config: GlobalConfig instance containing request settings.

        Note:
            Do not instantiate directly. Use the `create()` class method
            so the request context is disposed of on exit.
        """
        self.config = config
        self._playwright: Playwright | None = None
        self._request: APIRequestContext | None = None
        self._user_agent: str = self._select_user_agent()

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Factory method with async context manager for lifecycle management.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.

        Yields:
            Initialized QuoteFetcher instance.

        Raises:
            ClientInitializationError: If the request context cannot start.
        """
        if config is None:
            config = get_config()

        instance = cls(config)
        try:
            await instance._initialize()
            yield instance
        finally:
            await instance._cleanup()

    def _select_user_agent(self) -> str:
        return random.choice(self.config.user_agents)

    async def _initialize(self) -> None:
        """Start Playwright and open the request context.

        Raises:
            ClientInitializationError: If any initialization step fails.
        """
        log.info("Initializing quote fetch client")

        try:
            self._playwright = await async_playwright().start()
            self._request = await self._playwright.request.new_context(
                user_agent=self._user_agent,
                extra_http_headers={**ACCEPT_HEADERS, **NO_CACHE_HEADERS},
                timeout=self.config.request_timeout_ms,
            )
            log.info(
                "Quote fetch client initialized",
                user_agent=self._user_agent[:50] + "...",
                timeout_ms=self.config.request_timeout_ms,
            )

        except Exception as exc:
            await self._cleanup()
            raise ClientInitializationError(reason=str(exc)) from exc

    async def fetch(self, url: str | None = None) -> str:
        """Retrieve the quote page once and return its decoded text.

        Args:
            url: Page to fetch. Defaults to the configured quote URL.

        Returns:
            Response body decoded with the configured encoding.

        Raises:
            ClientInitializationError: If the client was not initialized.
            TransportError: On connection failure or timeout.
            UnexpectedStatusError: On any non-2xx response.
            DecodingError: If the body is not valid in the expected encoding.
        """
        if self._request is None:
            raise ClientInitializationError(reason="Request context not initialized")

        target = url or self.config.quote_url
        timeout_ms = self.config.request_timeout_ms

        log.debug("Fetching quote page", url=target, timeout_ms=timeout_ms)

        try:
            response = await self._request.get(
                target,
                headers=NO_CACHE_HEADERS,
                timeout=timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise TransportError(
                url=target, reason=f"Request timeout after {timeout_ms}ms"
            ) from exc
        except PlaywrightError as exc:
            raise TransportError(url=target, reason=str(exc)) from exc

        try:
            body = await self._read_body(target, response)
        finally:
            await response.dispose()

        return self._decode(target, body)

    async def _read_body(self, url: str, response: APIResponse) -> bytes:
        if not response.ok:
            raise UnexpectedStatusError(url=url, status_code=response.status)

        try:
            body = await response.body()
        except PlaywrightError as exc:
            raise TransportError(url=url, reason=f"Body read failed: {exc}") from exc

        log.debug(
            "Quote page received",
            url=url,
            status_code=response.status,
            size_bytes=len(body),
        )
        return body

    def _decode(self, url: str, body: bytes) -> str:
        encoding = self.config.response_encoding
        try:
            return body.decode(encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            raise DecodingError(url=url, encoding=encoding, reason=str(exc)) from exc

    async def _cleanup(self) -> None:
        """Release the request context and stop Playwright."""
        if self._request is not None:
            try:
                await self._request.dispose()
            except Exception as exc:
                log.warning("Error disposing request context", error=str(exc))
            self._request = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

        log.info("Quote fetch client resources cleaned up")

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def is_initialized(self) -> bool:
        """Check if the client is ready to fetch."""
        return self._playwright is not None and self._request is not None
