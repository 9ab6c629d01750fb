"""Quote extraction from the quote page markup.

The quote page streams live values through custom elements scoped to a
symbol, for example::

    <fin-streamer data-symbol="CART" data-field="regularMarketPrice">31.20</fin-streamer>
    <fin-streamer data-symbol="CART" data-field="regularMarketChange">+0.45</fin-streamer>
    <div id="quote-market-notice">At close: 4:00PM EDT</div>

Extraction is keyed on the ``data-field`` attribute rather than element
position, so unrelated markup changes do not disturb it and unknown
fields are ignored.

Design Rationale:
    extract() is total. A document that cannot be parsed and a page with
    none of the expected elements both produce a QuoteUpdate holding the
    default price and change. Fetch-level failures are a separate concern
    handled by the scheduler.
"""

from bs4 import BeautifulSoup, Tag

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import MalformedDocumentError
from carttracker.logger import get_logger
from carttracker.validator import QuoteMonitor, QuoteUpdate

log = get_logger(__name__)

STREAMER_TAG = "fin-streamer"
FIELD_ATTRIBUTE = "data-field"
SYMBOL_ATTRIBUTE = "data-symbol"
PRICE_FIELD = "regularMarketPrice"
CHANGE_FIELD = "regularMarketChange"
NOTICE_ELEMENT_ID = "quote-market-notice"
HTML_PARSER = "html.parser"


def _element_text(element: Tag) -> str:
    """Trimmed element text with internal whitespace collapsed."""
    return " ".join(element.get_text().split())


class QuoteExtractor:
    """Turns quote page HTML into a QuoteUpdate for a single symbol.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        monitor: QuoteMonitor tracking priceless extractions.

    Example:
        extractor = QuoteExtractor()
        update = extractor.extract(html)
        print(update.title)
    """

    def __init__(
        self,
        config: GlobalConfig | None = None,
        monitor: QuoteMonitor | None = None,
    ) -> None:
        """Initialize extractor with configuration.

        Args:
            config: Optional GlobalConfig. Uses singleton if not provided.
            monitor: Optional QuoteMonitor. A fresh one is created if not provided.
        """
        self.config = config or get_config()
        self.monitor = monitor or QuoteMonitor(self.config)

    @property
    def symbol(self) -> str:
        return self.config.symbol

    @property
    def selector(self) -> str:
        """CSS selector matching the streaming elements of the tracked symbol."""
        return f'{STREAMER_TAG}[{SYMBOL_ATTRIBUTE}="{self.symbol}"]'

    def extract(self, html: str) -> QuoteUpdate:
        """Extract the quote from a page, never failing the caller.

        Args:
            html: Decoded page markup.

        Returns:
            QuoteUpdate with whatever fields the page provided; missing
            price and change fall back to their defaults.
        """
        try:
            document = self._parse_document(html)
        except MalformedDocumentError as exc:
            log.warning(
                "Malformed quote page, publishing defaults",
                symbol=self.symbol,
                error=exc.message,
            )
            update = QuoteUpdate(symbol=self.symbol)
        else:
            update = self._extract_from_document(document)

        self.monitor.record(update)
        return update

    def _parse_document(self, html: str) -> BeautifulSoup:
        """Parse markup into a document tree.

        Raises:
            MalformedDocumentError: If the parser rejects the input.
        """
        try:
            return BeautifulSoup(html, HTML_PARSER)
        except Exception as exc:
            raise MalformedDocumentError(reason=f"{type(exc).__name__}: {exc}") from exc

    def _extract_from_document(self, document: BeautifulSoup) -> QuoteUpdate:
        price: str | None = None
        delta: str | None = None

        elements = self._select_streamers(document)
        log.debug(
            "Streaming elements matched",
            selector=self.selector,
            count=len(elements),
        )

        for element in elements:
            field = element.get(FIELD_ATTRIBUTE)
            if field == PRICE_FIELD:
                price = self._read_text(element, field)
            elif field == CHANGE_FIELD:
                delta = self._read_text(element, field)

        notice = self._extract_notice(document)

        update = QuoteUpdate(
            symbol=self.symbol,
            price=price,
            delta=delta,
            market_notice=notice,
        )

        log.debug(
            "Quote extracted",
            symbol=update.symbol,
            price=update.price,
            delta=update.delta,
            market_notice=update.market_notice,
        )
        return update

    def _select_streamers(self, document: BeautifulSoup) -> list[Tag]:
        try:
            return document.select(self.selector)
        except Exception as exc:
            log.warning(
                "Streaming element selection failed",
                selector=self.selector,
                error=str(exc),
            )
            return []

    def _read_text(self, element: Tag, field: str) -> str | None:
        try:
            return _element_text(element)
        except Exception as exc:
            log.warning("Could not read field text", field=field, error=str(exc))
            return None

    def _extract_notice(self, document: BeautifulSoup) -> str | None:
        """Read the market notice, or None when the page shows none."""
        notice = document.find(id=NOTICE_ELEMENT_ID)
        if not isinstance(notice, Tag):
            return None
        return self._read_text(notice, NOTICE_ELEMENT_ID)
