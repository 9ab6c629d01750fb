"""CartTracker core source package.

This package contains the market-aware quote polling pipeline:
- market_hours: Trading calendar (session window, next market open)
- fetcher: Playwright API request client for the quote page
- extractor: BeautifulSoup extraction of price, change and market notice
- publisher: Typed publish/subscribe channel for quote updates
- scheduler: Polling state machine driving fetch-and-publish cycles
- store: JSON persistence of the last published quote
- validator: Pydantic quote schema and layout Watchdog
- logger: Structured JSON logging configuration
- exceptions: Custom exception hierarchy
"""

__version__ = "1.0.0"
