from careers_sync.job_fetcher.strategies.base import BaseFetchStrategy, StrategyError
from careers_sync.job_fetcher.strategies.browser import BrowserFetchStrategy, BrowserScraper, BrowserSettings
from careers_sync.job_fetcher.strategies.html import HtmlFetchStrategy

__all__ = [
    "BaseFetchStrategy",
    "BrowserFetchStrategy",
    "BrowserScraper",
    "BrowserSettings",
    "HtmlFetchStrategy",
    "StrategyError",
]
