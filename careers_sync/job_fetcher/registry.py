from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from careers_sync.config.settings import Settings
from careers_sync.job_fetcher.html_parser import HtmlParser
from careers_sync.job_fetcher.strategies import (
    BaseFetchStrategy,
    BrowserFetchStrategy,
    BrowserScraper,
    BrowserSettings,
    HtmlFetchStrategy,
)
from careers_sync.job_fetcher.strategies.browser import DEFAULT_NO_JOBS_TEXTS


def browser_settings(settings: Settings) -> BrowserSettings:
    scraper = settings.scraper
    phrases = settings.source.no_jobs_phrase_list
    return BrowserSettings(
        headless=scraper.headless,
        timeout_ms=scraper.timeout_ms,
        wait_for_selector=scraper.wait_for_selector,
        retries=scraper.retries,
        debug=scraper.debug,
        user_agent=scraper.user_agent,
        screenshot_dir=scraper.screenshot_dir,
        no_jobs_texts=tuple(phrases) if phrases else DEFAULT_NO_JOBS_TEXTS,
    )


def available_strategies(settings: Settings) -> Dict[str, BaseFetchStrategy]:
    html = HtmlFetchStrategy(HtmlParser(), no_jobs_phrases=settings.source.no_jobs_phrase_list or None)
    browser = BrowserFetchStrategy(BrowserScraper(browser_settings(settings)))
    return {"html": html, "browser": browser}


def build_enabled_strategies(settings: Settings, names: Optional[Sequence[str]] = None) -> List[BaseFetchStrategy]:
    """Strategies in priority order; unknown names are ignored."""

    registry = available_strategies(settings)
    enabled = [n.strip().lower() for n in names] if names is not None else settings.source.strategy_names
    out: List[BaseFetchStrategy] = []
    for name in enabled:
        strategy = registry.get(name)
        if strategy is not None and strategy not in out:
            out.append(strategy)
    return out
