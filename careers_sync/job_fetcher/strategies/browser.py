"""
Headless-browser acquisition for careers pages rendered client-side.

Only the small ``BrowserDriver``/``BrowserPage`` surface touches the browser.
The scraper snapshots the rendered HTML once per attempt and runs the
extraction techniques from ``careers_sync.job_fetcher.extraction`` over it, so
tests can drive the whole flow with a fake driver.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from careers_sync.job_fetcher.extraction import DEFAULT_TECHNIQUES, ExtractionTechnique, PageSnapshot, extract_raw_jobs
from careers_sync.job_fetcher.fields import format_iso, utc_now
from careers_sync.job_fetcher.http import HttpClient
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import FetchMethod, RawJobData, SourceConfig
from careers_sync.job_fetcher.strategies.base import BaseFetchStrategy, StrategyError

LOGGER = logging.getLogger("careers_sync.strategies.browser")

DEFAULT_WAIT_SELECTOR = ".job-listing, .job-item, .career-listing"
DEFAULT_BROWSER_USER_AGENT = "CareersSync-Scraper/1.0"
DEFAULT_BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)
DEFAULT_NO_JOBS_TEXTS = (
    "No positions available",
    "No current openings",
    "No job opportunities",
    "We don't have any open positions",
)
DEFAULT_EXTRA_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}
BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})
VIEWPORT = {"width": 1280, "height": 720}


@dataclass(frozen=True)
class BrowserSettings:
    headless: bool = True
    timeout_ms: int = 30_000
    wait_for_selector: str = DEFAULT_WAIT_SELECTOR
    retries: int = 3
    debug: bool = False
    user_agent: str = DEFAULT_BROWSER_USER_AGENT
    browser_args: Sequence[str] = DEFAULT_BROWSER_ARGS
    screenshot_dir: str = "./temp"
    settle_ms: int = 2_000
    no_jobs_texts: Sequence[str] = DEFAULT_NO_JOBS_TEXTS


class BrowserPage(Protocol):
    def goto(self, url: str, timeout_ms: int) -> None: ...

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool: ...

    def wait_for_network_idle(self, timeout_ms: int) -> None: ...

    def wait(self, ms: int) -> None: ...

    def has_visible_text(self, text: str) -> bool: ...

    def content(self) -> str: ...

    def screenshot(self, path: str) -> None: ...

    def close(self) -> None: ...


class BrowserDriver(Protocol):
    def open_page(self) -> BrowserPage: ...

    def close(self) -> None: ...


DriverFactory = Callable[[BrowserSettings], BrowserDriver]


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------


def _block_heavy_resources(route: Any) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        route.abort()
    else:
        route.continue_()


class PlaywrightPage:
    def __init__(self, page: Any) -> None:
        self._page = page

    def goto(self, url: str, timeout_ms: int) -> None:
        self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        try:
            self._page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    def wait_for_network_idle(self, timeout_ms: int) -> None:
        self._page.wait_for_load_state("networkidle", timeout=timeout_ms)

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def has_visible_text(self, text: str) -> bool:
        from playwright.sync_api import Error as PlaywrightError

        try:
            return bool(self._page.get_by_text(text).first.is_visible())
        except PlaywrightError:
            return False

    def content(self) -> str:
        return self._page.content()

    def screenshot(self, path: str) -> None:
        self._page.screenshot(path=path, full_page=True)

    def close(self) -> None:
        self._page.close()


class PlaywrightDriver:
    """Chromium session: one browser and one context, pages opened on demand."""

    def __init__(self, settings: BrowserSettings) -> None:
        from playwright.sync_api import sync_playwright

        self._settings = settings
        self._pw = sync_playwright().start()
        try:
            self._browser = self._pw.chromium.launch(
                headless=settings.headless,
                args=list(settings.browser_args),
            )
            self._context = self._browser.new_context(
                user_agent=settings.user_agent,
                viewport=dict(VIEWPORT),
                ignore_https_errors=True,
                extra_http_headers=dict(DEFAULT_EXTRA_HEADERS),
            )
        except Exception:
            self._pw.stop()
            raise

    def open_page(self) -> BrowserPage:
        page = self._context.new_page()
        page.set_default_timeout(self._settings.timeout_ms)
        page.set_default_navigation_timeout(self._settings.timeout_ms)
        page.route("**/*", _block_heavy_resources)
        return PlaywrightPage(page)

    def close(self) -> None:
        try:
            self._context.close()
            self._browser.close()
        finally:
            self._pw.stop()


# ---------------------------------------------------------------------------
# Scraper
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BrowserScrapeResult:
    raw_jobs: Tuple[RawJobData, ...]
    success: bool
    url: str
    scraped_at: str
    technique: str = "none"
    attempts: int = 0
    error: Optional[str] = None
    screenshot_path: Optional[str] = None

    @property
    def total_count(self) -> int:
        return len(self.raw_jobs)


def _close_resource(resource: Any, kind: str) -> None:
    if resource is None:
        return
    try:
        resource.close()
    except Exception as e:
        log_event(
            LOGGER,
            logging.DEBUG,
            "browser_close_failed",
            resource=kind,
            error_type=type(e).__name__,
            error=str(e),
        )


class BrowserScraper:
    """Render the careers page in a browser and extract raw job records."""

    def __init__(
        self,
        settings: Optional[BrowserSettings] = None,
        *,
        driver_factory: DriverFactory = PlaywrightDriver,
        techniques: Sequence[ExtractionTechnique] = DEFAULT_TECHNIQUES,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings or BrowserSettings()
        self._logger = logger or LOGGER
        self._driver_factory = driver_factory
        self._techniques = tuple(techniques)
        self._sleep = sleep
        self._now = now

    @property
    def settings(self) -> BrowserSettings:
        return self._settings

    def settings_for(self, config: SourceConfig) -> BrowserSettings:
        """Scraper settings with the source's own timeout and retry count applied."""
        overrides = {}
        if config.timeout_ms is not None:
            overrides["timeout_ms"] = config.timeout_ms
        if config.retries is not None:
            overrides["retries"] = config.retries
        return replace(self._settings, **overrides) if overrides else self._settings

    def scrape(self, config: SourceConfig) -> BrowserScrapeResult:
        """
        Scrape with retries. Never raises; exhaustion is reported as
        ``success=False`` carrying the last attempt's error.
        """

        settings = self.settings_for(config)
        url = config.careers_page_url()
        scraped_at = format_iso(self._now())
        retries = max(1, int(settings.retries))
        last_error = "All retry attempts exhausted"

        for attempt in range(1, retries + 1):
            driver: Optional[BrowserDriver] = None
            page: Optional[BrowserPage] = None
            try:
                driver = self._driver_factory(settings)
                page = driver.open_page()
                page.goto(url, settings.timeout_ms)
                technique, raw_jobs = self._extract(page, url, settings)
                screenshot_path = self._debug_screenshot(page, config.company_id, settings) if settings.debug else None
                log_event(
                    self._logger,
                    logging.INFO,
                    "browser_scrape_succeeded",
                    url=url,
                    attempt=attempt,
                    technique=technique,
                    count=len(raw_jobs),
                )
                return BrowserScrapeResult(
                    raw_jobs=tuple(raw_jobs),
                    success=True,
                    url=url,
                    scraped_at=scraped_at,
                    technique=technique,
                    attempts=attempt,
                    screenshot_path=screenshot_path,
                )
            except Exception as e:
                last_error = str(e) or type(e).__name__
                log_event(
                    self._logger,
                    logging.WARNING,
                    "browser_attempt_failed",
                    url=url,
                    attempt=attempt,
                    retries=retries,
                    error_type=type(e).__name__,
                    error=last_error,
                )
            finally:
                _close_resource(page, "page")
                _close_resource(driver, "driver")

            if attempt < retries:
                self._sleep(1.0 * attempt)

        return BrowserScrapeResult(
            raw_jobs=(),
            success=False,
            url=url,
            scraped_at=scraped_at,
            attempts=retries,
            error=last_error,
        )

    def _wait_for_listings(self, page: BrowserPage, settings: BrowserSettings) -> None:
        if page.wait_for_selector(settings.wait_for_selector, settings.timeout_ms):
            return
        log_event(self._logger, logging.DEBUG, "browser_selector_not_found", selector=settings.wait_for_selector)
        page.wait_for_network_idle(settings.timeout_ms)
        page.wait(settings.settle_ms)

    def _extract(self, page: BrowserPage, url: str, settings: BrowserSettings) -> Tuple[str, List[RawJobData]]:
        self._wait_for_listings(page, settings)
        for text in settings.no_jobs_texts:
            if text and page.has_visible_text(text):
                log_event(self._logger, logging.INFO, "browser_no_jobs_marker", url=url, marker=text)
                return "no-jobs", []
        return extract_raw_jobs(PageSnapshot(page.content()), url, self._techniques)

    def _debug_screenshot(self, page: BrowserPage, company_id: str, settings: BrowserSettings) -> Optional[str]:
        stamp = format_iso(self._now()).replace(":", "-").replace(".", "-")
        path = os.path.join(settings.screenshot_dir, f"scrape-debug-{company_id}-{stamp}.png")
        try:
            os.makedirs(settings.screenshot_dir, exist_ok=True)
            page.screenshot(path)
        except Exception as e:
            log_event(
                self._logger,
                logging.WARNING,
                "browser_screenshot_failed",
                path=path,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        return path


class BrowserFetchStrategy(BaseFetchStrategy):
    def __init__(self, scraper: BrowserScraper) -> None:
        self._scraper = scraper

    @property
    def name(self) -> FetchMethod:
        return "browser"

    def can_handle(self, config: SourceConfig) -> bool:
        return bool(config.company_id or config.careers_url)

    def fetch_jobs(self, config: SourceConfig, http: HttpClient) -> List[RawJobData]:
        result = self._scraper.scrape(config)
        if not result.success:
            raise StrategyError(f"Browser scraping failed: {result.error}")
        return list(result.raw_jobs)
