from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from careers_sync.job_fetcher.http import HttpClient
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import FetchMethod, RawJobData, SourceConfig
from careers_sync.job_fetcher.strategies.base import BaseFetchStrategy, StrategyError

LOGGER = logging.getLogger("careers_sync.strategies.html")

DEFAULT_NO_JOBS_PHRASES = (
    "no positions available",
    "no current openings",
    "no job availabilities",
    "no opportunities",
)


class JobHtmlParser(Protocol):
    def parse_jobs_from_html(self, html: str, base_url: str) -> List[RawJobData]: ...


def contains_no_jobs_phrase(body: str, phrases: Sequence[str]) -> bool:
    lowered = (body or "").lower()
    return any(phrase.lower() in lowered for phrase in phrases if phrase)


class HtmlFetchStrategy(BaseFetchStrategy):
    """Download the careers page over HTTP and parse job cards from its markup."""

    def __init__(
        self,
        parser: JobHtmlParser,
        *,
        no_jobs_phrases: Optional[Sequence[str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._parser = parser
        self._logger = logger or LOGGER
        self._no_jobs_phrases = tuple(no_jobs_phrases or DEFAULT_NO_JOBS_PHRASES)

    @property
    def name(self) -> FetchMethod:
        return "html"

    def can_handle(self, config: SourceConfig) -> bool:
        return bool(config.careers_url)

    def fetch_jobs(self, config: SourceConfig, http: HttpClient) -> List[RawJobData]:
        careers_url = config.careers_page_url()
        response = http.get(careers_url, {"Accept": "text/html,application/xhtml+xml"})
        if not response.success:
            raise StrategyError("HTML page not accessible")

        jobs = self._parser.parse_jobs_from_html(response.data, careers_url)

        # A no-openings marker overrides whatever the parser matched.
        if contains_no_jobs_phrase(response.data, self._no_jobs_phrases):
            log_event(
                self._logger,
                logging.INFO,
                "html_no_jobs_marker",
                url=careers_url,
                parsed_count=len(jobs),
            )
            return []

        return jobs
