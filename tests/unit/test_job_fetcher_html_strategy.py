from __future__ import annotations

import httpx
import pytest

from careers_sync.job_fetcher.html_parser import HtmlParser
from careers_sync.job_fetcher.http import HttpClient
from careers_sync.job_fetcher.models import SourceConfig
from careers_sync.job_fetcher.strategies.base import StrategyError
from careers_sync.job_fetcher.strategies.html import HtmlFetchStrategy, contains_no_jobs_phrase

CAREERS_URL = "https://drivehris.app/careers/abc123/list"


def _make_http(handler) -> HttpClient:
    return HttpClient(
        user_agent="TestAgent/1.0",
        max_retries=0,
        transport=httpx.MockTransport(handler),
        sleep=lambda _s: None,
    )


class StubParser:
    def __init__(self, jobs):
        self.jobs = jobs
        self.calls = []

    def parse_jobs_from_html(self, html, base_url):
        self.calls.append(base_url)
        return list(self.jobs)


def test_can_handle_requires_careers_url():
    strategy = HtmlFetchStrategy(StubParser([]))
    assert strategy.name == "html"
    assert strategy.can_handle(SourceConfig(company_id="abc123", careers_url=CAREERS_URL))
    assert not strategy.can_handle(SourceConfig(company_id="abc123"))


def test_fetches_page_with_html_accept_header_and_parses(careers_fixture):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers.get("Accept")
        seen["user_agent"] = request.headers.get("User-Agent")
        return httpx.Response(200, text=careers_fixture("careers_list.html"), headers={"Content-Type": "text/html"})

    http = _make_http(handler)
    try:
        jobs = HtmlFetchStrategy(HtmlParser()).fetch_jobs(SourceConfig("abc123", careers_url=CAREERS_URL), http)
    finally:
        http.close()

    assert seen["accept"] == "text/html,application/xhtml+xml"
    assert seen["user_agent"] == "TestAgent/1.0"
    assert [j["title"] for j in jobs] == ["Senior Software Engineer", "Marketing Coordinator"]


def test_no_openings_phrase_overrides_parser_output(careers_fixture):
    parser = StubParser([{"title": "Should be ignored"}])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=careers_fixture("no_openings.html"))

    http = _make_http(handler)
    try:
        jobs = HtmlFetchStrategy(parser).fetch_jobs(SourceConfig("abc123", careers_url=CAREERS_URL), http)
    finally:
        http.close()

    assert jobs == []
    assert parser.calls == [CAREERS_URL]


@pytest.mark.parametrize(
    "phrase",
    ["No positions available", "no current openings", "NO JOB AVAILABILITIES", "No Opportunities"],
)
def test_default_phrases_match_case_insensitively(phrase):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=f"<html><body><p>{phrase} right now.</p></body></html>")

    http = _make_http(handler)
    try:
        jobs = HtmlFetchStrategy(StubParser([{"title": "x"}])).fetch_jobs(
            SourceConfig("abc123", careers_url=CAREERS_URL), http
        )
    finally:
        http.close()

    assert jobs == []


def test_custom_phrases_replace_defaults():
    assert contains_no_jobs_phrase("<p>Keine offenen Stellen</p>", ["keine offenen stellen"])
    assert not contains_no_jobs_phrase("<p>No current openings</p>", ["keine offenen stellen"])


def test_non_success_status_raises_strategy_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not found")

    http = _make_http(handler)
    try:
        with pytest.raises(StrategyError, match="HTML page not accessible"):
            HtmlFetchStrategy(StubParser([])).fetch_jobs(SourceConfig("abc123", careers_url=CAREERS_URL), http)
    finally:
        http.close()
