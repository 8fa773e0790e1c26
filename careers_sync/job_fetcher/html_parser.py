from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from careers_sync.job_fetcher.fields import generate_job_id, parse_datetime, to_iso_string
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import RawJobData

LOGGER = logging.getLogger("careers_sync.html_parser")

DESCRIPTION_MAX_LENGTH = 500
_COMPANY_ID_RE = re.compile(r"/careers/([a-f0-9-]+)/", re.IGNORECASE)


@dataclass(frozen=True)
class HtmlParsingConfig:
    job_selectors: Sequence[str] = (
        ".job-listing",
        ".career-item",
        ".position-card",
        "[data-job-id]",
        ".opportunity",
        "article.job",
        ".job-post",
        ".job-item",
        ".position",
        ".opening",
    )
    title_selectors: Sequence[str] = (
        "h1",
        "h2",
        "h3",
        "h4",
        ".job-title",
        ".title",
        ".position-title",
        '[class*="title"]',
        ".heading",
    )
    department_selectors: Sequence[str] = (
        ".department",
        ".category",
        '[class*="department"]',
        ".job-category",
        ".division",
        ".team",
    )
    location_selectors: Sequence[str] = (
        ".location",
        ".job-location",
        '[class*="location"]',
        ".city",
        ".office",
        ".workplace",
    )
    type_selectors: Sequence[str] = (
        ".employment-type",
        ".job-type",
        '[class*="type"]',
        ".schedule",
        ".commitment",
        ".contract-type",
    )
    description_selectors: Sequence[str] = (
        ".description",
        ".summary",
        '[class*="description"]',
        ".job-summary",
        ".overview",
        ".details",
    )
    date_selectors: Sequence[str] = (
        ".posted-date",
        ".date",
        '[class*="posted"]',
        "time",
        ".created-date",
        ".publish-date",
    )
    apply_url_selectors: Sequence[str] = (
        'a[href*="apply"]',
        "a.apply-button",
        '[class*="apply"] a',
        ".apply-link",
        ".application-link",
    )
    id_attributes: Sequence[str] = ("data-job-id", "id", "data-id", "data-position-id")


def _text_of(element: Tag, selectors: Sequence[str]) -> str:
    for selector in selectors:
        found = element.select_one(selector)
        if found is None:
            continue
        text = found.get_text(" ", strip=True)
        if text:
            return text
    return ""


def _attr(element: Tag, name: str) -> Optional[str]:
    value: Any = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class HtmlParser:
    """Pull job cards out of a server-rendered careers page."""

    def __init__(self, config: Optional[HtmlParsingConfig] = None) -> None:
        self._config = config or HtmlParsingConfig()

    @property
    def config(self) -> HtmlParsingConfig:
        return self._config

    def parse_jobs_from_html(self, html: str, base_url: str) -> List[RawJobData]:
        soup = BeautifulSoup(html or "", "html.parser")
        jobs: List[RawJobData] = []

        for selector in self._config.job_selectors:
            for element in soup.select(selector):
                job = self._extract_job(element, base_url)
                if job is not None and job.get("title"):
                    jobs.append(job)
            if jobs:
                break

        return jobs

    def _extract_job(self, element: Tag, base_url: str) -> Optional[RawJobData]:
        try:
            title = _text_of(element, self._config.title_selectors)
            job_id = self._extract_id(element, title)
            job: RawJobData = {
                "id": job_id,
                "title": title,
                "department": _text_of(element, self._config.department_selectors),
                "location": _text_of(element, self._config.location_selectors),
                "type": _text_of(element, self._config.type_selectors),
                "description": self._extract_description(element),
                "apply_url": self._extract_apply_url(element, base_url, job_id),
            }
            posted_date = self._extract_date(element)
            if posted_date:
                job["posted_date"] = posted_date
            return job
        except Exception as e:
            log_event(
                LOGGER,
                logging.WARNING,
                "html_job_extract_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    def _extract_id(self, element: Tag, title: str) -> str:
        for name in self._config.id_attributes:
            value = _attr(element, name)
            if value:
                return value
        return generate_job_id(title)

    def _extract_description(self, element: Tag) -> str:
        description = _text_of(element, self._config.description_selectors)
        if len(description) > DESCRIPTION_MAX_LENGTH:
            return description[:DESCRIPTION_MAX_LENGTH].strip() + "..."
        return description

    def _extract_date(self, element: Tag) -> str:
        for selector in self._config.date_selectors:
            found = element.select_one(selector)
            if found is None:
                continue
            stamp = _attr(found, "datetime")
            if stamp:
                return stamp
            text = found.get_text(" ", strip=True)
            if text and parse_datetime(text) is not None:
                return to_iso_string(text)
        return ""

    def _extract_apply_url(self, element: Tag, base_url: str, job_id: str) -> str:
        for selector in self._config.apply_url_selectors:
            found = element.select_one(selector)
            if found is None:
                continue
            href = _attr(found, "href")
            if href:
                return urljoin(base_url, href)
        return default_apply_url(job_id, base_url)


def default_apply_url(job_id: str, base_url: str) -> str:
    parts = urlsplit(base_url)
    if not parts.scheme or not parts.netloc:
        return ""
    match = _COMPANY_ID_RE.search(parts.path + "/")
    if match:
        return f"{parts.scheme}://{parts.netloc}/careers/{match.group(1)}/apply/{job_id}"
    return f"{parts.scheme}://{parts.netloc}/apply/{job_id}"


def create_html_parser(**overrides: Any) -> HtmlParser:
    return HtmlParser(replace(HtmlParsingConfig(), **overrides) if overrides else None)
