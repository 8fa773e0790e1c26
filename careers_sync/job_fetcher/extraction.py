"""
Job extraction from a rendered careers page.

The browser strategy snapshots the rendered DOM once and hands it to the
techniques below, so none of this code has to run inside the page. Techniques
are tried in order and the first one that yields at least one record wins:

1. structured job cards found through a fixed list of container selectors;
2. schema.org ``JobPosting`` objects embedded as JSON-LD;
3. a free-text scan for role-title-like phrases.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from careers_sync.job_fetcher.models import RawJobData

STRUCTURED_JOB_SELECTORS = (
    ".job-listing",
    ".job-item",
    ".career-listing",
    ".position",
    ".opening",
    "[data-job]",
    ".job-card",
)
TITLE_SELECTORS = ("h1", "h2", "h3", ".title", ".job-title", ".position-title")
LOCATION_SELECTORS = (".location", ".job-location", ".city", "[data-location]")
DEPARTMENT_SELECTORS = (".department", ".category", ".team", "[data-department]")
DESCRIPTION_SELECTORS = (".description", ".summary", ".job-description", "p")

JOB_TITLE_PATTERN = re.compile(
    r"(?:engineer|developer|manager|analyst|specialist|coordinator|director|lead|senior|junior)\s+[a-z ]{5,50}",
    re.IGNORECASE,
)
PATTERN_MATCH_LIMIT = 20
PATTERN_DESCRIPTION = "Job details extracted from page content"

_ID_CHAR_RE = re.compile(r"[^a-z0-9]")


class ElementReader(Protocol):
    def select(self, selector: str) -> List["ElementReader"]: ...

    def select_one(self, selector: str) -> Optional["ElementReader"]: ...

    def text(self) -> str: ...

    def attr(self, name: str) -> Optional[str]: ...


class PageReader(Protocol):
    def query_all(self, selector: str) -> List[ElementReader]: ...

    def script_blocks(self, script_type: str) -> List[str]: ...

    def visible_text(self) -> str: ...


class SoupElement:
    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def select(self, selector: str) -> List[ElementReader]:
        return [SoupElement(t) for t in self._tag.select(selector)]

    def select_one(self, selector: str) -> Optional[ElementReader]:
        found = self._tag.select_one(selector)
        return SoupElement(found) if found is not None else None

    def text(self) -> str:
        return self._tag.get_text(" ", strip=True)

    def attr(self, name: str) -> Optional[str]:
        value: Any = self._tag.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value if isinstance(value, str) else None


class PageSnapshot:
    """Read-only view over the HTML of a rendered page."""

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html or "", "html.parser")

    def query_all(self, selector: str) -> List[ElementReader]:
        return [SoupElement(t) for t in self._soup.select(selector)]

    def script_blocks(self, script_type: str) -> List[str]:
        blocks: List[str] = []
        for script in self._soup.find_all("script"):
            if str(script.get("type") or "").strip().lower() != script_type:
                continue
            blocks.append(script.string or script.get_text())
        return blocks

    def visible_text(self) -> str:
        soup = BeautifulSoup(str(self._soup), "html.parser")
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()
        root = soup.body or soup
        # Text nodes are concatenated as-is, so inline markup does not split a phrase.
        return root.get_text()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _first_text(element: ElementReader, selectors: Sequence[str]) -> str:
    for selector in selectors:
        found = element.select_one(selector)
        if found is None:
            continue
        text = found.text()
        if text:
            return text
    return ""


def _scraped_id(prefix: str, title: str, now_ms: int, index: int) -> str:
    return f"{prefix}-{_ID_CHAR_RE.sub('-', title.lower())}-{now_ms}-{index}"


# ---------------------------------------------------------------------------
# Structured elements
# ---------------------------------------------------------------------------


def _job_from_element(element: ElementReader, base_url: str, index: int, now_ms: int) -> RawJobData:
    title = _first_text(element, TITLE_SELECTORS)
    job: RawJobData = {
        "title": title,
        "location": _first_text(element, LOCATION_SELECTORS),
        "department": _first_text(element, DEPARTMENT_SELECTORS),
        "description": _first_text(element, DESCRIPTION_SELECTORS),
        "apply_url": "",
    }
    link = element.select_one("a[href]")
    href = link.attr("href") if link is not None else None
    if href and href.strip():
        job["apply_url"] = urljoin(base_url, href.strip())
    if title:
        job["id"] = _scraped_id("scraped", title, now_ms, index)
    return job


def extract_from_structured_elements(
    page: PageReader,
    base_url: str,
    selectors: Sequence[str] = STRUCTURED_JOB_SELECTORS,
) -> List[RawJobData]:
    now_ms = _now_ms()
    jobs: List[RawJobData] = []
    for selector in selectors:
        for index, element in enumerate(page.query_all(selector)):
            job = _job_from_element(element, base_url, index, now_ms)
            if job["title"]:
                jobs.append(job)
        if jobs:
            break
    return jobs


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _is_jobposting(d: Dict[str, Any]) -> bool:
    t = d.get("@type")
    if isinstance(t, str):
        types = [t]
    elif isinstance(t, list):
        types = [x for x in t if isinstance(x, str)]
    else:
        types = []
    return any(x.lower() == "jobposting" for x in types)


def _iter_candidates(parsed: Any) -> Iterable[Dict[str, Any]]:
    items = parsed if isinstance(parsed, list) else [parsed]
    for item in items:
        if not isinstance(item, dict):
            continue
        yield item
        graph = item.get("@graph")
        if isinstance(graph, list):
            for member in graph:
                if isinstance(member, dict):
                    yield member


def _ld_str(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        for key in ("value", "name", "@id"):
            inner = value.get(key)
            if isinstance(inner, (str, int)) and not isinstance(inner, bool):
                return str(inner).strip()
        return ""
    if isinstance(value, list):
        return ", ".join(s for s in (_ld_str(v) for v in value) if s)
    return ""


def _ld_location(posting: Dict[str, Any]) -> str:
    location = posting.get("jobLocation")
    candidates = location if isinstance(location, list) else [location]
    for candidate in candidates:
        if isinstance(candidate, str):
            return candidate.strip()
        if not isinstance(candidate, dict):
            continue
        address = candidate.get("address")
        if isinstance(address, dict):
            locality = _ld_str(address.get("addressLocality"))
            if locality:
                return locality
        elif isinstance(address, str) and address.strip():
            return address.strip()
    return ""


def _ld_department(posting: Dict[str, Any]) -> str:
    org = posting.get("hiringOrganization")
    if isinstance(org, dict):
        name = _ld_str(org.get("name"))
        if name:
            return name
    elif isinstance(org, str) and org.strip():
        return org.strip()
    return _ld_str(posting.get("department"))


def jsonld_to_raw_job(posting: Dict[str, Any]) -> RawJobData:
    return {
        "id": _ld_str(posting.get("identifier")) or _ld_str(posting.get("id")),
        "title": _ld_str(posting.get("title")),
        "description": _ld_str(posting.get("description")),
        "location": _ld_location(posting),
        "department": _ld_department(posting),
        "type": _ld_str(posting.get("employmentType")),
        "posted_date": _ld_str(posting.get("datePosted")),
        "apply_url": _ld_str(posting.get("url")) or _ld_str(posting.get("applicationUrl")),
    }


def extract_from_json_ld(page: PageReader, base_url: str = "") -> List[RawJobData]:
    jobs: List[RawJobData] = []
    for block in page.script_blocks("application/ld+json"):
        try:
            parsed = json.loads(block)
        except (TypeError, ValueError):
            continue
        for candidate in _iter_candidates(parsed):
            if _is_jobposting(candidate):
                jobs.append(jsonld_to_raw_job(candidate))
    return jobs


# ---------------------------------------------------------------------------
# Free-text patterns
# ---------------------------------------------------------------------------


def extract_from_text_patterns(
    page: PageReader,
    base_url: str = "",
    *,
    pattern: "re.Pattern[str]" = JOB_TITLE_PATTERN,
    limit: int = PATTERN_MATCH_LIMIT,
) -> List[RawJobData]:
    now_ms = _now_ms()
    jobs: List[RawJobData] = []
    for index, match in enumerate(pattern.finditer(page.visible_text())):
        if index >= limit:
            break
        title = match.group(0).strip()
        jobs.append(
            {
                "id": _scraped_id("pattern", title, now_ms, index),
                "title": title,
                "description": PATTERN_DESCRIPTION,
            }
        )
    return jobs


ExtractionTechnique = Tuple[str, Callable[[PageReader, str], List[RawJobData]]]

DEFAULT_TECHNIQUES: Tuple[ExtractionTechnique, ...] = (
    ("structured", extract_from_structured_elements),
    ("json-ld", extract_from_json_ld),
    ("text-pattern", extract_from_text_patterns),
)


def extract_raw_jobs(
    page: PageReader,
    base_url: str,
    techniques: Sequence[ExtractionTechnique] = DEFAULT_TECHNIQUES,
) -> Tuple[str, List[RawJobData]]:
    """Run techniques in priority order; returns ``(technique, jobs)``."""
    for name, technique in techniques:
        jobs = technique(page, base_url)
        if jobs:
            return name, jobs
    return "none", []
