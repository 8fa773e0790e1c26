from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional

from careers_sync.job_fetcher.fields import (
    extract_job_apply_url,
    extract_job_department,
    extract_job_description,
    extract_job_id,
    extract_job_location,
    extract_job_posted_date,
    extract_job_title,
    extract_job_type,
    format_iso,
    utc_now,
)
from careers_sync.job_fetcher.models import JobSource, NormalizedJob
from careers_sync.job_fetcher.sanitize import sanitize_description_html


def normalize_job(
    raw: Any,
    source: JobSource,
    *,
    processed_at: str,
    now: datetime,
) -> Optional[NormalizedJob]:
    """
    Normalize a single raw record.

    Returns None when no title can be resolved; that is the only rejection rule.
    """

    title = extract_job_title(raw)
    if not title:
        return None

    raw_data = dict(raw) if isinstance(raw, Mapping) else {}
    now_ms = int(now.timestamp() * 1000)

    return NormalizedJob(
        id=extract_job_id(raw, title, now_ms),
        title=title,
        department=extract_job_department(raw),
        location=extract_job_location(raw),
        type=extract_job_type(raw),
        description=sanitize_description_html(extract_job_description(raw)),
        posted_date=extract_job_posted_date(raw, now),
        apply_url=extract_job_apply_url(raw),
        source=source,
        raw_data=raw_data,
        processed_at=processed_at,
    )


def normalize_jobs(
    raw_jobs: Iterable[Any],
    source: JobSource,
    *,
    now: Optional[Callable[[], datetime]] = None,
) -> List[NormalizedJob]:
    """
    Normalize a batch of raw job records from any acquisition strategy.

    All records in the batch share one processing timestamp, which is also the
    posted date fallback for records without a usable date.
    """

    batch_now = (now or utc_now)()
    processed_at = format_iso(batch_now)

    out: List[NormalizedJob] = []
    for raw in raw_jobs:
        job = normalize_job(raw, source, processed_at=processed_at, now=batch_now)
        if job is not None:
            out.append(job)
    return out
