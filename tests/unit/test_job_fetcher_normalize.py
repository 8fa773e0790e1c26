from __future__ import annotations

import re
from datetime import datetime, timezone

from careers_sync.job_fetcher.normalize import normalize_jobs

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
GENERATED_ID_RE = re.compile(r"^[a-z0-9-]{0,21}-\d+$")


def _now() -> datetime:
    return NOW


def test_end_to_end_record_normalization():
    raw = {"position_title": "Senior Engineer", "city": "Austin, TX", "created_at": "2025-01-01"}

    jobs = normalize_jobs([raw], "manual", now=_now)

    assert len(jobs) == 1
    job = jobs[0]
    assert job.title == "Senior Engineer"
    assert job.location == "Austin, TX"
    assert job.department == ""
    assert job.type == "Full-time"
    assert job.posted_date == "2025-01-01T00:00:00.000Z"
    assert job.apply_url == ""
    assert job.source == "manual"
    assert GENERATED_ID_RE.match(job.id)
    assert job.id.startswith("senior-engineer-")
    assert job.raw_data == raw


def test_records_without_title_are_dropped():
    raws = [
        {"title": "Keep me"},
        {"department": "No title"},
        {"title": "   "},
        None,
        "not a record",
        {"name": "Also kept"},
    ]

    jobs = normalize_jobs(raws, "drivehr", now=_now)

    assert [j.title for j in jobs] == ["Keep me", "Also kept"]
    assert len(jobs) <= len(raws)


def test_batch_shares_one_processing_timestamp():
    calls = []

    def ticking_now() -> datetime:
        calls.append(1)
        return NOW

    jobs = normalize_jobs([{"title": "A"}, {"title": "B"}, {"title": "C"}], "automated", now=ticking_now)

    assert len(calls) == 1
    assert {j.processed_at for j in jobs} == {"2025-03-01T12:00:00.000Z"}
    # Missing posted dates fall back to the batch time.
    assert {j.posted_date for j in jobs} == {"2025-03-01T12:00:00.000Z"}


def test_description_is_sanitized_and_other_fields_are_not():
    raw = {
        "title": "Writer",
        "summary": '<p align="center" style="mso-line-height:normal">Words</p>',
        "department": '<b align="left">Content</b>',
    }

    job = normalize_jobs([raw], "webhook", now=_now)[0]

    assert job.description == "<p>Words</p>"
    assert job.department == '<b align="left">Content</b>'
    assert job.raw_data["summary"] == raw["summary"]


def test_supplied_ids_are_kept():
    jobs = normalize_jobs([{"id": " ext-9 ", "title": "A"}, {"job_id": 77, "title": "B"}], "drivehr", now=_now)
    assert [j.id for j in jobs] == ["ext-9", "77"]


def test_wire_form_uses_camel_case_keys():
    job = normalize_jobs([{"title": "A", "apply_url": "https://x.test/a"}], "drivehr", now=_now)[0]

    data = job.as_dict()

    assert data["applyUrl"] == "https://x.test/a"
    assert data["postedDate"] == "2025-03-01T12:00:00.000Z"
    assert data["processedAt"] == "2025-03-01T12:00:00.000Z"
    assert data["rawData"] == {"title": "A", "apply_url": "https://x.test/a"}
    assert set(data) == {
        "id",
        "title",
        "department",
        "location",
        "type",
        "description",
        "postedDate",
        "applyUrl",
        "source",
        "rawData",
        "processedAt",
    }


def test_blank_title_is_not_replaced_by_a_later_alias():
    jobs = normalize_jobs([{"title": "   ", "name": "Fallback"}, {"title": None, "name": "Named"}], "manual", now=_now)

    assert [j.title for j in jobs] == ["Named"]


def test_blank_supplied_id_is_replaced_by_a_generated_one():
    job = normalize_jobs([{"id": "  ", "job_id": "ignored", "title": "Data Analyst"}], "manual", now=_now)[0]

    assert job.id.startswith("data-analyst-")
    assert GENERATED_ID_RE.match(job.id)
