"""Field extraction for loosely-typed job records.

Every source names the same logical field differently (``title`` vs
``position_title`` vs ``name``), so each extractor walks a fixed alias list and
takes the first alias that is present (not ``None``), trimmed. A present but
blank value wins over later aliases. Extractors never raise: unexpected shapes
degrade to an empty string and then to the field default.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional, Sequence

TITLE_KEYS = ("title", "position_title", "name")
ID_KEYS = ("id", "job_id")
DEPARTMENT_KEYS = ("department", "category", "division")
LOCATION_KEYS = ("location", "city", "office")
TYPE_KEYS = ("type", "employment_type", "schedule")
DESCRIPTION_KEYS = ("description", "summary", "overview")
POSTED_DATE_KEYS = ("posted_date", "created_at", "date_posted")
APPLY_URL_KEYS = ("apply_url", "application_url", "url")

DEFAULT_JOB_TYPE = "Full-time"
SLUG_MAX_LENGTH = 20

_HUMAN_DATE_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _first_value(raw: Any, keys: Sequence[str]) -> Any:
    if not isinstance(raw, Mapping):
        return None
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _first_text(raw: Any, keys: Sequence[str]) -> Optional[str]:
    """Trimmed text of the first present alias; None when no alias is present."""
    value = _first_value(raw, keys)
    if value is None:
        return None
    return _coerce_text(value)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Render ``dt`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}Z"


def _with_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return _with_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Millisecond epochs are what JavaScript-backed feeds emit.
        seconds = value / 1000.0 if abs(value) >= 1e11 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None

    iso = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        return _with_utc(datetime.fromisoformat(iso))
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
        if dt is not None:
            return _with_utc(dt)
    except (TypeError, ValueError, IndexError):
        pass

    for fmt in _HUMAN_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def to_iso_string(value: Any, now: Optional[datetime] = None) -> str:
    """ISO-8601 rendering of ``value``; unparsable input yields ``now``."""
    parsed = parse_datetime(value)
    if parsed is None:
        parsed = now or utc_now()
    try:
        return format_iso(parsed)
    except (OverflowError, ValueError):
        return format_iso(now or utc_now())


# ---------------------------------------------------------------------------
# IDs
# ---------------------------------------------------------------------------


def slugify(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    slug = _NON_ALNUM_RE.sub("-", (title or "").lower()).strip("-")
    return slug[:max_length]


def generate_job_id(title: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{slugify(title)}-{now_ms}"


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def extract_job_title(raw: Any) -> str:
    return _first_text(raw, TITLE_KEYS) or ""


def extract_job_id(raw: Any, title: str, now_ms: Optional[int] = None) -> str:
    return _first_text(raw, ID_KEYS) or generate_job_id(title, now_ms)


def extract_job_department(raw: Any) -> str:
    return _first_text(raw, DEPARTMENT_KEYS) or ""


def extract_job_location(raw: Any) -> str:
    return _first_text(raw, LOCATION_KEYS) or ""


def extract_job_type(raw: Any) -> str:
    text = _first_text(raw, TYPE_KEYS)
    return DEFAULT_JOB_TYPE if text is None else text


def extract_job_description(raw: Any) -> str:
    return _first_text(raw, DESCRIPTION_KEYS) or ""


def extract_job_posted_date(raw: Any, now: Optional[datetime] = None) -> str:
    value = _first_value(raw, POSTED_DATE_KEYS)
    if value is None:
        return format_iso(now or utc_now())
    return to_iso_string(value, now)


def extract_job_apply_url(raw: Any) -> str:
    return _first_text(raw, APPLY_URL_KEYS) or ""
