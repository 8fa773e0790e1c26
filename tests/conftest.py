from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest

from careers_sync.config.settings import get_settings

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "tests" / "fixtures" / "careers"

SETTINGS_ENV_VARS = (
    "DRIVEHR_COMPANY_ID",
    "DRIVEHR_CAREERS_URL",
    "DRIVEHR_API_BASE_URL",
    "JOB_FETCH_STRATEGIES",
    "NO_JOBS_PHRASES",
    "WP_API_URL",
    "WEBHOOK_SECRET",
    "WP_TIMEOUT_S",
    "ENVIRONMENT",
    "FORCE_SYNC",
    "OTEL_ENABLED",
)


@pytest.fixture()
def careers_fixture() -> Callable[[str], str]:
    def _read(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")

    return _read


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clean_settings(monkeypatch):
    """Isolate settings from the developer's environment and the cache."""

    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
