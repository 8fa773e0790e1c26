from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import pytest

from careers_sync.job_fetcher.models import JobFetchResult
from careers_sync.job_fetcher.runner import ScrapeAndSyncResult
from careers_sync.job_fetcher.signing import generate_signature
from careers_sync.job_fetcher.sinks import WebhookDeliveryError

fastapi = pytest.importorskip("fastapi")
testclient = pytest.importorskip("fastapi.testclient")

SECRET = "k" * 32


@pytest.fixture()
def sync_api_module(clean_settings):
    clean_settings.setenv("WEBHOOK_SECRET", SECRET)

    module_path = Path(__file__).resolve().parents[2] / "ops" / "sync-api" / "app.py"
    spec = importlib.util.spec_from_file_location("sync_api_app", module_path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    try:
        spec.loader.exec_module(module)
    except ModuleNotFoundError as exc:
        pytest.skip(f"Sync API dependencies unavailable: {exc.name}")
    return module


@pytest.fixture()
def client(sync_api_module):
    return testclient.TestClient(sync_api_module.app)


def _signed(body: dict) -> tuple[bytes, dict]:
    raw = json.dumps(body).encode("utf-8")
    return raw, {"X-Webhook-Signature": generate_signature(raw, SECRET), "Content-Type": "application/json"}


def _fetch(success=True, count=0) -> JobFetchResult:
    return JobFetchResult(
        jobs=(),
        method="html" if success else "none",
        success=success,
        fetched_at="2025-03-01T12:00:00.000Z",
        total_count=count,
        error=None if success else "All fetch strategies failed",
    )


def test_health_without_webhook_configuration(client, clean_settings, sync_api_module):
    clean_settings.delenv("WEBHOOK_SECRET", raising=False)
    sync_api_module.get_settings.cache_clear()

    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["environment"] == "development"
    assert body["checks"] == {"webhook": "not_configured"}


def test_health_reports_misconfigured_webhook(client, clean_settings, sync_api_module):
    clean_settings.setenv("WP_API_URL", "ftp://cms.example.com/hook")
    sync_api_module.get_settings.cache_clear()

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert body["checks"]["webhook"] == "misconfigured"


def test_sync_rejects_bad_signature(client):
    raw, headers = _signed({"source": "manual"})
    headers["X-Webhook-Signature"] = "sha256=" + "0" * 64

    resp = client.post("/sync-jobs", content=raw, headers=headers)

    assert resp.status_code == 401


def test_sync_requires_configured_secret(client, clean_settings, sync_api_module):
    clean_settings.delenv("WEBHOOK_SECRET", raising=False)
    sync_api_module.get_settings.cache_clear()
    raw, headers = _signed({})

    assert client.post("/sync-jobs", content=raw, headers=headers).status_code == 500


def test_sync_rejects_unknown_source(client):
    raw, headers = _signed({"source": "cron"})

    resp = client.post("/sync-jobs", content=raw, headers=headers)

    assert resp.status_code == 400


def test_sync_success(client, monkeypatch, sync_api_module):
    seen = {}

    def fake_run(trigger, request_id):
        seen["trigger"] = trigger
        return ScrapeAndSyncResult(run_id=request_id, success=True, method="html", jobs_scraped=3, jobs_synced=3, fetch=_fetch(count=3))

    monkeypatch.setattr(sync_api_module, "_run_sync", fake_run)
    raw, headers = _signed({"source": "webhook", "forceSync": True})

    resp = client.post("/sync-jobs", content=raw, headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["requestId"].startswith("req_")
    assert body["data"] == {"method": "html", "jobCount": 3, "syncedCount": 3, "syncSkipped": False}
    assert seen["trigger"].source == "webhook"
    assert seen["trigger"].force_sync is True


def test_fetch_failure_is_reported_in_body(client, monkeypatch, sync_api_module):
    monkeypatch.setattr(
        sync_api_module,
        "_run_sync",
        lambda trigger, request_id: ScrapeAndSyncResult(
            run_id=request_id, success=False, error="Job scraping failed: x", fetch=_fetch(success=False)
        ),
    )
    raw, headers = _signed({})

    resp = client.post("/sync-jobs", content=raw, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "All fetch strategies failed"


def test_delivery_failure_is_a_server_error(client, monkeypatch, sync_api_module):
    monkeypatch.setattr(
        sync_api_module,
        "_run_sync",
        lambda trigger, request_id: ScrapeAndSyncResult(
            run_id=request_id, success=False, error="Webhook sync failed with status 502", fetch=_fetch(count=1)
        ),
    )
    raw, headers = _signed({})

    assert client.post("/sync-jobs", content=raw, headers=headers).status_code == 500


def test_unexpected_error_is_a_server_error(client, monkeypatch, sync_api_module):
    def boom(trigger, request_id):
        raise WebhookDeliveryError("down")

    monkeypatch.setattr(sync_api_module, "_run_sync", boom)
    raw, headers = _signed({})

    assert client.post("/sync-jobs", content=raw, headers=headers).status_code == 500
