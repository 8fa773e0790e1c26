from __future__ import annotations

import json
import logging
import os
import sys
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

# Ensure project root is in path when served from this directory.
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from careers_sync.config.settings import get_settings  # noqa: E402
from careers_sync.job_fetcher.fields import format_iso, utc_now  # noqa: E402
from careers_sync.job_fetcher.logging_utils import configure_logging, log_event  # noqa: E402
from careers_sync.job_fetcher.runner import (  # noqa: E402
    ScrapeAndSyncResult,
    build_fetch_service,
    build_http_client,
    build_webhook_sink,
    scrape_and_sync,
)
from careers_sync.job_fetcher.signing import verify_signature  # noqa: E402
from careers_sync.job_fetcher.sinks import SyncError  # noqa: E402
from careers_sync.observability import get_observability  # noqa: E402

configure_logging(get_settings().runtime.log_level)
LOG = logging.getLogger("careers_sync.sync_api")

SIGNATURE_HEADER = "X-Webhook-Signature"
ALLOWED_SOURCES = {"drivehr", "manual", "webhook", "github-actions", "automated"}

app = FastAPI(title="Careers Sync API")


class SyncTrigger(BaseModel):
    source: str = Field(default="manual")
    force_sync: bool = Field(default=False)


def _parse_trigger(body: bytes) -> SyncTrigger:
    if not body.strip():
        return SyncTrigger()
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from exc
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    trigger = SyncTrigger(
        source=str(data.get("source") or "manual"),
        force_sync=bool(data.get("force_sync") or data.get("forceSync")),
    )
    if trigger.source not in ALLOWED_SOURCES:
        raise HTTPException(status_code=400, detail=f"Unknown source: {trigger.source}")
    return trigger


def _run_sync(trigger: SyncTrigger, request_id: str) -> ScrapeAndSyncResult:
    settings = get_settings()
    observability = get_observability("careers-sync-api")
    with build_http_client(settings) as http:
        sink = build_webhook_sink(settings, http, observability=observability)
        service = build_fetch_service(settings, http, observability=observability)
        return scrape_and_sync(
            service,
            sink,
            settings.source_config(),
            source=trigger.source,
            force_sync=trigger.force_sync or settings.runtime.force_sync,
            run_id=request_id,
        )


@app.get("/health")
def health() -> dict:
    settings = get_settings()
    checks: dict[str, str] = {}

    if settings.wordpress.api_url and settings.wordpress.webhook_secret:
        try:
            with build_http_client(settings, timeout_read_s=settings.wordpress.timeout_s) as http:
                sink = build_webhook_sink(settings, http)
                checks["webhook"] = "ok" if sink.health_check() else "unreachable"
        except SyncError as exc:
            log_event(LOG, logging.WARNING, "health_webhook_config_invalid", error=str(exc))
            checks["webhook"] = "misconfigured"
    else:
        checks["webhook"] = "not_configured"

    status = "healthy" if checks["webhook"] in {"ok", "not_configured"} else "degraded"
    return {
        "status": status,
        "environment": settings.runtime.environment,
        "timestamp": format_iso(utc_now()),
        "checks": checks,
    }


@app.post("/sync-jobs")
async def sync_jobs(request: Request) -> dict:
    settings = get_settings()
    request_id = f"req_{uuid.uuid4().hex}"
    timestamp = format_iso(utc_now())

    secret = settings.wordpress.webhook_secret
    if not secret:
        log_event(LOG, logging.ERROR, "sync_trigger_rejected", request_id=request_id, reason="secret_not_configured")
        raise HTTPException(status_code=500, detail="Webhook secret is not configured")

    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
        log_event(LOG, logging.WARNING, "sync_trigger_rejected", request_id=request_id, reason="bad_signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    trigger = _parse_trigger(body)
    log_event(LOG, logging.INFO, "sync_trigger_accepted", request_id=request_id, source=trigger.source)

    try:
        result = await run_in_threadpool(_run_sync, trigger, request_id)
    except SyncError as exc:
        LOG.exception("Sync infrastructure error")
        raise HTTPException(status_code=500, detail="Sync infrastructure error") from exc
    except Exception as exc:
        LOG.exception("Unexpected sync failure")
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    fetch = result.fetch
    if fetch is not None and not fetch.success:
        return {
            "success": False,
            "message": fetch.error or "Job fetch failed",
            "requestId": request_id,
            "timestamp": timestamp,
            "data": {"method": fetch.method, "jobCount": 0},
        }

    if not result.success:
        log_event(LOG, logging.ERROR, "sync_failed", request_id=request_id, error=result.error)
        raise HTTPException(status_code=500, detail=result.error or "Sync failed")

    return {
        "success": True,
        "message": "No jobs to sync" if result.sync_skipped else "Jobs synced",
        "requestId": request_id,
        "timestamp": timestamp,
        "data": {
            "method": result.method,
            "jobCount": result.jobs_scraped,
            "syncedCount": result.jobs_synced,
            "syncSkipped": result.sync_skipped,
        },
    }
