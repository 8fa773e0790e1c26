from __future__ import annotations

import json
import logging
import os
import time
import uuid
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import urlsplit

from careers_sync.job_fetcher.fields import format_iso, utc_now
from careers_sync.job_fetcher.http import HttpClient, HttpClientError, HttpResponse
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import JobSource, JobSyncResult, NormalizedJob
from careers_sync.job_fetcher.signing import generate_signature
from careers_sync.observability import Observability

LOGGER = logging.getLogger("careers_sync.sinks")

MIN_SECRET_LENGTH = 32
WEBHOOK_USER_AGENT = "CareersSync-Webhook/1.0"


class SyncError(RuntimeError):
    pass


class WebhookConfigError(SyncError):
    pass


class WebhookDeliveryError(SyncError):
    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class JobSink:
    def sync_jobs(self, jobs: Sequence[NormalizedJob], source: JobSource) -> JobSyncResult:
        raise NotImplementedError

    def close(self) -> None:
        return None


def _int_field(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


class WebhookSink(JobSink):
    """Deliver a batch to the content system's HMAC-signed webhook."""

    def __init__(
        self,
        url: str,
        secret: str,
        http: HttpClient,
        *,
        now: Callable[[], datetime] = utc_now,
        request_id: Callable[[], str] = _new_request_id,
        observability: Optional[Observability] = None,
    ) -> None:
        self._url = (url or "").strip()
        self._secret = secret or ""
        self._http = http
        self._now = now
        self._request_id = request_id
        self._observability = observability or Observability()
        self._validate()

    @property
    def url(self) -> str:
        return self._url

    def _validate(self) -> None:
        if not self._url:
            raise WebhookConfigError("Webhook URL is required")
        if not self._secret:
            raise WebhookConfigError("Webhook secret is required")
        if len(self._secret) < MIN_SECRET_LENGTH:
            raise WebhookConfigError(f"Webhook secret must be at least {MIN_SECRET_LENGTH} characters")
        parts = urlsplit(self._url)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise WebhookConfigError("Invalid webhook URL format")

    def _headers(self, payload: str, request_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Signature": generate_signature(payload, self._secret),
            "X-Webhook-Timestamp": str(int(self._now().timestamp())),
            "User-Agent": WEBHOOK_USER_AGENT,
        }
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    def sync_jobs(self, jobs: Sequence[NormalizedJob], source: JobSource) -> JobSyncResult:
        tracer = self._observability.tracer
        span_ctx = (
            tracer.start_as_current_span(
                "webhook-sink.sync-jobs",
                attributes={"webhook.job_count": len(jobs), "webhook.source": source},
            )
            if tracer
            else nullcontext()
        )
        with span_ctx:
            return self._deliver(jobs, source)

    def _deliver(self, jobs: Sequence[NormalizedJob], source: JobSource) -> JobSyncResult:
        start = time.perf_counter()
        request_id = self._request_id()
        timestamp = format_iso(self._now())
        payload = json.dumps(
            {
                "source": source,
                "jobs": [job.as_dict() for job in jobs],
                "timestamp": timestamp,
                "requestId": request_id,
            },
            ensure_ascii=True,
        )

        log_event(LOGGER, logging.INFO, "webhook_sync_start", request_id=request_id, source=source, count=len(jobs))

        try:
            response = self._http.post(self._url, payload, self._headers(payload, request_id))
        except HttpClientError as e:
            self._record(source, False, start, 0)
            raise WebhookDeliveryError(f"Webhook sync failed: {e}") from e

        if not response.success:
            self._record(source, False, start, 0)
            log_event(
                LOGGER,
                logging.ERROR,
                "webhook_sync_failed",
                request_id=request_id,
                status_code=response.status_code,
            )
            raise WebhookDeliveryError(
                f"Webhook sync failed with status {response.status_code}",
                status_code=response.status_code,
                response=response.data,
            )

        data = _response_body(response)
        result = JobSyncResult(
            success=True,
            synced_count=_int_field(data, "syncedCount"),
            skipped_count=_int_field(data, "skippedCount"),
            error_count=_int_field(data, "errorCount"),
            errors=[str(e) for e in data.get("errors") or [] if e is not None],
            message=str(data.get("message") or "Sync completed successfully"),
            processed_at=str(data.get("processedAt") or timestamp),
        )
        self._record(source, True, start, result.synced_count)
        log_event(
            LOGGER,
            logging.INFO,
            "webhook_sync_ok",
            request_id=request_id,
            synced=result.synced_count,
            skipped=result.skipped_count,
            errors=result.error_count,
        )
        return result

    def _record(self, source: str, success: bool, start: float, synced: int) -> None:
        metrics = self._observability.sync_metrics
        if metrics is not None:
            metrics.record(source, success, time.perf_counter() - start, synced)

    def health_check(self) -> bool:
        payload = json.dumps({"action": "health_check", "timestamp": format_iso(self._now())})
        try:
            response = self._http.post(self._url, payload, self._headers(payload))
        except HttpClientError as e:
            log_event(
                LOGGER,
                logging.WARNING,
                "webhook_health_check_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return response.success


def _response_body(response: HttpResponse) -> Dict[str, Any]:
    if not response.data.strip():
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class JsonFileSink(JobSink):
    """Write the batch to a JSON artifact instead of delivering it."""

    def __init__(
        self,
        path: str,
        *,
        run_id: Optional[str] = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._path = path
        self._run_id = run_id or str(uuid.uuid4())
        self._now = now

    @property
    def path(self) -> str:
        return self._path

    def sync_jobs(self, jobs: Sequence[NormalizedJob], source: JobSource) -> JobSyncResult:
        timestamp = format_iso(self._now())
        artifact = {
            "timestamp": timestamp,
            "runId": self._run_id,
            "source": source,
            "totalJobs": len(jobs),
            "jobs": [job.as_dict() for job in jobs],
        }

        os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(artifact, f, ensure_ascii=True, indent=2)
        os.replace(tmp_path, self._path)

        log_event(LOGGER, logging.INFO, "artifact_written", path=self._path, count=len(jobs))
        return JobSyncResult(
            success=True,
            synced_count=len(jobs),
            message=f"Wrote {len(jobs)} jobs to {self._path}",
            processed_at=timestamp,
        )


class StdoutSink(JobSink):
    def __init__(self) -> None:
        self.count = 0

    def sync_jobs(self, jobs: Sequence[NormalizedJob], source: JobSource) -> JobSyncResult:
        for job in jobs:
            print(json.dumps(job.as_dict(), ensure_ascii=True, sort_keys=True))
            self.count += 1
        return JobSyncResult(success=True, synced_count=len(jobs), message="Dry run: jobs printed, not delivered")
