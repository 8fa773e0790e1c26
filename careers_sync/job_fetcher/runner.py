from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import httpx

from careers_sync.config.settings import Settings
from careers_sync.job_fetcher.http import HttpClient
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import JobFetchResult, JobSource, JobSyncResult, SourceConfig
from careers_sync.job_fetcher.orchestrator import JobFetchService
from careers_sync.job_fetcher.registry import build_enabled_strategies
from careers_sync.job_fetcher.sinks import JobSink, SyncError, WebhookSink
from careers_sync.job_fetcher.strategies import BaseFetchStrategy
from careers_sync.observability import Observability

LOGGER = logging.getLogger("careers_sync.runner")


@dataclass
class ScrapeAndSyncResult:
    run_id: str
    success: bool
    method: str = "none"
    jobs_scraped: int = 0
    jobs_synced: int = 0
    sync_skipped: bool = False
    scraping_time_s: float = 0.0
    sync_time_s: float = 0.0
    total_time_s: float = 0.0
    error: Optional[str] = None
    fetch: Optional[JobFetchResult] = None
    sync: Optional[JobSyncResult] = None


def build_http_client(
    settings: Settings,
    *,
    transport: Optional[httpx.BaseTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
    timeout_read_s: Optional[float] = None,
) -> HttpClient:
    cfg = settings.http
    return HttpClient(
        user_agent=cfg.user_agent,
        timeout_connect_s=cfg.timeout_connect_s,
        timeout_read_s=timeout_read_s if timeout_read_s is not None else cfg.timeout_read_s,
        rate_limit_per_host_s=cfg.rate_limit_per_host_s,
        max_retries=cfg.max_retries,
        backoff_base_s=cfg.backoff_base_s,
        backoff_max_s=cfg.backoff_max_s,
        transport=transport,
        sleep=sleep,
    )


def build_fetch_service(
    settings: Settings,
    http: HttpClient,
    *,
    strategies: Optional[Sequence[BaseFetchStrategy]] = None,
    observability: Optional[Observability] = None,
) -> JobFetchService:
    if strategies is None:
        strategies = build_enabled_strategies(settings)
    return JobFetchService(http, strategies, observability=observability)


def build_webhook_sink(
    settings: Settings,
    http: Optional[HttpClient] = None,
    *,
    observability: Optional[Observability] = None,
) -> WebhookSink:
    """Raises WebhookConfigError when the URL or secret is missing or invalid."""

    wp = settings.wordpress
    client = http or build_http_client(settings, timeout_read_s=wp.timeout_s)
    return WebhookSink(wp.api_url, wp.webhook_secret, client, observability=observability)


def scrape_and_sync(
    service: JobFetchService,
    sink: JobSink,
    config: SourceConfig,
    *,
    source: JobSource = "github-actions",
    force_sync: bool = False,
    run_id: Optional[str] = None,
) -> ScrapeAndSyncResult:
    """
    Fetch one batch and hand it to the sink.

    The sink is skipped when the batch is empty unless ``force_sync`` is set,
    so an empty scrape never wipes downstream listings by accident.
    """

    run_id = run_id or str(uuid.uuid4())
    start = time.perf_counter()
    log_event(LOGGER, logging.INFO, "scrape_and_sync_start", run_id=run_id, company_id=config.company_id)

    try:
        fetch = service.fetch_jobs(config, source)
        scraping_time = time.perf_counter() - start
        result = ScrapeAndSyncResult(
            run_id=run_id,
            success=fetch.success,
            method=fetch.method,
            jobs_scraped=fetch.total_count,
            scraping_time_s=scraping_time,
            fetch=fetch,
        )

        if not fetch.success:
            result.error = f"Job scraping failed: {fetch.error}"
            result.total_time_s = time.perf_counter() - start
            log_event(LOGGER, logging.ERROR, "scrape_and_sync_failed", run_id=run_id, error=result.error)
            return result

        if not fetch.jobs and not force_sync:
            result.sync_skipped = True
            result.total_time_s = time.perf_counter() - start
            log_event(LOGGER, logging.INFO, "sync_skipped", run_id=run_id, reason="no_jobs")
            return result

        sync_start = time.perf_counter()
        try:
            sync = sink.sync_jobs(list(fetch.jobs), source)
        except SyncError as e:
            result.success = False
            result.error = str(e)
            result.sync_time_s = time.perf_counter() - sync_start
            result.total_time_s = time.perf_counter() - start
            log_event(
                LOGGER,
                logging.ERROR,
                "scrape_and_sync_failed",
                run_id=run_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return result

        result.sync = sync
        result.jobs_synced = sync.synced_count
        result.success = sync.success
        result.sync_time_s = time.perf_counter() - sync_start
        result.total_time_s = time.perf_counter() - start
        log_event(
            LOGGER,
            logging.INFO,
            "scrape_and_sync_done",
            run_id=run_id,
            method=result.method,
            jobs_scraped=result.jobs_scraped,
            jobs_synced=result.jobs_synced,
            total_time_s=round(result.total_time_s, 3),
        )
        return result
    finally:
        sink.close()
