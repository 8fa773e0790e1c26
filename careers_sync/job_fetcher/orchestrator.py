from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from careers_sync.job_fetcher.fields import format_iso, utc_now
from careers_sync.job_fetcher.http import FetchError, HttpClient
from careers_sync.job_fetcher.logging_utils import log_event
from careers_sync.job_fetcher.models import JobFetchResult, JobSource, SourceConfig
from careers_sync.job_fetcher.normalize import normalize_jobs
from careers_sync.job_fetcher.strategies.base import BaseFetchStrategy
from careers_sync.observability import Observability

LOGGER = logging.getLogger("careers_sync.job_fetcher")

ALL_STRATEGIES_FAILED = "All fetch strategies failed"


def _set_attributes(span: Any, attributes: dict) -> None:
    if span is not None:
        span.set_attributes(attributes)


class JobFetchService:
    """
    Run acquisition strategies in priority order and normalize the first
    successful batch.

    A strategy that raises is logged and skipped; total failure is reported in
    the returned envelope, never raised.
    """

    def __init__(
        self,
        http: HttpClient,
        strategies: Sequence[BaseFetchStrategy],
        *,
        now: Callable[[], datetime] = utc_now,
        observability: Optional[Observability] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._http = http
        self._logger = logger or LOGGER
        self._strategies = tuple(strategies)
        self._now = now
        self._observability = observability or Observability()

    @property
    def strategies(self) -> Sequence[BaseFetchStrategy]:
        return self._strategies

    def fetch_jobs(self, config: SourceConfig, source: JobSource = "drivehr") -> JobFetchResult:
        tracer = self._observability.tracer
        span_ctx = (
            tracer.start_as_current_span(
                "job-fetcher.fetch-jobs",
                attributes={
                    "job.source": source,
                    "job.company_id": config.company_id or "unknown",
                    "job.strategies_count": len(self._strategies),
                },
            )
            if tracer
            else nullcontext()
        )
        with span_ctx as span:
            return self._execute(config, source, span)

    def _execute(self, config: SourceConfig, source: JobSource, span: Any) -> JobFetchResult:
        start = time.perf_counter()
        fetched_at = format_iso(self._now())
        metrics = self._observability.fetch_metrics

        for strategy in self._strategies:
            if not strategy.can_handle(config):
                continue

            log_event(
                self._logger,
                logging.INFO,
                "fetch_attempt",
                strategy=strategy.name,
                company_id=config.company_id,
                source=source,
                fetched_at=fetched_at,
            )
            try:
                raw_jobs = strategy.fetch_jobs(config, self._http)
            except FetchError as e:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "strategy_failed",
                    strategy=strategy.name,
                    url=e.url,
                    status_code=e.status_code,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                _set_attributes(span, {f"job.strategy_{strategy.name}_failed": True})
                continue
            except Exception as e:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "strategy_failed",
                    strategy=strategy.name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                _set_attributes(span, {f"job.strategy_{strategy.name}_failed": True})
                continue

            jobs = normalize_jobs(raw_jobs, source, now=self._now)
            duration = time.perf_counter() - start
            log_event(
                self._logger,
                logging.INFO,
                "fetch_succeeded",
                strategy=strategy.name,
                raw_count=len(raw_jobs),
                count=len(jobs),
                duration_s=round(duration, 3),
            )
            _set_attributes(
                span,
                {
                    "job.count": len(jobs),
                    "job.strategy_used": strategy.name,
                    "job.duration_ms": int(duration * 1000),
                },
            )
            if metrics is not None:
                metrics.record_success(strategy.name, duration, len(jobs))
            return JobFetchResult(
                jobs=tuple(jobs),
                method=strategy.name,
                success=True,
                fetched_at=fetched_at,
                total_count=len(jobs),
                message=f"Successfully fetched {len(jobs)} jobs",
            )

        duration = time.perf_counter() - start
        log_event(
            self._logger,
            logging.ERROR,
            "fetch_failed",
            company_id=config.company_id,
            strategies_attempted=len(self._strategies),
            duration_s=round(duration, 3),
        )
        _set_attributes(
            span,
            {
                "job.all_strategies_failed": True,
                "job.strategies_attempted": len(self._strategies),
            },
        )
        if metrics is not None:
            metrics.record_failure(duration)
        return JobFetchResult(
            jobs=(),
            method="none",
            success=False,
            fetched_at=fetched_at,
            total_count=0,
            error=ALL_STRATEGIES_FAILED,
        )
