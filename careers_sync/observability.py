"""
OpenTelemetry setup and lightweight metrics helpers.

Tracing and metrics are off unless ``OTEL_ENABLED`` is set; callers get an
empty ``Observability`` and skip instrumentation in that case.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.metrics import Observation
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


def _is_enabled() -> bool:
    return os.getenv("OTEL_ENABLED", "false").lower() in {"1", "true", "yes"}


def _otlp_endpoint(signal: str) -> str:
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/")
    if endpoint.endswith(f"/v1/{signal}"):
        return endpoint
    return f"{endpoint}/v1/{signal}"


def _resource_attributes(service_name: str) -> dict[str, str]:
    return {
        "service.name": os.getenv("OTEL_SERVICE_NAME", service_name),
        "service.namespace": os.getenv("OTEL_SERVICE_NAMESPACE", "careers-sync"),
        "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        "service.instance.id": os.getenv("HOSTNAME", "local"),
    }


_OBS_CACHE: dict[str, "Observability"] = {}
_OBS_CONFIGURED = False


@dataclass
class FetchMetrics:
    fetch_total: object
    duration_seconds: object
    jobs_fetched_total: object
    _last_success: Dict[str, float] = field(default_factory=dict)

    def record_success(self, method: str, duration: float, jobs: int) -> None:
        self.fetch_total.add(1, {"method": method, "status": "success"})
        self.duration_seconds.record(duration, {"method": method})
        self.jobs_fetched_total.add(jobs, {"method": method})
        self._last_success[method] = time.time()

    def record_failure(self, duration: float) -> None:
        self.fetch_total.add(1, {"method": "none", "status": "failure"})
        self.duration_seconds.record(duration, {"method": "none"})


@dataclass
class SyncMetrics:
    sync_total: object
    duration_seconds: object
    jobs_synced_total: object

    def record(self, source: str, success: bool, duration: float, synced: int) -> None:
        status = "success" if success else "failure"
        self.sync_total.add(1, {"source": source, "status": status})
        self.duration_seconds.record(duration, {"source": source})
        if synced:
            self.jobs_synced_total.add(synced, {"source": source})


@dataclass
class Observability:
    tracer: Optional[object] = None
    meter: Optional[object] = None
    fetch_metrics: Optional[FetchMetrics] = None
    sync_metrics: Optional[SyncMetrics] = None


def get_observability(service_name: str) -> Observability:
    if service_name in _OBS_CACHE:
        return _OBS_CACHE[service_name]

    obs = _configure_observability(service_name)
    _OBS_CACHE[service_name] = obs
    return obs


def _configure_observability(service_name: str) -> Observability:
    if not _is_enabled():
        return Observability()

    global _OBS_CONFIGURED
    if not _OBS_CONFIGURED:
        resource = Resource.create(_resource_attributes(service_name))

        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=_otlp_endpoint("traces"))))
        trace.set_tracer_provider(tracer_provider)

        export_interval = int(os.getenv("OTEL_METRICS_EXPORT_INTERVAL", "60000"))
        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=_otlp_endpoint("metrics")),
            export_interval_millis=export_interval,
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))
        _OBS_CONFIGURED = True

    tracer = trace.get_tracer(service_name)
    meter = metrics.get_meter(service_name)

    return Observability(
        tracer=tracer,
        meter=meter,
        fetch_metrics=_build_fetch_metrics(meter),
        sync_metrics=_build_sync_metrics(meter),
    )


def _build_fetch_metrics(meter: object) -> FetchMetrics:
    metrics_obj = FetchMetrics(
        fetch_total=meter.create_counter(
            "job_fetch_total",
            description="Job fetch operations by winning method",
        ),
        duration_seconds=meter.create_histogram(
            "job_fetch_duration_seconds",
            unit="s",
            description="Job fetch duration",
        ),
        jobs_fetched_total=meter.create_counter(
            "jobs_fetched_total",
            unit="jobs",
            description="Normalized jobs returned by fetches",
        ),
    )

    def _last_success_cb(_options: object) -> Iterable[Observation]:
        return [
            Observation(value=value, attributes={"method": name}) for name, value in metrics_obj._last_success.items()
        ]

    meter.create_observable_gauge(
        "job_fetch_last_success_timestamp_seconds",
        callbacks=[_last_success_cb],
        description="Unix timestamp of the last successful fetch per method",
    )
    return metrics_obj


def _build_sync_metrics(meter: object) -> SyncMetrics:
    return SyncMetrics(
        sync_total=meter.create_counter(
            "job_sync_total",
            description="Webhook sync operations",
        ),
        duration_seconds=meter.create_histogram(
            "job_sync_duration_seconds",
            unit="s",
            description="Webhook sync duration",
        ),
        jobs_synced_total=meter.create_counter(
            "jobs_synced_total",
            unit="jobs",
            description="Jobs accepted by the webhook",
        ),
    )
