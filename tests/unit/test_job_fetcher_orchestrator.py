from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

from careers_sync.job_fetcher.http import FetchError
from careers_sync.job_fetcher.models import SourceConfig
from careers_sync.job_fetcher.orchestrator import ALL_STRATEGIES_FAILED, JobFetchService
from careers_sync.job_fetcher.strategies.base import BaseFetchStrategy, StrategyError
from careers_sync.observability import Observability

CONFIG = SourceConfig(company_id="abc123")


class ScriptedStrategy(BaseFetchStrategy):
    def __init__(self, name, result=None, error=None, handles=True):
        self._name = name
        self._result = result or []
        self._error = error
        self._handles = handles
        self.calls = 0

    @property
    def name(self):
        return self._name

    def can_handle(self, config):
        return self._handles

    def fetch_jobs(self, config, http):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return list(self._result)


class RecordingClock:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return datetime(2025, 3, 1, 12, 0, self.calls % 60, tzinfo=timezone.utc)


class FakeSpan:
    def __init__(self):
        self.attributes = {}

    def set_attributes(self, attributes):
        self.attributes.update(attributes)


class FakeTracer:
    def __init__(self):
        self.spans = []

    @contextmanager
    def start_as_current_span(self, name, attributes=None):
        span = FakeSpan()
        span.attributes.update(attributes or {})
        self.spans.append((name, span))
        yield span


class FakeFetchMetrics:
    def __init__(self):
        self.events = []

    def record_success(self, method, duration, jobs):
        self.events.append(("success", method, jobs))

    def record_failure(self, duration):
        self.events.append(("failure",))


def test_second_strategy_wins_after_first_raises():
    first = ScriptedStrategy("html", error=FetchError("https://x", 503, "HTTP 503"))
    second = ScriptedStrategy("browser", result=[{"id": "a1", "title": "Engineer"}])

    result = JobFetchService(http=None, strategies=[first, second]).fetch_jobs(CONFIG)

    assert result.success
    assert result.method == "browser"
    assert result.total_count == 1
    assert result.message == "Successfully fetched 1 jobs"
    assert result.jobs[0].id == "a1"
    assert result.jobs[0].source == "drivehr"
    assert first.calls == 1 and second.calls == 1


def test_all_strategies_failing_returns_empty_envelope():
    strategies = [
        ScriptedStrategy("html", error=StrategyError("bad markup")),
        ScriptedStrategy("browser", error=RuntimeError("no chromium")),
    ]

    result = JobFetchService(http=None, strategies=strategies).fetch_jobs(CONFIG)

    assert not result.success
    assert result.method == "none"
    assert result.jobs == ()
    assert result.total_count == 0
    assert result.error == ALL_STRATEGIES_FAILED


def test_strategies_that_cannot_handle_are_skipped():
    skipped = ScriptedStrategy("html", handles=False)
    used = ScriptedStrategy("browser", result=[{"title": "Analyst"}])

    result = JobFetchService(http=None, strategies=[skipped, used]).fetch_jobs(CONFIG)

    assert result.method == "browser"
    assert skipped.calls == 0


def test_empty_batch_is_still_a_success():
    result = JobFetchService(http=None, strategies=[ScriptedStrategy("html", result=[])]).fetch_jobs(CONFIG)

    assert result.success
    assert result.method == "html"
    assert result.jobs == ()


def test_untitled_records_are_dropped_and_source_is_stamped():
    strategy = ScriptedStrategy("html", result=[{"title": "Engineer"}, {"title": "  "}, "junk"])

    result = JobFetchService(http=None, strategies=[strategy]).fetch_jobs(CONFIG, source="manual")

    assert [j.title for j in result.jobs] == ["Engineer"]
    assert result.jobs[0].source == "manual"


def test_batch_shares_one_timestamp():
    clock = RecordingClock()
    strategy = ScriptedStrategy("html", result=[{"title": "Engineer"}, {"title": "Designer"}])

    result = JobFetchService(http=None, strategies=[strategy], now=clock).fetch_jobs(CONFIG)

    processed = {job.processed_at for job in result.jobs}
    assert len(processed) == 1


def test_span_and_metrics_are_recorded():
    tracer = FakeTracer()
    metrics = FakeFetchMetrics()
    obs = Observability(tracer=tracer, fetch_metrics=metrics)
    strategies = [
        ScriptedStrategy("html", error=StrategyError("nope")),
        ScriptedStrategy("browser", result=[{"title": "Engineer"}]),
    ]

    JobFetchService(http=None, strategies=strategies, observability=obs).fetch_jobs(CONFIG)

    name, span = tracer.spans[0]
    assert name == "job-fetcher.fetch-jobs"
    assert span.attributes["job.company_id"] == "abc123"
    assert span.attributes["job.strategy_html_failed"] is True
    assert span.attributes["job.strategy_used"] == "browser"
    assert metrics.events == [("success", "browser", 1)]


def test_failure_is_recorded_in_metrics():
    metrics = FakeFetchMetrics()
    obs = Observability(fetch_metrics=metrics)

    JobFetchService(http=None, strategies=[], observability=obs).fetch_jobs(CONFIG)

    assert metrics.events == [("failure",)]
