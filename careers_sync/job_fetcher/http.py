from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import Callable, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

DEFAULT_USER_AGENT = "CareersSync/1.0 (+https://github.com/careers-sync)"


class HttpClientError(RuntimeError):
    pass


class FetchError(HttpClientError):
    def __init__(self, url: str, status_code: Optional[int], message: str) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def _host_of(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


class PerHostRateLimiter:
    def __init__(
        self,
        *,
        min_interval_s: float,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval_s = max(0.0, float(min_interval_s))
        self._now = now
        self._sleep = sleep
        self._next_allowed: Dict[str, float] = {}

    def wait(self, host: str) -> None:
        if self._min_interval_s <= 0:
            return
        ts = self._next_allowed.get(host, 0.0)
        now = self._now()
        if now < ts:
            self._sleep(ts - now)
        self._next_allowed[host] = self._now() + self._min_interval_s


@dataclass(frozen=True)
class HttpResponse:
    """Transport-neutral response handed to strategies and sinks."""

    url: str
    status_code: int
    data: str
    content_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> object:
        return json.loads(self.data)


class HttpClient:
    """Small httpx wrapper with per-host pacing and retry/backoff."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_connect_s: float = 10.0,
        timeout_read_s: float = 30.0,
        rate_limit_per_host_s: float = 0.0,
        max_retries: int = 3,
        backoff_base_s: float = 0.5,
        backoff_max_s: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._max_retries = max(0, int(max_retries))
        self._backoff_base_s = float(backoff_base_s)
        self._backoff_max_s = float(backoff_max_s)
        self._sleep = sleep
        self._rng = rng or random.Random()

        self._rate_limiter = PerHostRateLimiter(
            min_interval_s=float(rate_limit_per_host_s),
            now=now,
            sleep=sleep,
        )

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=timeout_connect_s,
                read=timeout_read_s,
                write=timeout_read_s,
                pool=timeout_connect_s,
            ),
            follow_redirects=True,
            transport=transport,
            headers={"User-Agent": user_agent},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def _backoff(self, attempt: int) -> float:
        base = self._backoff_base_s * (2 ** max(0, attempt - 1))
        jitter = self._rng.random() * 0.25
        return min(self._backoff_max_s, base + jitter)

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code == 429 or 500 <= status_code <= 599

    def _parse_retry_after_s(self, value: Optional[str]) -> Optional[float]:
        if not value or not value.strip():
            return None
        try:
            return float(value.strip())
        except ValueError:
            return None

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Union[str, bytes, None] = None,
    ) -> HttpResponse:
        host = _host_of(url)
        if not host:
            raise FetchError(url, None, f"Invalid URL (no host): {url}")

        for attempt in range(1, self._max_retries + 2):
            last_attempt = attempt >= self._max_retries + 1
            try:
                self._rate_limiter.wait(host)
                resp = self._client.request(method, url, headers=dict(headers or {}), content=content)
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if last_attempt:
                    raise FetchError(url, None, f"HTTP transport error for {url}: {e}") from e
                self._sleep(self._backoff(attempt))
                continue

            if self._is_retryable_status(resp.status_code) and not last_attempt:
                retry_after = self._parse_retry_after_s(resp.headers.get("Retry-After"))
                self._sleep(retry_after if retry_after is not None else self._backoff(attempt))
                continue

            return HttpResponse(
                url=str(resp.url),
                status_code=int(resp.status_code),
                data=resp.text,
                content_type=resp.headers.get("Content-Type"),
                headers=dict(resp.headers),
            )

        raise FetchError(url, None, f"HTTP failed for {url}")

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HttpResponse:
        return self._request("GET", url, headers=headers)

    def post(
        self,
        url: str,
        content: Union[str, bytes],
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        return self._request("POST", url, headers=headers, content=content)
