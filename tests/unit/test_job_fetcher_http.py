from __future__ import annotations

import httpx
import pytest

from careers_sync.job_fetcher.http import FetchError, HttpClient


def _make_http(handler, *, max_retries=2, sleeps=None) -> HttpClient:
    return HttpClient(
        user_agent="TestAgent/1.0",
        max_retries=max_retries,
        backoff_base_s=0.5,
        transport=httpx.MockTransport(handler),
        sleep=(sleeps.append if sleeps is not None else (lambda _s: None)),
    )


def test_retries_server_errors_then_succeeds():
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, text="ok", headers={"Content-Type": "text/plain"})

    with _make_http(handler, sleeps=sleeps) as http:
        resp = http.get("https://example.com/page")

    assert resp.success
    assert resp.data == "ok"
    assert resp.content_type == "text/plain"
    assert len(calls) == 3
    assert len(sleeps) == 2


def test_retry_after_header_is_honoured():
    sleeps = []
    state = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        state["n"] += 1
        if state["n"] == 1:
            return httpx.Response(429, headers={"Retry-After": "7"})
        return httpx.Response(200, text="ok")

    with _make_http(handler, sleeps=sleeps) as http:
        assert http.get("https://example.com/").success

    assert sleeps == [7.0]


def test_final_error_status_is_returned_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with _make_http(handler, max_retries=1) as http:
        resp = http.get("https://example.com/")

    assert resp.status_code == 500
    assert not resp.success


def test_transport_errors_raise_fetch_error_after_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _make_http(handler, max_retries=1) as http:
        with pytest.raises(FetchError) as exc:
            http.get("https://example.com/")

    assert exc.value.url == "https://example.com/"
    assert exc.value.status_code is None


def test_url_without_host_is_rejected():
    with _make_http(lambda request: httpx.Response(200)) as http:
        with pytest.raises(FetchError):
            http.get("/relative/path")


def test_post_sends_body_and_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        seen["sig"] = request.headers.get("X-Sig")
        return httpx.Response(200, json={"ok": True})

    with _make_http(handler) as http:
        resp = http.post("https://example.com/hook", '{"a": 1}', {"X-Sig": "abc"})

    assert seen == {"body": b'{"a": 1}', "sig": "abc"}
    assert resp.json() == {"ok": True}
