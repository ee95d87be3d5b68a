"""Tests for the retrying HTTP transport (infra/transport.py).

Every request is served by ``httpx.MockTransport``; no network access.

Coverage:
* Auth header, JSON body and User-Agent wiring.
* Failure classification: fatal-auth, transient, terminal.
* Retry loop: attempts, notices, exhaustion.
* Cancellation and deadlines interrupt the request and the backoff sleep.
* Backoff bounds and envelope decoding.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from collections.abc import Callable

import httpx
import pytest

from forge_cli.exceptions import (
    APIError,
    AuthenticationError,
    MissingDataError,
    ResponseDecodeError,
    RetriesExhaustedError,
    TransientAPIError,
    TransportFailure,
    ValidationError,
)
from forge_cli.infra.transport import (
    RequestConfig,
    RetryNotice,
    Transport,
    backoff_delay,
    is_retryable,
    parse_response,
)

BASE = "http://forge.test"
FAST = RequestConfig(max_retries=3, base_delay=0.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class Recorder:
    """Mock handler replaying a fixed list of responses or exceptions."""

    def __init__(self, *outcomes: httpx.Response | Exception) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _ok(data: object = None) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


def _transport(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    token: str = "tok",
    config: RequestConfig = FAST,
    notices: list[RetryNotice] | None = None,
) -> Transport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    on_retry = notices.append if notices is not None else None
    return Transport(BASE, token, client=client, on_retry=on_retry, config=config)


def _send(transport: Transport, method: str = "GET", path: str = "/api/user", body=None) -> bytes:
    return asyncio.run(transport.send(method, path, body))


# ---------------------------------------------------------------------------
# Request wiring
# ---------------------------------------------------------------------------

class TestRequestWiring:
    def test_auth_header_and_body(self) -> None:
        recorder = Recorder(_ok({"id": "u1"}))
        body = _send(_transport(recorder), "PUT", "/api/user", {"name": "Ada"})

        request = recorder.requests[0]
        assert request.url == f"{BASE}/api/user"
        assert request.headers["Authorization"] == "ArgusID tok"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"name": "Ada"}
        assert json.loads(body) == {"data": {"id": "u1"}}

    def test_no_auth_header_without_token(self) -> None:
        recorder = Recorder(_ok())
        _send(_transport(recorder, token=""))
        assert "Authorization" not in recorder.requests[0].headers

    def test_set_token(self) -> None:
        recorder = Recorder(_ok())
        transport = _transport(recorder, token="")
        transport.set_token("fresh")
        _send(transport)
        assert recorder.requests[0].headers["Authorization"] == "ArgusID fresh"

    def test_unencodable_body_is_validation_error(self) -> None:
        recorder = Recorder(_ok())
        with pytest.raises(ValidationError):
            _send(_transport(recorder), "POST", "/x", {"bad": object()})
        assert recorder.requests == []

    def test_injected_client_is_not_closed(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder(_ok())))
        transport = Transport(BASE, client=client)
        asyncio.run(transport.aclose())
        assert not client.is_closed


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------

class TestClassification:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures_are_not_retried(self, status: int) -> None:
        recorder = Recorder(httpx.Response(status))
        notices: list[RetryNotice] = []
        with pytest.raises(AuthenticationError) as exc_info:
            _send(_transport(recorder, notices=notices))
        assert len(recorder.requests) == 1
        assert notices == []
        assert exc_info.value.status_code == status
        assert exc_info.value.hint

    def test_terminal_error_uses_server_message(self) -> None:
        recorder = Recorder(httpx.Response(404, json={"message": "project not found"}))
        with pytest.raises(APIError) as exc_info:
            _send(_transport(recorder))
        assert not isinstance(exc_info.value, TransientAPIError)
        assert str(exc_info.value) == "project not found"
        assert len(recorder.requests) == 1

    def test_status_line_when_body_has_no_message(self) -> None:
        recorder = Recorder(httpx.Response(400, text="nope"))
        with pytest.raises(APIError, match="400 Bad Request"):
            _send(_transport(recorder))

    def test_transient_marker_in_message(self) -> None:
        recorder = Recorder(
            httpx.Response(400, json={"message": "upstream returned 502"}),
            _ok(),
        )
        _send(_transport(recorder))
        assert len(recorder.requests) == 2

    def test_connect_error_is_terminal(self) -> None:
        recorder = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(TransportFailure) as exc_info:
            _send(_transport(recorder))
        assert not exc_info.value.transient
        assert len(recorder.requests) == 1

    def test_is_retryable(self) -> None:
        assert is_retryable(TransientAPIError("503"))
        assert is_retryable(TransportFailure("slow", transient=True))
        assert not is_retryable(AuthenticationError("401 Unauthorized."))
        assert not is_retryable(APIError("404"))


# ---------------------------------------------------------------------------
# Retry loop
# ---------------------------------------------------------------------------

class TestRetries:
    def test_recovers_after_transient_failure(self) -> None:
        recorder = Recorder(httpx.Response(503), _ok("done"))
        notices: list[RetryNotice] = []
        body = _send(_transport(recorder, notices=notices))

        assert json.loads(body)["data"] == "done"
        assert len(recorder.requests) == 2
        assert [n.status for n in notices] == ["retrying", "settled"]
        assert notices[0].attempt == 1
        assert notices[0].max_retries == 3
        assert isinstance(notices[0].error, TransientAPIError)

    def test_timeout_is_retried(self) -> None:
        recorder = Recorder(httpx.ReadTimeout("slow"), _ok())
        _send(_transport(recorder))
        assert len(recorder.requests) == 2

    def test_exhaustion(self) -> None:
        recorder = Recorder(httpx.Response(503))
        notices: list[RetryNotice] = []
        with pytest.raises(RetriesExhaustedError) as exc_info:
            _send(_transport(recorder, notices=notices))

        assert len(recorder.requests) == FAST.max_retries
        assert isinstance(exc_info.value.last_error, TransientAPIError)
        assert [n.status for n in notices] == ["retrying", "retrying", "settled"]

    def test_no_notices_without_retries(self) -> None:
        notices: list[RetryNotice] = []
        _send(_transport(Recorder(_ok()), notices=notices))
        assert notices == []

    def test_cancellation_interrupts_backoff(self) -> None:
        recorder = Recorder(httpx.Response(503))
        transport = _transport(recorder, config=RequestConfig(max_retries=5, base_delay=10.0))

        async def scenario() -> None:
            task = asyncio.create_task(transport.send("GET", "/api/user"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        started = time.monotonic()
        asyncio.run(scenario())
        assert time.monotonic() - started < 5
        assert len(recorder.requests) == 1

    def test_cancellation_interrupts_request_in_flight(self) -> None:
        seen: list[httpx.Request] = []

        async def stalled(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            await asyncio.sleep(30)
            return _ok()

        notices: list[RetryNotice] = []
        transport = _transport(stalled, notices=notices)

        async def scenario() -> None:
            task = asyncio.create_task(transport.send("GET", "/api/user"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        started = time.monotonic()
        asyncio.run(scenario())
        assert time.monotonic() - started < 5
        assert len(seen) == 1
        assert notices == []

    def test_deadline_stops_retry_loop(self) -> None:
        recorder = Recorder(httpx.Response(503))
        transport = _transport(recorder, config=RequestConfig(max_retries=5, base_delay=5.0))

        async def scenario() -> None:
            async with asyncio.timeout(0.1):
                await transport.send("GET", "/api/user")

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            asyncio.run(scenario())
        assert time.monotonic() - started < 5
        assert len(recorder.requests) == 1


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestBackoff:
    @pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4])
    def test_bounds(self, attempt: int) -> None:
        rng = random.Random(attempt)
        base = 0.1 * (1 << attempt)
        for _ in range(50):
            delay = backoff_delay(0.1, attempt, rng)
            assert base <= delay <= base * 1.5

    def test_request_config_validation(self) -> None:
        with pytest.raises(ValueError):
            RequestConfig(max_retries=0)
        with pytest.raises(ValueError):
            RequestConfig(base_delay=-1)


class TestParseResponse:
    def test_unwraps_data(self) -> None:
        assert parse_response(b'{"data": [1, 2]}', list) == [1, 2]

    def test_missing_data(self) -> None:
        with pytest.raises(MissingDataError):
            parse_response(b'{"message": "none"}', list)

    def test_invalid_json(self) -> None:
        with pytest.raises(ResponseDecodeError):
            parse_response(b"<html>", list)

    def test_decoder_rejection(self) -> None:
        def decoder(raw: object) -> int:
            raise TypeError("wrong shape")

        with pytest.raises(ResponseDecodeError):
            parse_response(b'{"data": "x"}', decoder)
