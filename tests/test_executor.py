"""Tests for outcome classification and the signed request executor."""

import asyncio
import json
import re
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from onewallet_client import (
    ApplicationError,
    HTTPXTransport,
    Rejected,
    RequestExecutor,
    RequestSpec,
    RequestTimeoutError,
    RetryBudgetExhaustedError,
    Success,
    TransportError,
    TransportFailure,
    TransportResponse,
    classify,
    sign,
)

BASE_URL = "https://api.as2bet.com"


# =============================================================================
# FIXTURES
# =============================================================================


class ScriptedTransport:
    """Transport that replays a script of responses and errors."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    async def send(self, method, url, headers, content, timeout):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "content": content, "timeout": timeout}
        )
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_spec(**overrides):
    values = {
        "method": "POST",
        "path": "/users/1/sessions",
        "body": {"gameType": "SLOT"},
        "base_url": BASE_URL,
        "access_id": "TEST",
        "secret_key": "123456Seven",
        "timeout": 0.5,
        "max_retries": 0,
        "backoff_initial_delay": 0.1,
    }
    values.update(overrides)
    return RequestSpec(**values)


def ok(payload, status=200):
    return TransportResponse(status_code=status, text=json.dumps(payload))


@pytest.fixture
def sleep():
    return RecordingSleep()


# =============================================================================
# CLASSIFICATION TESTS
# =============================================================================


class TestClassify:
    """Tests for classify()."""

    def test_transport_error_is_retryable_failure(self):
        error = RequestTimeoutError(0.5)

        outcome = classify(error)

        assert outcome == TransportFailure(cause=error)

    @pytest.mark.parametrize("status", [200, 201])
    def test_success_statuses(self, status):
        outcome = classify(ok({"balance": 500}, status))

        assert isinstance(outcome, Success)
        assert outcome.payload == {"balance": 500}

    def test_unparseable_body_passes_through(self):
        outcome = classify(TransportResponse(status_code=200, text="OK"))

        assert outcome == Success(payload="OK", status_code=200)

    def test_error_with_code_and_message(self):
        outcome = classify(
            ok({"code": "ERR_INSUFFICIENT_BALANCE", "message": "Player 1 does not have balance"}, 409)
        )

        assert isinstance(outcome, Rejected)
        assert outcome.code == "ERR_INSUFFICIENT_BALANCE"
        assert outcome.message == "Player 1 does not have balance"
        assert outcome.status_code == 409

    def test_error_without_fields_uses_status_and_raw_body(self):
        outcome = classify(TransportResponse(status_code=502, text="Bad Gateway"))

        assert outcome.code == "502"
        assert outcome.message == "Bad Gateway"
        assert outcome.payload == "Bad Gateway"

    def test_error_with_json_but_no_message(self):
        outcome = classify(TransportResponse(status_code=400, text='{"code":"ERR_X"}'))

        assert outcome.code == "ERR_X"
        assert outcome.message == '{"code":"ERR_X"}'

    def test_custom_success_set(self):
        outcome = classify(ok({}, 201), success_statuses={200})

        assert isinstance(outcome, Rejected)
        assert outcome.code == "201"


# =============================================================================
# EXECUTOR TESTS
# =============================================================================


class TestRequestExecutor:
    """Tests for RequestExecutor.execute()."""

    @pytest.mark.asyncio
    async def test_success(self, sleep):
        transport = ScriptedTransport(ok({"sessionId": "s-1"}, 201))
        executor = RequestExecutor(transport, sleep=sleep)

        outcome = await executor.execute(make_spec())

        assert outcome.payload == {"sessionId": "s-1"}
        assert len(transport.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_sends_signed_request(self, sleep):
        transport = ScriptedTransport(ok({}))
        executor = RequestExecutor(transport, sleep=sleep)

        await executor.execute(make_spec())

        call = transport.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == f"{BASE_URL}/users/1/sessions"
        assert call["content"] == '{"gameType":"SLOT"}'
        assert call["timeout"] == 0.5
        assert re.fullmatch(r"OW TEST:.+", call["headers"]["Authorization"])
        assert call["headers"]["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_application_error_is_not_retried(self, sleep):
        transport = ScriptedTransport(
            ok({"code": "ERR_INSUFFICIENT_BALANCE", "message": "Player 1 does not have balance"}, 409)
        )
        executor = RequestExecutor(transport, sleep=sleep)

        with pytest.raises(ApplicationError) as exc:
            await executor.execute(make_spec(max_retries=5))

        assert exc.value.code == "ERR_INSUFFICIENT_BALANCE"
        assert exc.value.message == "Player 1 does not have balance"
        assert exc.value.status_code == 409
        assert len(transport.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_backoff_sequence_on_persistent_failure(self, sleep):
        transport = ScriptedTransport(TransportError("connection refused"))
        executor = RequestExecutor(transport, sleep=sleep)

        with pytest.raises(RetryBudgetExhaustedError) as exc:
            await executor.execute(make_spec(max_retries=7, backoff_initial_delay=0.1))

        assert [round(d * 1000) for d in sleep.delays] == [100, 100, 200, 300, 500, 800, 1300]
        assert len(transport.calls) == 8
        assert exc.value.attempts == 8
        assert exc.value.code == "ERR_TRANSPORT"
        assert isinstance(exc.value.__cause__, TransportError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    async def test_retry_budget(self, sleep, max_retries):
        transport = ScriptedTransport(RequestTimeoutError(0.5))
        executor = RequestExecutor(transport, sleep=sleep)

        with pytest.raises(RetryBudgetExhaustedError):
            await executor.execute(make_spec(max_retries=max_retries))

        assert len(sleep.delays) == max_retries
        assert len(transport.calls) == max_retries + 1

    @pytest.mark.asyncio
    async def test_recovers_after_timeout(self, sleep):
        transport = ScriptedTransport(RequestTimeoutError(0.5), ok({"balance": 10}))
        executor = RequestExecutor(transport, sleep=sleep)

        outcome = await executor.execute(make_spec(max_retries=2))

        assert outcome.payload == {"balance": 10}
        assert sleep.delays == [0.1]

    @pytest.mark.asyncio
    async def test_application_error_after_retry(self, sleep):
        transport = ScriptedTransport(
            TransportError("reset"), ok({"code": "ERR_DUPLICATE", "message": "dup"}, 409)
        )
        executor = RequestExecutor(transport, sleep=sleep)

        with pytest.raises(ApplicationError) as exc:
            await executor.execute(make_spec(max_retries=5))

        assert exc.value.code == "ERR_DUPLICATE"
        assert len(transport.calls) == 2
        assert sleep.delays == [0.1]

    @pytest.mark.asyncio
    async def test_fresh_date_and_signature_per_attempt(self, sleep):
        start = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
        ticks = iter(start + timedelta(seconds=i) for i in range(10))
        transport = ScriptedTransport(TransportError("down"), TransportError("down"), ok({}))
        executor = RequestExecutor(transport, sleep=sleep, clock=lambda: next(ticks))

        await executor.execute(make_spec(max_retries=2))

        dates = [c["headers"]["Date"] for c in transport.calls]
        auths = [c["headers"]["Authorization"] for c in transport.calls]
        assert dates == [
            "Mon, 19 Oct 2026 12:00:00 GMT",
            "Mon, 19 Oct 2026 12:00:01 GMT",
            "Mon, 19 Oct 2026 12:00:02 GMT",
        ]
        assert len(set(auths)) == 3
        for date, auth in zip(dates, auths):
            expected = sign("POST", "/users/1/sessions", {"gameType": "SLOT"}, date, "123456Seven")
            assert auth == f"OW TEST:{expected}"

    @pytest.mark.asyncio
    async def test_configurable_success_statuses(self, sleep):
        transport = ScriptedTransport(ok({}, 201))
        executor = RequestExecutor(transport, sleep=sleep, success_statuses={200})

        with pytest.raises(ApplicationError) as exc:
            await executor.execute(make_spec())

        assert exc.value.code == "201"

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self, sleep):
        transport = ScriptedTransport(ok({"ok": True}))
        executor = RequestExecutor(transport, sleep=sleep)

        results = await asyncio.gather(
            executor.execute(make_spec(path="/users/1/sessions")),
            executor.execute(make_spec(path="/users/2/sessions")),
        )

        assert [r.payload for r in results] == [{"ok": True}, {"ok": True}]
        assert {c["url"] for c in transport.calls} == {
            f"{BASE_URL}/users/1/sessions",
            f"{BASE_URL}/users/2/sessions",
        }

    @pytest.mark.asyncio
    async def test_cancellation_interrupts_backoff(self):
        transport = ScriptedTransport(TransportError("down"))
        executor = RequestExecutor(transport)

        task = asyncio.create_task(
            executor.execute(make_spec(max_retries=3, backoff_initial_delay=60))
        )
        while not transport.calls:
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(transport.calls) == 1


# =============================================================================
# WIRE TESTS
# =============================================================================


class TestHTTPXTransport:
    """Tests against httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_authorization_header_on_the_wire(self, sleep):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"userId": "1", "username": "zenoan", "balance": 500})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = RequestExecutor(HTTPXTransport(client), sleep=sleep)
            outcome = await executor.execute(
                make_spec(method="GET", path="/users/1?fields=balance", body=None)
            )

        assert outcome.payload == {"userId": "1", "username": "zenoan", "balance": 500}
        request = seen[0]
        path = request.url.raw_path.decode()
        assert path == "/users/1?fields=balance"
        assert request.content == b""
        assert "content-type" not in request.headers
        expected = sign("GET", path, None, request.headers["Date"], "123456Seven")
        assert request.headers["Authorization"] == f"OW TEST:{expected}"

    @pytest.mark.asyncio
    async def test_body_sent_as_signed(self, sleep):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, text="created")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = RequestExecutor(HTTPXTransport(client), sleep=sleep)
            outcome = await executor.execute(make_spec(body={"amount": "10.00"}))

        assert outcome.payload == "created"
        assert seen[0].content == b'{"amount":"10.00"}'
        assert seen[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_insufficient_balance_scenario(self, sleep):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                409,
                json={
                    "code": "ERR_INSUFFICIENT_BALANCE",
                    "message": "Player 1 does not have balance",
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = RequestExecutor(HTTPXTransport(client), sleep=sleep)
            with pytest.raises(ApplicationError) as exc:
                await executor.execute(make_spec(body=None, max_retries=0))

        assert exc.value.code == "ERR_INSUFFICIENT_BALANCE"
        assert exc.value.message == "Player 1 does not have balance"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_repeated_timeouts_exhaust_retries(self, sleep):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = RequestExecutor(HTTPXTransport(client), sleep=sleep)
            with pytest.raises(RetryBudgetExhaustedError) as exc:
                await executor.execute(make_spec(body=None, max_retries=2, timeout=0.5))

        assert len(calls) == 3
        assert len(sleep.delays) == 2
        assert exc.value.code == "ETIMEDOUT"
        assert exc.value.attempts == 3
        assert isinstance(exc.value.__cause__, RequestTimeoutError)
        assert isinstance(exc.value.__cause__.__cause__, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_slow_response_times_out_whole_attempt(self, sleep):
        calls = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            await asyncio.sleep(5)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = RequestExecutor(HTTPXTransport(client), sleep=sleep)
            with pytest.raises(RetryBudgetExhaustedError) as exc:
                await asyncio.wait_for(
                    executor.execute(make_spec(method="GET", body=None, timeout=0.05)),
                    2,
                )

        assert len(calls) == 1
        assert exc.value.code == "ETIMEDOUT"
        assert isinstance(exc.value.__cause__, RequestTimeoutError)

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transport = HTTPXTransport(client)
            with pytest.raises(TransportError) as exc:
                await transport.send("GET", f"{BASE_URL}/users/1", {}, None, 0.5)

        assert not isinstance(exc.value, RequestTimeoutError)
        assert isinstance(exc.value.cause, httpx.ConnectError)
