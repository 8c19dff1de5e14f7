"""
OneWallet Client - Signed Request Executor

One logical call, possibly several physical attempts:

    sign -> send -> classify -> (success | application error | backoff and retry)

Each attempt gets a fresh Date header and signature. Transport failures
are retried through the BackoffPolicy; application errors are returned to
the caller straight away.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Collection
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from .backoff import BackoffPolicy, BackoffState, Sleep
from .exceptions import (
    ApplicationError,
    RequestTimeoutError,
    RetryBudgetExhaustedError,
    TransportError,
)
from .signing import http_date, sign_request
from .utils import (
    Outcome,
    Rejected,
    RequestLogger,
    RequestSpec,
    Success,
    TransportFailure,
    TransportResponse,
)

DEFAULT_SUCCESS_STATUSES: frozenset[int] = frozenset({200, 201})


# =============================================================================
# TRANSPORT
# =============================================================================


class Transport(Protocol):
    """Sends one HTTP request and returns the raw response."""

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: str | None,
        timeout: float,
    ) -> TransportResponse:
        """
        Send a request.

        Raises:
            RequestTimeoutError: If no response arrived within `timeout`.
            TransportError: On any other network-level failure.
        """
        ...


class HTTPXTransport:
    """Transport backed by an `httpx.AsyncClient`."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: str | None,
        timeout: float,
    ) -> TransportResponse:
        try:
            # httpx timeouts apply per phase; wait_for bounds the whole attempt
            response = await asyncio.wait_for(
                self._client.request(
                    method,
                    url,
                    headers=headers,
                    content=content.encode("utf-8") if content is not None else None,
                    timeout=timeout,
                ),
                timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeoutError(timeout, cause=e) from e
        except httpx.RequestError as e:
            raise TransportError(f"{type(e).__name__}: {e}", cause=e) from e

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )


# =============================================================================
# OUTCOME CLASSIFICATION
# =============================================================================


def parse_payload(text: str) -> Any:
    """Parse a response body as JSON, falling back to the raw text."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def classify(
    result: TransportResponse | TransportError,
    success_statuses: Collection[int] = DEFAULT_SUCCESS_STATUSES,
) -> Outcome:
    """
    Map a transport result onto an outcome.

    Args:
        result: The response, or the transport error that replaced it.
        success_statuses: HTTP statuses that count as success.

    Returns:
        Success, Rejected or TransportFailure.
    """
    if isinstance(result, TransportError):
        return TransportFailure(cause=result)

    payload = parse_payload(result.text)

    if result.status_code in success_statuses:
        return Success(payload=payload, status_code=result.status_code)

    fields = payload if isinstance(payload, dict) else {}
    code = fields.get("code")
    message = fields.get("message")
    return Rejected(
        code=str(code) if code else str(result.status_code),
        message=str(message) if message else result.text,
        status_code=result.status_code,
        payload=payload,
    )


# =============================================================================
# EXECUTOR
# =============================================================================


class RequestExecutor:
    """
    Runs signed requests with retry on transport failures.

    Holds no per-call state: one executor can serve any number of
    concurrent `execute` calls.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        success_statuses: Collection[int] = DEFAULT_SUCCESS_STATUSES,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
        request_logger: RequestLogger | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            transport: Network capability used for every attempt.
            success_statuses: HTTP statuses classified as success.
            sleep: Coroutine used for backoff waits.
            clock: Source of the Date header timestamp. Defaults to UTC now.
            request_logger: Structured logger for attempts and retries.
        """
        self._transport = transport
        self._success_statuses = frozenset(success_statuses)
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._request_logger = request_logger or RequestLogger()

    async def execute(self, spec: RequestSpec) -> Success:
        """
        Execute one logical call.

        Args:
            spec: The request to send.

        Returns:
            The Success outcome carrying the parsed response payload.

        Raises:
            ApplicationError: The service answered with a non-success status.
            RetryBudgetExhaustedError: Transport failures outlasted the retry
                budget. Chained from the last transport error.
        """
        policy = BackoffPolicy(spec.max_retries)
        state = BackoffState.initial(spec.backoff_initial_delay)
        log = self._request_logger

        while True:
            signed = sign_request(spec, http_date(self._clock()))
            log.log_attempt(signed.method, signed.url, state.attempt + 1)

            try:
                response = await self._transport.send(
                    signed.method,
                    signed.url,
                    signed.headers,
                    signed.content,
                    spec.timeout,
                )
            except TransportError as e:
                outcome = classify(e)
            else:
                outcome = classify(response, self._success_statuses)

            if isinstance(outcome, Success):
                log.log_success(signed.method, signed.url, outcome.status_code)
                return outcome

            if isinstance(outcome, Rejected):
                log.log_rejected(signed.method, signed.url, outcome.code, outcome.status_code)
                raise ApplicationError(
                    code=outcome.code,
                    message=outcome.message,
                    status_code=outcome.status_code,
                    payload=outcome.payload,
                )

            try:
                delay, state = policy.next_delay(state, outcome.cause)
            except RetryBudgetExhaustedError as e:
                log.log_exhausted(signed.method, signed.url, e.attempts, str(outcome.cause))
                raise e from outcome.cause

            log.log_retry(signed.method, signed.url, delay, state.attempt, str(outcome.cause))
            await self._sleep(delay)
