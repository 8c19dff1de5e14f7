"""
OneWallet Client - Core Module

The main OneWalletClient implementation providing:
- Signed wallet API calls (sessions, user info, debit, credit, bets)
- Retry with backoff on transport failures for money-moving calls
- Environment-backed configuration
- A blocking wrapper for non-async callers

Usage:
    from onewallet_client import OneWalletClient

    async with OneWalletClient(access_id="TEST", secret_key="...") as client:
        info = await client.get_user_info("1")
        await client.debit("1", session_id="s-1", amount="10.00", gameType="SLOT")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Awaitable, Collection, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from .exceptions import ConfigurationError
from .executor import HTTPXTransport, RequestExecutor
from .utils import (
    RequestLogger,
    RequestSpec,
    build_query,
    new_transaction_id,
    parse_status_set,
    quote_segment,
    validate_base_url,
)

logger = logging.getLogger("onewallet")

T = TypeVar("T")

DEFAULT_USER_FIELDS: tuple[str, ...] = (
    "balance",
    "currency",
    "country",
    "username",
    "nickname",
    "firstName",
    "lastName",
    "birthday",
    "email",
)

# Retry budgets per call kind
SESSION_RETRIES = 0
TRANSACTION_RETRIES = 5
BET_RETRIES = 2


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class OneWalletConfig:
    """
    Configuration for the OneWalletClient.

    Can be set via constructor arguments or environment variables.

    Environment Variables:
        ONEWALLET_BASE_URL: Wallet service URL
        ONEWALLET_ACCESS_ID: Provider access id
        ONEWALLET_SECRET_KEY: Provider secret key
        ONEWALLET_TIMEOUT: Per-attempt timeout in seconds
        ONEWALLET_BACKOFF_INITIAL_DELAY: First retry wait in seconds
        ONEWALLET_SUCCESS_STATUSES: Comma separated success statuses (200,201)
    """

    base_url: str = field(
        default_factory=lambda: os.environ.get("ONEWALLET_BASE_URL", "https://api.as2bet.com")
    )

    access_id: str | None = field(default_factory=lambda: os.environ.get("ONEWALLET_ACCESS_ID"))
    secret_key: str | None = field(
        default_factory=lambda: os.environ.get("ONEWALLET_SECRET_KEY"), repr=False
    )

    # Network settings
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("ONEWALLET_TIMEOUT", "3.0"))
    )
    backoff_initial_delay: float = field(
        default_factory=lambda: float(os.environ.get("ONEWALLET_BACKOFF_INITIAL_DELAY", "0.05"))
    )
    success_statuses: frozenset[int] = field(
        default_factory=lambda: parse_status_set(
            os.environ.get("ONEWALLET_SUCCESS_STATUSES", "200,201")
        )
    )

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        try:
            self.base_url = validate_base_url(self.base_url)
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="base_url") from e
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Timeout must be positive: {self.timeout}", config_key="timeout"
            )
        if self.backoff_initial_delay < 0:
            raise ConfigurationError(
                f"Backoff delay cannot be negative: {self.backoff_initial_delay}",
                config_key="backoff_initial_delay",
            )
        if not self.success_statuses:
            raise ConfigurationError(
                "Success status set cannot be empty", config_key="success_statuses"
            )


# =============================================================================
# MAIN CLIENT
# =============================================================================


class OneWalletClient:
    """
    Async client for the OneWallet service API.

    Usage:
        # Async context manager (recommended)
        async with OneWalletClient(access_id="TEST", secret_key="...") as client:
            session = await client.create_game_session("1")

        # Manual lifecycle
        client = OneWalletClient()
        await client.connect()
        try:
            # ... use client ...
        finally:
            await client.close()

    Every method returns the parsed response payload, or raises
    ApplicationError / RetryBudgetExhaustedError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        access_id: str | None = None,
        secret_key: str | None = None,
        timeout: float | None = None,
        backoff_initial_delay: float | None = None,
        success_statuses: Collection[int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the OneWallet client.

        Args:
            base_url: Service URL (or use ONEWALLET_BASE_URL).
            access_id: Provider access id.
            secret_key: Provider secret key.
            timeout: Per-attempt timeout in seconds.
            backoff_initial_delay: First retry wait in seconds.
            success_statuses: HTTP statuses treated as success.
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        # Constructor arguments override the environment and are validated with it
        overrides: dict[str, Any] = {
            "base_url": base_url or None,
            "access_id": access_id,
            "secret_key": secret_key,
            "timeout": timeout,
            "backoff_initial_delay": backoff_initial_delay,
            "success_statuses": frozenset(success_statuses) if success_statuses is not None else None,
        }
        self._config = OneWalletConfig(**{k: v for k, v in overrides.items() if v is not None})

        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self._executor: RequestExecutor | None = None
        self._request_logger = RequestLogger()

    async def __aenter__(self) -> OneWalletClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def connect(self) -> None:
        """Create the HTTP client and the request executor."""
        if self._http_client is not None:
            return

        self._http_client = httpx.AsyncClient(
            timeout=self._config.timeout,
            transport=self._transport,
        )
        self._executor = RequestExecutor(
            HTTPXTransport(self._http_client),
            success_statuses=self._config.success_statuses,
            request_logger=self._request_logger,
        )
        logger.info(f"OneWallet client ready for {self._config.base_url}")

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            self._executor = None

    def has_credentials(self) -> bool:
        """Check if access id and secret key are set."""
        return bool(self._config.access_id and self._config.secret_key)

    # =========================================================================
    # SESSIONS & USERS
    # =========================================================================

    async def authenticate_user(self, username: str, password: str, **extra: Any) -> Any:
        """
        Check validity of user credentials.

        Args:
            username: Player username.
            password: Player password.
            **extra: Additional body fields.
        """
        return await self._send(
            "POST",
            "/users/authenticate",
            body={"username": username, "password": password, **extra},
            max_retries=SESSION_RETRIES,
        )

    async def create_game_session(self, user_id: str, **extra: Any) -> Any:
        """
        Create a game session for a player.

        Args:
            user_id: Player id.
            **extra: Session body fields (e.g. gameType).
        """
        return await self._send(
            "POST",
            f"/users/{quote_segment(user_id)}/sessions",
            body=dict(extra),
            max_retries=SESSION_RETRIES,
        )

    async def get_user_info(
        self,
        user_id: str,
        fields: Sequence[str] = DEFAULT_USER_FIELDS,
    ) -> Any:
        """
        Retrieve player info.

        Args:
            user_id: Player id.
            fields: Fields to return.
        """
        query = build_query({"fields": ",".join(fields)})
        return await self._send(
            "GET",
            f"/users/{quote_segment(user_id)}?{query}",
            max_retries=SESSION_RETRIES,
        )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def debit(
        self,
        user_id: str,
        session_id: str,
        amount: str,
        *,
        round_id: str | None = None,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """
        Debit an amount from a player's account.

        Args:
            user_id: Player id.
            session_id: Game session id.
            amount: Amount to debit.
            round_id: Optional game round id.
            transaction_id: Idempotency key. Generated when omitted.
            **extra: Additional body fields (e.g. gameType).
        """
        return await self._transaction(
            "DEBIT",
            user_id,
            session_id,
            round_id=round_id,
            transaction_id=transaction_id,
            body={"amount": amount, **extra},
        )

    async def cancel_debit(
        self,
        user_id: str,
        session_id: str,
        debit_transaction_id: str,
        *,
        round_id: str | None = None,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """Cancel an earlier debit."""
        return await self._transaction(
            "CANCEL_DEBIT",
            user_id,
            session_id,
            round_id=round_id,
            transaction_id=transaction_id,
            body={"debitTransactionId": debit_transaction_id, **extra},
        )

    async def credit(
        self,
        user_id: str,
        session_id: str,
        amount: str,
        *,
        round_id: str | None = None,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """Credit an amount into a player's account."""
        return await self._transaction(
            "CREDIT",
            user_id,
            session_id,
            round_id=round_id,
            transaction_id=transaction_id,
            body={"amount": amount, **extra},
        )

    async def end_round(self, user_id: str, session_id: str, round_id: str, **extra: Any) -> Any:
        """Mark a game round as finished."""
        query = build_query({"sessionId": session_id})
        return await self._send(
            "POST",
            f"/users/{quote_segment(user_id)}/rounds/{quote_segment(round_id)}/end?{query}",
            body=dict(extra),
            max_retries=SESSION_RETRIES,
        )

    # =========================================================================
    # BETS
    # =========================================================================

    async def bet(
        self,
        user_id: str,
        session_id: str,
        reference_id: str,
        bet_amount: str,
        *,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """Place a bet."""
        return await self._bet_transaction(
            "BET",
            user_id,
            session_id,
            reference_id,
            transaction_id=transaction_id,
            body={"betAmount": bet_amount, **extra},
        )

    async def result(
        self,
        user_id: str,
        session_id: str,
        reference_id: str,
        winloss: str,
        *,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """Settle a bet with its win/loss amount."""
        return await self._bet_transaction(
            "RESULT",
            user_id,
            session_id,
            reference_id,
            transaction_id=transaction_id,
            body={"winloss": winloss, **extra},
        )

    async def cancel(
        self,
        user_id: str,
        session_id: str,
        reference_id: str,
        *,
        transaction_id: str | None = None,
        **extra: Any,
    ) -> Any:
        """Cancel a bet."""
        return await self._bet_transaction(
            "CANCEL",
            user_id,
            session_id,
            reference_id,
            transaction_id=transaction_id,
            body=dict(extra),
        )

    # =========================================================================
    # INTERNAL METHODS
    # =========================================================================

    def _ensure_credentials(self) -> None:
        """Ensure credentials are set, raise if not."""
        if not self._config.access_id:
            raise ConfigurationError("Access id is not configured.", config_key="access_id")
        if not self._config.secret_key:
            raise ConfigurationError("Secret key is not configured.", config_key="secret_key")

    def _build_spec(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        max_retries: int = 0,
    ) -> RequestSpec:
        """Build a RequestSpec from the client configuration."""
        self._ensure_credentials()
        return RequestSpec(
            method=method,
            path=path,
            body=body,
            base_url=self._config.base_url,
            access_id=self._config.access_id,
            secret_key=self._config.secret_key,
            timeout=self._config.timeout,
            max_retries=max_retries,
            backoff_initial_delay=self._config.backoff_initial_delay,
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        max_retries: int = 0,
    ) -> Any:
        """Execute a call and return the success payload."""
        if self._executor is None:
            raise ConfigurationError("Client not connected. Call connect() first.")

        spec = self._build_spec(method, path, body=body, max_retries=max_retries)
        outcome = await self._executor.execute(spec)
        return outcome.payload

    async def _transaction(
        self,
        kind: str,
        user_id: str,
        session_id: str,
        *,
        round_id: str | None,
        transaction_id: str | None,
        body: dict[str, Any],
    ) -> Any:
        """Send a debit/credit style transaction."""
        transaction_id = transaction_id or new_transaction_id()
        user_part = f"/users/{quote_segment(user_id)}"
        round_part = f"/rounds/{quote_segment(round_id)}" if round_id else ""
        query = build_query({"type": kind, "sessionId": session_id})
        return await self._send(
            "PUT",
            f"{user_part}{round_part}/transactions/{quote_segment(transaction_id)}?{query}",
            body=body,
            max_retries=TRANSACTION_RETRIES,
        )

    async def _bet_transaction(
        self,
        kind: str,
        user_id: str,
        session_id: str,
        reference_id: str,
        *,
        transaction_id: str | None,
        body: dict[str, Any],
    ) -> Any:
        """Send a bet/result/cancel transaction."""
        transaction_id = transaction_id or new_transaction_id()
        user_part = f"/users/{quote_segment(user_id)}"
        query = build_query({"type": kind, "sessionId": session_id, "referenceId": reference_id})
        return await self._send(
            "PUT",
            f"{user_part}/transactions/{quote_segment(transaction_id)}?{query}",
            body=body,
            max_retries=BET_RETRIES,
        )


# =============================================================================
# SYNCHRONOUS WRAPPER
# =============================================================================


class SyncOneWalletClient:
    """
    Synchronous wrapper around OneWalletClient.

    For callers that don't use async/await.

    Usage:
        with SyncOneWalletClient(access_id="TEST", secret_key="...") as client:
            info = client.get_user_info("1")
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        """Initialize the sync client (same args as OneWalletClient)."""
        self._async_client = OneWalletClient(*args, **kwargs)
        self._loop: asyncio.AbstractEventLoop | None = None

    def __enter__(self) -> SyncOneWalletClient:
        """Sync context manager entry."""
        self._loop = asyncio.new_event_loop()
        self._loop.run_until_complete(self._async_client.connect())
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Sync context manager exit."""
        if self._loop:
            self._loop.run_until_complete(self._async_client.close())
            self._loop.close()
            self._loop = None

    def _run(self, coro: Awaitable[T]) -> T:
        """Run a coroutine synchronously."""
        if not self._loop:
            raise ConfigurationError("Client not connected. Use with statement.")
        return self._loop.run_until_complete(coro)

    def authenticate_user(self, username: str, password: str, **extra: Any) -> Any:
        """Check user credentials (blocking)."""
        return self._run(self._async_client.authenticate_user(username, password, **extra))

    def create_game_session(self, user_id: str, **extra: Any) -> Any:
        """Create a game session (blocking)."""
        return self._run(self._async_client.create_game_session(user_id, **extra))

    def get_user_info(self, user_id: str, fields: Sequence[str] = DEFAULT_USER_FIELDS) -> Any:
        """Retrieve player info (blocking)."""
        return self._run(self._async_client.get_user_info(user_id, fields))

    def debit(self, user_id: str, session_id: str, amount: str, **kwargs: Any) -> Any:
        """Debit an amount (blocking)."""
        return self._run(self._async_client.debit(user_id, session_id, amount, **kwargs))

    def cancel_debit(
        self, user_id: str, session_id: str, debit_transaction_id: str, **kwargs: Any
    ) -> Any:
        """Cancel a debit (blocking)."""
        return self._run(
            self._async_client.cancel_debit(user_id, session_id, debit_transaction_id, **kwargs)
        )

    def credit(self, user_id: str, session_id: str, amount: str, **kwargs: Any) -> Any:
        """Credit an amount (blocking)."""
        return self._run(self._async_client.credit(user_id, session_id, amount, **kwargs))

    def end_round(self, user_id: str, session_id: str, round_id: str, **extra: Any) -> Any:
        """End a round (blocking)."""
        return self._run(self._async_client.end_round(user_id, session_id, round_id, **extra))

    def bet(
        self, user_id: str, session_id: str, reference_id: str, bet_amount: str, **kwargs: Any
    ) -> Any:
        """Place a bet (blocking)."""
        return self._run(
            self._async_client.bet(user_id, session_id, reference_id, bet_amount, **kwargs)
        )

    def result(
        self, user_id: str, session_id: str, reference_id: str, winloss: str, **kwargs: Any
    ) -> Any:
        """Settle a bet (blocking)."""
        return self._run(
            self._async_client.result(user_id, session_id, reference_id, winloss, **kwargs)
        )

    def cancel(self, user_id: str, session_id: str, reference_id: str, **kwargs: Any) -> Any:
        """Cancel a bet (blocking)."""
        return self._run(self._async_client.cancel(user_id, session_id, reference_id, **kwargs))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


@asynccontextmanager
async def create_client(
    access_id: str | None = None,
    secret_key: str | None = None,
    **kwargs: Any,
) -> AsyncIterator[OneWalletClient]:
    """
    Convenience function to create a connected OneWalletClient.

    Args:
        access_id: Provider access id.
        secret_key: Provider secret key.
        **kwargs: Additional OneWalletClient arguments.

    Yields:
        Connected OneWalletClient.

    Usage:
        async with create_client("TEST", "secret") as client:
            info = await client.get_user_info("1")
    """
    client = OneWalletClient(access_id=access_id, secret_key=secret_key, **kwargs)
    try:
        await client.connect()
        yield client
    finally:
        await client.close()
