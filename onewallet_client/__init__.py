"""
OneWallet Client - Python SDK for the OneWallet service API

Signed wallet and betting calls with automatic retry on network failures.

Quick Start:
    from onewallet_client import OneWalletClient

    async with OneWalletClient(access_id="TEST", secret_key="...") as client:
        info = await client.get_user_info("1")
        print(f"Balance: {info['balance']}")

        # Money-moving calls retry on timeouts, never on service errors
        await client.debit("1", session_id="s-1", amount="10.00", gameType="SLOT")

Configuration:
    Set these environment variables or pass to constructor:
    - ONEWALLET_BASE_URL: Service URL (default: https://api.as2bet.com)
    - ONEWALLET_ACCESS_ID / ONEWALLET_SECRET_KEY: Provider credentials
    - ONEWALLET_TIMEOUT: Per-attempt timeout in seconds
    - ONEWALLET_BACKOFF_INITIAL_DELAY: First retry wait in seconds
    - ONEWALLET_SUCCESS_STATUSES: Success statuses (default: 200,201)

Lower level:
    executor = RequestExecutor(HTTPXTransport(httpx.AsyncClient()))
    outcome = await executor.execute(RequestSpec(method="GET", path="/users/1", ...))
"""

from .backoff import BackoffPolicy, BackoffState
from .core import (
    DEFAULT_USER_FIELDS,
    # Main client classes
    OneWalletClient,
    OneWalletConfig,
    SyncOneWalletClient,
    # Convenience functions
    create_client,
)
from .exceptions import (
    # Service errors
    ApplicationError,
    # Configuration errors
    ConfigurationError,
    # Base
    OneWalletError,
    RequestTimeoutError,
    RetryBudgetExhaustedError,
    # Network errors
    TransportError,
)
from .executor import (
    DEFAULT_SUCCESS_STATUSES,
    HTTPXTransport,
    RequestExecutor,
    Transport,
    classify,
)
from .signing import http_date, sign, sign_request
from .utils import (
    Outcome,
    Rejected,
    RequestLogger,
    # Data models
    RequestSpec,
    SignedRequest,
    Success,
    TransportFailure,
    TransportResponse,
    new_transaction_id,
)

__version__ = "0.1.0"
__all__ = [
    # Version
    "__version__",
    # Main client
    "OneWalletClient",
    "OneWalletConfig",
    "SyncOneWalletClient",
    "create_client",
    "DEFAULT_USER_FIELDS",
    # Engine
    "RequestExecutor",
    "Transport",
    "HTTPXTransport",
    "BackoffPolicy",
    "BackoffState",
    "classify",
    "sign",
    "sign_request",
    "http_date",
    "DEFAULT_SUCCESS_STATUSES",
    # Data models
    "RequestSpec",
    "SignedRequest",
    "TransportResponse",
    "Outcome",
    "Success",
    "Rejected",
    "TransportFailure",
    # Exceptions
    "OneWalletError",
    "ApplicationError",
    "TransportError",
    "RequestTimeoutError",
    "RetryBudgetExhaustedError",
    "ConfigurationError",
    # Utilities
    "RequestLogger",
    "new_transaction_id",
]
