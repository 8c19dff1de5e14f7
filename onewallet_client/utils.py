"""
OneWallet Client - Data Models and Utilities

Helper types and functions for:
- Request description (RequestSpec, SignedRequest)
- Transport responses and classified outcomes
- Logging utilities
- Validation and id generation
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("onewallet")

HTTPMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]


# =============================================================================
# DATA MODELS
# =============================================================================


class RequestSpec(BaseModel):
    """
    Immutable description of one logical API call, before signing.

    The path arrives fully rendered, query string included. The body is
    ignored for GET requests.
    """

    method: HTTPMethod = Field(default="GET", description="HTTP method")
    path: str = Field(default="/", description="URL path plus query string")
    body: dict[str, Any] | None = Field(default=None, description="JSON request body")
    base_url: str = Field(alias="baseUrl", description="Service base URL")
    access_id: str = Field(default="", alias="accessId", description="Provider access id")
    secret_key: str = Field(
        alias="secretKey", min_length=1, repr=False, description="Provider secret key"
    )
    timeout: float = Field(default=3.0, gt=0, description="Per-attempt timeout in seconds")
    max_retries: int = Field(
        default=1, ge=0, alias="maxRetries", description="Retry budget (0 = no retry)"
    )
    backoff_initial_delay: float = Field(
        default=0.05,
        ge=0,
        alias="backoffInitialDelay",
        description="First backoff wait in seconds",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def url(self) -> str:
        """Absolute URL of the request."""
        return f"{self.base_url.rstrip('/')}{self.path}"


class SignedRequest(BaseModel):
    """A request ready for the wire. Valid for a single attempt only."""

    method: HTTPMethod
    path: str
    url: str
    content: str | None = Field(default=None, description="Serialized JSON body")
    headers: dict[str, str]

    model_config = ConfigDict(frozen=True)


class TransportResponse(BaseModel):
    """Status, headers and body text returned by a transport."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    text: str = ""


# =============================================================================
# OUTCOMES
# =============================================================================


@dataclass(frozen=True)
class Success:
    """The service accepted the request."""

    payload: Any
    status_code: int = 200


@dataclass(frozen=True)
class Rejected:
    """The service gave a definitive non-success answer."""

    code: str
    message: str
    status_code: int
    payload: Any = None


@dataclass(frozen=True)
class TransportFailure:
    """No answer was obtained. Retryable."""

    cause: BaseException


Outcome = Success | Rejected | TransportFailure


# =============================================================================
# LOGGING UTILITIES
# =============================================================================


class RequestLogger:
    """
    Structured logger for signed requests.

    Never logs credentials, signatures or request bodies.
    """

    def __init__(self, logger_name: str = "onewallet.requests") -> None:
        self.logger = logging.getLogger(logger_name)

    def log_attempt(self, method: str, url: str, attempt: int) -> None:
        """Log an outgoing attempt."""
        self.logger.debug(
            "Sending request",
            extra={
                "event": "request_attempt",
                "method": method,
                "url": self._redact_url(url),
                "attempt": attempt,
            },
        )

    def log_success(self, method: str, url: str, status_code: int) -> None:
        """Log a successful response."""
        self.logger.debug(
            "Request succeeded",
            extra={
                "event": "request_success",
                "method": method,
                "url": self._redact_url(url),
                "status_code": status_code,
            },
        )

    def log_rejected(self, method: str, url: str, code: str, status_code: int) -> None:
        """Log a definitive error answer."""
        self.logger.info(
            "Request rejected",
            extra={
                "event": "request_rejected",
                "method": method,
                "url": self._redact_url(url),
                "error_code": code,
                "status_code": status_code,
            },
        )

    def log_retry(self, method: str, url: str, delay: float, attempt: int, error: str) -> None:
        """Log a scheduled retry."""
        self.logger.warning(
            "Transport failure, retrying",
            extra={
                "event": "request_retry",
                "method": method,
                "url": self._redact_url(url),
                "delay_seconds": delay,
                "retry": attempt,
                "error": error,
            },
        )

    def log_exhausted(self, method: str, url: str, attempts: int, error: str) -> None:
        """Log a call that ran out of retries."""
        self.logger.warning(
            "Retry budget exhausted",
            extra={
                "event": "request_exhausted",
                "method": method,
                "url": self._redact_url(url),
                "attempts": attempts,
                "error": error,
            },
        )

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact query parameters for logging."""
        if "?" in url:
            base, _ = url.split("?", 1)
            return f"{base}?[REDACTED]"
        return url


# =============================================================================
# VALIDATION UTILITIES
# =============================================================================


def validate_base_url(url: str) -> str:
    """
    Validate and normalize a service base URL.

    Args:
        url: The base URL to validate.

    Returns:
        Normalized URL without trailing slash.

    Raises:
        ValueError: If URL is invalid.
    """
    if not url:
        raise ValueError("Base URL cannot be empty")

    url = url.rstrip("/")

    if not url.startswith(("http://", "https://")):
        raise ValueError(f"Invalid URL scheme: {url}")

    return url


def parse_status_set(value: str) -> frozenset[int]:
    """Parse a comma separated list of HTTP status codes, e.g. "200,201"."""
    statuses = frozenset(int(part) for part in value.split(",") if part.strip())
    if not statuses:
        raise ValueError("Success status set cannot be empty")
    return statuses


def new_transaction_id() -> str:
    """Generate a fresh transaction id."""
    return str(uuid.uuid4())


def quote_segment(value: Any) -> str:
    """Percent-encode a single path segment, slashes included."""
    return quote(str(value), safe="")


def build_query(params: dict[str, Any]) -> str:
    """Encode query parameters, skipping those that are None."""
    return urlencode({k: v for k, v in params.items() if v is not None})
