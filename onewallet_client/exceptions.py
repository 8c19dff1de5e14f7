"""
OneWallet Client - Exception Classes

Typed exceptions for the signed-request engine and the endpoint layer.

The split that matters to callers:
- ApplicationError: the wallet service answered and said no. Never retried.
- TransportError: the request never got a definitive answer. Retried by
  the executor until the retry budget runs out, then surfaced as
  RetryBudgetExhaustedError.
"""

from typing import Any


class OneWalletError(Exception):
    """Base exception for all OneWallet client errors."""

    code: str = "ERR_REQUEST"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional structured details for debugging.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details})"


# =============================================================================
# APPLICATION ERRORS
# =============================================================================


class ApplicationError(OneWalletError):
    """
    Raised when the wallet service returns a non-success response.

    Examples: insufficient balance, duplicate transaction, unknown player.
    The answer is definitive, so the request is never resubmitted.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize with the service's error answer.

        Args:
            code: Service error code, or the HTTP status when none was sent.
            message: Service error message, or the raw response body.
            status_code: HTTP status of the response.
            payload: Parsed response body (JSON value or raw text).
            details: Optional additional details.
        """
        self.code = code
        self.status_code = status_code
        self.payload = payload
        full_details = details or {}
        full_details["code"] = code
        if status_code is not None:
            full_details["status_code"] = status_code
        super().__init__(message, full_details)


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================


class TransportError(OneWalletError):
    """
    Raised when a request could not be completed at the network level.

    Connection refused, DNS failure, broken connection. Always retryable.
    """

    code = "ERR_TRANSPORT"

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize with the underlying failure.

        Args:
            message: Description of the failure.
            cause: The exception raised by the HTTP layer, if any.
            details: Optional additional details.
        """
        self.cause = cause
        super().__init__(message, details)


class RequestTimeoutError(TransportError):
    """Raised when a single attempt exceeds its timeout."""

    code = "ETIMEDOUT"

    def __init__(
        self,
        timeout: float,
        message: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.timeout = timeout
        full_details = details or {}
        full_details["timeout"] = timeout
        super().__init__(message or f"Request timed out after {timeout:g}s", cause, full_details)


class RetryBudgetExhaustedError(TransportError):
    """
    Raised when a transport failure occurs and no retries are left.

    Terminal. The last transport failure is kept as `cause` and the error
    reports its code, so a call that kept timing out still reads ETIMEDOUT.
    """

    def __init__(
        self,
        attempts: int,
        max_retries: int,
        cause: BaseException | None = None,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize with retry accounting.

        Args:
            attempts: Number of physical attempts made, the failed one included.
            max_retries: The retry budget that was configured.
            cause: The last transport failure.
            message: Optional custom message.
            details: Optional additional details.
        """
        self.attempts = attempts
        self.max_retries = max_retries
        self.code = getattr(cause, "code", None) or "ERR_REQUEST"
        default_msg = f"Maximum number of repeats reached after {attempts} attempt(s)"
        if cause is not None:
            default_msg = f"{default_msg}: {cause}"
        full_details = details or {}
        full_details["attempts"] = attempts
        full_details["max_retries"] = max_retries
        super().__init__(message or default_msg, cause, full_details)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(OneWalletError):
    """
    Raised when the client is misconfigured.

    Check environment variables and initialization parameters.
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize with configuration context.

        Args:
            message: Description of the configuration issue.
            config_key: The problematic configuration key.
            details: Optional additional details.
        """
        self.config_key = config_key
        full_details = details or {}
        if config_key:
            full_details["config_key"] = config_key
        super().__init__(message, full_details)
