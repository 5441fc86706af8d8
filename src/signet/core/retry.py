"""
Error hierarchy and retry helpers.

This module provides:
- Error type hierarchy (transient vs permanent vs cancelled)
- A network retry decorator using tenacity, reserved for read-only calls
- Error classification utilities

Order submission is never retried: a failed submission is surfaced to the
caller for manual resubmission.

Usage:
    from signet.core.retry import retry_network, NetworkError

    @retry_network()
    async def fetch_book():
        ...
"""

import asyncio
import inspect
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, Union

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

log = structlog.get_logger()


# =============================================================================
# Error Type Hierarchy
# =============================================================================


class ErrorCategory(str, Enum):
    """Classification of error types for retry and display decisions."""

    TRANSIENT = "transient"  # Network issues, rate limits
    PERMANENT = "permanent"  # Bad input, rejected order, auth failure
    CANCELLED = "cancelled"  # User declined a wallet prompt
    UNKNOWN = "unknown"


class SignetError(Exception):
    """Base exception for all Signet errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class TransientError(SignetError):
    """Error that may succeed on retry."""

    category = ErrorCategory.TRANSIENT


class NetworkError(TransientError):
    """Network-related transient error."""

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.retry_after = retry_after


class TimeoutError(TransientError):
    """Operation timed out."""

    pass


class ServiceUnavailableError(TransientError):
    """External service is temporarily unavailable."""

    pass


class PermanentError(SignetError):
    """Error that will NOT succeed on retry."""

    category = ErrorCategory.PERMANENT


class ValidationError(PermanentError):
    """Request validation failed - fix the input."""

    pass


class AuthenticationError(PermanentError):
    """Authentication/authorization failed."""

    pass


class CredentialsError(AuthenticationError):
    """L2 API credentials could not be derived or created."""

    pass


class WalletNotConnectedError(PermanentError):
    """No wallet is connected to the session."""

    pass


class ClientNotReadyError(PermanentError):
    """The authenticated trading client did not become ready in time."""

    pass


class SigningError(PermanentError):
    """The wallet failed to produce a signature."""

    pass


class ChainMismatchError(PermanentError):
    """Wallet is on the wrong network; the current attempt was aborted."""

    def __init__(
        self,
        message: str,
        expected_chain_id: int,
        actual_chain_id: Optional[int] = None,
        switched: bool = False,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id
        self.switched = switched


class OrderRejectedError(PermanentError):
    """Order was rejected by the exchange."""

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.status = status


class InsufficientLiquidityError(PermanentError):
    """Not enough resting liquidity to size the order."""

    pass


class BatchQueueFullError(PermanentError):
    """Batch queue is at capacity."""

    pass


class BatchSubmissionError(PermanentError):
    """Every entry of a batch submission failed."""

    def __init__(self, message: str, errors: Optional[dict[str, Exception]] = None):
        super().__init__(message)
        self.errors = errors or {}


class UserRejectedError(SignetError):
    """User declined a wallet prompt (signature or network switch)."""

    category = ErrorCategory.CANCELLED


# =============================================================================
# Retry Decorators
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT_SECONDS = 0.5
DEFAULT_MAX_WAIT_SECONDS = 5.0

F = TypeVar("F", bound=Callable[..., Any])


def _create_retry_callback(
    log_context: Optional[dict[str, Any]] = None,
) -> Callable[[RetryCallState], None]:
    context = log_context or {}

    def callback(state: RetryCallState) -> None:
        exception = state.outcome.exception() if state.outcome else None
        log.warning(
            "retry_attempt",
            attempt=state.attempt_number,
            error=str(exception) if exception else None,
            error_type=type(exception).__name__ if exception else None,
            wait_seconds=state.next_action.sleep if state.next_action else 0,
            **context,
        )

    return callback


def retry_network(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    min_wait: float = DEFAULT_MIN_WAIT_SECONDS,
    max_wait: float = DEFAULT_MAX_WAIT_SECONDS,
) -> Callable[[F], F]:
    """Decorator for read-only network operations.

    Retries on NetworkError, TimeoutError, ServiceUnavailableError and raw
    httpx transport failures. Never apply to calls with side effects.
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("retry_network only supports async functions")

        callback = _create_retry_callback({"operation": func.__name__})
        wait_strategy = wait_random_exponential(min=min_wait, max=max_wait)

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_strategy,
                retry=retry_if_exception_type(
                    (
                        NetworkError,
                        TimeoutError,
                        ServiceUnavailableError,
                        httpx.TransportError,
                    )
                ),
                before_sleep=callback,
                reraise=True,
            ):
                with attempt:
                    return await func(*args, **kwargs)

        return async_wrapper  # type: ignore

    return decorator


# =============================================================================
# Error Classification Utilities
# =============================================================================

def is_user_rejection(error: Exception) -> bool:
    """Check whether a wallet error means the user declined the prompt.

    Wallets report this as EIP-1193 code 4001 or with a "rejected"/"denied"
    message.
    """
    if isinstance(error, UserRejectedError):
        return True
    if getattr(error, "code", None) == 4001:
        return True
    message = str(error).lower()
    return "rejected" in message or "denied" in message


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    return classify_error(error) == ErrorCategory.TRANSIENT


def classify_error(error: Exception) -> ErrorCategory:
    """Classify an error into a category."""
    if isinstance(error, SignetError):
        return error.category

    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError)):
        return ErrorCategory.TRANSIENT

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429 or status >= 500:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    error_str = str(error).lower()
    error_type = type(error).__name__.lower()

    permanent_patterns = [
        "invalid",
        "unauthorized",
        "forbidden",
        "not found",
        "bad request",
        "insufficient",
        "authentication",
        "permission",
    ]
    if any(p in error_str or p in error_type for p in permanent_patterns):
        return ErrorCategory.PERMANENT

    transient_patterns = [
        "timeout",
        "timed out",
        "connection",
        "network",
        "rate limit",
        "service unavailable",
        "temporarily",
    ]
    if any(p in error_str or p in error_type for p in transient_patterns):
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Seconds to wait from a Retry-After header.

    Accepts delta-seconds or an HTTP-date. Anything unparseable gives None.
    """
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(seconds, 0.0) if math.isfinite(seconds) else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((when - now).total_seconds(), 0.0)


def wrap_external_error(
    error: Exception,
    context: Optional[str] = None,
) -> Union[TransientError, PermanentError]:
    """Wrap an external error in the matching Signet error type.

    HTTP 429 becomes RateLimitError, 5xx ServiceUnavailableError, 401/403
    AuthenticationError, transport failures NetworkError.
    """
    message = f"{context}: {error}" if context else str(error)

    if isinstance(error, httpx.TimeoutException):
        return TimeoutError(message, cause=error)
    if isinstance(error, httpx.TransportError):
        return NetworkError(message, cause=error)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            retry_after = error.response.headers.get("Retry-After")
            return RateLimitError(
                message,
                retry_after=parse_retry_after(retry_after),
                cause=error,
            )
        if status >= 500:
            return ServiceUnavailableError(message, cause=error)
        if status in (401, 403):
            return AuthenticationError(message, cause=error)
        return PermanentError(message, cause=error)

    if classify_error(error) == ErrorCategory.PERMANENT:
        return PermanentError(message, cause=error)
    return TransientError(message, cause=error)
