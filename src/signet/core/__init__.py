"""Core framework infrastructure - config, logging, lifecycle, errors."""

from signet.core.config import ConfigManager, EngineSettings
from signet.core.lifecycle import BaseComponent, HealthCheckResult, HealthStatus, combine_health
from signet.core.logging import get_logger, setup_logging
from signet.core.retry import (
    AuthenticationError,
    BatchQueueFullError,
    BatchSubmissionError,
    ChainMismatchError,
    ClientNotReadyError,
    CredentialsError,
    ErrorCategory,
    InsufficientLiquidityError,
    NetworkError,
    OrderRejectedError,
    PermanentError,
    RateLimitError,
    ServiceUnavailableError,
    SigningError,
    SignetError,
    TimeoutError,
    TransientError,
    UserRejectedError,
    ValidationError,
    WalletNotConnectedError,
    classify_error,
    is_retryable,
    is_user_rejection,
    retry_network,
    wrap_external_error,
)

__all__ = [
    # Config
    "ConfigManager",
    "EngineSettings",
    # Logging
    "setup_logging",
    "get_logger",
    # Lifecycle
    "BaseComponent",
    "HealthCheckResult",
    "HealthStatus",
    "combine_health",
    # Errors
    "ErrorCategory",
    "SignetError",
    "TransientError",
    "NetworkError",
    "RateLimitError",
    "TimeoutError",
    "ServiceUnavailableError",
    "PermanentError",
    "ValidationError",
    "AuthenticationError",
    "CredentialsError",
    "WalletNotConnectedError",
    "ClientNotReadyError",
    "ChainMismatchError",
    "SigningError",
    "OrderRejectedError",
    "InsufficientLiquidityError",
    "BatchQueueFullError",
    "BatchSubmissionError",
    "UserRejectedError",
    # Retry
    "retry_network",
    "is_retryable",
    "is_user_rejection",
    "classify_error",
    "wrap_external_error",
]
