"""Rate limiting, error classification and retry/recovery for enhancement calls."""

from prompt_enhancer.core.errors import (
    APIError,
    CredentialMissingError,
    EmptyResponseError,
    EnhancerError,
    classify_error,
    classify_exception,
    raw_failure_from_exception,
    rate_limit_exceeded,
)
from prompt_enhancer.core.models import (
    ErrorClassification,
    ErrorKind,
    RateLimitConfig,
    RateLimitDecision,
    RateLimitStatus,
    RawFailure,
    RecoveryChoice,
    RetryConfig,
    RetrySession,
)
from prompt_enhancer.core.rate_limit import RateLimiter, RateLimiterRegistry
from prompt_enhancer.core.recovery import AutoRecovery, RecoveryUI
from prompt_enhancer.core.retry import Backoff, RetryCoordinator, run_with_recovery
from prompt_enhancer.core.engine import enhance_text, setup_logger

__all__ = [
    # Driver
    "enhance_text",
    "setup_logger",
    # Rate limiting
    "RateLimiter",
    "RateLimiterRegistry",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitStatus",
    # Classification
    "classify_error",
    "classify_exception",
    "raw_failure_from_exception",
    "rate_limit_exceeded",
    "ErrorClassification",
    "ErrorKind",
    "RawFailure",
    # Retry and recovery
    "RetryCoordinator",
    "run_with_recovery",
    "RetryConfig",
    "RetrySession",
    "RecoveryChoice",
    "RecoveryUI",
    "AutoRecovery",
    "Backoff",
    # Exceptions
    "EnhancerError",
    "CredentialMissingError",
    "APIError",
    "EmptyResponseError",
]
