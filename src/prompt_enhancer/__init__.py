"""
prompt_enhancer: Enhance prompts with an LLM, within rate limits, recovering from failures.

A Python library for sending user-selected text to an LLM API with:
- Client-side sliding window rate limiting per named budget
- Error classification into a fixed taxonomy (retryable or not)
- Bounded retries with pluggable recovery (retry, change settings, new API key)
- Provider-agnostic architecture

Example:
    >>> from prompt_enhancer import AutoRecovery, RateLimiterRegistry, enhance_text
    >>> from prompt_enhancer.providers import OpenAIProvider
    >>>
    >>> limiters = RateLimiterRegistry.with_defaults()
    >>> result = await enhance_text(
    ...     "explain recursion",
    ...     provider=OpenAIProvider(api_key="sk-..."),
    ...     recovery=AutoRecovery(),
    ...     rate_limiter=limiters.get("openai-standard"),
    ... )
"""

from prompt_enhancer.core.engine import enhance_text
from prompt_enhancer.core.errors import (
    APIError,
    CredentialMissingError,
    EmptyResponseError,
    EnhancerError,
    classify_error,
    classify_exception,
)
from prompt_enhancer.core.models import (
    ErrorClassification,
    ErrorKind,
    RateLimitConfig,
    RawFailure,
    RecoveryChoice,
    RetryConfig,
)
from prompt_enhancer.core.rate_limit import RateLimiter, RateLimiterRegistry
from prompt_enhancer.core.recovery import AutoRecovery, RecoveryUI
from prompt_enhancer.core.retry import RetryCoordinator, run_with_recovery
from prompt_enhancer.providers import BaseProvider, get_provider, register_provider
from prompt_enhancer.providers.models import EnhancementRequest, EnhancementResult
from prompt_enhancer.settings import EnhancerSettings, validate_api_key

__version__ = "0.1.0"

__all__ = [
    # Main entry points
    "enhance_text",
    "run_with_recovery",
    "RetryCoordinator",
    # Rate limiting
    "RateLimiter",
    "RateLimiterRegistry",
    "RateLimitConfig",
    # Configuration
    "RetryConfig",
    "EnhancerSettings",
    "validate_api_key",
    # Errors and classification
    "classify_error",
    "classify_exception",
    "ErrorClassification",
    "ErrorKind",
    "RawFailure",
    "EnhancerError",
    "CredentialMissingError",
    "APIError",
    "EmptyResponseError",
    # Recovery
    "RecoveryUI",
    "RecoveryChoice",
    "AutoRecovery",
    # Provider interface
    "BaseProvider",
    "EnhancementRequest",
    "EnhancementResult",
    "get_provider",
    "register_provider",
    # Version
    "__version__",
]
