from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass
class RateLimitConfig:
    """
    Configuration for one sliding-window rate limit budget.

    Attributes:
        max_requests (int): Maximum number of requests allowed inside the window
        window_ms (int): Length of the rolling window in milliseconds
    """

    max_requests: int = 60
    window_ms: int = 60_000


@dataclass
class RetryConfig:
    """
    Configuration for the retry/recovery loop.

    Attributes:
        max_attempts (int): Failed attempts allowed before terminal recovery is offered
        base_delay_seconds (float): Initial backoff delay after a rate-limited attempt
        max_delay_seconds (float): Maximum backoff delay (caps exponential growth)
        jitter (float): Random variation factor (0.0-1.0) to prevent thundering herd
        max_credential_resets (int): How many times new credentials may reset the
            attempt counter within one session
    """

    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 15.0
    jitter: float = 0.1
    max_credential_resets: int = 3


@dataclass
class RateLimitDecision:
    """Result of trying to consume one slot of a rate limit budget."""

    allowed: bool
    wait_time_ms: int | None = None
    remaining: int | None = None
    reset_in_ms: int | None = None


@dataclass
class RateLimitStatus:
    """Read-only snapshot of a rate limit budget."""

    used: int
    remaining: int
    limit: int
    reset_in_ms: int


class ErrorKind(str, Enum):
    """Fixed taxonomy of failure kinds."""

    CREDENTIAL_MISSING = "credential-missing"
    CREDENTIAL_INVALID = "credential-invalid"
    NETWORK_UNREACHABLE = "network-unreachable"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota-exceeded"
    RATE_LIMITED = "rate-limited"
    MALFORMED_REQUEST = "malformed-request"
    UNKNOWN = "unknown"

    @property
    def is_credential_problem(self) -> bool:
        return self in (ErrorKind.CREDENTIAL_MISSING, ErrorKind.CREDENTIAL_INVALID)


@dataclass(frozen=True)
class RawFailure:
    """
    Narrow description of a failure as seen at the transport edge.

    Attributes:
        message (str): Human-readable error message
        code (str | None): Optional machine code (e.g. "ETIMEDOUT", "ENOTFOUND")
    """

    message: str
    code: str | None = None


@dataclass(frozen=True)
class ErrorClassification:
    """
    A failure mapped onto the error taxonomy.

    Attributes:
        kind (ErrorKind): Taxonomy entry
        retryable (bool): Whether another attempt may succeed (depends only on kind)
        suggestion (str): Advisory hint for the user
        message (str): Original failure message
        wait_time_ms (int | None): Countdown until the local rate budget frees up,
            set only for client-side rate limit violations
    """

    kind: ErrorKind
    retryable: bool
    suggestion: str
    message: str = ""
    wait_time_ms: int | None = None


class RecoveryChoice(str, Enum):
    """Decisions a recovery hook can return between attempts."""

    RETRY = "retry"
    CHANGE_SETTINGS = "change-settings"
    CONFIGURE_CREDENTIALS = "configure-credentials"
    CANCEL = "cancel"


@dataclass
class Success(Generic[T]):
    result: T


@dataclass
class Failure:
    classification: ErrorClassification
    error: BaseException | None = None


AttemptOutcome = Union[Success[Any], Failure]


@dataclass
class RetrySession:
    """
    Mutable state of a single ``RetryCoordinator.run`` call.

    Attributes:
        max_attempts (int): Fixed ceiling of failed attempts
        attempt (int): Failed attempts so far (reset when new credentials are applied)
        total_calls (int): Attempts started, including rate-limited ones
        credential_resets (int): Times the attempt counter was reset by new credentials
        last_classification (ErrorClassification | None): Most recent failure
    """

    max_attempts: int = 3
    attempt: int = 0
    total_calls: int = 0
    credential_resets: int = 0
    last_classification: ErrorClassification | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts
