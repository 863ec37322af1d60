from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger

from prompt_enhancer.core.errors import classify_exception, rate_limit_exceeded
from prompt_enhancer.core.models import (
    AttemptOutcome,
    ErrorClassification,
    ErrorKind,
    Failure,
    RecoveryChoice,
    RetryConfig,
    RetrySession,
    Success,
)
from prompt_enhancer.core.rate_limit import RateLimiter
from prompt_enhancer.core.recovery import RecoveryUI

"""
Bounded retry with interactive recovery.

Every attempt first consumes a slot of the shared rate limit budget, then
calls the operation. Failures are classified and handed to the recovery hooks,
which decide whether to retry, change settings, enter new credentials or give
up. Aborts are reported as ``None``.
"""

T = TypeVar("T")

CredentialCallback = Callable[[str], Any]


@dataclass
class Backoff:
    """
    Exponential backoff calculator with jitter.

    Computes retry delays that:
    - Grow exponentially with each attempt (2^attempt)
    - Are capped at a maximum delay
    - Include random jitter to prevent synchronized retries

    Attributes:
        base_delay_seconds (float): Initial delay for first retry
        max_delay_seconds (float): Maximum delay (caps exponential growth)
        jitter (float): Random variation factor (0.0-1.0)
    """

    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 15.0
    jitter: float = 0.1

    @classmethod
    def from_config(cls, retry: RetryConfig) -> Backoff:
        return cls(
            base_delay_seconds=retry.base_delay_seconds,
            max_delay_seconds=retry.max_delay_seconds,
            jitter=retry.jitter,
        )

    def compute_delay(self, attempt_index: int) -> float:
        """
        Calculate backoff delay for the given attempt.

        Delay = min(max_delay, base_delay * 2^attempt_index) + jitter

        Args:
            attempt_index (int): Zero-based attempt number

        Returns:
            float: Delay in seconds (always >= 0)
        """
        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** max(0, attempt_index)))
        noise = delay * self.jitter * (2 * random.random() - 1)
        result: float = max(0.0, delay + noise)
        return result


class RetryCoordinator:
    """
    Drives up to ``max_attempts`` attempts of an async operation.

    Args:
        rate_limiter (RateLimiter): Budget consulted (and consumed) before every attempt
        recovery (RecoveryUI): Hooks deciding what happens after a failure
        retry (RetryConfig | None): Attempt ceiling and backoff settings
        on_new_credential (CredentialCallback | None): Applies a credential collected
            during recovery (e.g. ``provider.set_api_key``); may be sync or async
        sleep (Callable[[float], Awaitable[None]] | None): Async sleep taking seconds

    Example:
        >>> coordinator = RetryCoordinator(limiter, AutoRecovery())
        >>> result = await coordinator.run(lambda: provider.enhance(session, request))
        >>> if result is None:
        ...     print("aborted")
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        recovery: RecoveryUI,
        retry: RetryConfig | None = None,
        on_new_credential: CredentialCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.recovery = recovery
        self.retry = retry or RetryConfig()
        if self.retry.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.retry.max_attempts}")
        self.backoff = Backoff.from_config(self.retry)
        self.on_new_credential = on_new_credential
        self._sleep = sleep or asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T | None:
        """
        Run the operation until it succeeds or recovery gives up.

        Operation failures never escape; they are classified and routed through
        the recovery hooks. Exceptions raised by the hooks themselves propagate.

        Args:
            operation (Callable[[], Awaitable[T]]): Zero-argument coroutine factory

        Returns:
            T | None: The operation's result, or None if the run was aborted
        """
        session = RetrySession(max_attempts=self.retry.max_attempts)

        while True:
            outcome = await self._attempt(operation, session)
            if isinstance(outcome, Success):
                logger.debug(
                    f"Operation succeeded after {session.total_calls} call(s) "
                    f"(attempt {session.attempt + 1}/{session.max_attempts})"
                )
                return outcome.result

            session.attempt += 1
            classification = outcome.classification
            session.last_classification = classification
            logger.warning(
                f"Attempt {session.attempt}/{session.max_attempts} failed "
                f"[{classification.kind.value}]: {classification.message}"
            )

            if not classification.retryable or session.exhausted:
                if await self._terminal(classification, session):
                    continue
                return None

            choice = await self.recovery.present_retry_choice(classification)
            if choice is RecoveryChoice.RETRY:
                await self._pause(classification, session)
            elif choice is RecoveryChoice.CHANGE_SETTINGS:
                await self.recovery.collect_settings_change()
                await self._pause(classification, session)
            elif choice is RecoveryChoice.CONFIGURE_CREDENTIALS:
                if not await self._renew_credentials(session):
                    logger.info("Enhancement cancelled: no new API key supplied")
                    return None
            else:
                logger.info("Enhancement cancelled by user")
                return None

    async def _attempt(
        self, operation: Callable[[], Awaitable[T]], session: RetrySession
    ) -> AttemptOutcome:
        session.total_calls += 1
        decision = self.rate_limiter.record_request()
        if not decision.allowed:
            return Failure(rate_limit_exceeded(decision.wait_time_ms or 0))

        try:
            return Success(await operation())
        except Exception as e:
            return Failure(classify_exception(e), error=e)

    async def _terminal(self, classification: ErrorClassification, session: RetrySession) -> bool:
        choice = await self.recovery.present_terminal_choice(classification)
        if choice is RecoveryChoice.CONFIGURE_CREDENTIALS and await self._renew_credentials(
            session
        ):
            return True
        logger.info(
            f"Giving up after {session.attempt} failed attempt(s): {classification.message}"
        )
        return False

    async def _renew_credentials(self, session: RetrySession) -> bool:
        if session.credential_resets >= self.retry.max_credential_resets:
            logger.warning(
                f"Credential reset limit reached ({self.retry.max_credential_resets}); "
                "not accepting another API key in this session"
            )
            return False

        credential = await self.recovery.collect_new_credential()
        if not credential or not credential.strip():
            return False

        if self.on_new_credential is not None:
            applied = self.on_new_credential(credential)
            if inspect.isawaitable(applied):
                await applied

        # A fresh credential gets a fresh budget of attempts
        session.attempt = 0
        session.credential_resets += 1
        logger.info("New API key applied, attempt counter reset")
        return True

    async def _pause(self, classification: ErrorClassification, session: RetrySession) -> None:
        if classification.kind is not ErrorKind.RATE_LIMITED:
            return
        delay = self.backoff.compute_delay(session.attempt - 1)
        if classification.wait_time_ms is not None:
            delay = max(delay, classification.wait_time_ms / 1000.0)
        logger.debug(f"Rate limited, retrying in {delay:.2f}s")
        await self._sleep(delay)


async def run_with_recovery(
    operation: Callable[[], Awaitable[T]],
    recovery: RecoveryUI,
    rate_limiter: RateLimiter,
    max_attempts: int = 3,
    on_new_credential: CredentialCallback | None = None,
) -> T | None:
    """
    Run ``operation`` with rate limiting, classification and recovery.

    Shortcut for ``RetryCoordinator(...).run(operation)`` with default backoff.
    """
    coordinator = RetryCoordinator(
        rate_limiter=rate_limiter,
        recovery=recovery,
        retry=RetryConfig(max_attempts=max_attempts),
        on_new_credential=on_new_credential,
    )
    return await coordinator.run(operation)
