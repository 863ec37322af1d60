from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from loguru import logger

from prompt_enhancer.core.models import ErrorClassification, RecoveryChoice


@runtime_checkable
class RecoveryUI(Protocol):
    """
    Hooks the retry coordinator calls between failed attempts.

    Hosts implement this with whatever user interface they have (input
    prompts, dialogs, a policy). Every method may suspend while waiting for
    a decision.
    """

    async def present_retry_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        """Offer retry / change settings / configure credentials / cancel."""
        ...

    async def present_terminal_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        """Offer configure credentials / cancel after a non-retryable or final failure."""
        ...

    async def collect_new_credential(self) -> str | None:
        """Ask for a new API key. Return None if the user declines."""
        ...

    async def collect_settings_change(self) -> None:
        """Let the user change settings and apply them."""
        ...


class AutoRecovery:
    """
    Non-interactive recovery policy for scripts and batch hosts.

    Retryable failures are always retried. At a terminal failure caused by
    credentials the fallback credential (if any) is offered once; every other
    terminal failure cancels.

    Args:
        credential (str | None): Fallback API key to offer once
        settings_change (Callable[[], Awaitable[None]] | None): Coroutine applied when a
            settings change is requested
    """

    def __init__(
        self,
        credential: str | None = None,
        settings_change: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._credential = credential
        self._settings_change = settings_change

    async def present_retry_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        logger.info(f"Retrying after {classification.kind.value}: {classification.message}")
        return RecoveryChoice.RETRY

    async def present_terminal_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        if classification.kind.is_credential_problem and self._credential:
            return RecoveryChoice.CONFIGURE_CREDENTIALS
        logger.info(f"Giving up: {classification.message}. {classification.suggestion}")
        return RecoveryChoice.CANCEL

    async def collect_new_credential(self) -> str | None:
        credential, self._credential = self._credential, None
        return credential

    async def collect_settings_change(self) -> None:
        if self._settings_change is not None:
            await self._settings_change()
