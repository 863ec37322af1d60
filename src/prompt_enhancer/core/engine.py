from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from aiohttp import ClientSession
from loguru import logger
from tqdm import tqdm

from prompt_enhancer.core.models import RetryConfig
from prompt_enhancer.core.rate_limit import RateLimiter
from prompt_enhancer.core.recovery import RecoveryUI
from prompt_enhancer.core.retry import RetryCoordinator
from prompt_enhancer.providers.base import BaseProvider
from prompt_enhancer.providers.models import EnhancementRequest, EnhancementResult
from prompt_enhancer.settings import EnhancerSettings
from prompt_enhancer.templates import get_template
from prompt_enhancer.utils import preview_text, validate_text

"""
Enhancement driver.

Validates the selected text, wraps the provider call as the operation of a
RetryCoordinator and reports the outcome. Everything host-specific (where the
text comes from, where the result goes, how the user is asked) stays outside.
"""

DEBUG_LEVEL = 10
INFO_LEVEL = 20


def setup_logger(logging_level: int = INFO_LEVEL) -> None:
    """
    Configure logger with clean format.

    Args:
        logging_level (int): Loguru logging level (20=INFO, 10=DEBUG)
    """
    logger.remove()

    # Show module info only at DEBUG level (10 or lower)
    if logging_level <= DEBUG_LEVEL:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        )

    logger.add(
        lambda msg: tqdm.write(msg, end=""),
        format=log_format,
        colorize=True,
        level=logging_level,
    )


def _with_progress(
    call: Callable[[], Awaitable[EnhancementResult]], show_progress: bool
) -> Callable[[], Awaitable[EnhancementResult]]:
    """Wrap one attempt in a tqdm progress bar (connect, process, complete)."""

    async def attempt() -> EnhancementResult:
        with tqdm(total=100, desc="Connecting to OpenAI...", disable=not show_progress) as pbar:
            pbar.set_description("Processing your prompt...")
            pbar.update(30)
            result = await call()
            pbar.set_description("Enhancement complete!")
            pbar.update(70)
            return result

    return attempt


async def enhance_text(
    text: str,
    provider: BaseProvider,
    recovery: RecoveryUI,
    rate_limiter: RateLimiter,
    template: str | None = None,
    settings: EnhancerSettings | None = None,
    retry: RetryConfig | None = None,
    session: ClientSession | None = None,
    context: str | None = None,
    show_progress: bool = True,
    logging_level: int | None = None,
) -> EnhancementResult | None:
    """
    Enhance one piece of text, recovering from failures through ``recovery``.

    Args:
        text (str): Text selected by the user
        provider (BaseProvider): Provider that performs the enhancement call
        recovery (RecoveryUI): Hooks deciding what to do after a failed attempt
        rate_limiter (RateLimiter): Shared budget consumed once per attempt
        template (str | None): Template name (defaults to settings.default_template)
        settings (EnhancerSettings | None): Settings; also select the log level
        retry (RetryConfig | None): Attempt ceiling and backoff (defaults to 3 attempts)
        session (ClientSession | None): Reused if given, otherwise one is opened
        context (str | None): Description of where the text came from
        show_progress (bool): Show a tqdm progress bar for each attempt
        logging_level (int | None): Overrides the level implied by settings.debug_mode

    Returns:
        EnhancementResult | None: The result, or None if the user aborted or
        recovery gave up

    Raises:
        ValueError: If the text or template is invalid

    Example:
        >>> limiter = RateLimiterRegistry.with_defaults().get("openai-standard")
        >>> result = await enhance_text(
        ...     "write a haiku about rain",
        ...     provider=OpenAIProvider(api_key="sk-..."),
        ...     recovery=AutoRecovery(),
        ...     rate_limiter=limiter,
        ... )
        >>> if result is not None:
        ...     print(result.enhanced_text)
    """
    settings = settings or EnhancerSettings()
    if logging_level is None:
        logging_level = DEBUG_LEVEL if settings.debug_mode else INFO_LEVEL
    setup_logger(logging_level)

    request = EnhancementRequest(
        original_text=validate_text(text),
        template=get_template(template or settings.default_template).id,
        context=context,
    )
    coordinator = RetryCoordinator(
        rate_limiter=rate_limiter,
        recovery=recovery,
        retry=retry,
        on_new_credential=provider.set_api_key,
    )

    start_time = time.time()
    if session is not None:
        result = await coordinator.run(
            _with_progress(lambda: provider.enhance(session, request), show_progress)
        )
    else:
        async with ClientSession() as own_session:
            result = await coordinator.run(
                _with_progress(lambda: provider.enhance(own_session, request), show_progress)
            )
    duration = time.time() - start_time

    if result is None:
        logger.info(f"Enhancement aborted after {duration:.1f}s")
        return None

    source = f" {context} -" if context else ""
    logger.info(
        f"Prompt enhanced successfully!{source} \"{preview_text(result.enhanced_text)}\" "
        f"({result.tokens_used:,} tokens, {duration:.1f}s)"
    )
    return result
