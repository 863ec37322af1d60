"""
Example: Console Recovery
Description: Ask the user in the terminal what to do when a request fails
Use case: Interactive command-line tools
Provider: OpenAI

This example demonstrates:
- Implementing the RecoveryUI hooks with input()
- Re-entering an API key mid-session (resets the attempt counter)
- Changing settings between attempts
"""

import asyncio
import getpass
import os
import sys

from dotenv import load_dotenv

from prompt_enhancer import (
    EnhancerSettings,
    ErrorClassification,
    RateLimiterRegistry,
    RecoveryChoice,
    enhance_text,
    validate_api_key,
)
from prompt_enhancer.providers import OpenAIProvider

load_dotenv()

RETRY_OPTIONS = {
    "r": RecoveryChoice.RETRY,
    "s": RecoveryChoice.CHANGE_SETTINGS,
    "k": RecoveryChoice.CONFIGURE_CREDENTIALS,
    "c": RecoveryChoice.CANCEL,
}


class ConsoleRecovery:
    def __init__(self, provider: OpenAIProvider) -> None:
        self.provider = provider

    async def _ask(self, prompt: str) -> str:
        answer = await asyncio.to_thread(input, prompt)
        return answer.strip().lower()

    async def present_retry_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        print(f"\n{classification.message}\n{classification.suggestion}")
        answer = await self._ask("[r]etry, change [s]ettings, new api [k]ey, [c]ancel? ")
        return RETRY_OPTIONS.get(answer[:1], RecoveryChoice.CANCEL)

    async def present_terminal_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        print(f"\n{classification.message}\n{classification.suggestion}")
        answer = await self._ask("configure api [k]ey or [c]ancel? ")
        if answer.startswith("k"):
            return RecoveryChoice.CONFIGURE_CREDENTIALS
        return RecoveryChoice.CANCEL

    async def collect_new_credential(self) -> str | None:
        key = await asyncio.to_thread(getpass.getpass, "Enter your OpenAI API Key: ")
        validation = validate_api_key(key)
        if not validation.is_valid:
            print(validation.error)
            return None
        return key.strip()

    async def collect_settings_change(self) -> None:
        answer = await self._ask("Timeout in seconds (5-120, empty to keep): ")
        if not answer:
            return
        try:
            settings = self.provider.settings.with_changes(timeout_ms=int(answer) * 1000)
        except ValueError as e:
            print(e)
            return
        self.provider.apply_settings(settings)


async def main() -> None:
    text = " ".join(sys.argv[1:]) or "summarize this article"
    limiters = RateLimiterRegistry.with_defaults()
    settings = EnhancerSettings.from_env()
    provider = OpenAIProvider(api_key=os.getenv("OPENAI_API_KEY"), settings=settings)

    result = await enhance_text(
        text,
        provider=provider,
        recovery=ConsoleRecovery(provider),
        rate_limiter=limiters.get("openai-standard"),
        settings=settings,
    )
    if result is None:
        print("No enhanced text (cancelled).")
        return
    print(f"\n{result.enhanced_text}")


if __name__ == "__main__":
    asyncio.run(main())
