"""
Example: Minimal Quickstart
Description: Enhance one prompt with automatic (non-interactive) recovery
Use case: Scripts, quick testing
Provider: OpenAI

This example demonstrates:
- Building the rate limiter registry once at startup
- Enhancing text with the default retry policy
- Telling an abort (None) apart from a result
"""

import asyncio
import os

from dotenv import load_dotenv

from prompt_enhancer import AutoRecovery, EnhancerSettings, RateLimiterRegistry, enhance_text
from prompt_enhancer.providers import OpenAIProvider

load_dotenv()


async def main() -> None:
    # 1. Build the shared budgets once and keep the registry around
    limiters = RateLimiterRegistry.with_defaults()

    # 2. Configure the provider
    settings = EnhancerSettings(model="gpt-4o-mini", temperature=0.7)
    provider = OpenAIProvider(api_key=os.getenv("OPENAI_API_KEY"), settings=settings)

    # 3. Enhance, retrying transient failures automatically
    result = await enhance_text(
        "write a function that parses dates",
        provider=provider,
        recovery=AutoRecovery(),
        rate_limiter=limiters.get("openai-conservative"),
        template="technical",
        settings=settings,
    )

    # 4. None means the run was aborted
    if result is None:
        print("Enhancement was cancelled or failed.")
        return
    print(result.enhanced_text)


if __name__ == "__main__":
    asyncio.run(main())
