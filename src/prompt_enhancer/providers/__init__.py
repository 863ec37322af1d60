"""Provider implementations and registry."""

from prompt_enhancer.providers.base import BaseProvider
from prompt_enhancer.providers.models import (
    EnhancementRequest,
    EnhancementResult,
    ModelInfo,
    Usage,
)
from prompt_enhancer.providers.openai import OpenAIProvider
from prompt_enhancer.providers.registry import get_provider, register_provider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "EnhancementRequest",
    "EnhancementResult",
    "ModelInfo",
    "Usage",
    "get_provider",
    "register_provider",
]
