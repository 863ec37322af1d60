from __future__ import annotations

from typing import Any, Callable, Dict

from prompt_enhancer.providers.base import BaseProvider
from prompt_enhancer.providers.openai import OpenAIProvider

ProviderFactory = Callable[..., BaseProvider]

_REGISTRY: Dict[str, ProviderFactory] = {
    "openai": lambda **kwargs: OpenAIProvider(**kwargs),
}


def get_provider(name: str, **kwargs: Any) -> BaseProvider:
    key = name.lower()
    if key not in _REGISTRY:
        raise ValueError(f"Unknown provider: {name}")
    return _REGISTRY[key](**kwargs)


def register_provider(name: str, factory: ProviderFactory) -> None:
    key = name.lower()
    if key in _REGISTRY:
        raise ValueError(f"Provider already registered: {name}")
    _REGISTRY[key] = factory
