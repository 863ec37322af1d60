from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from prompt_enhancer.templates import BUILT_IN_TEMPLATES

"""
User-facing settings for enhancement requests.

Ranges follow the limits the settings prompts accept: timeout 5-120 seconds,
temperature 0.0-2.0, max tokens 100-4000.
"""

MIN_TIMEOUT_MS = 5_000
MAX_TIMEOUT_MS = 120_000
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
MIN_MAX_TOKENS = 100
MAX_MAX_TOKENS = 4_000
MIN_API_KEY_LENGTH = 20

DEFAULT_CUSTOM_TEMPLATE = "Please enhance this prompt to make it more effective and detailed:"


@dataclass
class ApiKeyValidation:
    is_valid: bool
    error: str | None = None


def validate_api_key(api_key: str | None) -> ApiKeyValidation:
    """
    Check the shape of an OpenAI API key.

    Args:
        api_key (str | None): Key as typed by the user

    Returns:
        ApiKeyValidation: ``is_valid`` plus an error message when invalid
    """
    if not api_key or not api_key.strip():
        return ApiKeyValidation(is_valid=False, error="API Key cannot be empty")

    key = api_key.strip()
    if not key.startswith("sk-"):
        return ApiKeyValidation(
            is_valid=False,
            error='Invalid API Key format. OpenAI API keys should start with "sk-"',
        )
    if len(key) < MIN_API_KEY_LENGTH:
        return ApiKeyValidation(is_valid=False, error="API Key appears to be too short")
    return ApiKeyValidation(is_valid=True)


@dataclass
class EnhancerSettings:
    """
    Settings applied to every enhancement request.

    Attributes:
        model (str): Chat model identifier
        timeout_ms (int): Total HTTP timeout in milliseconds
        default_template (str): Template used when none is given
        max_tokens (int): Completion token budget
        temperature (float): Sampling temperature
        custom_template (str): Instruction used by the "custom" template
        debug_mode (bool): Log at DEBUG level
    """

    model: str = "gpt-4o-mini"
    timeout_ms: int = 30_000
    default_template: str = "general"
    max_tokens: int = 1_000
    temperature: float = 0.7
    custom_template: str = DEFAULT_CUSTOM_TEMPLATE
    debug_mode: bool = False

    def validate(self) -> None:
        """
        Raises:
            ValueError: If any value is outside its accepted range
        """
        if not self.model:
            raise ValueError("Model cannot be empty")
        if not MIN_TIMEOUT_MS <= self.timeout_ms <= MAX_TIMEOUT_MS:
            raise ValueError(
                f"Timeout must be between {MIN_TIMEOUT_MS // 1000} and "
                f"{MAX_TIMEOUT_MS // 1000} seconds, got {self.timeout_ms / 1000:g}"
            )
        if not MIN_TEMPERATURE <= self.temperature <= MAX_TEMPERATURE:
            raise ValueError(
                f"Temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}, "
                f"got {self.temperature}"
            )
        if not MIN_MAX_TOKENS <= self.max_tokens <= MAX_MAX_TOKENS:
            raise ValueError(
                f"Max tokens must be between {MIN_MAX_TOKENS} and {MAX_MAX_TOKENS}, "
                f"got {self.max_tokens}"
            )
        if self.default_template not in BUILT_IN_TEMPLATES:
            raise ValueError(f"Unknown default template: {self.default_template}")

    def with_changes(self, **changes: Any) -> EnhancerSettings:
        """Return a validated copy with ``changes`` applied."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        updated = replace(self, **changes)
        updated.validate()
        return updated

    @classmethod
    def from_env(
        cls, prefix: str = "PROMPT_ENHANCER_", environ: Mapping[str, str] | None = None
    ) -> EnhancerSettings:
        """
        Build settings from environment variables such as ``PROMPT_ENHANCER_MODEL``.

        Missing variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        values: dict[str, Any] = {}
        for field in fields(cls):
            raw = env.get(f"{prefix}{field.name.upper()}")
            if raw is None:
                continue
            current = getattr(defaults, field.name)
            if isinstance(current, bool):
                values[field.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif isinstance(current, int):
                values[field.name] = int(raw)
            elif isinstance(current, float):
                values[field.name] = float(raw)
            else:
                values[field.name] = raw
        settings = cls(**values)
        settings.validate()
        return settings
