from __future__ import annotations

import re
import time
from typing import Any, Optional

from aiohttp import ClientSession, ClientTimeout
from loguru import logger
from tiktoken import Encoding, encoding_for_model, get_encoding

from prompt_enhancer.core.errors import EmptyResponseError, EnhancerError
from prompt_enhancer.providers.base import BaseProvider
from prompt_enhancer.providers.models import (
    EnhancementRequest,
    EnhancementResult,
    ModelInfo,
    Usage,
)
from prompt_enhancer.settings import EnhancerSettings
from prompt_enhancer.templates import get_template
from prompt_enhancer.tokenizers.openai import num_tokens_consumed_from_request
from prompt_enhancer.utils import api_endpoint_from_url

DEFAULT_REQUEST_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODELS_URL = "https://api.openai.com/v1/models"
MODELS_CACHE_SECONDS = 24 * 60 * 60
FALLBACK_ENCODING = "cl100k_base"

_EXCLUDED_MODEL_MARKERS = (
    "embedding",
    "embed",
    "dall-e",
    "dalle",
    "image",
    "whisper",
    "tts",
    "speech",
    "moderation",
    "ft:",
    "fine-tune",
    "ada",
    "babbage",
    "curie",
)


def _is_text_model(model_id: str) -> bool:
    model_id = model_id.lower()
    if any(marker in model_id for marker in _EXCLUDED_MODEL_MARKERS):
        return False
    if re.match(r"^gpt-\d", model_id) or re.match(r"^o\d", model_id):
        return True
    return any(marker in model_id for marker in ("chat", "completion", "instruct"))


def model_priority(model_id: str) -> int:
    """Sort key for models (lower = newer/more capable)."""
    model_id = model_id.lower()
    ordered = (
        ("gpt-5", 1),
        ("o3", 2),
        ("o1-preview", 3),
        ("o1-mini", 4),
        ("o1", 5),
    )
    for marker, priority in ordered:
        if marker in model_id:
            return priority
    if "gpt-4o" in model_id:
        return 10 if "mini" in model_id else 11
    for marker, priority in (
        ("gpt-4-turbo", 12),
        ("gpt-4.5", 13),
        ("gpt-4", 14),
        ("gpt-3.5-turbo", 20),
        ("gpt-3.5", 21),
    ):
        if marker in model_id:
            return priority
    if re.search(r"gpt-[6-9]", model_id):
        return 30
    for marker, priority in (("chat", 40), ("instruct", 41), ("completion", 42)):
        if marker in model_id:
            return priority
    return 99


def format_model_name(model_id: str) -> str:
    """
    Turn a model id into a display name.

    Example:
        >>> format_model_name("gpt-4o-mini")
        'GPT 4o Mini'
    """
    name = re.sub(r"^gpt-?", "GPT-", model_id, flags=re.IGNORECASE)
    name = re.sub(r"^o1", "O1", name, flags=re.IGNORECASE)
    name = re.sub(r"-turbo$", "", name, flags=re.IGNORECASE)
    name = re.sub(r"-\d{4}$", "", name)
    name = name.replace("-", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), name)


def describe_model(model_id: str) -> str:
    model_id = model_id.lower()
    if "o1-preview" in model_id:
        return "Reasoning model for complex tasks (slow, high quality)"
    if "o1-mini" in model_id:
        return "Faster reasoning model for technical tasks"
    if "gpt-4o" in model_id and "mini" in model_id:
        return "Fast and cost-effective (Recommended)"
    if "gpt-4o" in model_id:
        return "Most capable model (highest quality)"
    if "gpt-4" in model_id:
        return "Advanced capabilities"
    if "gpt-3.5" in model_id:
        return "Fast and affordable"
    return "OpenAI language model"


class OpenAIProvider(BaseProvider):
    """
    OpenAI chat completions provider for prompt enhancement.

    Args:
        api_key (str | None): OpenAI API key (may be supplied later with set_api_key)
        settings (EnhancerSettings | None): Model, timeout and sampling settings
        request_url (str): Chat completions endpoint
        models_url (str): Model listing endpoint

    Example:
        >>> provider = OpenAIProvider(api_key="sk-...", settings=EnhancerSettings(model="gpt-4o"))
        >>> async with ClientSession() as session:
        ...     result = await provider.enhance(session, EnhancementRequest("write a poem"))
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        settings: EnhancerSettings | None = None,
        request_url: str = DEFAULT_REQUEST_URL,
        models_url: str = DEFAULT_MODELS_URL,
    ) -> None:
        self.api_key = api_key.strip() if api_key else None
        self.request_url = request_url
        self.models_url = models_url
        self._cached_models: list[ModelInfo] | None = None
        self._models_cached_at: float | None = None
        self.apply_settings(settings or EnhancerSettings())

    def apply_settings(self, settings: EnhancerSettings) -> None:
        settings.validate()
        self.settings = settings
        self.model = settings.model
        self.timeout_ms = settings.timeout_ms
        self._tokenizer: Encoding | None = None
        logger.debug(
            f"OpenAI provider configured: model={self.model}, timeout={self.timeout_ms}ms, "
            f"max_tokens={settings.max_tokens}, temperature={settings.temperature}"
        )

    @property
    def tokenizer(self) -> Encoding:
        # Loaded on first use; tiktoken may need to download the encoding
        if self._tokenizer is None:
            try:
                self._tokenizer = encoding_for_model(self.model)
            except KeyError:
                logger.debug(f"No tiktoken encoding for {self.model}, using {FALLBACK_ENCODING}")
                self._tokenizer = get_encoding(FALLBACK_ENCODING)
        return self._tokenizer

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        # Models visible to one key may differ for another
        self.clear_models_cache()

    def build_request(self, request: EnhancementRequest) -> dict[str, Any]:
        """
        Build the chat completions payload for an enhancement request.

        Raises:
            ValueError: If the template does not exist
        """
        template = get_template(request.template)
        custom_instruction = None
        if template.id == "custom" and self.settings.custom_template:
            custom_instruction = self.settings.custom_template
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": template.system_prompt},
                {
                    "role": "user",
                    "content": template.render(request.original_text, custom_instruction),
                },
            ],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

    def estimate_input_tokens(self, request_json: dict[str, Any]) -> int:
        endpoint = api_endpoint_from_url(self.request_url)
        return num_tokens_consumed_from_request(request_json, endpoint, self.tokenizer)

    async def enhance(
        self, session: ClientSession, request: EnhancementRequest
    ) -> EnhancementResult:
        headers = self.build_headers()
        request_json = self.build_request(request)
        logger.info(
            f"Sending request to OpenAI with model: {self.model} "
            f"(~{self.estimate_input_tokens(request_json)} tokens)"
        )

        start = time.monotonic()
        payload, status = await self.send(session, headers, request_json)
        self.raise_for_error(payload, status)

        enhanced_text = self.extract_text(payload)
        if not enhanced_text:
            raise EmptyResponseError("Empty response from OpenAI API")

        usage = self.extract_usage(payload)
        result = EnhancementResult(
            enhanced_text=enhanced_text,
            tokens_used=usage.total_tokens if usage else 0,
            model=str(payload.get("model") or self.model),
            processing_time_ms=int((time.monotonic() - start) * 1000),
            usage=usage,
        )
        logger.info(
            f"Enhancement completed in {result.processing_time_ms}ms, "
            f"used {result.tokens_used} tokens"
        )
        return result

    async def test_connection(self, session: ClientSession) -> bool:
        """Send a tiny request; return False on any failure."""
        try:
            headers = self.build_headers()
            payload, status = await self.send(
                session,
                headers,
                {"messages": [{"role": "user", "content": "Test"}], "max_tokens": 5},
            )
            self.raise_for_error(payload, status)
        except Exception as e:
            logger.warning(f"OpenAI connection test failed: {type(e).__name__}: {e}")
            return False
        logger.info("OpenAI connection test successful")
        return True

    async def list_models(
        self, session: ClientSession, force_refresh: bool = False
    ) -> list[ModelInfo]:
        """
        Fetch the text models available to the configured key.

        Results are cached for 24 hours. If the request fails, stale cached
        models are returned when there are any.

        Raises:
            CredentialMissingError: If no API key is configured
            EnhancerError: If fetching fails and nothing is cached
        """
        headers = self.build_headers()

        if not force_refresh and self._cached_models is not None and self._models_cached_at:
            if time.time() - self._models_cached_at < MODELS_CACHE_SECONDS:
                logger.debug(f"Returning {len(self._cached_models)} cached models")
                return self._cached_models

        try:
            timeout = ClientTimeout(total=self.timeout_ms / 1000.0)
            async with session.get(self.models_url, headers=headers, timeout=timeout) as response:
                payload = await response.json(content_type=None)
                self.raise_for_error(payload, response.status)
        except Exception as e:
            logger.warning(f"Failed to fetch models: {type(e).__name__}: {e}")
            if self._cached_models is not None:
                logger.info("Returning cached models due to API error")
                return self._cached_models
            raise EnhancerError(
                "Failed to fetch models from OpenAI. "
                "Please check your API key and internet connection."
            ) from e

        models = [
            ModelInfo(
                id=item["id"],
                name=format_model_name(item["id"]),
                description=describe_model(item["id"]),
                owned_by=item.get("owned_by"),
            )
            for item in payload.get("data", [])
            if isinstance(item, dict) and "id" in item and _is_text_model(item["id"])
        ]
        models.sort(key=lambda m: model_priority(m.id))

        self._cached_models = models
        self._models_cached_at = time.time()
        logger.info(f"Found {len(models)} available text-based models")
        return models

    def clear_models_cache(self) -> None:
        self._cached_models = None
        self._models_cached_at = None

    @property
    def cached_models(self) -> list[ModelInfo] | None:
        return self._cached_models

    def extract_text(self, payload: dict[str, Any]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return content.strip() if isinstance(content, str) else ""

    def parse_error(self, payload: dict[str, Any]) -> Optional[str]:
        error = payload.get("error")
        if not error:
            return None
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)

    def extract_usage(self, payload: dict[str, Any]) -> Optional[Usage]:
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            return None
        # Chat completions endpoint https://platform.openai.com/docs/api-reference/chat/object#chat/object-usage
        prompt_tokens = int(usage.get("prompt_tokens") or 0)
        completion_tokens = int(usage.get("completion_tokens") or 0)
        total_tokens = int(usage.get("total_tokens") or prompt_tokens + completion_tokens)
        return Usage(
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            total_tokens=total_tokens,
        )
