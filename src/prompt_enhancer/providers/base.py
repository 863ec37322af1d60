from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Tuple

from aiohttp import ClientSession, ClientTimeout

from prompt_enhancer.core.errors import APIError, CredentialMissingError
from prompt_enhancer.providers.models import EnhancementRequest, EnhancementResult, Usage


class BaseProvider(ABC):
    """
    Abstract base class for LLM provider implementations.

    This class provides default implementations for common provider patterns
    while allowing providers to override when they need custom behavior.

    Default implementations provided:
    - Bearer token authentication (build_headers)
    - JSON POST with model injection and a request timeout (send)
    - Error payload to exception conversion (raise_for_error)
    - Common rate limit detection (is_rate_limited)

    Subclasses must implement:
    - enhance: Build the provider request and return the enhanced text
    - parse_error: Provider-specific error message extraction
    - extract_usage: Provider-specific usage metric extraction

    Attributes:
        name (str): Human-readable provider identifier (e.g., "openai")
        api_key (str | None): API authentication key
        model (str): Model identifier
        request_url (str): Full API endpoint URL
        timeout_ms (int): Total request timeout in milliseconds
    """

    name: str
    api_key: Optional[str]
    model: str
    request_url: str
    timeout_ms: int = 30_000

    def is_initialized(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key.strip()

    def build_headers(self) -> dict[str, str]:
        """
        Build authentication headers for API requests.

        Returns:
            dict[str, str]: HTTP headers including authentication

        Raises:
            CredentialMissingError: If no API key is configured
        """
        if not self.api_key:
            raise CredentialMissingError()
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def send(
        self,
        session: ClientSession,
        headers: Mapping[str, str],
        request_json: dict[str, Any],
    ) -> Tuple[dict[str, Any], int]:
        """
        POST the request payload to the provider's API.

        Args:
            session (ClientSession): Aiohttp client session
            headers (Mapping[str, str]): HTTP headers from build_headers()
            request_json (dict[str, Any]): Request payload

        Returns:
            Tuple of (response_payload, status). Bodies that are not JSON are
            turned into an ``{"error": ...}`` payload carrying the HTTP reason.

        Raises:
            aiohttp.ClientError: For network/connection errors
            asyncio.TimeoutError: For request timeouts
        """
        payload = dict(request_json)
        if "model" not in payload:
            payload["model"] = self.model

        timeout = ClientTimeout(total=self.timeout_ms / 1000.0)
        async with session.post(
            self.request_url, headers=headers, json=payload, timeout=timeout
        ) as response:
            try:
                data = await response.json(content_type=None)
            except ValueError:
                data = None
            if not isinstance(data, dict):
                data = {"error": {"message": f"{response.status} {response.reason}"}}
            return data, response.status

    def raise_for_error(self, payload: dict[str, Any], status: int | None = None) -> None:
        """
        Raise ``APIError`` if the payload (or status) reports a failure.

        Raises:
            APIError: With the provider message, HTTP status and error code/type
        """
        message = self.parse_error(payload)
        if message is None and (status is None or status < 400):
            return

        code = None
        error = payload.get("error")
        if isinstance(error, dict):
            raw_code = error.get("code") or error.get("type")
            # OpenAI-compatible gateways may send numeric codes
            code = str(raw_code) if raw_code is not None else None
        if self.is_rate_limited(payload, status) and "rate limit" not in (message or "").lower():
            message = f"Rate limit reached: {message or 'too many requests'}"
        raise APIError(message or f"HTTP {status}", status=status, code=code)

    def is_rate_limited(self, payload: dict[str, Any], status: int | None = None) -> bool:
        """
        Determine if the response indicates rate limiting.

        Checks the HTTP 429 status first, then "rate limit" or
        "too many requests" in the error message.
        """
        if status == 429:
            error = payload.get("error")
            # OpenAI reports exhausted quota with 429 as well
            if isinstance(error, dict) and error.get("code") == "insufficient_quota":
                return False
            return True

        error_msg = (self.parse_error(payload) or "").lower()
        return "rate limit" in error_msg or "too many requests" in error_msg

    @abstractmethod
    async def enhance(
        self, session: ClientSession, request: EnhancementRequest
    ) -> EnhancementResult:
        """
        Send one enhancement request and return the enhanced text.

        Raises:
            CredentialMissingError: If no API key is configured
            APIError: If the provider reports an error
            EmptyResponseError: If the completion contains no text
        """
        ...

    @abstractmethod
    def parse_error(self, payload: dict[str, Any]) -> Optional[str]:
        """
        Extract error message from API response payload.

        Returns:
            Optional[str]: Error message if present, None if successful response
        """
        ...

    @abstractmethod
    def extract_usage(self, payload: dict[str, Any]) -> Optional[Usage]:
        """Extract token usage metrics from a successful API response."""
        ...
