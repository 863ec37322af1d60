from __future__ import annotations

from typing import Any

import pytest

from prompt_enhancer.core.models import ErrorClassification, RecoveryChoice


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeSleep:
    """Async sleep that records delays and advances an optional clock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds * 1000)


class ScriptedRecovery:
    """RecoveryUI returning scripted answers and recording every call."""

    def __init__(
        self,
        retry_choices: list[RecoveryChoice] | None = None,
        terminal_choices: list[RecoveryChoice] | None = None,
        credentials: list[str | None] | None = None,
    ) -> None:
        self.retry_choices = list(retry_choices or [])
        self.terminal_choices = list(terminal_choices or [])
        self.credentials = list(credentials or [])
        self.calls: list[tuple[str, Any]] = []

    async def present_retry_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        self.calls.append(("retry_choice", classification))
        return self.retry_choices.pop(0) if self.retry_choices else RecoveryChoice.RETRY

    async def present_terminal_choice(self, classification: ErrorClassification) -> RecoveryChoice:
        self.calls.append(("terminal_choice", classification))
        return self.terminal_choices.pop(0) if self.terminal_choices else RecoveryChoice.CANCEL

    async def collect_new_credential(self) -> str | None:
        self.calls.append(("credential", None))
        return self.credentials.pop(0) if self.credentials else None

    async def collect_settings_change(self) -> None:
        self.calls.append(("settings", None))

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FakeResponse:
    def __init__(self, payload: Any, status: int = 200, reason: str = "OK") -> None:
        self.payload = payload
        self.status = status
        self.reason = reason

    async def json(self, content_type: str | None = "application/json") -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers with queued responses."""

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)


class FakeEncoding:
    def encode(self, text: str) -> list[str]:
        return text.split()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def fake_tokenizer(monkeypatch: pytest.MonkeyPatch) -> FakeEncoding:
    """Keep tiktoken offline in provider tests."""
    encoding = FakeEncoding()
    monkeypatch.setattr(
        "prompt_enhancer.providers.openai.encoding_for_model", lambda model: encoding
    )
    return encoding


def completion_payload(text: str = "Enhanced prompt", total_tokens: int = 42) -> dict[str, Any]:
    return {
        "id": "chatcmpl-123",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
        "usage": {
            "prompt_tokens": total_tokens - 10,
            "completion_tokens": 10,
            "total_tokens": total_tokens,
        },
    }
