from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from pytest import approx

from conftest import FakeClock, FakeSleep, ScriptedRecovery
from prompt_enhancer.core.errors import APIError
from prompt_enhancer.core.models import ErrorKind, RateLimitConfig, RecoveryChoice, RetryConfig
from prompt_enhancer.core.rate_limit import RateLimiter
from prompt_enhancer.core.recovery import AutoRecovery, RecoveryUI
from prompt_enhancer.core.retry import Backoff, RetryCoordinator, run_with_recovery


def failing_operation(
    errors: list[Exception], result: Any = "enhanced"
) -> tuple[Callable[[], Awaitable[Any]], list[int]]:
    """Operation raising the given errors in order, then returning ``result``."""
    calls: list[int] = []

    async def operation() -> Any:
        calls.append(len(calls) + 1)
        if errors:
            raise errors.pop(0)
        return result

    return operation, calls


def make_coordinator(
    recovery: RecoveryUI,
    limiter: RateLimiter,
    fake_sleep: FakeSleep,
    max_attempts: int = 3,
    **kwargs: Any,
) -> RetryCoordinator:
    return RetryCoordinator(
        rate_limiter=limiter,
        recovery=recovery,
        retry=RetryConfig(max_attempts=max_attempts, jitter=0.0),
        sleep=fake_sleep,
        **kwargs,
    )


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter("test", RateLimitConfig(max_requests=100, window_ms=60_000), clock=clock)


class TestBackoff:
    """Test for exponential backoff calculator."""

    def test_exponential_growth_without_jitter(self) -> None:
        """Test that delays grow exponentially when jitter is disabled."""
        backoff = Backoff(base_delay_seconds=1.0, max_delay_seconds=10.0, jitter=0.0)

        assert backoff.compute_delay(0) == approx(1.0)
        assert backoff.compute_delay(1) == approx(2.0)
        assert backoff.compute_delay(2) == approx(4.0)
        assert backoff.compute_delay(3) == approx(8.0)

    def test_delay_capped_at_maximum(self) -> None:
        """Test that delays never exceed max_delay_seconds."""
        backoff = Backoff(base_delay_seconds=1.0, max_delay_seconds=10.0, jitter=0.0)

        assert backoff.compute_delay(10) == approx(10.0)

    def test_jitter_adds_randomness_with_bounds(self) -> None:
        """Test that jitter keeps delays within expected range."""
        backoff = Backoff(base_delay_seconds=10.0, max_delay_seconds=100.0, jitter=0.1)

        delays = [backoff.compute_delay(0) for _ in range(20)]

        assert all(9.0 <= delay <= 11.0 for delay in delays), "Delays should be within 9-11 seconds"

    def test_delay_never_negative(self) -> None:
        """Test that delays are never negative, even with extreme jitter."""
        backoff = Backoff(base_delay_seconds=0.1, max_delay_seconds=1.0, jitter=1.0)

        delays = [backoff.compute_delay(-1) for _ in range(50)]

        assert all(delay >= 0.0 for delay in delays), "Delay should never be negative"

    def test_from_config(self) -> None:
        """Test that the retry configuration is carried over."""
        backoff = Backoff.from_config(
            RetryConfig(base_delay_seconds=2.0, max_delay_seconds=3.0, jitter=0.5)
        )

        assert backoff == Backoff(base_delay_seconds=2.0, max_delay_seconds=3.0, jitter=0.5)


class TestRetryCoordinator:
    """Tests for the retry/recovery state machine."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, limiter: RateLimiter, fake_sleep: FakeSleep) -> None:
        """Test that a successful call returns immediately without recovery."""
        recovery = ScriptedRecovery()
        operation, calls = failing_operation([])

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result == "enhanced"
        assert calls == [1]
        assert recovery.calls == []
        assert limiter.get_status().used == 1

    @pytest.mark.asyncio
    async def test_retryable_twice_then_success(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test two retryable failures then success consume exactly three slots."""
        recovery = ScriptedRecovery()
        operation, calls = failing_operation(
            [RuntimeError("network is down"), RuntimeError("network is down")]
        )

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result == "enhanced"
        assert len(calls) == 3
        assert limiter.get_status().used == 3
        assert recovery.count("retry_choice") == 2
        assert recovery.count("terminal_choice") == 0
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_non_retryable_goes_straight_to_terminal(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a non-retryable error offers terminal recovery exactly once."""
        recovery = ScriptedRecovery(terminal_choices=[RecoveryChoice.CANCEL])
        operation, calls = failing_operation([APIError("Incorrect API key provided", status=401)] * 5)

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert calls == [1]
        assert recovery.count("terminal_choice") == 1
        assert recovery.count("retry_choice") == 0
        _, classification = recovery.calls[0]
        assert classification.kind is ErrorKind.CREDENTIAL_INVALID

    @pytest.mark.asyncio
    async def test_exhausted_attempts_offer_terminal_choice(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a retryable error stops at max_attempts."""
        recovery = ScriptedRecovery()
        operation, calls = failing_operation([RuntimeError("boom")] * 10)

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert len(calls) == 3
        assert recovery.count("retry_choice") == 2
        assert recovery.count("terminal_choice") == 1

    @pytest.mark.asyncio
    async def test_new_credentials_reset_attempt_counter(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that new credentials at the terminal prompt give a fresh attempt budget."""
        applied: list[str] = []
        recovery = ScriptedRecovery(
            terminal_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS],
            credentials=["sk-new-key-1234567890"],
        )
        operation, calls = failing_operation([RuntimeError("boom")] * 3)

        coordinator = make_coordinator(
            recovery, limiter, fake_sleep, on_new_credential=applied.append
        )
        result = await coordinator.run(operation)

        assert result == "enhanced"
        assert len(calls) == 4
        assert applied == ["sk-new-key-1234567890"]
        assert recovery.count("terminal_choice") == 1

    @pytest.mark.asyncio
    async def test_reset_allows_full_budget_again(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that after a credential reset max_attempts more failures are allowed."""
        recovery = ScriptedRecovery(
            terminal_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS, RecoveryChoice.CANCEL],
            credentials=["sk-new-key-1234567890"],
        )
        operation, calls = failing_operation([RuntimeError("boom")] * 10)

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert len(calls) == 6
        assert recovery.count("terminal_choice") == 2

    @pytest.mark.asyncio
    async def test_async_credential_callback_awaited(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that an async on_new_credential is awaited."""
        applied: list[str] = []

        async def apply(credential: str) -> None:
            applied.append(credential)

        recovery = ScriptedRecovery(
            retry_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS],
            credentials=["sk-other-key-1234567890"],
        )
        operation, _ = failing_operation([RuntimeError("boom")])

        result = await make_coordinator(recovery, limiter, fake_sleep, on_new_credential=apply).run(
            operation
        )

        assert result == "enhanced"
        assert applied == ["sk-other-key-1234567890"]

    @pytest.mark.asyncio
    async def test_declined_credential_at_terminal_aborts(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that no credential means abort."""
        recovery = ScriptedRecovery(
            terminal_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS], credentials=[None]
        )
        operation, calls = failing_operation([APIError("401 Unauthorized", status=401)])

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert calls == [1]
        assert recovery.count("credential") == 1

    @pytest.mark.asyncio
    async def test_blank_credential_does_not_reset(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a whitespace-only key is treated as declined."""
        applied: list[str] = []
        recovery = ScriptedRecovery(
            terminal_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS], credentials=["   "]
        )
        operation, calls = failing_operation([APIError("401 Unauthorized", status=401)])

        result = await make_coordinator(
            recovery, limiter, fake_sleep, on_new_credential=applied.append
        ).run(operation)

        assert result is None
        assert calls == [1]
        assert applied == []

    @pytest.mark.asyncio
    async def test_inline_cancel_aborts(self, limiter: RateLimiter, fake_sleep: FakeSleep) -> None:
        """Test that cancel returns None without further calls."""
        recovery = ScriptedRecovery(retry_choices=[RecoveryChoice.CANCEL])
        operation, calls = failing_operation([RuntimeError("boom")])

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_inline_configure_without_credential_aborts(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that declining to enter a key from the inline prompt aborts."""
        recovery = ScriptedRecovery(retry_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS])
        operation, calls = failing_operation([RuntimeError("boom")])

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_change_settings_does_not_reset_attempts(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that changing settings keeps counting toward max_attempts."""
        recovery = ScriptedRecovery(
            retry_choices=[RecoveryChoice.CHANGE_SETTINGS, RecoveryChoice.CHANGE_SETTINGS]
        )
        operation, calls = failing_operation([RuntimeError("Request timeout")] * 10)

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result is None
        assert len(calls) == 3
        assert recovery.count("settings") == 2
        assert recovery.count("terminal_choice") == 1

    @pytest.mark.asyncio
    async def test_credential_resets_are_capped(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that endless key re-entry cannot retry forever."""
        recovery = ScriptedRecovery(
            terminal_choices=[RecoveryChoice.CONFIGURE_CREDENTIALS] * 10,
            credentials=["sk-key-000000000000000000"] * 10,
        )
        operation, calls = failing_operation([APIError("Incorrect API key provided")] * 20)
        coordinator = RetryCoordinator(
            rate_limiter=limiter,
            recovery=recovery,
            retry=RetryConfig(max_attempts=3, max_credential_resets=2),
            sleep=fake_sleep,
        )

        result = await coordinator.run(operation)

        assert result is None
        assert len(calls) == 3
        assert recovery.count("credential") == 2

    @pytest.mark.asyncio
    async def test_local_rate_limit_counts_as_attempt(
        self, clock: FakeClock, fake_sleep: FakeSleep
    ) -> None:
        """Test that a refused budget skips the call, waits, and still counts an attempt."""
        limiter = RateLimiter("test", RateLimitConfig(max_requests=1, window_ms=2_000), clock=clock)
        limiter.record_request()
        recovery = ScriptedRecovery()
        operation, calls = failing_operation([])

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result == "enhanced"
        assert calls == [1]
        assert recovery.count("retry_choice") == 1
        _, classification = recovery.calls[0]
        assert classification.kind is ErrorKind.RATE_LIMITED
        assert classification.wait_time_ms == 2_000
        assert fake_sleep.delays == [approx(2.0)]

    @pytest.mark.asyncio
    async def test_local_rate_limit_exhausts_attempts(
        self, clock: FakeClock
    ) -> None:
        """Test that a permanently exhausted budget ends at the terminal prompt."""
        limiter = RateLimiter("test", RateLimitConfig(max_requests=0, window_ms=1_000), clock=clock)
        recovery = ScriptedRecovery()
        operation, calls = failing_operation([])

        result = await make_coordinator(recovery, limiter, FakeSleep()).run(operation)

        assert result is None
        assert calls == []
        assert recovery.count("terminal_choice") == 1

    @pytest.mark.asyncio
    async def test_provider_rate_limit_backs_off(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a provider 429 waits with exponential backoff before retrying."""
        recovery = ScriptedRecovery()
        operation, _ = failing_operation(
            [APIError("Rate limit reached", status=429), APIError("Rate limit reached", status=429)]
        )

        result = await make_coordinator(recovery, limiter, fake_sleep).run(operation)

        assert result == "enhanced"
        assert fake_sleep.delays == [approx(0.5), approx(1.0)]

    @pytest.mark.asyncio
    async def test_recovery_errors_propagate(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a broken recovery hook is not masked."""

        class BrokenRecovery(ScriptedRecovery):
            async def present_retry_choice(self, classification: Any) -> RecoveryChoice:
                raise RuntimeError("dialog crashed")

        operation, _ = failing_operation([RuntimeError("boom")])

        with pytest.raises(RuntimeError, match="dialog crashed"):
            await make_coordinator(BrokenRecovery(), limiter, fake_sleep).run(operation)

    @pytest.mark.asyncio
    async def test_empty_result_is_not_abort(
        self, limiter: RateLimiter, fake_sleep: FakeSleep
    ) -> None:
        """Test that a successful empty result is returned as-is."""
        operation, _ = failing_operation([], result="")

        result = await make_coordinator(ScriptedRecovery(), limiter, fake_sleep).run(operation)

        assert result == ""

    def test_max_attempts_must_be_positive(self, limiter: RateLimiter) -> None:
        """Test that a zero attempt ceiling is rejected."""
        with pytest.raises(ValueError):
            RetryCoordinator(limiter, ScriptedRecovery(), RetryConfig(max_attempts=0))

    @pytest.mark.asyncio
    async def test_shared_limiter_between_runs(
        self, clock: FakeClock, fake_sleep: FakeSleep
    ) -> None:
        """Test that independent runs draw from the same budget."""
        limiter = RateLimiter("shared", RateLimitConfig(max_requests=2, window_ms=60_000), clock=clock)
        recovery = ScriptedRecovery(retry_choices=[RecoveryChoice.CANCEL])
        first, _ = failing_operation([])
        second, _ = failing_operation([])
        third, third_calls = failing_operation([])

        assert await make_coordinator(recovery, limiter, fake_sleep).run(first) == "enhanced"
        assert await make_coordinator(recovery, limiter, fake_sleep).run(second) == "enhanced"
        assert await make_coordinator(recovery, limiter, fake_sleep).run(third) is None
        assert third_calls == []


class TestRunWithRecovery:
    """Tests for the functional shortcut and AutoRecovery."""

    @pytest.mark.asyncio
    async def test_auto_recovery_retries_transient_errors(self, limiter: RateLimiter) -> None:
        """Test that AutoRecovery retries until success."""
        operation, calls = failing_operation([RuntimeError("network is down")])

        result = await run_with_recovery(operation, AutoRecovery(), limiter, max_attempts=3)

        assert result == "enhanced"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_auto_recovery_uses_fallback_credential_once(self, limiter: RateLimiter) -> None:
        """Test that the fallback key is applied once for credential failures."""
        applied: list[str] = []
        operation, calls = failing_operation([APIError("Incorrect API key provided")] * 5)

        result = await run_with_recovery(
            operation,
            AutoRecovery(credential="sk-fallback-1234567890"),
            limiter,
            on_new_credential=applied.append,
        )

        assert result is None
        assert applied == ["sk-fallback-1234567890"]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_auto_recovery_cancels_on_quota(self, limiter: RateLimiter) -> None:
        """Test that non-credential terminal failures cancel."""
        operation, calls = failing_operation([APIError("You exceeded your current quota")])

        result = await run_with_recovery(operation, AutoRecovery(credential="sk-unused"), limiter)

        assert result is None
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_auto_recovery_settings_change(self) -> None:
        """Test that the settings coroutine is awaited on request."""
        changed: list[bool] = []

        async def change() -> None:
            changed.append(True)

        await AutoRecovery(settings_change=change).collect_settings_change()

        assert changed == [True]

    def test_recovery_protocol(self) -> None:
        """Test that the bundled implementations satisfy RecoveryUI."""
        assert isinstance(AutoRecovery(), RecoveryUI)
        assert isinstance(ScriptedRecovery(), RecoveryUI)
