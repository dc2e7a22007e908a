# tests/engine/test_retry.py
"""Tests for RetryExecutor: backoff schedule, exhaustion, short-circuit, cancellation."""

from typing import Any

import pytest

from settle.contracts import (
    CancellationToken,
    OperationCancelledError,
    RetriesExhaustedError,
    RetrySpec,
)
from settle.engine.clock import MockClock
from settle.engine.retry import RetryExecutor
from settle.observability import RecordingSink
from tests.conftest import failing_operation


def _spec(**overrides: Any) -> RetrySpec:
    values: dict[str, Any] = {
        "max_attempts": 3,
        "initial_delay": 0.1,
        "backoff_multiplier": 2.0,
        "max_delay": 1.0,
    }
    values.update(overrides)
    return RetrySpec(**values)


class TestRetryExecutorSuccess:
    def test_first_attempt_success_does_not_sleep(self, clock: MockClock, sink: RecordingSink) -> None:
        executor = RetryExecutor(sink=sink, clock=clock)

        result = executor.execute(lambda: 42, _spec(), name="compute")

        assert result.value == 42
        assert result.outcome.succeeded
        assert result.outcome.attempts == 1
        assert clock.sleeps == []

    def test_retries_transient_error_then_succeeds(self, clock: MockClock, sink: RecordingSink) -> None:
        executor = RetryExecutor(sink=sink, clock=clock)
        operation = failing_operation([TimeoutError("read timed out")], value="saved")

        result = executor.execute(operation, _spec(), name="save")

        assert result.value == "saved"
        assert result.outcome.attempts == 2
        assert clock.sleeps == [0.1]
        assert result.outcome.elapsed == pytest.approx(0.1)


class TestRetryExecutorExhaustion:
    def test_exhaustion_sleeps_backoff_schedule_and_records_every_error(
        self, clock: MockClock, sink: RecordingSink
    ) -> None:
        errors = [TimeoutError("timeout 1"), TimeoutError("timeout 2"), TimeoutError("timeout 3")]
        executor = RetryExecutor(sink=sink, clock=clock)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            executor.execute(failing_operation(errors), _spec(), name="fetch policy")

        error = exc_info.value
        assert clock.sleeps == [0.1, 0.2]
        assert error.attempts == 3
        assert list(error.errors) == errors
        assert error.last_error is errors[-1]
        assert error.__cause__ is errors[-1]
        assert error.name == "fetch policy"
        assert error.elapsed == pytest.approx(0.3)

    def test_delays_capped_at_max_delay(self, clock: MockClock) -> None:
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)
        spec = _spec(max_attempts=6, initial_delay=0.5, backoff_multiplier=3.0, max_delay=2.0)

        with pytest.raises(RetriesExhaustedError):
            executor.execute(failing_operation([TimeoutError("timed out")] * 6), spec)

        assert clock.sleeps == [0.5, 1.5, 2.0, 2.0, 2.0]

    def test_sleeps_follow_delay_for(self, clock: MockClock) -> None:
        spec = _spec(max_attempts=5, initial_delay=0.25, backoff_multiplier=1.5, max_delay=0.6)
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        with pytest.raises(RetriesExhaustedError):
            executor.execute(failing_operation([TimeoutError("timed out")] * 5), spec)

        assert clock.sleeps == pytest.approx([spec.delay_for(n) for n in range(1, 5)])

    def test_single_attempt_spec_never_sleeps(self, clock: MockClock) -> None:
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            executor.execute(failing_operation([TimeoutError("timed out")]), RetrySpec.no_retry())

        assert exc_info.value.attempts == 1
        assert clock.sleeps == []


class TestNonRetryable:
    def test_non_retryable_error_is_reraised_unchanged_after_one_attempt(self, clock: MockClock) -> None:
        calls = 0
        error = ValueError("malformed payload")

        def operation() -> None:
            nonlocal calls
            calls += 1
            raise error

        executor = RetryExecutor(sink=RecordingSink(), clock=clock)
        with pytest.raises(ValueError) as exc_info:
            executor.execute(operation, _spec(max_attempts=5), name="parse")

        assert exc_info.value is error
        assert calls == 1
        assert clock.sleeps == []

    def test_non_retryable_error_gets_context_note(self, clock: MockClock) -> None:
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        with pytest.raises(KeyError) as exc_info:
            executor.execute(failing_operation([KeyError("policy_id")]), _spec(), name="lookup")

        notes = getattr(exc_info.value, "__notes__", [])
        assert any("operation 'lookup' failed on attempt 1/3" in note for note in notes)

    def test_non_retryable_after_retryable_stops_retrying(self, clock: MockClock) -> None:
        errors = [TimeoutError("timed out"), AssertionError("wrong total")]
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        with pytest.raises(AssertionError, match="wrong total"):
            executor.execute(failing_operation(errors), _spec(max_attempts=5))

        assert clock.sleeps == [0.1]

    def test_custom_predicate(self, clock: MockClock) -> None:
        spec = _spec().with_retryable(lambda error: isinstance(error, KeyError))
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        result = executor.execute(failing_operation([KeyError("not yet")], value=1), spec)

        assert result.value == 1
        assert result.outcome.attempts == 2


class TestCancellation:
    def test_cancelled_before_first_attempt(self, clock: MockClock) -> None:
        token = CancellationToken()
        token.cancel("scenario aborted")
        calls: list[int] = []
        executor = RetryExecutor(sink=RecordingSink(), clock=clock)

        with pytest.raises(OperationCancelledError) as exc_info:
            executor.execute(lambda: calls.append(1), _spec(), cancellation=token)

        assert calls == []
        assert exc_info.value.attempts == 0
        assert exc_info.value.reason == "scenario aborted"

    def test_cancelled_during_backoff_sleep(self, clock: MockClock) -> None:
        token = CancellationToken()
        attempts = 0

        def operation() -> None:
            nonlocal attempts
            attempts += 1
            token.cancel("stop")
            raise TimeoutError("timed out")

        executor = RetryExecutor(sink=RecordingSink(), clock=clock)
        with pytest.raises(OperationCancelledError) as exc_info:
            executor.execute(operation, _spec(), name="poll job", cancellation=token)

        assert attempts == 1
        assert exc_info.value.attempts == 1
        assert len(exc_info.value.errors) == 1
        assert exc_info.value.reason == "stop"
        assert clock.sleeps == []

    def test_cancellation_is_not_retried(self, clock: MockClock) -> None:
        token = CancellationToken()
        calls = 0

        def operation() -> str:
            nonlocal calls
            calls += 1
            if calls == 2:
                token.cancel("late cancel")
            raise TimeoutError("timed out")

        executor = RetryExecutor(sink=RecordingSink(), clock=clock)
        with pytest.raises(OperationCancelledError) as exc_info:
            executor.execute(operation, _spec(max_attempts=5), cancellation=token)

        assert calls == 2
        assert exc_info.value.attempts == 2
        assert clock.sleeps == [0.1]


class TestRetryEvents:
    def test_one_event_per_attempt(self, clock: MockClock, sink: RecordingSink) -> None:
        errors = [TimeoutError("timed out"), TimeoutError("timed out again")]
        executor = RetryExecutor(sink=sink, clock=clock)

        executor.execute(failing_operation(errors, value="done"), _spec(), name="submit claim")

        events = sink.retry_events
        assert [(e.operation_name, e.attempt_index, e.max_attempts) for e in events] == [
            ("submit claim", 1, 3),
            ("submit claim", 2, 3),
            ("submit claim", 3, 3),
        ]
        assert [e.succeeded for e in events] == [False, False, True]
        assert events[0].error is errors[0]

    def test_non_retryable_failure_still_emits_event(self, clock: MockClock, sink: RecordingSink) -> None:
        executor = RetryExecutor(sink=sink, clock=clock)

        with pytest.raises(ValueError):
            executor.execute(failing_operation([ValueError("bad")]), _spec())

        assert len(sink.retry_events) == 1
        assert not sink.retry_events[0].succeeded


class TestWrapDecorator:
    def test_wrap_returns_bare_value_and_uses_function_name(self, clock: MockClock, sink: RecordingSink) -> None:
        executor = RetryExecutor(sink=sink, clock=clock)
        calls = 0

        @executor.wrap(_spec())
        def open_dashboard(path: str) -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise TimeoutError("page load timed out")
            return f"opened {path}"

        assert open_dashboard("/dashboard") == "opened /dashboard"
        assert sink.retry_events[0].operation_name.endswith("open_dashboard")
        assert open_dashboard.__name__ == "open_dashboard"
