"""RetryExecutor: bounded retries with exponential backoff via tenacity.

Provides retry behaviour for any idempotent operation:
- Exponential backoff, min(initial_delay * multiplier^(attempt-1), max_delay)
- Configurable max attempts (total tries, not retries)
- Retryable error filtering; non-retryable errors are never retried
- Cooperative cancellation before each attempt and during each backoff sleep
- One observability event after every attempt

Integration Point:
    Page-object style operations wrap their interaction with execute():

        result = executor.execute(
            lambda: element.click(),
            spec=presets.retry("default"),
            name="click submit",
        )
        assert result.outcome.attempts <= 3
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from settle.contracts.errors import OperationCancelledError, RetriesExhaustedError
from settle.contracts.results import Outcome, RetryResult
from settle.engine.clock import DEFAULT_CLOCK, Clock
from settle.observability.sinks import LoggingSink

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken
    from settle.contracts.specs import RetrySpec
    from settle.observability.protocols import ObservabilitySink

T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass
class _AttemptLog:
    """Mutable bookkeeping for a single execute() call."""

    attempts: int = 0
    errors: list[BaseException] = field(default_factory=list)
    last_retryable: bool = False


class RetryExecutor:
    """Runs operations with bounded retries.

    Uses tenacity for the attempt loop and backoff schedule. Sleeping goes
    through the injected Clock so cancellation interrupts it and tests can
    observe the exact delay sequence.

    Example:
        executor = RetryExecutor(sink=RecordingSink(), clock=MockClock())

        result = executor.execute(
            flaky_fetch,
            RetrySpec(max_attempts=3, initial_delay=0.1, backoff_multiplier=2.0, max_delay=1.0),
            name="fetch policy",
        )
    """

    def __init__(self, sink: ObservabilitySink | None = None, clock: Clock | None = None) -> None:
        """Initialize with collaborators.

        Args:
            sink: Receives one retry outcome per attempt (default LoggingSink)
            clock: Time source and sleeper (default SystemClock)
        """
        self._sink: ObservabilitySink = sink if sink is not None else LoggingSink()
        self._clock: Clock = clock if clock is not None else DEFAULT_CLOCK

    @property
    def clock(self) -> Clock:
        return self._clock

    def execute(
        self,
        operation: Callable[[], T],
        spec: RetrySpec,
        *,
        name: str = "operation",
        cancellation: CancellationToken | None = None,
    ) -> RetryResult[T]:
        """Execute operation with retry logic.

        Args:
            operation: Zero-argument callable to run
            spec: Attempt limit, backoff schedule, and retryable predicate
            name: Operation name for events and errors
            cancellation: Optional token checked before each attempt and
                during each backoff sleep

        Returns:
            RetryResult with the operation's value and a success Outcome

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable error
            OperationCancelledError: If cancellation fired
            Exception: The operation's own error, unchanged, if it is not
                retryable (a note with attempt context is attached)
        """
        clock = self._clock
        start = clock.monotonic()
        log = _AttemptLog()

        def should_retry(error: BaseException) -> bool:
            return log.last_retryable

        def sleep(seconds: float) -> None:
            if clock.sleep(seconds, cancellation):
                raise self._cancelled(name, start, log, cancellation)

        retrying = Retrying(
            stop=stop_after_attempt(spec.max_attempts),
            wait=wait_exponential(
                multiplier=spec.initial_delay,
                max=spec.max_delay,
                exp_base=spec.backoff_multiplier,
            ),
            retry=retry_if_exception(should_retry),
            sleep=sleep,
            reraise=False,  # We catch RetryError and convert to RetriesExhaustedError
        )

        try:
            for attempt_state in retrying:
                if cancellation is not None and cancellation.is_cancelled:
                    raise self._cancelled(name, start, log, cancellation)
                with attempt_state:
                    log.attempts = attempt_state.retry_state.attempt_number
                    log.last_retryable = False
                    try:
                        value = operation()
                    except Exception as e:
                        log.errors.append(e)
                        log.last_retryable = bool(spec.retryable(e))
                        self._sink.on_retry_outcome(name, log.attempts, spec.max_attempts, e)
                        if not log.last_retryable:
                            e.add_note(
                                f"settle: operation '{name}' failed on attempt {log.attempts}/{spec.max_attempts} "
                                f"after {clock.monotonic() - start:.3f}s with a non-retryable error"
                            )
                        raise
                    self._sink.on_retry_outcome(name, log.attempts, spec.max_attempts, None)
                    return RetryResult(value=value, outcome=Outcome.success(log.attempts, clock.monotonic() - start))
        except RetryError as e:
            # Retries exhausted - every recorded error was retryable
            elapsed = clock.monotonic() - start
            logger.debug("retries_exhausted", operation=name, attempts=log.attempts, elapsed=elapsed)
            raise RetriesExhaustedError(
                name,
                attempts=log.attempts,
                elapsed=elapsed,
                errors=tuple(log.errors),
            ) from (log.errors[-1] if log.errors else e)

        # Should not reach here - Retrying always returns or raises
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover

    def wrap(
        self,
        spec: RetrySpec,
        *,
        name: str | None = None,
    ) -> Callable[[Callable[..., T]], Callable[..., T]]:
        """Decorator form of execute() that returns the bare value.

        Example:
            @executor.wrap(RetrySpec(max_attempts=5), name="open dashboard")
            def open_dashboard(page):
                page.navigate("/dashboard")
        """

        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            op_name = name or func.__qualname__

            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> T:
                return self.execute(lambda: func(*args, **kwargs), spec, name=op_name).value

            return wrapper

        return decorator

    def _cancelled(
        self,
        name: str,
        start: float,
        log: _AttemptLog,
        cancellation: CancellationToken | None,
    ) -> OperationCancelledError:
        return OperationCancelledError(
            name,
            elapsed=self._clock.monotonic() - start,
            attempts=log.attempts,
            errors=tuple(log.errors),
            reason=cancellation.reason if cancellation is not None else None,
        )
