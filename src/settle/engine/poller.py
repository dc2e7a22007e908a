"""ConditionPoller: evaluate one condition until it holds or the deadline passes.

Algorithm:
    1. Evaluate immediately (no initial sleep).
    2. On PENDING (or tolerated INVALIDATED) sleep poll_interval, capped at the
       time left before the deadline, then evaluate again.
    3. Stop on SATISFIED, FATAL, cancellation, or when the deadline is reached.

The deadline is checked before every evaluation, so the last evaluation
always starts strictly before start + timeout. A call never blocks longer
than timeout plus the cost of one evaluation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from settle.contracts.enums import ConditionStatus
from settle.contracts.errors import (
    ConditionFatalError,
    InvalidSpecError,
    WaitCancelledError,
    WaitTimeoutError,
)
from settle.contracts.handles import describe_handle
from settle.contracts.results import ConditionResult, Outcome
from settle.engine.clock import DEFAULT_CLOCK, Clock
from settle.observability.sinks import LoggingSink

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken
    from settle.contracts.handles import Handle
    from settle.contracts.specs import Condition
    from settle.observability.protocols import ObservabilitySink

logger = structlog.get_logger(__name__)


class ConditionPoller:
    """Generic condition-polling loop.

    Example:
        poller = ConditionPoller(sink=RecordingSink())
        outcome = poller.poll(handle, exists(), timeout=5.0, poll_interval=0.1)
        outcome.raise_for_failure()
    """

    def __init__(self, sink: ObservabilitySink | None = None, clock: Clock | None = None) -> None:
        """Initialize with collaborators.

        Args:
            sink: Receives one wait outcome per poll() call (default LoggingSink)
            clock: Time source and sleeper (default SystemClock)
        """
        self._sink: ObservabilitySink = sink if sink is not None else LoggingSink()
        self._clock: Clock = clock if clock is not None else DEFAULT_CLOCK

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def sink(self) -> ObservabilitySink:
        return self._sink

    def poll(
        self,
        handle: Handle,
        condition: Condition,
        timeout: float,
        poll_interval: float,
        *,
        cancellation: CancellationToken | None = None,
        max_invalidations: int | None = None,
        wait_name: str | None = None,
    ) -> Outcome:
        """Poll condition against handle until satisfied or the deadline passes.

        Args:
            handle: Remote handle passed to the condition
            condition: Idempotent condition to evaluate
            timeout: Seconds before giving up, > 0
            poll_interval: Seconds between evaluations, > 0
            cancellation: Optional token checked before every evaluation and
                during every sleep
            max_invalidations: INVALIDATED results tolerated before the poll
                escalates to FATAL; None tolerates any number
            wait_name: Name reported to the sink (defaults to condition.name)

        Returns:
            Outcome. On failure last_error is a WaitTimeoutError, a
            WaitCancelledError, or the FATAL error surfaced verbatim.

        Raises:
            InvalidSpecError: If timeout or poll_interval is not positive
        """
        if not timeout > 0:
            raise InvalidSpecError(f"timeout must be > 0, got {timeout}")
        if not poll_interval > 0:
            raise InvalidSpecError(f"poll_interval must be > 0, got {poll_interval}")
        if max_invalidations is not None and max_invalidations < 0:
            raise InvalidSpecError(f"max_invalidations must be >= 0, got {max_invalidations}")

        name = wait_name or condition.name
        description = describe_handle(handle)
        outcome = self._run(handle, condition, description, timeout, poll_interval, cancellation, max_invalidations)
        self._sink.on_wait_outcome(name, description, outcome)
        return outcome

    def _run(
        self,
        handle: Handle,
        condition: Condition,
        description: str,
        timeout: float,
        poll_interval: float,
        cancellation: CancellationToken | None,
        max_invalidations: int | None,
    ) -> Outcome:
        clock = self._clock
        start = clock.monotonic()
        deadline = start + timeout
        attempts = 0
        invalidations = 0
        last_invalidation: BaseException | None = None

        while True:
            if cancellation is not None and cancellation.is_cancelled:
                return self._cancelled(condition, description, start, attempts, cancellation)

            if clock.monotonic() >= deadline:
                elapsed = clock.monotonic() - start
                error = WaitTimeoutError(
                    condition.name,
                    description,
                    elapsed=elapsed,
                    attempts=attempts,
                    timeout=timeout,
                    last_invalidation=last_invalidation,
                )
                return Outcome.failure(attempts, elapsed, error)

            attempts += 1
            result = self.evaluate_once(condition, handle)

            if result.status is ConditionStatus.SATISFIED:
                return Outcome.success(attempts, clock.monotonic() - start)

            if result.status is ConditionStatus.FATAL:
                assert result.error is not None  # guaranteed by ConditionResult
                logger.debug("condition_fatal", condition=condition.name, handle=description, error=str(result.error))
                return Outcome.failure(attempts, clock.monotonic() - start, result.error)

            if result.status is ConditionStatus.INVALIDATED:
                invalidations += 1
                last_invalidation = result.error
                if max_invalidations is not None and invalidations > max_invalidations:
                    elapsed = clock.monotonic() - start
                    error = ConditionFatalError(
                        condition.name,
                        description,
                        f"handle invalidated {invalidations} times (limit {max_invalidations}): {result.error}",
                        elapsed=elapsed,
                        attempts=attempts,
                    )
                    error.__cause__ = result.error
                    return Outcome.failure(attempts, elapsed, error)

            remaining = deadline - clock.monotonic()
            if remaining <= 0:
                continue
            if clock.sleep(min(poll_interval, remaining), cancellation):
                return self._cancelled(condition, description, start, attempts, cancellation)

    def evaluate_once(self, condition: Condition, handle: Handle) -> ConditionResult:
        """Run one evaluation; an escaping exception is FATAL, never polled through."""
        try:
            result = condition.evaluate(handle)
        except Exception as e:
            return ConditionResult.fatal(e)
        if not isinstance(result, ConditionResult):
            return ConditionResult.fatal(
                TypeError(f"Condition '{condition.name}' returned {type(result).__name__}, expected ConditionResult")
            )
        return result

    def _cancelled(
        self,
        condition: Condition,
        description: str,
        start: float,
        attempts: int,
        cancellation: CancellationToken | None,
    ) -> Outcome:
        elapsed = self._clock.monotonic() - start
        reason = cancellation.reason if cancellation is not None else None
        error = WaitCancelledError(condition.name, description, elapsed=elapsed, attempts=attempts, reason=reason)
        return Outcome.failure(attempts, elapsed, error)
