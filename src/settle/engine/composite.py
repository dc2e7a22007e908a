"""CompositeWaitStrategy: drive several conditions as one wait.

wait_until_ready() evaluates conditions strictly in order, each through the
ConditionPoller, and stops at the first failure. Budget allotment follows the
WaitSpec's DeadlinePolicy:

    ABSOLUTE       one shared budget; each condition gets whatever remains,
                   so fast conditions leave time for slow ones
    PER_CONDITION  every condition gets the full timeout

wait_for_any() evaluates every condition each round and succeeds as soon as
one of them is satisfied.

Both methods report one aggregate wait outcome, named after the WaitSpec, in
addition to any per-condition outcomes reported by the poller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from settle.contracts.enums import ConditionStatus, DeadlinePolicy
from settle.contracts.errors import (
    ConditionFatalError,
    InvalidSpecError,
    WaitCancelledError,
    WaitTimeoutError,
)
from settle.contracts.handles import describe_handle
from settle.contracts.results import Outcome
from settle.engine.poller import ConditionPoller
from settle.observability.sinks import LoggingSink

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken
    from settle.contracts.handles import Handle
    from settle.contracts.specs import WaitSpec
    from settle.engine.clock import Clock
    from settle.observability.protocols import ObservabilitySink

logger = structlog.get_logger(__name__)


class CompositeWaitStrategy:
    """Chain a WaitSpec's conditions into a single readiness wait.

    Example:
        strategy = CompositeWaitStrategy(sink=sink, clock=clock)
        spec = presets.wait("default").with_conditions(*readiness_conditions(clock))
        strategy.wait_until_ready(button, spec).raise_for_failure()
    """

    def __init__(
        self,
        poller: ConditionPoller | None = None,
        sink: ObservabilitySink | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize with collaborators.

        Args:
            poller: Poller used for each condition (default: one built from
                sink and clock)
            sink: Receives the aggregate outcome (default: the poller's sink)
            clock: Time source (default: the poller's clock)
        """
        if poller is None:
            poller = ConditionPoller(sink=sink if sink is not None else LoggingSink(), clock=clock)
        self._poller = poller
        self._sink: ObservabilitySink = sink if sink is not None else poller.sink
        self._clock: Clock = clock if clock is not None else poller.clock

    @property
    def poller(self) -> ConditionPoller:
        return self._poller

    def wait_until_ready(
        self,
        handle: Handle,
        spec: WaitSpec,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Outcome:
        """Wait until every condition in spec holds, in order.

        Returns:
            Aggregate Outcome: succeeded only if every condition was
            satisfied, attempts summed over all conditions, elapsed measured
            across the whole wait, last_error the first terminal failure.
            An empty condition list succeeds immediately with 0 attempts.
        """
        clock = self._clock
        description = describe_handle(handle)
        start = clock.monotonic()
        deadline = start + spec.timeout
        attempts = 0
        failure: BaseException | None = None

        for condition in spec.conditions:
            if spec.deadline_policy is DeadlinePolicy.ABSOLUTE:
                allotment = deadline - clock.monotonic()
                if allotment <= 0:
                    logger.debug(
                        "wait_budget_exhausted",
                        wait=spec.name,
                        condition=condition.name,
                        handle=description,
                    )
                    failure = WaitTimeoutError(
                        condition.name,
                        description,
                        elapsed=clock.monotonic() - start,
                        attempts=0,
                        timeout=spec.timeout,
                    )
                    break
            else:
                allotment = spec.timeout

            outcome = self._poller.poll(
                handle,
                condition,
                allotment,
                spec.poll_interval,
                cancellation=cancellation,
                max_invalidations=spec.max_invalidations,
            )
            attempts += outcome.attempts
            if not outcome.succeeded:
                failure = outcome.last_error
                break

        elapsed = clock.monotonic() - start
        if failure is None:
            aggregate = Outcome.success(attempts, elapsed)
        else:
            aggregate = Outcome.failure(attempts, elapsed, failure)
        self._sink.on_wait_outcome(spec.name, description, aggregate)
        return aggregate

    def wait_for_any(
        self,
        handle: Handle,
        spec: WaitSpec,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Outcome:
        """Wait until at least one condition in spec holds.

        Each round evaluates the conditions in order and stops at the first
        one satisfied. A FATAL result from any condition ends the wait.
        INVALIDATED results are counted across all conditions against
        spec.max_invalidations. Every evaluation starts before the deadline.

        Raises:
            InvalidSpecError: If spec has no conditions
        """
        if not spec.conditions:
            raise InvalidSpecError(f"wait_for_any '{spec.name}' needs at least one condition")

        description = describe_handle(handle)
        outcome = self._run_any(handle, spec, description, cancellation)
        self._sink.on_wait_outcome(spec.name, description, outcome)
        return outcome

    def _run_any(
        self,
        handle: Handle,
        spec: WaitSpec,
        description: str,
        cancellation: CancellationToken | None,
    ) -> Outcome:
        clock = self._clock
        start = clock.monotonic()
        deadline = start + spec.timeout
        attempts = 0
        invalidations = 0
        last_invalidation: BaseException | None = None

        def cancelled() -> Outcome:
            elapsed = clock.monotonic() - start
            reason = cancellation.reason if cancellation is not None else None
            error = WaitCancelledError(spec.name, description, elapsed=elapsed, attempts=attempts, reason=reason)
            return Outcome.failure(attempts, elapsed, error)

        def timed_out() -> Outcome:
            elapsed = clock.monotonic() - start
            error = WaitTimeoutError(
                spec.name,
                description,
                elapsed=elapsed,
                attempts=attempts,
                timeout=spec.timeout,
                last_invalidation=last_invalidation,
            )
            return Outcome.failure(attempts, elapsed, error)

        while True:
            if cancellation is not None and cancellation.is_cancelled:
                return cancelled()

            for condition in spec.conditions:
                if clock.monotonic() >= deadline:
                    return timed_out()
                attempts += 1
                result = self._poller.evaluate_once(condition, handle)

                if result.status is ConditionStatus.SATISFIED:
                    logger.debug("wait_any_satisfied", wait=spec.name, condition=condition.name, handle=description)
                    return Outcome.success(attempts, clock.monotonic() - start)

                if result.status is ConditionStatus.FATAL:
                    assert result.error is not None  # guaranteed by ConditionResult
                    return Outcome.failure(attempts, clock.monotonic() - start, result.error)

                if result.status is ConditionStatus.INVALIDATED:
                    invalidations += 1
                    last_invalidation = result.error
                    if spec.max_invalidations is not None and invalidations > spec.max_invalidations:
                        elapsed = clock.monotonic() - start
                        error = ConditionFatalError(
                            condition.name,
                            description,
                            f"handle invalidated {invalidations} times (limit {spec.max_invalidations}): "
                            f"{result.error}",
                            elapsed=elapsed,
                            attempts=attempts,
                        )
                        error.__cause__ = result.error
                        return Outcome.failure(attempts, elapsed, error)

            remaining = deadline - clock.monotonic()
            if remaining <= 0:
                return timed_out()
            if clock.sleep(min(spec.poll_interval, remaining), cancellation):
                return cancelled()
