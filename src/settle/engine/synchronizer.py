"""Synchronizer: wait for readiness, then act with retries and staleness handling.

This is the seam page objects and API steps call. It composes the three
engine components:

    1. CompositeWaitStrategy makes the handle ready. A wait that failed
       because the handle went stale is recovered like an INVALIDATED
       action error; any other readiness failure raises
    2. RetryExecutor runs the action with bounded backoff
    3. StalenessTracker classifies each failure:
         RETRYABLE   -> retry in place
         INVALIDATED -> re-acquire a fresh handle (if a reacquire callable
                        was given), wait for it to be ready, retry
         FATAL       -> fail immediately, error unchanged
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from settle.contracts.enums import Classification
from settle.contracts.errors import ConditionFatalError, WaitTimeoutError
from settle.contracts.handles import describe_handle
from settle.engine.composite import CompositeWaitStrategy
from settle.engine.retry import RetryExecutor
from settle.engine.staleness import StalenessTracker

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken
    from settle.contracts.handles import Handle
    from settle.contracts.results import RetryResult
    from settle.contracts.specs import RetrySpec, WaitSpec

H = TypeVar("H", bound="Handle")
T = TypeVar("T")

logger = structlog.get_logger(__name__)


@dataclass
class _PerformState(Generic[H]):
    """Mutable state shared by the attempts of one perform() call."""

    handle: H
    needs_ready: bool = False
    last_error: BaseException | None = None
    retry_last: bool = False

    def record(self, error: BaseException, retry: bool) -> None:
        self.last_error = error
        self.retry_last = retry


class Synchronizer:
    """Facade running remote interactions safely.

    Example:
        sync = Synchronizer(CompositeWaitStrategy(), RetryExecutor(), StalenessTracker())
        sync.perform(
            button,
            lambda element: element.click(),
            wait_spec=presets.wait("default").with_conditions(*readiness_conditions()),
            retry_spec=presets.retry("default"),
            name="click submit",
            reacquire=button.reacquire,
        )
    """

    def __init__(
        self,
        wait_strategy: CompositeWaitStrategy | None = None,
        retry_executor: RetryExecutor | None = None,
        tracker: StalenessTracker | None = None,
    ) -> None:
        self._wait_strategy = wait_strategy if wait_strategy is not None else CompositeWaitStrategy()
        self._retry_executor = retry_executor if retry_executor is not None else RetryExecutor()
        self._tracker = tracker if tracker is not None else StalenessTracker()

    @property
    def tracker(self) -> StalenessTracker:
        """Tracker used while perform() runs; handles are forgotten on exit."""
        return self._tracker

    def perform(
        self,
        handle: H,
        action: Callable[[H], T],
        *,
        wait_spec: WaitSpec,
        retry_spec: RetrySpec,
        name: str = "action",
        reacquire: Callable[[], H] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> RetryResult[T]:
        """Wait until handle is ready, then run action(handle) under retry.

        Args:
            handle: Handle to act on
            action: Interaction to perform; receives the current handle
            wait_spec: Readiness conditions and budget
            retry_spec: Attempt limit and backoff; its retryable predicate is
                replaced by the staleness classification
            name: Operation name for events and errors
            reacquire: Returns a fresh handle once the current one is
                invalidated; without it an INVALIDATED failure is final
            cancellation: Token shared by the wait and the retry loop

        Returns:
            RetryResult with the action's value

        Raises:
            WaitTimeoutError, ConditionFatalError, WaitCancelledError: Readiness
                wait failed and could not be recovered by re-acquisition
            RetriesExhaustedError: Every attempt failed with a retryable error
            OperationCancelledError: Cancelled during the retry loop
            Exception: A FATAL (or unrecoverable INVALIDATED) action error,
                unchanged
        """
        state: _PerformState[H] = _PerformState(handle=handle, needs_ready=True)
        self._tracker.track(handle)

        def attempt() -> T:
            if state.needs_ready:
                target = state.handle
                readiness = self._wait_strategy.wait_until_ready(target, wait_spec, cancellation=cancellation)
                if not readiness.succeeded:
                    assert readiness.last_error is not None  # guaranteed by Outcome
                    error = readiness.last_error
                    retry = _ended_on_invalidation(error) and self._replace(state, target, reacquire, name)
                    state.record(error, retry=retry)
                    raise error
                state.needs_ready = False

            target = state.handle
            try:
                return action(target)
            except Exception as e:
                state.record(e, retry=self._recover(state, target, e, reacquire, name))
                raise

        def retryable(error: BaseException) -> bool:
            return error is state.last_error and state.retry_last

        try:
            return self._retry_executor.execute(
                attempt,
                retry_spec.with_retryable(retryable),
                name=name,
                cancellation=cancellation,
            )
        finally:
            self._tracker.forget(state.handle)
            self._tracker.forget(handle)

    def _recover(
        self,
        state: _PerformState[H],
        target: H,
        error: Exception,
        reacquire: Callable[[], H] | None,
        name: str,
    ) -> bool:
        """Classify a failed attempt and prepare the next one. Returns whether to retry."""
        verdict = self._tracker.classify(target, error)
        if verdict is Classification.RETRYABLE:
            return True
        if verdict is Classification.FATAL:
            return False
        return self._replace(state, target, reacquire, name)

    def _replace(
        self,
        state: _PerformState[H],
        target: H,
        reacquire: Callable[[], H] | None,
        name: str,
    ) -> bool:
        """Swap an invalidated handle for a fresh one. Returns False without reacquire."""
        if reacquire is None:
            logger.debug("handle_invalidated_no_reacquire", operation=name, handle=describe_handle(target))
            return False

        fresh = reacquire()
        self._tracker.forget(target)
        self._tracker.track(fresh)
        state.handle = fresh
        state.needs_ready = True
        logger.debug(
            "handle_reacquired",
            operation=name,
            stale=describe_handle(target),
            fresh=describe_handle(fresh),
        )
        return True


def _ended_on_invalidation(error: BaseException) -> bool:
    """Whether a failed readiness wait was caused by the handle going stale.

    ConditionFatalError is only raised when INVALIDATED results exceed
    max_invalidations; a timeout counts when its last failure was one.
    """
    if isinstance(error, ConditionFatalError):
        return True
    return isinstance(error, WaitTimeoutError) and error.last_invalidation is not None
