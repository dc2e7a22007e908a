"""Built-in observability sinks.

- NullSink: discards everything
- LoggingSink: structured log events via structlog (the default)
- RecordingSink: keeps events in memory for assertions
- CompositeSink: fans out to several sinks with failure isolation
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import structlog

from settle.contracts.events import RetryOutcomeEvent, WaitOutcomeEvent

if TYPE_CHECKING:
    from settle.contracts.results import Outcome
    from settle.observability.protocols import ObservabilitySink

logger = structlog.get_logger(__name__)


class NullSink:
    """Sink that ignores all events."""

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: Outcome) -> None:
        return None

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        return None


class LoggingSink:
    """Emit wait and retry outcomes as structured log events.

    Successful waits log at info, failed waits at warning. Successful retry
    attempts log at debug unless they needed more than one attempt.
    """

    def __init__(self, logger_name: str = "settle.outcomes") -> None:
        self._log = structlog.get_logger(logger_name)

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: Outcome) -> None:
        fields: dict[str, Any] = {
            "wait_name": wait_name,
            "handle": handle_description,
            "attempts": outcome.attempts,
            "elapsed_ms": round(outcome.elapsed * 1000, 1),
        }
        if outcome.succeeded:
            self._log.info("wait_satisfied", **fields)
        else:
            self._log.warning(
                "wait_failed",
                error_type=type(outcome.last_error).__name__,
                error=str(outcome.last_error),
                **fields,
            )

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        if error is None:
            log = self._log.info if attempt_index > 1 else self._log.debug
            log("attempt_succeeded", operation=operation_name, attempt=attempt_index, max_attempts=max_attempts)
        else:
            self._log.warning(
                "attempt_failed",
                operation=operation_name,
                attempt=attempt_index,
                max_attempts=max_attempts,
                error_type=type(error).__name__,
                error=str(error),
            )


class RecordingSink:
    """Keep every event in memory.

    Thread-safe; intended for tests and for report generation at the end of
    a scenario.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._wait_events: list[WaitOutcomeEvent] = []
        self._retry_events: list[RetryOutcomeEvent] = []

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: Outcome) -> None:
        event = WaitOutcomeEvent.now(wait_name, handle_description, outcome)
        with self._lock:
            self._wait_events.append(event)

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        event = RetryOutcomeEvent.now(operation_name, attempt_index, max_attempts, error)
        with self._lock:
            self._retry_events.append(event)

    @property
    def wait_events(self) -> list[WaitOutcomeEvent]:
        with self._lock:
            return list(self._wait_events)

    @property
    def retry_events(self) -> list[RetryOutcomeEvent]:
        with self._lock:
            return list(self._retry_events)

    def wait_names(self) -> list[str]:
        return [event.wait_name for event in self.wait_events]

    def clear(self) -> None:
        with self._lock:
            self._wait_events.clear()
            self._retry_events.clear()


class CompositeSink:
    """Dispatch every event to several sinks.

    One sink failing doesn't affect the others; the failure is logged.
    """

    def __init__(self, sinks: Iterable[ObservabilitySink]) -> None:
        self._sinks = tuple(sinks)

    @property
    def sinks(self) -> tuple[ObservabilitySink, ...]:
        return self._sinks

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: Outcome) -> None:
        for sink in self._sinks:
            try:
                sink.on_wait_outcome(wait_name, handle_description, outcome)
            except Exception as e:
                logger.error("sink_failed", sink=type(sink).__name__, hook="on_wait_outcome", error=str(e))

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        for sink in self._sinks:
            try:
                sink.on_retry_outcome(operation_name, attempt_index, max_attempts, error)
            except Exception as e:
                logger.error("sink_failed", sink=type(sink).__name__, hook="on_retry_outcome", error=str(e))
