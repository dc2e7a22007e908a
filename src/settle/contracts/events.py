"""Observability events emitted by waits and retries.

These cross the engine <-> observability boundary. Each event is immutable
and safe to hand to another thread.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from settle.contracts.results import Outcome


@dataclass(frozen=True, slots=True)
class WaitOutcomeEvent:
    """One terminal wait result (never one per poll iteration).

    Attributes:
        wait_name: Condition name, or the composite wait's name
        handle_description: Description of the handle waited on
        outcome: The terminal Outcome
        timestamp: When the event was created (UTC)
    """

    wait_name: str
    handle_description: str
    outcome: Outcome
    timestamp: datetime

    @classmethod
    def now(cls, wait_name: str, handle_description: str, outcome: Outcome) -> "WaitOutcomeEvent":
        return cls(wait_name, handle_description, outcome, datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class RetryOutcomeEvent:
    """Result of one retry attempt.

    attempt_index is 1-indexed. error is None when the attempt succeeded.
    """

    operation_name: str
    attempt_index: int
    max_attempts: int
    error: BaseException | None
    timestamp: datetime

    @classmethod
    def now(
        cls,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> "RetryOutcomeEvent":
        return cls(operation_name, attempt_index, max_attempts, error, datetime.now(UTC))

    @property
    def succeeded(self) -> bool:
        return self.error is None
