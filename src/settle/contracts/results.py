"""Tagged result types returned by conditions, waits, and retries.

ConditionResult distinguishes "not yet true" from "the check itself failed".
Outcome is returned by every public wait operation and is always fully
populated, even on success, so callers can assert on timing and attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from settle.contracts.enums import ConditionStatus

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ConditionResult:
    """Result of evaluating one condition against one handle.

    Use the factory classmethods rather than the constructor.
    """

    status: ConditionStatus
    value: Any = None
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if self.status in (ConditionStatus.INVALIDATED, ConditionStatus.FATAL) and self.error is None:
            raise ValueError(f"{self.status.value} condition result requires an error")
        if self.status in (ConditionStatus.PENDING, ConditionStatus.SATISFIED) and self.error is not None:
            raise ValueError(f"{self.status.value} condition result must not carry an error")

    @classmethod
    def pending(cls) -> ConditionResult:
        return cls(ConditionStatus.PENDING)

    @classmethod
    def satisfied(cls, value: Any = True) -> ConditionResult:
        return cls(ConditionStatus.SATISFIED, value=value)

    @classmethod
    def invalidated(cls, error: BaseException) -> ConditionResult:
        return cls(ConditionStatus.INVALIDATED, error=error)

    @classmethod
    def fatal(cls, error: BaseException) -> ConditionResult:
        return cls(ConditionStatus.FATAL, error=error)

    @property
    def is_satisfied(self) -> bool:
        return self.status is ConditionStatus.SATISFIED


@dataclass(frozen=True, slots=True)
class Outcome:
    """Terminal result of a wait or retry invocation.

    Attributes:
        succeeded: True only if the operation reached its goal
        attempts: Evaluations (waits) or attempts (retries) performed
        elapsed: Wall time in seconds, measured on the injected clock
        last_error: Terminal failure, or None on success
    """

    succeeded: bool
    attempts: int
    elapsed: float
    last_error: BaseException | None = None

    def __post_init__(self) -> None:
        if self.attempts < 0:
            raise ValueError(f"attempts must be >= 0, got {self.attempts}")
        if self.elapsed < 0:
            raise ValueError(f"elapsed must be >= 0, got {self.elapsed}")
        if not self.succeeded and self.last_error is None:
            raise ValueError("failed outcome requires last_error")

    @classmethod
    def success(cls, attempts: int, elapsed: float) -> Outcome:
        return cls(succeeded=True, attempts=attempts, elapsed=elapsed)

    @classmethod
    def failure(cls, attempts: int, elapsed: float, error: BaseException) -> Outcome:
        return cls(succeeded=False, attempts=attempts, elapsed=elapsed, last_error=error)

    def raise_for_failure(self) -> None:
        """Raise last_error if this outcome did not succeed."""
        if not self.succeeded:
            assert self.last_error is not None  # guaranteed by __post_init__
            raise self.last_error


@dataclass(frozen=True, slots=True)
class RetryResult(Generic[T]):
    """Value produced by a successful retried operation, with its Outcome."""

    value: T
    outcome: Outcome
