"""Immutable wait and retry specifications.

Design Principles:
1. Frozen - a spec never changes once a call site holds it
2. Validated in __post_init__ - malformed specs fail at construction with
   InvalidSpecError, never at run time
3. Timing is in float seconds throughout
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from settle.contracts.enums import DeadlinePolicy
from settle.contracts.errors import InvalidSpecError
from settle.contracts.signatures import is_transient

if TYPE_CHECKING:
    from settle.contracts.handles import Handle, HandleEvaluator
    from settle.contracts.results import ConditionResult


def _require_finite(field_name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidSpecError(f"{field_name} must be numeric, got {type(value).__name__}")
    if not math.isfinite(value):
        raise InvalidSpecError(f"{field_name} must be finite, got {value}")


@dataclass(frozen=True, slots=True)
class Condition:
    """A named, idempotent predicate over a handle.

    evaluate must not mutate the remote system: it is called repeatedly.
    """

    name: str
    evaluate: Callable[[Handle], ConditionResult] = field(compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidSpecError("condition name must be non-empty")

    def __call__(self, handle: Handle) -> ConditionResult:
        return self.evaluate(handle)

    @classmethod
    def from_evaluator(cls, name: str, evaluator: HandleEvaluator) -> Condition:
        """Build a condition that delegates to a driver-layer evaluator by name."""
        return cls(name=name, evaluate=lambda handle: evaluator.evaluate_condition(handle, name))


@dataclass(frozen=True, slots=True)
class WaitSpec:
    """Specification for a (possibly composite) wait.

    Attributes:
        conditions: Conditions evaluated strictly in this order
        timeout: Total budget in seconds
        poll_interval: Delay between evaluations in seconds; must be < timeout
        deadline_policy: How the budget is divided between conditions
        name: Name reported for the aggregate wait
        max_invalidations: INVALIDATED results tolerated per condition before
            the poll escalates to FATAL; None tolerates any number
    """

    conditions: tuple[Condition, ...] = ()
    timeout: float = 10.0
    poll_interval: float = 0.5
    deadline_policy: DeadlinePolicy = DeadlinePolicy.ABSOLUTE
    name: str = "ready"
    max_invalidations: int | None = None

    def __post_init__(self) -> None:
        _require_finite("timeout", self.timeout)
        _require_finite("poll_interval", self.poll_interval)
        if self.timeout <= 0:
            raise InvalidSpecError(f"timeout must be > 0, got {self.timeout}")
        if self.poll_interval <= 0:
            raise InvalidSpecError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.poll_interval >= self.timeout:
            raise InvalidSpecError(f"poll_interval ({self.poll_interval}) must be < timeout ({self.timeout})")
        if self.max_invalidations is not None and self.max_invalidations < 0:
            raise InvalidSpecError(f"max_invalidations must be >= 0, got {self.max_invalidations}")
        # Tuples only: a caller-held list could be mutated after validation
        if not isinstance(self.conditions, tuple):
            object.__setattr__(self, "conditions", tuple(self.conditions))
        names = [condition.name for condition in self.conditions]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InvalidSpecError(f"condition names must be unique, duplicated: {duplicates}")

    def with_conditions(self, *conditions: Condition) -> WaitSpec:
        """Return a copy of this spec's timing with a new condition list."""
        return replace(self, conditions=tuple(conditions))

    def with_name(self, name: str) -> WaitSpec:
        return replace(self, name=name)


@dataclass(frozen=True, slots=True)
class RetrySpec:
    """Specification for bounded retries with exponential backoff.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=3 means: try, retry, retry (3 total).

    Attributes:
        max_attempts: Total attempts, >= 1
        initial_delay: Delay after the first failed attempt, in seconds
        backoff_multiplier: Growth factor per attempt, >= 1.0
        max_delay: Upper bound on any single delay, in seconds
        retryable: Predicate deciding whether an error may be retried
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0
    retryable: Callable[[BaseException], bool] = field(default=is_transient, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise InvalidSpecError(f"max_attempts must be an integer, got {type(self.max_attempts).__name__}")
        if self.max_attempts < 1:
            raise InvalidSpecError("max_attempts must be >= 1")
        _require_finite("initial_delay", self.initial_delay)
        _require_finite("backoff_multiplier", self.backoff_multiplier)
        _require_finite("max_delay", self.max_delay)
        if self.initial_delay < 0:
            raise InvalidSpecError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.backoff_multiplier < 1.0:
            raise InvalidSpecError(f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}")
        if self.max_delay < 0:
            raise InvalidSpecError(f"max_delay must be >= 0, got {self.max_delay}")

    @classmethod
    def no_retry(cls) -> RetrySpec:
        """Factory for a single-attempt spec."""
        return cls(max_attempts=1)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt (1-indexed).

        The first retry waits initial_delay unscaled; every delay is capped at
        max_delay.
        """
        if attempt < 1:
            raise ValueError(f"attempt is 1-indexed, got {attempt}")
        try:
            delay = self.initial_delay * self.backoff_multiplier ** (attempt - 1)
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def with_retryable(self, retryable: Callable[[BaseException], bool]) -> RetrySpec:
        return replace(self, retryable=retryable)
