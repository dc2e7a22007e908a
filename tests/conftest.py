# tests/conftest.py
"""Shared test fixtures and helpers.

Test Doubles:
- FakeHandle: Handle with a settable generation and description
- FakeElement: RemoteElement whose query answers are scripted per attribute
- scripted_condition(): Condition that replays a list of ConditionResults

All timing tests inject MockClock: sleeps advance mock time instantly and
are recorded in clock.sleeps, so deadlines and backoff schedules are
asserted exactly.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Hashable, Iterable, Iterator
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from settle.contracts import Condition, ConditionResult, Rect
from settle.engine.clock import MockClock
from settle.observability import RecordingSink

# =============================================================================
# Test doubles
# =============================================================================


class FakeHandle:
    """Handle whose generation is controlled by the test."""

    def __init__(self, description: str = "fake handle", generation: Hashable = 1) -> None:
        self._description = description
        self.current_generation: Hashable = generation
        self.generation_error: Exception | None = None
        self.generation_calls = 0

    @property
    def description(self) -> str:
        return self._description

    def generation(self) -> Hashable:
        self.generation_calls += 1
        if self.generation_error is not None:
            raise self.generation_error
        return self.current_generation

    def replace(self) -> None:
        """Simulate the remote entity being re-rendered."""
        if isinstance(self.current_generation, int):
            self.current_generation += 1
        else:
            self.current_generation = (self.current_generation, "next")


class FakeElement(FakeHandle):
    """RemoteElement double.

    Each query answer may be a value, an exception instance (raised), or an
    iterator of either (consumed one per call; the last value repeats).
    """

    def __init__(self, description: str = "fake element", **answers: Any) -> None:
        super().__init__(description)
        self._answers: dict[str, Any] = {
            "is_present": True,
            "is_displayed": True,
            "is_enabled": True,
            "is_selected": False,
            "rect": Rect(0, 0, 100, 20),
            "text": "",
            "attribute": None,
        }
        self._last: dict[str, Any] = {}
        self.calls: list[str] = []
        for name, answer in answers.items():
            self.script(name, answer)

    def script(self, query: str, answer: Any) -> None:
        if query not in self._answers:
            raise KeyError(query)
        if isinstance(answer, list):
            answer = iter(answer)
        self._answers[query] = answer
        self._last.pop(query, None)

    def _answer(self, query: str) -> Any:
        self.calls.append(query)
        answer = self._answers[query]
        if isinstance(answer, Iterator):
            try:
                value = next(answer)
                self._last[query] = value
            except StopIteration:
                value = self._last[query]
        else:
            value = answer
        if isinstance(value, BaseException):
            raise value
        return value

    def is_present(self) -> bool:
        return bool(self._answer("is_present"))

    def is_displayed(self) -> bool:
        return bool(self._answer("is_displayed"))

    def is_enabled(self) -> bool:
        return bool(self._answer("is_enabled"))

    def is_selected(self) -> bool:
        return bool(self._answer("is_selected"))

    def rect(self) -> Rect:
        value: Rect = self._answer("rect")
        return value

    def text(self) -> str:
        return str(self._answer("text"))

    def attribute(self, name: str) -> str | None:
        value = self._answer("attribute")
        if isinstance(value, dict):
            return value.get(name)
        return value


def scripted_condition(
    name: str,
    results: Iterable[ConditionResult],
    calls: list[str] | None = None,
) -> Condition:
    """Condition replaying results in order; the final result repeats forever."""
    remaining = list(results)
    if not remaining:
        raise ValueError("scripted_condition needs at least one result")

    def evaluate(handle: Any) -> ConditionResult:
        if calls is not None:
            calls.append(name)
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return Condition(name=name, evaluate=evaluate)


def satisfied_after(name: str, pending_count: int, calls: list[str] | None = None) -> Condition:
    return scripted_condition(
        name,
        [ConditionResult.pending()] * pending_count + [ConditionResult.satisfied()],
        calls,
    )


def failing_operation(errors: Iterable[BaseException], value: Any = "ok") -> Callable[[], Any]:
    """Operation that raises each error in turn, then returns value."""
    pending = list(errors)

    def operation() -> Any:
        if pending:
            raise pending.pop(0)
        return value

    return operation


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def handle() -> FakeHandle:
    return FakeHandle("submit button")


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep structlog and root logger configuration from leaking between tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
