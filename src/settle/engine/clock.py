"""Clock abstraction for testable timeout logic.

This module provides a Clock protocol that abstracts time access and
sleeping, enabling deterministic testing of deadline and backoff code paths
in the poller and the retry executor.

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken


class Clock(Protocol):
    """Abstract clock for deadline-based operations.

    Implementations:
    - SystemClock: Uses time.monotonic() and Event-based sleeps (production)
    - MockClock: Returns controllable times, sleeps advance time (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Must be monotonic (never goes backwards), suitable for elapsed
        time calculations and deadlines. Corresponds to time.monotonic().
        """
        ...

    def sleep(self, seconds: float, cancellation: CancellationToken | None = None) -> bool:
        """Sleep for up to seconds, waking early if cancellation fires.

        Returns:
            True if the sleep was cut short (or preempted) by cancellation.
        """
        ...


class SystemClock:
    """Production clock using time.monotonic().

    Sleeps block on the cancellation token's event so a cancelled scenario
    wakes every sleeping wait immediately.
    """

    def monotonic(self) -> float:
        """Return system monotonic time."""
        return time.monotonic()

    def sleep(self, seconds: float, cancellation: CancellationToken | None = None) -> bool:
        if cancellation is None:
            if seconds > 0:
                time.sleep(seconds)
            return False
        return cancellation.wait(seconds)


class MockClock:
    """Controllable clock for deterministic testing.

    Allows tests to advance time programmatically without real sleeps.
    Every sleep advances the clock by exactly the requested amount and is
    recorded in ``sleeps``.

    Example:
        clock = MockClock(start=0.0)
        poller = ConditionPoller(clock=clock)

        outcome = poller.poll(handle, always_pending, timeout=1.0, poll_interval=0.25)
        assert clock.sleeps == [0.25, 0.25, 0.25, 0.25]
        assert outcome.elapsed == 1.0
    """

    def __init__(self, start: float = 0.0) -> None:
        """Initialize mock clock at a given time.

        Args:
            start: Initial monotonic time value (default 0.0).
        """
        self._current = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        """Return current mock time."""
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds

    def set(self, value: float) -> None:
        """Set mock time to an absolute value.

        Note:
            Unlike advance(), this can set time to any value including
            earlier times. Use with caution - monotonic clocks shouldn't
            go backwards in production.
        """
        self._current = value

    def sleep(self, seconds: float, cancellation: CancellationToken | None = None) -> bool:
        if cancellation is not None and cancellation.is_cancelled:
            return True
        self.sleeps.append(seconds)
        self.advance(max(0.0, seconds))
        return cancellation is not None and cancellation.is_cancelled


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
