# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Wait timing (timeout/poll interval pairs that WaitSpec accepts)
- Retry specs (bounded so a failing run stays small)
- Condition scripts (pending counts per condition)

Usage:
    from tests.property.conftest import wait_timings, retry_specs

    @given(timing=wait_timings())
    def test_poller_never_over_waits(timing: tuple[float, float]) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, TIMING_SETTINGS
#
# Tiers: TIMING (300), STANDARD (100), QUICK (20)
# =============================================================================

from __future__ import annotations

from hypothesis import assume
from hypothesis import strategies as st

from settle.contracts import RetrySpec

# Upper bound on evaluations per poll, keeps MockClock loops short
MAX_EVALUATIONS = 2_000

timeouts = st.floats(min_value=0.01, max_value=60.0, allow_nan=False, allow_infinity=False)

poll_intervals = st.floats(min_value=0.001, max_value=10.0, allow_nan=False, allow_infinity=False)


@st.composite
def wait_timings(draw: st.DrawFn) -> tuple[float, float]:
    """(timeout, poll_interval) with poll_interval < timeout."""
    timeout = draw(timeouts)
    poll_interval = draw(poll_intervals)
    assume(poll_interval < timeout)
    assume(timeout / poll_interval <= MAX_EVALUATIONS)
    return timeout, poll_interval


valid_max_attempts = st.integers(min_value=1, max_value=12)

valid_delays = st.floats(min_value=0.0, max_value=30.0, allow_nan=False, allow_infinity=False)

valid_multipliers = st.floats(min_value=1.0, max_value=5.0, allow_nan=False, allow_infinity=False)


@st.composite
def retry_specs(draw: st.DrawFn, max_attempts: st.SearchStrategy[int] = valid_max_attempts) -> RetrySpec:
    return RetrySpec(
        max_attempts=draw(max_attempts),
        initial_delay=draw(valid_delays),
        backoff_multiplier=draw(valid_multipliers),
        max_delay=draw(valid_delays),
    )


# Pending evaluations before each condition is satisfied
pending_counts = st.lists(st.integers(min_value=0, max_value=5), min_size=1, max_size=6)
