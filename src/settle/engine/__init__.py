"""Synchronization engine: polling, composite waits, retries, staleness.

Every component takes its ObservabilitySink and Clock by constructor
injection; there are no module-level singletons besides DEFAULT_CLOCK.
"""

from settle.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from settle.engine.composite import CompositeWaitStrategy
from settle.engine.conditions import (
    READINESS_CONDITIONS,
    attribute_equals,
    exists,
    interactable,
    invisible,
    readiness_conditions,
    selected,
    stable_layout,
    text_matches,
    visible,
)
from settle.engine.poller import ConditionPoller
from settle.engine.retry import RetryExecutor
from settle.engine.staleness import StalenessTracker
from settle.engine.synchronizer import Synchronizer

__all__ = [
    # clock
    "DEFAULT_CLOCK",
    "Clock",
    "MockClock",
    "SystemClock",
    # components
    "CompositeWaitStrategy",
    "ConditionPoller",
    "RetryExecutor",
    "StalenessTracker",
    "Synchronizer",
    # conditions
    "READINESS_CONDITIONS",
    "attribute_equals",
    "exists",
    "interactable",
    "invisible",
    "readiness_conditions",
    "selected",
    "stable_layout",
    "text_matches",
    "visible",
]
