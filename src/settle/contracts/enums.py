"""All status codes, policies, and kinds used across subsystem boundaries.

Every value here is a StrEnum so it renders cleanly in structured log output
and compares equal to its string form in settings files.
"""

from enum import StrEnum


class ConditionStatus(StrEnum):
    """Result kind of a single condition evaluation.

    PENDING is the normal "not yet" state and is never an error.
    INVALIDATED means the handle no longer refers to the live remote entity.
    FATAL means the check itself failed and polling must stop.
    """

    PENDING = "pending"
    SATISFIED = "satisfied"
    INVALIDATED = "invalidated"
    FATAL = "fatal"


class DeadlinePolicy(StrEnum):
    """How a composite wait divides its timeout between conditions.

    ABSOLUTE: one shared budget; each condition is allotted whatever remains.
    PER_CONDITION: every condition is allotted the full timeout.
    """

    ABSOLUTE = "absolute"
    PER_CONDITION = "per_condition"


class Classification(StrEnum):
    """Verdict on an error raised while working with a remote handle."""

    RETRYABLE = "retryable"
    INVALIDATED = "invalidated"
    FATAL = "fatal"


class HandleState(StrEnum):
    """Staleness state of a tracked handle.

    Transitions are one-way: FRESH -> STALE.
    """

    FRESH = "fresh"
    STALE = "stale"
