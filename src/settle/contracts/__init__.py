"""Shared contracts for cross-boundary data types.

All dataclasses, enums, protocols, and errors that cross subsystem boundaries
(engine, observability, drivers, config) are defined here.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from settle.core.config.

Import patterns:
    from settle.contracts import WaitSpec, RetrySpec, Outcome, ConditionResult
    from settle.core.config import SettleSettings, load_settings
"""

from settle.contracts.cancellation import CancellationToken
from settle.contracts.enums import (
    Classification,
    ConditionStatus,
    DeadlinePolicy,
    HandleState,
)
from settle.contracts.errors import (
    ConditionFatalError,
    InvalidSpecError,
    OperationCancelledError,
    RetriesExhaustedError,
    SettleError,
    WaitCancelledError,
    WaitTimeoutError,
)
from settle.contracts.events import RetryOutcomeEvent, WaitOutcomeEvent
from settle.contracts.handles import Handle, HandleEvaluator, Rect, RemoteElement
from settle.contracts.results import ConditionResult, Outcome, RetryResult
from settle.contracts.signatures import classify_error, is_transient
from settle.contracts.specs import Condition, RetrySpec, WaitSpec

__all__ = [
    # cancellation
    "CancellationToken",
    # enums
    "Classification",
    "ConditionStatus",
    "DeadlinePolicy",
    "HandleState",
    # errors
    "ConditionFatalError",
    "InvalidSpecError",
    "OperationCancelledError",
    "RetriesExhaustedError",
    "SettleError",
    "WaitCancelledError",
    "WaitTimeoutError",
    # events
    "RetryOutcomeEvent",
    "WaitOutcomeEvent",
    # handles
    "Handle",
    "HandleEvaluator",
    "Rect",
    "RemoteElement",
    # results
    "ConditionResult",
    "Outcome",
    "RetryResult",
    # signatures
    "classify_error",
    "is_transient",
    # specs
    "Condition",
    "RetrySpec",
    "WaitSpec",
]
