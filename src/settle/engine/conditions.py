"""Standard readiness conditions over RemoteElement handles.

Each factory returns a Condition whose evaluate() queries the element once and
maps the answer to a ConditionResult. Driver exceptions never escape: they are
converted with the signature policy from settle.contracts.signatures.

    invalidated signature ("stale element", "detached") -> INVALIDATED
    retryable signature ("timed out")                    -> PENDING
    anything else                                        -> FATAL

The classic readiness chain is exists -> visible -> stable_layout ->
interactable; readiness_conditions() builds it in that order.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from settle.contracts.enums import Classification
from settle.contracts.results import ConditionResult
from settle.contracts.signatures import classify_error, error_signature
from settle.contracts.specs import Condition
from settle.engine.clock import DEFAULT_CLOCK

if TYPE_CHECKING:
    from settle.contracts.cancellation import CancellationToken
    from settle.contracts.handles import RemoteElement
    from settle.engine.clock import Clock

# Driver errors meaning "the element is not there (yet)"
_ABSENT_SIGNATURES = ("not found", "no such element", "nosuchelement")

DEFAULT_SAMPLE_INTERVAL = 0.05


def convert_driver_error(error: Exception) -> ConditionResult:
    """Map an exception raised by an element query to a ConditionResult."""
    verdict = classify_error(error)
    if verdict is Classification.INVALIDATED:
        return ConditionResult.invalidated(error)
    if verdict is Classification.RETRYABLE:
        return ConditionResult.pending()
    return ConditionResult.fatal(error)


def _is_absent(error: Exception) -> bool:
    signature = error_signature(error)
    return any(pattern in signature for pattern in _ABSENT_SIGNATURES)


def _guarded(check: Callable[[RemoteElement], ConditionResult]) -> Callable[[RemoteElement], ConditionResult]:
    def evaluate(element: RemoteElement) -> ConditionResult:
        try:
            return check(element)
        except Exception as e:
            return convert_driver_error(e)

    return evaluate


def _bool_result(value: bool) -> ConditionResult:
    return ConditionResult.satisfied() if value else ConditionResult.pending()


def exists(name: str = "exists") -> Condition:
    """Element is present in the remote tree.

    A "not found" lookup is the normal pending state here, not an
    invalidation.
    """

    def evaluate(element: RemoteElement) -> ConditionResult:
        try:
            return _bool_result(element.is_present())
        except Exception as e:
            if _is_absent(e):
                return ConditionResult.pending()
            return convert_driver_error(e)

    return Condition(name=name, evaluate=evaluate)


def visible(name: str = "visible") -> Condition:
    """Element is rendered and displayed."""
    return Condition(name=name, evaluate=_guarded(lambda element: _bool_result(element.is_displayed())))


def invisible(name: str = "invisible") -> Condition:
    """Element is hidden or gone.

    An element that can no longer be found counts as invisible.
    """

    def evaluate(element: RemoteElement) -> ConditionResult:
        try:
            return _bool_result(not element.is_displayed())
        except Exception as e:
            if classify_error(e) is Classification.INVALIDATED:
                return ConditionResult.satisfied()
            return convert_driver_error(e)

    return Condition(name=name, evaluate=evaluate)


def interactable(name: str = "interactable") -> Condition:
    """Element is displayed and enabled."""

    def check(element: RemoteElement) -> ConditionResult:
        return _bool_result(element.is_displayed() and element.is_enabled())

    return Condition(name=name, evaluate=_guarded(check))


def selected(name: str = "selected") -> Condition:
    return Condition(name=name, evaluate=_guarded(lambda element: _bool_result(element.is_selected())))


def stable_layout(
    clock: Clock | None = None,
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
    name: str = "stable_layout",
    cancellation: CancellationToken | None = None,
) -> Condition:
    """Element's bounding box is not moving.

    Samples rect() twice, sample_interval seconds apart (independent of the
    poll interval). Satisfied, with the settled Rect as value, only when both
    samples are identical. Pass the wait's cancellation token to make the
    sampling sleep interruptible; a cancelled sample reports PENDING and the
    poller then stops on the token.
    """
    if sample_interval < 0:
        raise ValueError(f"sample_interval must be >= 0, got {sample_interval}")
    sampler = clock if clock is not None else DEFAULT_CLOCK

    def check(element: RemoteElement) -> ConditionResult:
        first = element.rect()
        if sampler.sleep(sample_interval, cancellation):
            return ConditionResult.pending()
        second = element.rect()
        if first == second:
            return ConditionResult.satisfied(second)
        return ConditionResult.pending()

    return Condition(name=name, evaluate=_guarded(check))


def text_matches(expected: str | re.Pattern[str], name: str = "text_matches") -> Condition:
    """Element text contains expected, or matches it when it is a compiled pattern."""
    if isinstance(expected, re.Pattern):
        pattern = expected

        def matches(text: str) -> bool:
            return pattern.search(text) is not None

    else:
        needle = expected

        def matches(text: str) -> bool:
            return needle in text

    def check(element: RemoteElement) -> ConditionResult:
        text = element.text()
        if text is not None and matches(text):
            return ConditionResult.satisfied(text)
        return ConditionResult.pending()

    return Condition(name=name, evaluate=_guarded(check))


def attribute_equals(attribute: str, value: str | None, name: str | None = None) -> Condition:
    """Element attribute equals value (None waits for the attribute to be absent)."""

    def check(element: RemoteElement) -> ConditionResult:
        current = element.attribute(attribute)
        if current == value:
            return ConditionResult.satisfied(current)
        return ConditionResult.pending()

    return Condition(name=name or f"attribute_equals[{attribute}]", evaluate=_guarded(check))


def readiness_conditions(
    clock: Clock | None = None,
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
    cancellation: CancellationToken | None = None,
) -> tuple[Condition, ...]:
    """The standard readiness chain: exists, visible, stable_layout, interactable."""
    return (
        exists(),
        visible(),
        stable_layout(clock, sample_interval, cancellation=cancellation),
        interactable(),
    )


READINESS_CONDITIONS: tuple[Condition, ...] = readiness_conditions()
