"""Protocols the driver layer implements for the synchronization core.

Handles are created and destroyed by the driver/session layer. The core only
reads their description and generation and passes them to conditions.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, NamedTuple, Protocol, runtime_checkable

if TYPE_CHECKING:
    from settle.contracts.results import ConditionResult


@runtime_checkable
class Handle(Protocol):
    """Opaque reference to a remote entity (UI element, session resource).

    Handles are not thread-safe; the core never touches one handle from two
    call chains at once.
    """

    @property
    def description(self) -> str:
        """Human-readable description used in errors and log events."""
        ...

    def generation(self) -> Hashable:
        """Token identifying the current version of the remote entity.

        Changes whenever the remote entity behind this handle is replaced
        (for example a DOM re-render). Staleness is decided by comparing
        generations, never by object identity.
        """
        ...


class HandleEvaluator(Protocol):
    """Driver-layer bridge that evaluates a named condition against a handle."""

    def evaluate_condition(self, handle: Handle, name: str) -> ConditionResult: ...


class Rect(NamedTuple):
    """Position and size of a rendered element, in CSS pixels."""

    x: float
    y: float
    width: float
    height: float


class RemoteElement(Handle, Protocol):
    """A Handle to a rendered UI element.

    Query methods read the live remote state on every call and may raise
    driver errors (not found, stale, timeouts); standard conditions convert
    those errors into ConditionResults.
    """

    def is_present(self) -> bool: ...

    def is_displayed(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    def is_selected(self) -> bool: ...

    def rect(self) -> Rect: ...

    def text(self) -> str: ...

    def attribute(self, name: str) -> str | None: ...


def describe_handle(handle: object) -> str:
    """Return a handle's description, falling back to its repr."""
    try:
        description = getattr(handle, "description", None)
    except Exception:
        return repr(handle)
    return description if isinstance(description, str) and description else repr(handle)
