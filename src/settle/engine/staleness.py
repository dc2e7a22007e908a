"""StalenessTracker: classify handle errors with a per-handle state machine.

State machine per handle:

    FRESH --(generation mismatch)--> STALE

While FRESH, errors are classified by signature (see
settle.contracts.signatures). Once STALE, every classification short-circuits
to INVALIDATED without looking at the error: a known-stale handle cannot
produce a meaningful retry.

The tracker only classifies. Re-acquiring a fresh handle is the caller's job,
because only the caller knows whether re-acquisition is possible.

Thread Safety:
    Per-handle state lives in a dict guarded by a lock, so one tracker may be
    shared by all handles of a logical session. The intended use is one
    tracker per session.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from settle.contracts.enums import Classification, HandleState
from settle.contracts.handles import describe_handle
from settle.contracts.signatures import classify_error

if TYPE_CHECKING:
    from settle.contracts.handles import Handle

logger = structlog.get_logger(__name__)

# Sentinel for "generation could not be read"
_UNREADABLE = object()


@dataclass
class _Entry:
    """Tracked state for one handle.

    Holds a strong reference to the handle so its id() cannot be reused by
    another object while the entry exists.
    """

    handle: Handle
    baseline: Hashable
    state: HandleState = HandleState.FRESH


class StalenessTracker:
    """Classify remote-handle errors as RETRYABLE, INVALIDATED, or FATAL.

    Example:
        tracker = StalenessTracker()
        tracker.track(handle)          # records the baseline generation

        try:
            handle.click()
        except Exception as e:
            verdict = tracker.classify(handle, e)
            if verdict is Classification.INVALIDATED:
                handle = page.find_submit_button()   # re-acquire
                tracker.track(handle)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[int, _Entry] = {}

    def track(self, handle: Handle) -> HandleState:
        """Start (or restart) tracking handle from its current generation.

        Re-tracking a STALE handle resets it to FRESH with a new baseline.
        """
        baseline = self._read_generation(handle)
        with self._lock:
            self._entries[id(handle)] = _Entry(handle=handle, baseline=baseline)
        return HandleState.FRESH

    def forget(self, handle: Handle) -> None:
        """Stop tracking handle. Unknown handles are ignored."""
        with self._lock:
            self._entries.pop(id(handle), None)

    def state(self, handle: Handle) -> HandleState | None:
        """Return the handle's state, or None if it is not tracked."""
        with self._lock:
            entry = self._entries.get(id(handle))
            return entry.state if entry is not None else None

    def is_stale(self, handle: Handle) -> bool:
        return self.state(handle) is HandleState.STALE

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def classify(self, handle: Handle, error: BaseException) -> Classification:
        """Classify an error raised while working with handle.

        An untracked handle is tracked first, using its current generation as
        the baseline.

        Returns:
            INVALIDATED if the handle is (or just became) STALE, otherwise the
            signature classification of error.
        """
        with self._lock:
            entry = self._entries.get(id(handle))
            if entry is not None and entry.state is HandleState.STALE:
                return Classification.INVALIDATED

        if entry is None:
            self.track(handle)
            with self._lock:
                entry = self._entries[id(handle)]

        current = self._read_generation(handle)
        if current is _UNREADABLE or current != entry.baseline:
            with self._lock:
                entry.state = HandleState.STALE
            logger.debug(
                "handle_stale",
                handle=describe_handle(handle),
                baseline=repr(entry.baseline),
                current="unreadable" if current is _UNREADABLE else repr(current),
            )
            return Classification.INVALIDATED

        return classify_error(error)

    def _read_generation(self, handle: Handle) -> Hashable:
        """Read the handle's generation.

        A lookup failing with an invalidated signature ("not found",
        "detached") means the entity is gone and is reported as unreadable,
        which never matches a baseline. Other lookup failures propagate.
        """
        try:
            return handle.generation()
        except Exception as e:
            if classify_error(e) is Classification.INVALIDATED:
                return _UNREADABLE
            raise
