"""Cooperative cancellation token.

A scenario runner that aborts a test cancels the token; every wait and retry
loop checks it at each loop boundary and wakes from sleeps immediately.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe, one-shot cancellation flag backed by threading.Event.

    Example:
        token = CancellationToken()
        outcome = poller.poll(handle, condition, 5.0, 0.1, cancellation=token)

        # From another thread (e.g. a scenario-abort hook):
        token.cancel("scenario aborted")
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a fresh token that nothing will cancel."""
        return cls()

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the token. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def wait(self, timeout: float) -> bool:
        """Block for up to timeout seconds.

        Returns:
            True if the token was cancelled (possibly before the call),
            False if the timeout elapsed first.
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = f"cancelled reason={self._reason!r}" if self.is_cancelled else "active"
        return f"<CancellationToken {state}>"
