"""Protocol for observability sinks.

Sinks receive wait outcomes and retry attempts from the engine. They are the
only outbound interface of the synchronization core.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from settle.contracts.results import Outcome


@runtime_checkable
class ObservabilitySink(Protocol):
    """Receives wait and retry outcomes.

    Error handling:
        Both methods MUST NOT raise - a broken sink must never turn a passing
        wait into a failing one. Log errors and continue.

    Thread Safety:
        Methods are called on the thread running the wait or retry. A sink
        shared between parallel scenarios must be thread-safe.
    """

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: "Outcome") -> None:
        """Called once per terminal wait result (not per poll iteration)."""
        ...

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        """Called after every retry attempt; error is None on success."""
        ...
