"""pluggy hook specifications for observability plugins.

Reporting plugins (test report writers, metrics exporters) implement these
hooks and are registered with a HookSink.

Usage (implementing an observer plugin):
    from settle.observability.hookspecs import hookimpl

    class SlowWaitReporter:
        @hookimpl
        def settle_on_wait_outcome(self, wait_name, handle_description, outcome):
            if outcome.elapsed > 5.0:
                report.add_warning(f"slow wait: {wait_name}")
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from settle.contracts.results import Outcome

PROJECT_NAME = "settle"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for observer plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SettleObservabilitySpec:
    """Hook specifications for observer plugins."""

    @hookspec
    def settle_on_wait_outcome(self, wait_name: str, handle_description: str, outcome: "Outcome") -> None:
        """Receive one terminal wait result.

        Args:
            wait_name: Condition name, or the composite wait's name
            handle_description: Description of the handle waited on
            outcome: Terminal Outcome (succeeded, attempts, elapsed, last_error)
        """

    @hookspec
    def settle_on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        """Receive the result of one retry attempt.

        Args:
            operation_name: Name given to RetryExecutor.execute()
            attempt_index: 1-indexed attempt number
            max_attempts: Configured maximum attempts
            error: The attempt's error, or None on success
        """
