"""HookSink: dispatch outcomes to pluggy observer plugins."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from settle.observability.hookspecs import PROJECT_NAME, SettleObservabilitySpec

if TYPE_CHECKING:
    from settle.contracts.results import Outcome

logger = structlog.get_logger(__name__)


class HookSink:
    """ObservabilitySink backed by a pluggy PluginManager.

    Each registered plugin is called individually so that one failing plugin
    neither hides events from the others nor propagates into the wait.

    Example:
        sink = HookSink()
        sink.register(SlowWaitReporter())
        strategy = CompositeWaitStrategy(sink=sink)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(SettleObservabilitySpec)
        self._failures: dict[str, int] = {}

    def register(self, plugin: Any, name: str | None = None) -> None:
        """Register an observer plugin implementing one or both hooks."""
        self._pm.register(plugin, name=name)

    def unregister(self, plugin: Any) -> None:
        self._pm.unregister(plugin)

    @property
    def plugins(self) -> list[Any]:
        return list(self._pm.get_plugins())

    @property
    def failures(self) -> dict[str, int]:
        """Failure counts per plugin name."""
        return dict(self._failures)

    def _dispatch(self, hook_name: str, **kwargs: Any) -> None:
        hook = getattr(self._pm.hook, hook_name)
        for impl in hook.get_hookimpls():
            try:
                impl.function(**{arg: kwargs[arg] for arg in impl.argnames})
            except Exception as e:
                self._failures[impl.plugin_name] = self._failures.get(impl.plugin_name, 0) + 1
                logger.error(
                    "observer_plugin_failed",
                    plugin=impl.plugin_name,
                    hook=hook_name,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    def on_wait_outcome(self, wait_name: str, handle_description: str, outcome: Outcome) -> None:
        self._dispatch(
            "settle_on_wait_outcome",
            wait_name=wait_name,
            handle_description=handle_description,
            outcome=outcome,
        )

    def on_retry_outcome(
        self,
        operation_name: str,
        attempt_index: int,
        max_attempts: int,
        error: BaseException | None,
    ) -> None:
        self._dispatch(
            "settle_on_retry_outcome",
            operation_name=operation_name,
            attempt_index=attempt_index,
            max_attempts=max_attempts,
            error=error,
        )
