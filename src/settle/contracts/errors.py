"""Error taxonomy for waits and retries.

Every terminal error carries enough context for a test report to say what was
waited for, against which handle, for how long, and over how many attempts.

Control flow never uses these: a condition that is "not yet true" is a
PENDING ConditionResult, not an exception.
"""

from __future__ import annotations


class SettleError(Exception):
    """Base exception for all synchronization failures."""


class InvalidSpecError(SettleError, ValueError):
    """Raised when a WaitSpec or RetrySpec is malformed.

    Raised at construction time only. This is a programming error and is
    never retried.
    """


class WaitTimeoutError(SettleError):
    """A condition was not satisfied before its deadline.

    Attributes:
        name: Condition (or composite wait) name
        handle_description: Human-readable description of the handle
        elapsed: Seconds spent waiting
        attempts: Number of condition evaluations performed
        timeout: The deadline that expired, in seconds
        last_invalidation: Most recent INVALIDATED error seen, if any
    """

    def __init__(
        self,
        name: str,
        handle_description: str,
        *,
        elapsed: float,
        attempts: int,
        timeout: float,
        last_invalidation: BaseException | None = None,
    ) -> None:
        self.name = name
        self.handle_description = handle_description
        self.elapsed = elapsed
        self.attempts = attempts
        self.timeout = timeout
        self.last_invalidation = last_invalidation
        message = (
            f"Condition '{name}' not satisfied for {handle_description} "
            f"within {timeout:.3f}s (elapsed {elapsed:.3f}s, {attempts} attempts)"
        )
        if last_invalidation is not None:
            message += f"; last invalidation: {last_invalidation}"
        super().__init__(message)


class WaitCancelledError(SettleError):
    """A wait was aborted by its cancellation token."""

    def __init__(
        self,
        name: str,
        handle_description: str,
        *,
        elapsed: float,
        attempts: int,
        reason: str | None = None,
    ) -> None:
        self.name = name
        self.handle_description = handle_description
        self.elapsed = elapsed
        self.attempts = attempts
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(
            f"Wait for '{name}' on {handle_description} cancelled after {elapsed:.3f}s ({attempts} attempts){suffix}"
        )


class ConditionFatalError(SettleError):
    """A condition ended in FATAL for a reason the core itself detected.

    Fatal errors raised by collaborators are surfaced verbatim; this type is
    only used when the core escalates, e.g. too many INVALIDATED results.
    """

    def __init__(
        self,
        name: str,
        handle_description: str,
        message: str,
        *,
        elapsed: float,
        attempts: int,
    ) -> None:
        self.name = name
        self.handle_description = handle_description
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(f"Condition '{name}' on {handle_description} failed: {message}")


class OperationCancelledError(SettleError):
    """A retry loop was aborted by its cancellation token.

    attempts reflects the attempts actually made before cancellation.
    """

    def __init__(
        self,
        name: str,
        *,
        elapsed: float,
        attempts: int,
        errors: tuple[BaseException, ...] = (),
        reason: str | None = None,
    ) -> None:
        self.name = name
        self.elapsed = elapsed
        self.attempts = attempts
        self.errors = errors
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Operation '{name}' cancelled after {attempts} attempts ({elapsed:.3f}s){suffix}")


class RetriesExhaustedError(SettleError):
    """Every attempt failed with a retryable error.

    Attributes:
        name: Operation name
        attempts: Number of attempts made (equals max_attempts)
        elapsed: Seconds spent across all attempts and backoff sleeps
        last_error: The final underlying error
        errors: All underlying errors in chronological order
    """

    def __init__(
        self,
        name: str,
        *,
        attempts: int,
        elapsed: float,
        errors: tuple[BaseException, ...],
    ) -> None:
        if not errors:
            raise ValueError("RetriesExhaustedError requires at least one recorded error")
        self.name = name
        self.attempts = attempts
        self.elapsed = elapsed
        self.errors = errors
        self.last_error = errors[-1]
        super().__init__(f"Operation '{name}' failed after {attempts} attempts ({elapsed:.3f}s): {self.last_error}")
