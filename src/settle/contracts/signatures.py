"""Error signature policy shared by conditions, retry specs, and the tracker.

Classifies an error by the text of its type name and message. This is the
stateless half of staleness classification: StalenessTracker layers the
per-handle generation state machine on top of it.
"""

from __future__ import annotations

from typing import Final

from settle.contracts.enums import Classification

# Matched case-insensitively against "<TypeName>: <message>".
# Invalidated signatures are checked first: "connection reset by peer" must not
# fall through to a retryable "connection" match.
INVALIDATED_SIGNATURES: Final[tuple[str, ...]] = (
    "not found",
    "no such element",
    "nosuchelement",
    "detached",
    "not attached",
    "stale element",
    "staleelementreference",
    "connection reset by peer",
)

RETRYABLE_SIGNATURES: Final[tuple[str, ...]] = (
    "temporarily unavailable",
    "timeout",
    "timed out",
    "connection refused",
)


def error_signature(error: BaseException) -> str:
    """Return the lowercased text that signatures are matched against."""
    return f"{type(error).__name__}: {error}".lower()


def classify_error(error: BaseException) -> Classification:
    """Classify an error by signature alone.

    Returns:
        INVALIDATED for "not found"/"detached"/"connection reset by peer" style
        errors, RETRYABLE for "temporarily unavailable"/"timeout"/"connection
        refused" style errors, FATAL for everything else (malformed input,
        assertion failures, programming errors).
    """
    signature = error_signature(error)
    if any(pattern in signature for pattern in INVALIDATED_SIGNATURES):
        return Classification.INVALIDATED
    if any(pattern in signature for pattern in RETRYABLE_SIGNATURES):
        return Classification.RETRYABLE
    return Classification.FATAL


def is_transient(error: BaseException) -> bool:
    """Default retry predicate: retry in place only for RETRYABLE signatures."""
    return classify_error(error) is Classification.RETRYABLE
