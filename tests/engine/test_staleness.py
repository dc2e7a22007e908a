# tests/engine/test_staleness.py
"""Tests for StalenessTracker classification and the FRESH -> STALE transition."""

import pytest

from settle.contracts import Classification, HandleState
from settle.engine.staleness import StalenessTracker
from tests.conftest import FakeHandle


class TestStaleTransition:
    def test_replaced_entity_is_invalidated_and_stays_invalidated(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle("results row", generation=1)
        tracker.track(handle)

        handle.replace()
        first = tracker.classify(handle, LookupError("element not found"))
        calls_after_first = handle.generation_calls
        second = tracker.classify(handle, TimeoutError("timed out"))

        assert first is Classification.INVALIDATED
        assert second is Classification.INVALIDATED
        assert tracker.is_stale(handle)
        # a known-stale handle is not queried again
        assert handle.generation_calls == calls_after_first

    def test_unreadable_generation_marks_handle_stale(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()
        tracker.track(handle)

        handle.generation_error = RuntimeError("no such element: Unable to locate element")

        assert tracker.classify(handle, TimeoutError("timed out")) is Classification.INVALIDATED
        assert tracker.state(handle) is HandleState.STALE

    def test_unexpected_generation_failure_propagates(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()
        tracker.track(handle)
        handle.generation_error = PermissionError("session has no access")

        with pytest.raises(PermissionError):
            tracker.classify(handle, TimeoutError("timed out"))

    def test_retracking_resets_to_fresh_with_new_baseline(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()
        tracker.track(handle)
        handle.replace()
        tracker.classify(handle, TimeoutError("timed out"))

        assert tracker.track(handle) is HandleState.FRESH
        assert tracker.classify(handle, TimeoutError("timed out")) is Classification.RETRYABLE


class TestFreshClassification:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TimeoutError("read timed out"), Classification.RETRYABLE),
            (RuntimeError("stale element reference"), Classification.INVALIDATED),
            (ValueError("malformed selector"), Classification.FATAL),
        ],
    )
    def test_fresh_handle_classified_by_signature(self, error: Exception, expected: Classification) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()
        tracker.track(handle)

        assert tracker.classify(handle, error) is expected
        assert tracker.state(handle) is HandleState.FRESH

    def test_untracked_handle_is_tracked_on_first_classify(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()

        assert tracker.state(handle) is None
        assert tracker.classify(handle, TimeoutError("timed out")) is Classification.RETRYABLE
        assert tracker.state(handle) is HandleState.FRESH
        assert len(tracker) == 1

    def test_non_integer_generations_compare_by_value(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle(generation="etag-abc")
        tracker.track(handle)

        handle.current_generation = "etag-abc"
        assert tracker.classify(handle, TimeoutError("timed out")) is Classification.RETRYABLE

        handle.current_generation = "etag-def"
        assert tracker.classify(handle, TimeoutError("timed out")) is Classification.INVALIDATED


class TestTrackingBookkeeping:
    def test_handles_are_tracked_independently(self) -> None:
        tracker = StalenessTracker()
        first, second = FakeHandle("first"), FakeHandle("second")
        tracker.track(first)
        tracker.track(second)

        first.replace()
        tracker.classify(first, TimeoutError("timed out"))

        assert tracker.is_stale(first)
        assert not tracker.is_stale(second)

    def test_forget_removes_entry_and_ignores_unknown_handles(self) -> None:
        tracker = StalenessTracker()
        handle = FakeHandle()
        tracker.track(handle)

        tracker.forget(handle)
        tracker.forget(FakeHandle("never tracked"))

        assert len(tracker) == 0
        assert tracker.state(handle) is None
