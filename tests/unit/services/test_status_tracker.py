"""Unit tests for StatusTracker

Tests cover:
- update merges fields into the previous entry
- get_fresh hides non-terminal entries older than the freshness bound
- cleanup evicts every stale entry, terminal or not
"""

from image_studio.app.services.status_tracker import StatusTracker
from image_studio.domain.generation import GenerationStatus


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_update_creates_entry_with_defaults():
    tracker = StatusTracker()

    tracked = tracker.update("g1", user_id="user_1")

    assert tracked.status == GenerationStatus.PENDING
    assert tracked.user_id == "user_1"
    assert tracker.get("g1") is tracked
    assert len(tracker) == 1


def test_update_keeps_previous_fields():
    tracker = StatusTracker()
    tracker.update("g1", user_id="user_1", status=GenerationStatus.PROCESSING)

    tracked = tracker.update("g1", attempt=2)

    assert tracked.status == GenerationStatus.PROCESSING
    assert tracked.user_id == "user_1"
    assert tracked.attempt == 2


def test_get_fresh_expires_non_terminal_entries():
    clock = FakeClock()
    tracker = StatusTracker(freshness_seconds=30, clock=clock)
    tracker.update("running", status=GenerationStatus.PROCESSING)
    tracker.update("done", status=GenerationStatus.COMPLETED)

    assert tracker.get_fresh("running") is not None

    clock.now += 31

    assert tracker.get_fresh("running") is None
    assert tracker.get("running") is not None
    assert tracker.get_fresh("done").status == GenerationStatus.COMPLETED
    assert tracker.get_fresh("missing") is None


def test_cleanup_evicts_stale_entries_of_any_status():
    clock = FakeClock()
    tracker = StatusTracker(clock=clock)
    tracker.update("done", status=GenerationStatus.COMPLETED)
    tracker.update("abandoned", status=GenerationStatus.PROCESSING)
    clock.now += 600
    tracker.update("recent", status=GenerationStatus.PROCESSING)

    assert tracker.cleanup(max_age_seconds=3600) == 0

    removed = tracker.cleanup(max_age_seconds=300)

    assert removed == 2
    assert tracker.get("done") is None
    assert tracker.get("abandoned") is None
    assert tracker.get("recent") is not None


def test_remove():
    tracker = StatusTracker()
    tracker.update("g1")

    tracker.remove("g1")
    tracker.remove("g1")

    assert tracker.get("g1") is None
    assert tracker.all() == []
