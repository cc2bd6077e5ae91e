"""Tests for ActivityTracker"""

import threading

from tab_suspender.activity import ActivityTracker


def test_unknown_tab_counts_as_active_now(clock):
    tracker = ActivityTracker(clock=clock)
    assert tracker.idle_duration("t1") == 0


def test_unknown_tab_uses_host_fallback(clock):
    tracker = ActivityTracker(clock=clock)
    assert tracker.idle_duration("t1", fallback=clock() - 90) == 90


def test_recorded_activity_overrides_fallback(clock):
    tracker = ActivityTracker(clock=clock)
    tracker.mark_active("t1")
    clock.advance(30)
    assert tracker.idle_duration("t1", fallback=clock() - 1000) == 30


def test_idle_never_negative(clock):
    tracker = ActivityTracker(clock=clock)
    tracker.mark_active("t1", at=clock() + 50)
    assert tracker.idle_duration("t1") == 0


def test_last_writer_wins(clock):
    tracker = ActivityTracker(clock=clock)
    tracker.mark_active("t1", at=100.0)
    tracker.mark_active("t1", at=50.0)
    assert tracker.last_active("t1") == 50.0


def test_forget(clock):
    tracker = ActivityTracker(clock=clock)
    tracker.mark_active("t1")
    tracker.mark_active("t2")
    tracker.forget("t1")
    tracker.forget("missing")
    assert tracker.tracked() == ["t2"]
    assert len(tracker) == 1


def test_concurrent_marks():
    """Marks from many threads are all recorded"""
    tracker = ActivityTracker()

    def worker(n):
        for i in range(100):
            tracker.mark_active(f"tab-{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(tracker) == 800
