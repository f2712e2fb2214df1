from datetime import datetime, timedelta

from recall.sessions import SessionTracker


def test_captures_of_one_app_share_a_session():
    tracker = SessionTracker()
    start = datetime(2024, 5, 1, 10, 0, 0)
    assert tracker.observe("Safari", start) == ("Safari-1000", 0)
    assert tracker.observe("Safari", start + timedelta(seconds=2)) == ("Safari-1000", 2)
    assert tracker.observe("Safari", start + timedelta(seconds=5)) == ("Safari-1000", 5)
    assert tracker.current.capture_count == 3


def test_app_change_starts_a_new_session():
    tracker = SessionTracker()
    start = datetime(2024, 5, 1, 10, 0, 0)
    tracker.observe("Safari", start)
    assert tracker.observe("Code", start + timedelta(minutes=1)) == ("Code-1001", 0)


def test_gap_beyond_timeout_starts_a_new_session():
    tracker = SessionTracker(timeout_seconds=300)
    start = datetime(2024, 5, 1, 10, 0, 0)
    tracker.observe("Code", start)
    # Exactly the timeout still continues the session
    assert tracker.observe("Code", start + timedelta(seconds=300)) == ("Code-1000", 300)
    assert tracker.observe("Code", start + timedelta(seconds=601)) == ("Code-1010", 0)
