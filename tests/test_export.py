import json
from datetime import datetime

import pytest
import yaml

from recall.aggregator import ActivityAggregator, HourlyBucket
from recall.export import DigestTracker, ExportWriter, format_frontmatter, safe_app_name
from recall.models import Capture
from recall.summaries import summarize_hour


def make_capture(ts, app="Code", text="some captured text", **kwargs):
    return Capture(timestamp=ts, app=app, text=text, frame_id=kwargs.pop("frame_id", 1), **kwargs)


def parse_frontmatter(block):
    lines = block.split("\n")
    assert lines[0] == "---" and lines[-1] == "---"
    return yaml.safe_load("\n".join(lines[1:-1]))


def test_frontmatter_field_order():
    capture = make_capture(
        datetime(2024, 5, 1, 10, 15, 2),
        window_title='say "hi" - Code',
        url="https://example.com",
        session_id="Code-1015",
        session_duration=0,
    )
    data = parse_frontmatter(format_frontmatter(capture))
    assert list(data) == ["timestamp", "app", "frame_id", "window_title", "url",
                          "session_id", "session_duration"]
    assert data["timestamp"].startswith("2024-05-01T10:15:02")
    assert data["app"] == "Code"
    assert data["frame_id"] == 1
    assert data["window_title"] == 'say "hi" - Code'
    assert data["url"] == "https://example.com"
    assert data["session_id"] == "Code-1015"
    assert data["session_duration"] == 0


@pytest.mark.parametrize("title", [
    "grep -r foo \\",
    "C:\\Users\\me\\ - Explorer",
    "'single' and \"double\": # not a comment",
    "- [draft] {notes}",
])
def test_frontmatter_survives_awkward_window_titles(title):
    capture = make_capture(datetime(2024, 5, 1, 10, 15, 2), window_title=title)
    assert parse_frontmatter(format_frontmatter(capture))["window_title"] == title


def test_frontmatter_omits_missing_metadata():
    lines = format_frontmatter(make_capture(datetime(2024, 5, 1, 10, 15, 2))).split("\n")
    assert [line.split(":")[0] for line in lines[1:-1]] == ["timestamp", "app", "frame_id"]


def test_safe_app_name():
    assert safe_app_name("org/app:main") == "org-app-main"
    assert len(safe_app_name("x" * 50)) == 30


def test_write_capture_uses_date_folder_and_time_name(tmp_path):
    writer = ExportWriter(tmp_path)
    ts = datetime(2024, 5, 1, 10, 15, 2)
    path = writer.write_capture(make_capture(ts, text="first body"))
    assert path == tmp_path / "2024-05-01" / "10-15-02_Code.md"
    content = path.read_text()
    assert content.startswith("---\ntimestamp: ")
    assert content.endswith("---\n\nfirst body")

    second = writer.write_capture(make_capture(ts, text="second body"))
    assert second == tmp_path / "2024-05-01" / "10-15-02_Code-2.md"
    assert not list((tmp_path / "2024-05-01").glob(".*.tmp"))


def test_first_capture_of_a_new_day_finalizes_the_previous_day(tmp_path):
    aggregator = ActivityAggregator()
    writer = ExportWriter(tmp_path, aggregator=aggregator)

    day1 = datetime(2024, 5, 1, 23, 59, 58)
    aggregator.record("Code", "main.py - recall - Code", None, "editing", day1)
    writer.write_capture(make_capture(day1))

    day2 = datetime(2024, 5, 2, 0, 0, 1)
    writer.write_capture(make_capture(day2, app="Firefox"))

    journal = json.loads((tmp_path / "2024-05-01" / "2024-05-01-journal.json").read_text())
    assert journal["date"] == "2024-05-01"
    assert len(journal["timeline"]) == 1
    assert list(journal) == sorted(journal)

    digest = json.loads((tmp_path / "2024-05-01" / "2024-05-01-digest.json").read_text())
    assert digest["total_captures"] == 1
    assert digest["apps"] == {"Code": {"captures": 1, "minutes": 1}}

    assert aggregator.live_day.is_empty()
    assert writer.current_day == "2024-05-02"
    assert writer.digest.app_captures == {"Firefox": 1}


def test_day_rollover_can_be_handed_off(tmp_path):
    handed = []
    writer = ExportWriter(tmp_path, aggregator=ActivityAggregator(),
                          on_day_rollover=lambda *args: handed.append(args))
    writer.write_capture(make_capture(datetime(2024, 5, 1, 12, 0)))
    writer.write_capture(make_capture(datetime(2024, 5, 2, 12, 0)))

    assert len(handed) == 1
    date, daily, digest = handed[0]
    assert date == "2024-05-01"
    assert daily.date == "2024-05-01"
    assert digest["total_captures"] == 1
    assert not (tmp_path / "2024-05-01" / "2024-05-01-journal.json").exists()


def test_hourly_summary_file_name(tmp_path):
    writer = ExportWriter(tmp_path)
    summary = summarize_hour(HourlyBucket(date="2024-05-01", hour=9, app_seconds={"Code": 120}))
    path = writer.write_hourly_summary(summary)
    assert path == tmp_path / "2024-05-01" / "hour-09-summary.json"
    data = json.loads(path.read_text())
    assert data["hour"] == "09:00"
    assert data["apps_used"] == {"Code": 2}


def test_current_digest_snapshot_does_not_reset(tmp_path):
    writer = ExportWriter(tmp_path)
    assert writer.write_current_digest() is None

    writer.write_capture(make_capture(datetime(2024, 5, 1, 9, 0), url="https://github.com/a/b"))
    path = writer.write_current_digest()
    assert path == tmp_path / "2024-05-01" / "2024-05-01-digest.json"
    digest = json.loads(path.read_text())
    assert digest["top_urls"] == [{"url": "github.com", "visits": 1}]
    assert writer.digest.app_captures == {"Code": 1}


def test_write_failure_returns_none(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    writer = ExportWriter(blocker)
    assert writer.write_capture(make_capture(datetime(2024, 5, 1, 9, 0))) is None


def test_digest_tracker_counts_and_ranks():
    tracker = DigestTracker(top_urls=2)
    for _ in range(30):
        tracker.record("Code", None)
    tracker.record("Firefox", "https://github.com/a")
    tracker.record("Firefox", "https://github.com/b")
    tracker.record("Firefox", "https://docs.python.org")
    tracker.record("Firefox", "https://zzz.example.org")

    digest = tracker.build("2024-05-01")
    assert digest["total_captures"] == 34
    assert digest["apps"]["Code"] == {"captures": 30, "minutes": 1}
    assert digest["top_urls"] == [
        {"url": "github.com", "visits": 2},
        {"url": "docs.python.org", "visits": 1},
    ]

    tracker.reset()
    assert tracker.is_empty()
