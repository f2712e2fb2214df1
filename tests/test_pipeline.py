from datetime import datetime

from recall.aggregator import ActivityAggregator
from recall.export import ExportWriter
from recall.models import TextObservation
from recall.pipeline import CaptureProcessor
from recall.storage import RecallStorage

FIRST = "Hello there from the first screen"
SECOND = "Completely different text with five words"


def observe(text, confidence=0.9):
    return [TextObservation(line, confidence) for line in text.splitlines()]


def test_duplicate_capture_is_dropped_and_session_spans_all(processor, export_dir, aggregator):
    start = datetime(2024, 5, 1, 10, 0, 0)
    first = processor.process(1, start, "Safari", observe(FIRST), window_title="Start Page")
    dup = processor.process(2, start.replace(second=2), "Safari", observe(FIRST), window_title="Start Page")
    third = processor.process(3, start.replace(second=5), "Safari", observe(SECOND),
                              window_title="Python docs")

    assert first is not None and third is not None
    assert dup is None
    assert (first.session_id, first.session_duration) == ("Safari-1000", 0)
    assert (third.session_id, third.session_duration) == ("Safari-1000", 5)

    exported = sorted(p.name for p in (export_dir / "2024-05-01").glob("*.md"))
    assert exported == ["10-00-00_Safari.md", "10-00-05_Safari.md"]
    assert (export_dir / "2024-05-01" / "10-00-05_Safari.md").read_text().endswith(SECOND)

    timeline = aggregator.live_hour.timeline
    assert [e.window_title for e in timeline] == ["Start Page", "Python docs"]


def test_low_confidence_text_is_ignored(processor):
    ts = datetime(2024, 5, 1, 10, 0, 0)
    assert processor.process(1, ts, "Code", observe(FIRST, confidence=0.35)) is None
    assert processor.process(2, ts, "Code", observe(FIRST, confidence=0.36)) is not None


def test_insufficient_text_is_dropped(processor, export_dir):
    assert processor.process(1, datetime(2024, 5, 1, 10, 0), "Code", observe("Hello")) is None
    assert not export_dir.exists()


def test_sensitive_text_is_redacted_before_export(processor, export_dir):
    text = "Logging into the staging server\npassword=hunter2 typed into the terminal"
    capture = processor.process(1, datetime(2024, 5, 1, 10, 0), "kitty", observe(text))
    assert "hunter2" not in capture.text
    assert "[REDACTED:PASSWORD]" in capture.text
    assert "hunter2" not in (export_dir / "2024-05-01" / "10-00-00_kitty.md").read_text()


def test_excluded_apps_are_never_processed(writer, aggregator, export_dir):
    processor = CaptureProcessor(writer, aggregator, excluded_apps=["keepass"])
    assert processor.is_excluded("KeePassXC")
    assert processor.process(1, datetime(2024, 5, 1, 10, 0), "KeePassXC", observe(FIRST)) is None
    assert not export_dir.exists()


def test_clipboard_text_is_appended(processor):
    capture = processor.process(1, datetime(2024, 5, 1, 10, 0), "Code", observe(FIRST),
                                clipboard_text="copied snippet line")
    assert capture.text == f"{FIRST}\ncopied snippet line"


def test_missing_app_is_unknown(processor, export_dir):
    capture = processor.process(1, datetime(2024, 5, 1, 10, 0), None, observe(FIRST))
    assert capture.app == "Unknown"
    assert (export_dir / "2024-05-01" / "10-00-00_Unknown.md").exists()


def test_accepted_text_is_indexed(tmp_path):
    storage = RecallStorage(tmp_path / "recall.db")
    aggregator = ActivityAggregator()
    writer = ExportWriter(tmp_path / "export", aggregator=aggregator)
    processor = CaptureProcessor(writer, aggregator, storage=storage)

    frame_id = storage.insert_frame("Code", 1000.0)
    processor.process(frame_id, datetime(2024, 5, 1, 10, 0), "Code",
                      observe(FIRST) + [TextObservation("noise", 0.1)])

    assert [hit["frame_id"] for hit in storage.search_text("first screen")] == [frame_id]
    with storage.get_connection() as conn:
        count = conn.execute("SELECT COUNT(*) FROM text_entries").fetchone()[0]
    assert count == 1
