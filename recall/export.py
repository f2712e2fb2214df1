"""Export Module for screen recall.

Persists everything a reader (human or assistant) needs to recall the day as
plain files under one directory per date:

    <export_dir>/2024-05-01/
        10-15-02_Code.md             one file per accepted capture
        hour-10-summary.json         hourly summary
        2024-05-01-journal.json      daily journal (written at day rollover)
        2024-05-01-digest.json       daily digest (capture and URL counts)

Capture files start with a small YAML frontmatter block in a fixed field
order, followed by the cleaned text. JSON documents are written with sorted
keys and a two-space indent. Every file is written to a temporary sibling and
renamed into place, so readers never see a partial document.

The first capture on a new date is what finalizes the previous date: the
aggregator's daily bucket is swapped out and the journal and digest for the
previous date are written (or handed to the background worker).

Example:
    >>> writer = ExportWriter(Path("~/recall-data/export").expanduser(), aggregator)
    >>> writer.write_capture(capture)
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, Optional
from urllib.parse import urlsplit

import yaml

from .aggregator import SECONDS_PER_CAPTURE, ActivityAggregator, DailyBucket
from .models import Capture
from .summaries import DailyJournal, HourlySummary, minutes_from_seconds, summarize_day

logger = logging.getLogger(__name__)

DayRolloverHandler = Callable[[str, DailyBucket, dict], None]


class DigestTracker:
    """Per-day capture counts by app and visit counts by URL host."""

    def __init__(self, top_urls: int = 20):
        self.top_urls = top_urls
        self.app_captures: Dict[str, int] = {}
        self.hosts: Dict[str, int] = {}

    def record(self, app: Optional[str], url: Optional[str]) -> None:
        if app:
            self.app_captures[app] = self.app_captures.get(app, 0) + 1
        if url:
            try:
                host = urlsplit(url).hostname
            except ValueError:
                host = None
            if host:
                self.hosts[host] = self.hosts.get(host, 0) + 1

    def is_empty(self) -> bool:
        return not self.app_captures

    def build(self, date: str) -> dict:
        top = sorted(self.hosts.items(), key=lambda item: (-item[1], item[0]))[:self.top_urls]
        return {
            'date': date,
            'total_captures': sum(self.app_captures.values()),
            'apps': {
                app: {
                    'captures': count,
                    'minutes': minutes_from_seconds(count * SECONDS_PER_CAPTURE),
                }
                for app, count in self.app_captures.items()
            },
            'top_urls': [{'url': host, 'visits': visits} for host, visits in top],
        }

    def reset(self) -> None:
        self.app_captures = {}
        self.hosts = {}


def safe_app_name(app: str) -> str:
    return app.replace("/", "-").replace(":", "-")[:30]


def format_frontmatter(capture: Capture) -> str:
    fields = {
        "timestamp": capture.timestamp.astimezone().isoformat(timespec="seconds"),
        "app": capture.app,
        "frame_id": capture.frame_id,
    }
    if capture.window_title:
        fields["window_title"] = capture.window_title
    if capture.url:
        fields["url"] = capture.url
    if capture.session_id is not None:
        fields["session_id"] = capture.session_id
    if capture.session_duration is not None:
        fields["session_duration"] = capture.session_duration
    body = yaml.safe_dump(
        fields,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=float("inf"),
    )
    return f"---\n{body}---"


class ExportWriter:
    """Writes capture documents and summary files.

    Attributes:
        base_dir: Root export directory, one subdirectory per date
        aggregator: Source of the daily bucket swapped out at day rollover
        on_day_rollover: Optional handler for (date, daily bucket, digest);
            when unset the journal and digest are written inline
    """

    def __init__(
        self,
        base_dir: Path,
        aggregator: Optional[ActivityAggregator] = None,
        on_day_rollover: Optional[DayRolloverHandler] = None,
        top_domains: int = 10,
        digest_top_urls: int = 20,
    ):
        self.base_dir = Path(base_dir)
        self.aggregator = aggregator
        self.on_day_rollover = on_day_rollover
        self.top_domains = top_domains
        self.digest = DigestTracker(top_urls=digest_top_urls)
        self.current_day: Optional[str] = None
        self._lock = threading.Lock()

    def day_dir(self, date: str) -> Path:
        return self.base_dir / date

    def write_capture(self, capture: Capture) -> Optional[Path]:
        """Persist one capture, finalizing the previous day first if the date changed.

        Returns:
            Path of the written document, or None if the write failed.
        """
        day = capture.timestamp.strftime("%Y-%m-%d")

        rollover = None
        with self._lock:
            previous = self.current_day
            if previous is not None and previous != day:
                daily = self.aggregator.roll_day() if self.aggregator else DailyBucket(date=previous)
                if daily.date is None:
                    daily.date = previous
                rollover = (previous, daily, self.digest.build(previous))
                self.digest.reset()
            self.current_day = day
            self.digest.record(capture.app, capture.url)

        if rollover is not None:
            self._finalize_day(*rollover)

        return self._write_capture_file(day, capture)

    def _finalize_day(self, date: str, daily: DailyBucket, digest: dict) -> None:
        if self.on_day_rollover is not None:
            self.on_day_rollover(date, daily, digest)
            return
        self.write_daily_journal(summarize_day(daily, top_domains=self.top_domains))
        self.write_digest(date, digest)

    def _write_capture_file(self, day: str, capture: Capture) -> Optional[Path]:
        day_dir = self.day_dir(day)
        try:
            day_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create export directory {day_dir}: {e}")
            return None

        stem = f"{capture.timestamp.strftime('%H-%M-%S')}_{safe_app_name(capture.app)}"
        path = day_dir / f"{stem}.md"
        suffix = 2
        while path.exists():
            path = day_dir / f"{stem}-{suffix}.md"
            suffix += 1

        document = f"{format_frontmatter(capture)}\n\n{capture.text}"
        return self._write_atomic(path, document)

    def write_hourly_summary(self, summary: HourlySummary) -> Optional[Path]:
        path = self.day_dir(summary.date) / f"hour-{summary.hour[:2]}-summary.json"
        return self._write_json(path, summary.to_dict(), "hourly summary")

    def write_daily_journal(self, journal: DailyJournal) -> Optional[Path]:
        path = self.day_dir(journal.date) / f"{journal.date}-journal.json"
        return self._write_json(path, journal.to_dict(), "daily journal")

    def write_digest(self, date: str, digest: dict) -> Optional[Path]:
        path = self.day_dir(date) / f"{date}-digest.json"
        return self._write_json(path, digest, "digest")

    def write_current_digest(self) -> Optional[Path]:
        """Snapshot the in-progress day's digest without resetting it."""
        with self._lock:
            if self.current_day is None or self.digest.is_empty():
                return None
            day = self.current_day
            digest = self.digest.build(day)
        return self.write_digest(day, digest)

    def _write_json(self, path: Path, data: dict, label: str) -> Optional[Path]:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create directory for {label} {path}: {e}")
            return None
        written = self._write_atomic(path, json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False))
        if written:
            logger.info(f"Saved {label}: {path.name}")
        return written

    def _write_atomic(self, path: Path, content: str) -> Optional[Path]:
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            tmp_path.unlink(missing_ok=True)
            return None
        return path

