"""
Hourly and daily activity accumulation.

The aggregator owns one live hourly bucket and one live daily bucket. Every
accepted capture credits app time, registers URLs and domains, and may append
a timeline entry. When the wall-clock hour changes the hourly bucket is
swapped for an empty one under the lock, and the old bucket is handed to the
rollover callback (normally a background summarizer) after the lock is
released. The daily bucket is swapped the same way, but only when the export
writer sees the date folder change.

Example:
    >>> aggregator = ActivityAggregator(on_hour_rollover=worker.submit_hour)
    >>> aggregator.record("Code", "main.py - recall - Code", None, text, now)
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .intent import IntentExtractor
from .models import ActivityEntry, URLVisit
from .urls import extract_domain, extract_urls_from_text

logger = logging.getLogger(__name__)

# Each capture tick represents this much time in the frontmost app
SECONDS_PER_CAPTURE = 2


@dataclass
class HourlyBucket:
    """Accumulated activity for one wall-clock hour.

    URL and topic "sets" are dicts so iteration follows first-seen order.
    """
    date: Optional[str] = None
    hour: Optional[int] = None
    timeline: List[ActivityEntry] = field(default_factory=list)
    urls: Dict[str, None] = field(default_factory=dict)
    domains: Dict[str, int] = field(default_factory=dict)
    app_seconds: Dict[str, int] = field(default_factory=dict)
    topics: Dict[str, None] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.timeline or self.urls or self.app_seconds)


@dataclass
class DailyBucket:
    """Accumulated activity for one calendar day."""
    date: Optional[str] = None
    timeline: List[ActivityEntry] = field(default_factory=list)
    url_visits: Dict[str, URLVisit] = field(default_factory=dict)
    key_moments: List[str] = field(default_factory=list)
    projects: set = field(default_factory=set)
    domains: Dict[str, int] = field(default_factory=dict)
    app_seconds: Dict[str, int] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.timeline or self.url_visits or self.app_seconds)


class ActivityAggregator:
    """Thread-safe hour/day accumulator with swap-on-rollover.

    Attributes:
        on_hour_rollover: Called with each completed HourlyBucket, outside the lock
        max_key_moments: Cap on key moments kept per day
    """

    KEY_MOMENT_MIN_TITLE = 10

    def __init__(
        self,
        intent_extractor: Optional[IntentExtractor] = None,
        on_hour_rollover: Optional[Callable[[HourlyBucket], None]] = None,
        max_key_moments: int = 100,
    ):
        self.intents = intent_extractor or IntentExtractor()
        self.on_hour_rollover = on_hour_rollover
        self.max_key_moments = max_key_moments

        self._lock = threading.Lock()
        self._hour = HourlyBucket()
        self._day = DailyBucket()
        self._hour_key: Optional[Tuple[str, int]] = None
        self._last_window_title: Optional[str] = None

    def record(
        self,
        app: str,
        window_title: Optional[str],
        url: Optional[str],
        text: str,
        timestamp: datetime,
    ) -> Optional[ActivityEntry]:
        """Fold one accepted capture into the live buckets.

        Returns:
            The ActivityEntry appended to the timeline, or None if the capture
            only credited time to an existing entry.
        """
        date_str = timestamp.strftime("%Y-%m-%d")
        time_str = timestamp.strftime("%H:%M")
        hour_key = (date_str, timestamp.hour)

        # Extraction is pure, keep it out of the critical section
        key_content = self.intents.extract(text, window_title, app)
        urls = [url] if url else extract_urls_from_text(text)
        projects = self.intents.extract_projects([window_title], urls)

        completed = None
        with self._lock:
            if self._hour_key is not None and hour_key != self._hour_key:
                completed = self._hour
                self._hour = HourlyBucket()
            self._hour_key = hour_key
            if self._hour.date is None:
                self._hour.date, self._hour.hour = hour_key
            if self._day.date is None:
                self._day.date = date_str

            entry = None
            title_changed = window_title is not None and window_title != self._last_window_title
            last_entry = self._hour.timeline[-1] if self._hour.timeline else None
            if title_changed or last_entry is None or last_entry.app != app:
                entry = ActivityEntry(
                    time=time_str,
                    app=app,
                    window_title=window_title,
                    url=url,
                    key_content=key_content,
                )
                self._hour.timeline.append(entry)
                self._day.timeline.append(entry)

                if window_title and len(window_title) > self.KEY_MOMENT_MIN_TITLE:
                    if len(self._day.key_moments) < self.max_key_moments:
                        self._day.key_moments.append(f"{time_str} - {app}: {window_title}")

            if window_title is not None:
                self._last_window_title = window_title

            for tracked in urls:
                self._hour.urls[tracked] = None
                visit = self._day.url_visits.get(tracked)
                if visit is None:
                    self._day.url_visits[tracked] = URLVisit(
                        url=tracked, title=window_title, first_seen=time_str
                    )
                else:
                    visit.visit_count += 1

                domain = extract_domain(tracked)
                if domain:
                    self._hour.domains[domain] = self._hour.domains.get(domain, 0) + 1
                    self._day.domains[domain] = self._day.domains.get(domain, 0) + 1

            self._hour.app_seconds[app] = self._hour.app_seconds.get(app, 0) + SECONDS_PER_CAPTURE
            self._day.app_seconds[app] = self._day.app_seconds.get(app, 0) + SECONDS_PER_CAPTURE

            for topic in key_content:
                self._hour.topics[topic] = None
            self._day.projects.update(projects)

        if completed is not None:
            self._dispatch_hour(completed)
        return entry

    def _dispatch_hour(self, bucket: HourlyBucket) -> None:
        logger.info(f"Hour rollover: {bucket.date} {bucket.hour:02d}:00 "
                    f"({len(bucket.timeline)} entries)")
        if self.on_hour_rollover is None:
            logger.debug("No hourly summarizer attached, dropping snapshot")
            return
        try:
            self.on_hour_rollover(bucket)
        except Exception as e:
            logger.error(f"Hourly rollover handler failed: {e}", exc_info=True)

    def roll_day(self) -> DailyBucket:
        """Swap the live daily bucket for an empty one and return the old one."""
        with self._lock:
            completed = self._day
            self._day = DailyBucket()
        logger.info(f"Day rollover: {completed.date} ({len(completed.timeline)} entries)")
        return completed

    @property
    def live_hour(self) -> HourlyBucket:
        """A shallow copy of the live hourly bucket, safe to read."""
        with self._lock:
            bucket = self._hour
            return HourlyBucket(
                date=bucket.date,
                hour=bucket.hour,
                timeline=list(bucket.timeline),
                urls=dict(bucket.urls),
                domains=dict(bucket.domains),
                app_seconds=dict(bucket.app_seconds),
                topics=dict(bucket.topics),
            )

    @property
    def live_day(self) -> DailyBucket:
        """A shallow copy of the live daily bucket, safe to read."""
        with self._lock:
            bucket = self._day
            return DailyBucket(
                date=bucket.date,
                timeline=list(bucket.timeline),
                url_visits={
                    url: URLVisit(url=v.url, first_seen=v.first_seen, title=v.title,
                                  visit_count=v.visit_count)
                    for url, v in bucket.url_visits.items()
                },
                key_moments=list(bucket.key_moments),
                projects=set(bucket.projects),
                domains=dict(bucket.domains),
                app_seconds=dict(bucket.app_seconds),
            )
