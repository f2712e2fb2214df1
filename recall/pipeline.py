"""
Text pipeline: recognized observations in, persisted Capture out.

Stages, all run under one lock so completions never interleave:

    confidence filter -> merge lines -> clean -> redact -> minimum content
    -> duplicate check -> session -> export (day rollover first)
    -> hour/day aggregation -> search index

A capture that fails any gate is dropped silently (debug log only).
"""

import logging
import threading
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .aggregator import ActivityAggregator
from .export import ExportWriter
from .models import Capture, TextObservation
from .privacy import SensitiveContentFilter
from .sessions import SessionTracker
from .storage import RecallStorage
from .text_cleaner import TextCleaner, merge_texts

logger = logging.getLogger(__name__)


class CaptureProcessor:
    """Serialized path from recognition results to exports and aggregates.

    Attributes:
        confidence_threshold: Observations at or below this are ignored
        excluded_apps: Lowercase app name fragments that are never processed
        redact: Whether to redact sensitive content before persisting
    """

    def __init__(
        self,
        writer: ExportWriter,
        aggregator: ActivityAggregator,
        sessions: Optional[SessionTracker] = None,
        cleaner: Optional[TextCleaner] = None,
        storage: Optional[RecallStorage] = None,
        sensitive_filter: Optional[SensitiveContentFilter] = None,
        confidence_threshold: float = 0.35,
        excluded_apps: Iterable[str] = (),
        redact: bool = True,
    ):
        self.writer = writer
        self.aggregator = aggregator
        self.sessions = sessions or SessionTracker()
        self.cleaner = cleaner or TextCleaner()
        self.storage = storage
        self.sensitive_filter = sensitive_filter or SensitiveContentFilter()
        self.confidence_threshold = confidence_threshold
        self.excluded_apps = [name.lower() for name in excluded_apps]
        self.redact = redact
        self._lock = threading.Lock()

    def is_excluded(self, app: Optional[str]) -> bool:
        if not app:
            return False
        lowered = app.lower()
        return any(name in lowered for name in self.excluded_apps)

    def process(
        self,
        frame_id: int,
        timestamp: datetime,
        app: Optional[str],
        observations: Sequence[TextObservation],
        window_title: Optional[str] = None,
        url: Optional[str] = None,
        clipboard_text: Optional[str] = None,
    ) -> Optional[Capture]:
        """Run one recognition result through every stage.

        Returns:
            The accepted Capture, or None if it was dropped
        """
        app = app or "Unknown"
        if self.is_excluded(app):
            logger.debug(f"Skipping excluded app {app}")
            return None

        with self._lock:
            usable = [o for o in observations if o.confidence > self.confidence_threshold]
            self._index_observations(frame_id, usable)

            texts = [o.text for o in usable]
            if clipboard_text:
                clip = self.sensitive_filter.filter_clipboard(clipboard_text)
                if clip:
                    texts.append(clip)

            cleaned = self.cleaner.clean(merge_texts(texts))
            if self.redact:
                cleaned = self.sensitive_filter.redact(cleaned)

            if not self.cleaner.has_minimum_content(cleaned):
                logger.debug(f"Frame {frame_id}: not enough text, skipping")
                return None
            if self.cleaner.is_duplicate(cleaned, app):
                return None

            session_id, duration = self.sessions.observe(app, timestamp)
            capture = Capture(
                timestamp=timestamp,
                app=app,
                text=cleaned,
                frame_id=frame_id,
                window_title=window_title,
                url=url,
                session_id=session_id,
                session_duration=duration,
            )

            self.writer.write_capture(capture)
            self.aggregator.record(app, window_title, url, cleaned, timestamp)

            if self.storage is not None:
                try:
                    self.storage.insert_frame_text(frame_id, cleaned)
                except RuntimeError as e:
                    logger.error(f"Failed to index text for frame {frame_id}: {e}")

            return capture

    def _index_observations(self, frame_id: int, observations: Sequence[TextObservation]) -> None:
        if self.storage is None or not observations:
            return
        if self.redact:
            observations = [
                TextObservation(self.sensitive_filter.redact(o.text), o.confidence, o.bbox)
                for o in observations
            ]
        try:
            self.storage.insert_recognized_text(frame_id, observations)
        except RuntimeError as e:
            logger.error(f"Failed to store recognized text for frame {frame_id}: {e}")
