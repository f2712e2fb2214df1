"""Data model shared by the capture, text and export pipelines.

Frames are ephemeral and owned by the frame buffer until encoded. Captures are
immutable once created. Activity entries and URL visits are accumulated by the
aggregator and serialized into the hourly and daily documents.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Frame:
    """One encoded screen image waiting to be written into a video chunk.

    Attributes:
        image_bytes: PNG encoded image
        timestamp: When the frame was captured
        app_name: Frontmost application at capture time
        frame_id: Monotonically increasing identifier (None before assignment)
    """
    image_bytes: bytes
    timestamp: datetime
    app_name: Optional[str] = None
    frame_id: Optional[int] = None


@dataclass(frozen=True)
class TextObservation:
    """A recognized line of text with its confidence and bounding box."""
    text: str
    confidence: float
    bbox: Tuple[int, int, int, int] = (0, 0, 0, 0)


@dataclass(frozen=True)
class Capture:
    """One accepted, deduplicated text recognition result with metadata."""
    timestamp: datetime
    app: str
    text: str
    frame_id: int
    window_title: Optional[str] = None
    url: Optional[str] = None
    session_id: Optional[str] = None
    session_duration: Optional[int] = None


@dataclass(frozen=True)
class ActivityEntry:
    """A meaningful change in what the user was looking at."""
    time: str
    app: str
    window_title: Optional[str] = None
    url: Optional[str] = None
    key_content: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'time': self.time,
            'app': self.app,
            'window_title': self.window_title,
            'url': self.url,
            'key_content': list(self.key_content),
        }


@dataclass
class URLVisit:
    """A URL seen during the day with the title it was first seen under."""
    url: str
    first_seen: str
    title: Optional[str] = None
    visit_count: int = 1

    def to_dict(self) -> dict:
        return {
            'url': self.url,
            'title': self.title,
            'first_seen': self.first_seen,
            'visit_count': self.visit_count,
        }


@dataclass(frozen=True)
class VideoChunk:
    """A registered, successfully encoded batch of frames."""
    id: int
    filepath: str
    start_frame_id: Optional[int]
    end_frame_id: Optional[int]
    frame_count: int
    created_at: float
