"""Group consecutive captures of one application into sessions."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """A contiguous run of activity in one application."""
    id: str
    app: str
    start_time: datetime
    capture_count: int = 1


class SessionTracker:
    """Finite-state accumulator for the current session.

    A new session starts when there is none yet, when the application
    changes, or when the gap since the previous capture exceeds the timeout.
    State is in-memory only.
    """

    def __init__(self, timeout_seconds: float = 300):
        self.timeout_seconds = timeout_seconds
        self.current: Optional[Session] = None
        self.last_capture_time: Optional[datetime] = None

    @staticmethod
    def session_id(app: str, start_time: datetime) -> str:
        return f"{app}-{start_time.strftime('%H%M')}"

    def observe(self, app: str, timestamp: datetime) -> Tuple[str, int]:
        """Record a capture and return (session id, seconds since session start)."""
        gap = 0.0
        if self.last_capture_time is not None:
            gap = (timestamp - self.last_capture_time).total_seconds()

        if self.current is None or self.current.app != app or gap > self.timeout_seconds:
            self.current = Session(
                id=self.session_id(app, timestamp),
                app=app,
                start_time=timestamp,
            )
            logger.debug(f"Started session {self.current.id}")
        else:
            self.current.capture_count += 1

        self.last_capture_time = timestamp
        duration = int((timestamp - self.current.start_time).total_seconds())
        return self.current.id, duration
