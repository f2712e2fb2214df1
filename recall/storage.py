"""SQLite storage for capture metadata and recognized text.

The database indexes what is on disk elsewhere: frame identifiers and the
video chunk each frame was encoded into, plus the recognized text of each
frame for search.

Database Schema:
    frames:        id, timestamp, app_name, chunk_id, chunk_offset
    video_chunks:  id, filepath, start_frame_id, end_frame_id, frame_count, created_at
    text_entries:  frame_id, text, confidence, x, y, width, height
    frame_text:    frame_id, text (merged and cleaned text of the frame)

Example:
    >>> storage = RecallStorage(Path("~/recall-data/recall.db").expanduser())
    >>> frame_id = storage.insert_frame("Code", time.time())
    >>> storage.register_video_chunk("/data/videos/output-1714551302.mp4", [frame_id])
"""

import logging
import re
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .models import TextObservation, VideoChunk

logger = logging.getLogger(__name__)


class RecallStorage:
    """SQLite database interface, one short-lived connection per operation.

    Attributes:
        db_path (str): Path to the SQLite database file
    """

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            db_path = Path.home() / "recall-data" / "recall.db"
        db_path = Path(db_path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise RuntimeError(f"Permission denied creating data directory {db_path.parent}: {e}") from e

        self.db_path = str(db_path)
        self.init_db()

    @contextmanager
    def get_connection(self):
        """Context manager for SQLite connections with Row factory.

        Raises:
            RuntimeError: If the database file cannot be opened or is locked
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()
        except (sqlite3.OperationalError, PermissionError) as e:
            raise RuntimeError(f"Database access error for {self.db_path}: {e}") from e

    def init_db(self):
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS frames (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    app_name TEXT,
                    chunk_id INTEGER,
                    chunk_offset INTEGER
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_frames_timestamp ON frames(timestamp)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS video_chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filepath TEXT NOT NULL,
                    start_frame_id INTEGER,
                    end_frame_id INTEGER,
                    frame_count INTEGER NOT NULL,
                    created_at REAL NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS text_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    frame_id INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    confidence REAL,
                    x INTEGER,
                    y INTEGER,
                    width INTEGER,
                    height INTEGER
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_text_frame ON text_entries(frame_id)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS frame_text (
                    frame_id INTEGER PRIMARY KEY,
                    text TEXT NOT NULL
                )
            """)
            conn.commit()

    def insert_frame(self, app_name: Optional[str] = None, timestamp: Optional[float] = None) -> int:
        """Allocate the next frame identifier.

        Returns:
            int: Monotonically increasing frame id
        """
        if timestamp is None:
            timestamp = time.time()
        with self.get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO frames (timestamp, app_name) VALUES (?, ?)",
                (timestamp, app_name),
            )
            conn.commit()
            return cursor.lastrowid

    def register_video_chunk(self, filepath: str, frame_ids: Sequence[Optional[int]]) -> int:
        """Record a successfully encoded chunk and link its frames to it.

        Returns:
            int: Chunk id
        """
        known = [fid for fid in frame_ids if fid is not None]
        with self.get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO video_chunks (filepath, start_frame_id, end_frame_id, frame_count, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (str(filepath), known[0] if known else None, known[-1] if known else None,
                  len(frame_ids), time.time()))
            chunk_id = cursor.lastrowid
            conn.executemany(
                "UPDATE frames SET chunk_id = ?, chunk_offset = ? WHERE id = ?",
                [(chunk_id, offset, fid) for offset, fid in enumerate(frame_ids) if fid is not None],
            )
            conn.commit()
            return chunk_id

    def insert_recognized_text(self, frame_id: int, observations: Iterable[TextObservation]) -> None:
        rows = [
            (frame_id, obs.text, obs.confidence, *obs.bbox)
            for obs in observations
        ]
        if not rows:
            return
        with self.get_connection() as conn:
            conn.executemany("""
                INSERT INTO text_entries (frame_id, text, confidence, x, y, width, height)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, rows)
            conn.commit()

    def insert_frame_text(self, frame_id: int, text: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO frame_text (frame_id, text) VALUES (?, ?)",
                (frame_id, text),
            )
            conn.commit()

    def get_chunk_for_frame(self, frame_id: int) -> Optional[Dict]:
        """Chunk path and offset for playback of one frame."""
        with self.get_connection() as conn:
            row = conn.execute("""
                SELECT v.id AS chunk_id, v.filepath, f.chunk_offset
                FROM frames f JOIN video_chunks v ON v.id = f.chunk_id
                WHERE f.id = ?
            """, (frame_id,)).fetchone()
            return dict(row) if row else None

    def get_video_chunks(self) -> List[VideoChunk]:
        with self.get_connection() as conn:
            rows = conn.execute("SELECT * FROM video_chunks ORDER BY id").fetchall()
            return [VideoChunk(**dict(row)) for row in rows]

    def delete_video_chunk(self, chunk_id: int) -> None:
        with self.get_connection() as conn:
            conn.execute("UPDATE frames SET chunk_id = NULL, chunk_offset = NULL WHERE chunk_id = ?",
                         (chunk_id,))
            conn.execute("DELETE FROM video_chunks WHERE id = ?", (chunk_id,))
            conn.commit()

    def get_recent_text(self, limit: int = 20) -> List[Dict]:
        with self.get_connection() as conn:
            rows = conn.execute("""
                SELECT t.frame_id, t.text, f.timestamp, f.app_name
                FROM frame_text t LEFT JOIN frames f ON f.id = t.frame_id
                ORDER BY t.frame_id DESC LIMIT ?
            """, (limit,)).fetchall()
            return [dict(row) for row in rows]

    def search_text(self, query: str, limit: int = 50) -> List[Dict]:
        """Substring search over frame text, newest first.

        LIKE wildcards and quotes are stripped from the query.
        """
        cleaned = re.sub(r"[%_'\"\\]", "", query).strip()
        if not cleaned:
            return []
        with self.get_connection() as conn:
            rows = conn.execute("""
                SELECT t.frame_id, t.text, f.timestamp, f.app_name
                FROM frame_text t LEFT JOIN frames f ON f.id = t.frame_id
                WHERE t.text LIKE ?
                ORDER BY t.frame_id DESC LIMIT ?
            """, (f"%{cleaned}%", limit)).fetchall()
            return [dict(row) for row in rows]

    def purge(self) -> None:
        """Delete all rows. Frame ids keep increasing afterwards."""
        with self.get_connection() as conn:
            for table in ("text_entries", "frame_text", "video_chunks", "frames"):
                conn.execute(f"DELETE FROM {table}")
            conn.commit()
        logger.info("Purged all stored frames, chunks and text")
