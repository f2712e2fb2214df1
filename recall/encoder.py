"""
Encode batches of PNG frames into video chunks with an external encoder.

Each batch is piped into one ffmpeg process (image2pipe) that writes a single
MP4. A watchdog timer started at spawn kills the process if it has not exited
within the timeout. Only a clean exit registers the chunk in storage; every
failure (missing binary, broken pipe, non-zero exit, timeout) is logged and
the partial output removed, and the caller simply gets None back.
"""

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .models import Frame
from .storage import RecallStorage

logger = logging.getLogger(__name__)


class ChunkEncoder:
    """Runs the encoder subprocess for one batch at a time.

    Attributes:
        output_dir: Directory receiving output-<timestamp>.mp4 files
        storage: Optional store the finished chunks are registered in
        command: Optional argv template; "{output}" is replaced by the chunk path
        timeout: Watchdog in seconds
    """

    def __init__(
        self,
        output_dir: Path,
        storage: Optional[RecallStorage] = None,
        command: Optional[Sequence[str]] = None,
        timeout: float = 30,
        ffmpeg_path: str = "ffmpeg",
        codec: str = "libx264",
        crf: int = 28,
    ):
        self.output_dir = Path(output_dir)
        self.storage = storage
        self.command = list(command) if command else None
        self.timeout = timeout
        self.ffmpeg_path = ffmpeg_path
        self.codec = codec
        self.crf = crf
        self._name_lock = threading.Lock()

    def build_command(self, output_path: Path) -> List[str]:
        if self.command:
            return [arg.replace("{output}", str(output_path)) for arg in self.command]
        return [
            self.ffmpeg_path, "-y", "-loglevel", "error",
            "-f", "image2pipe", "-vcodec", "png", "-i", "-",
            # libx264 with yuv420p needs even dimensions
            "-vf", "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            "-c:v", self.codec, "-crf", str(self.crf), "-pix_fmt", "yuv420p",
            str(output_path),
        ]

    def chunk_path(self) -> Path:
        """Unique, timestamp-derived output path."""
        with self._name_lock:
            stem = f"output-{time.time():.6f}"
            path = self.output_dir / f"{stem}.mp4"
            counter = 1
            while path.exists():
                path = self.output_dir / f"{stem}-{counter}.mp4"
                counter += 1
            # Reserve the name before the encoder creates it
            path.touch()
        return path

    def encode(self, frames: Sequence[Frame]) -> Optional[Path]:
        """Encode frames in order into one chunk.

        Returns:
            Path of the registered chunk, or None if encoding failed
        """
        if not frames:
            return None

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self.chunk_path()
        except OSError as e:
            logger.error(f"Cannot prepare video directory {self.output_dir}: {e}")
            return None

        cmd = self.build_command(output_path)
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to start encoder {cmd[0]}: {e}")
            output_path.unlink(missing_ok=True)
            return None

        timed_out = threading.Event()

        def _watchdog():
            if process.poll() is None:
                timed_out.set()
                logger.warning(f"Encoder timed out after {self.timeout}s, terminating")
                process.kill()

        timer = threading.Timer(self.timeout, _watchdog)
        timer.daemon = True
        timer.start()
        try:
            try:
                for frame in frames:
                    process.stdin.write(frame.image_bytes)
            except OSError as e:
                logger.error(f"Error writing to encoder: {e}")
            finally:
                try:
                    process.stdin.close()
                except OSError:
                    # Encoder already exited; the exit status reports why
                    pass
            stderr = process.stderr.read()
            process.wait()
        finally:
            timer.cancel()
            process.stderr.close()

        if timed_out.is_set():
            logger.error(f"Encoder was killed by the watchdog, discarding {output_path.name}")
            output_path.unlink(missing_ok=True)
            return None

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-500:]
            logger.error(f"Encoder failed (exit code {process.returncode}): {detail}")
            output_path.unlink(missing_ok=True)
            return None

        if self.storage is not None:
            try:
                self.storage.register_video_chunk(str(output_path), [f.frame_id for f in frames])
            except RuntimeError as e:
                logger.error(f"Failed to register chunk {output_path.name}: {e}")

        logger.info(f"Saved video chunk {output_path.name} ({len(frames)} frames)")
        return output_path

    def cleanup_old_chunks(self, retention_hours: float, now: Optional[float] = None) -> int:
        """Delete chunks older than the retention window and forget them in storage.

        Returns:
            Number of chunk files removed
        """
        if retention_hours <= 0 or not self.output_dir.exists():
            return 0

        cutoff = (now if now is not None else time.time()) - retention_hours * 3600
        deleted = 0
        for path in self.output_dir.glob("*.mp4"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
                    logger.debug(f"Deleted old video: {path.name}")
            except OSError as e:
                logger.warning(f"Failed to process video file {path.name}: {e}")

        if self.storage is not None:
            try:
                for chunk in self.storage.get_video_chunks():
                    if not Path(chunk.filepath).exists():
                        self.storage.delete_video_chunk(chunk.id)
            except RuntimeError as e:
                logger.error(f"Failed to prune chunk records: {e}")

        if deleted:
            logger.info(f"Video cleanup completed: {deleted} files removed")
        return deleted
