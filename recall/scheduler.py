"""Capture Scheduler Module.

Drives the periodic capture loop. Every tick while recording:

1. Ask the window provider for the frontmost application
2. Grab a frame from the display and encode it to PNG
3. Compare against the last accepted frame (bytes, app, display)
4. If changed: allocate a frame id, push the frame into the FrameBuffer, and
   submit the frame (cropped to the focused window when enabled) for text
   recognition

Recognition runs on a worker pool and encoding on a single worker, so neither
delays the next tick. Recognition results are handed to the CaptureProcessor
through a single-threaded executor in submission order, which keeps captures
of one application in order even when recognition finishes out of order.

Failure policy: acquisition failures are retried after a fixed backoff; once
more than `max_retries` consecutive attempts have failed the scheduler stops
itself and reports the error through `on_failure`.

States:
    STOPPED -> RECORDING -> PAUSED -> RECORDING -> STOPPED

Leaving RECORDING drains the frame buffer and encodes what is left
synchronously. Session and aggregation state are left untouched so that
resuming continues the same session and day.

Example:
    >>> scheduler = CaptureScheduler(ScreenCapture(), processor, TesseractRecognizer(),
    ...                              encoder=encoder, window_info=WindowInfoProvider())
    >>> scheduler.start()
    >>> ...
    >>> scheduler.stop()
"""

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from .buffer import FrameBuffer
from .capture import ChangeDetector, ScreenCaptureError, crop_to_window, encode_png
from .clipboard import ClipboardReader
from .encoder import ChunkEncoder
from .models import Frame
from .ocr import ACCURATE, FAST
from .pipeline import CaptureProcessor
from .storage import RecallStorage
from .window_info import WindowInfoProvider

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    STOPPED = "stopped"
    RECORDING = "recording"
    PAUSED = "paused"


class CaptureScheduler:
    """Periodic capture loop with change detection, retries and hand-off.

    Attributes:
        state: Current CaptureState
        buffer: FrameBuffer feeding the encoder (None when video is disabled)
        on_failure: Called with the last ScreenCaptureError after retries run out
    """

    def __init__(
        self,
        frame_source,
        processor: CaptureProcessor,
        recognizer,
        encoder: Optional[ChunkEncoder] = None,
        window_info: Optional[WindowInfoProvider] = None,
        storage: Optional[RecallStorage] = None,
        clipboard: Optional[ClipboardReader] = None,
        interval: float = 2.0,
        max_retries: int = 3,
        retry_backoff: float = 2.0,
        display_id: int = 1,
        active_window_only: bool = True,
        fast_ocr: bool = True,
        ocr_workers: int = 2,
        buffer_capacity: int = 100,
        flush_threshold: int = 30,
        on_failure: Optional[Callable[[Exception], None]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.frame_source = frame_source
        self.processor = processor
        self.recognizer = recognizer
        self.encoder = encoder
        self.window_info = window_info
        self.storage = storage
        self.clipboard = clipboard
        self.interval = interval
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.display_id = display_id
        self.active_window_only = active_window_only
        self.ocr_mode = FAST if fast_ocr else ACCURATE
        self.ocr_workers = max(1, ocr_workers)
        self.on_failure = on_failure
        self.clock = clock

        self.state = CaptureState.STOPPED
        self.change_detector = ChangeDetector()
        self.buffer: Optional[FrameBuffer] = None
        if encoder is not None:
            self.buffer = FrameBuffer(buffer_capacity, flush_threshold, on_flush=self._submit_chunk)

        self.consecutive_failures = 0
        self.last_error: Optional[Exception] = None
        self._frame_counter = itertools.count(1)
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ocr_pool: Optional[ThreadPoolExecutor] = None
        self._text_pool: Optional[ThreadPoolExecutor] = None
        self._encode_pool: Optional[ThreadPoolExecutor] = None

    # Lifecycle

    def start(self) -> bool:
        """Enter RECORDING and start the loop thread.

        Returns:
            False if already recording (duplicate starts are no-ops)
        """
        with self._state_lock:
            if self.state == CaptureState.RECORDING:
                logger.debug("Capture already recording, ignoring start")
                return False
            self._ensure_pools()
            self.state = CaptureState.RECORDING
            self.consecutive_failures = 0
            self._stop_event.clear()
            self._thread = threading.Thread(target=self.run, name="capture-scheduler", daemon=True)
            self._thread.start()
        logger.info("Recording started")
        return True

    def pause(self) -> None:
        """Stop scheduling captures but keep worker pools for a later start()."""
        if self._leave_recording(CaptureState.PAUSED):
            logger.info("Recording paused")

    def stop(self) -> None:
        """Stop capturing, encode buffered frames and shut down the workers."""
        with self._state_lock:
            if self.state == CaptureState.STOPPED and self._ocr_pool is None:
                return
        self._leave_recording(CaptureState.STOPPED)
        self._shutdown_pools()
        logger.info("Recording stopped")

    def _leave_recording(self, new_state: CaptureState) -> bool:
        with self._state_lock:
            was_recording = self.state == CaptureState.RECORDING
            self.state = new_state
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + self.retry_backoff + 30)
        self.flush()
        return was_recording

    def _ensure_pools(self) -> None:
        if self._ocr_pool is None:
            self._ocr_pool = ThreadPoolExecutor(max_workers=self.ocr_workers, thread_name_prefix="ocr")
            self._text_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="text")
            self._encode_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="encode")

    def _shutdown_pools(self) -> None:
        # Recognition first, since its completions feed the text pool
        for pool in (self._ocr_pool, self._text_pool, self._encode_pool):
            if pool is not None:
                pool.shutdown(wait=True)
        self._ocr_pool = self._text_pool = self._encode_pool = None

    # Loop

    def run(self) -> None:
        """Tick at the configured interval until no longer RECORDING."""
        logger.debug("Capture loop started")
        while self.state == CaptureState.RECORDING and not self._stop_event.is_set():
            started = time.monotonic()
            delay = self.tick()
            if delay is None:
                break
            self._stop_event.wait(max(0.0, delay - (time.monotonic() - started)))
        logger.debug("Capture loop exited")

    def tick(self) -> Optional[float]:
        """Run one capture attempt.

        Returns:
            Seconds until the next attempt, or None if retries are exhausted
        """
        try:
            self.capture_once()
        except ScreenCaptureError as e:
            self.consecutive_failures += 1
            self.last_error = e
            if self.consecutive_failures > self.max_retries:
                logger.error(f"Capture failed {self.consecutive_failures} times in a row, "
                             f"stopping: {e}")
                self._escalate(e)
                return None
            logger.warning(f"Capture failed ({e}), retry {self.consecutive_failures}/"
                           f"{self.max_retries} in {self.retry_backoff}s")
            return self.retry_backoff

        self.consecutive_failures = 0
        return self.interval

    def _escalate(self, error: Exception) -> None:
        self._leave_recording(CaptureState.STOPPED)
        self._shutdown_pools()
        if self.on_failure is not None:
            try:
                self.on_failure(error)
            except Exception as e:
                logger.error(f"Capture failure handler raised: {e}", exc_info=True)

    def capture_once(self) -> bool:
        """Acquire one frame and dispatch it if it changed.

        Returns:
            True if the frame was new and dispatched

        Raises:
            ScreenCaptureError: If the frame could not be acquired
        """
        timestamp = self.clock()
        app = self.window_info.frontmost_application() if self.window_info else None
        image = self.frame_source.capture_frame(self.display_id)
        frame_bytes = encode_png(image)

        if not self.change_detector.has_changed(frame_bytes, app, self.display_id):
            logger.debug("Frame unchanged, skipping")
            return False
        self.change_detector.accept(frame_bytes, app, self.display_id)

        if self.processor.is_excluded(app):
            logger.debug(f"Frontmost app {app} is excluded, not recording frame")
            return False

        frame_id = self._next_frame_id(app, timestamp)
        if frame_id is None:
            return False

        if self.buffer is not None:
            self.buffer.push(Frame(frame_bytes, timestamp, app, frame_id))

        window_title = url = None
        region = image
        if self.window_info is not None:
            window_title = self.window_info.window_title(app)
            url = self.window_info.browser_url(app)
            if self.active_window_only:
                region = crop_to_window(image, self.window_info.focused_window_geometry(),
                                        self._display_origin())
        clip = self.clipboard.read_if_changed() if self.clipboard else None

        self._dispatch_text(frame_id, timestamp, app, window_title, url, region, clip)
        return True

    def _next_frame_id(self, app: Optional[str], timestamp: datetime) -> Optional[int]:
        if self.storage is None:
            return next(self._frame_counter)
        try:
            return self.storage.insert_frame(app, timestamp.timestamp())
        except RuntimeError as e:
            logger.error(f"Failed to allocate frame id: {e}")
            return None

    def _display_origin(self):
        origin = getattr(self.frame_source, "display_origin", None)
        if origin is None:
            return (0, 0)
        try:
            return origin(self.display_id)
        except ScreenCaptureError as e:
            logger.debug(f"Display origin unavailable: {e}")
            return (0, 0)

    # Workers

    def _dispatch_text(self, frame_id, timestamp, app, window_title, url, region, clip) -> None:
        if self._ocr_pool is None:
            self._ensure_pools()
        recognized = self._ocr_pool.submit(self.recognizer.recognize, region, self.ocr_mode)
        self._text_pool.submit(self._process_text, recognized, frame_id, timestamp,
                               app, window_title, url, clip)

    def _process_text(self, recognized: Future, frame_id, timestamp, app, window_title, url, clip) -> None:
        try:
            observations = recognized.result()
            self.processor.process(frame_id, timestamp, app, observations,
                                   window_title=window_title, url=url, clipboard_text=clip)
        except Exception as e:
            logger.error(f"Text pipeline failed for frame {frame_id}: {e}", exc_info=True)

    def _submit_chunk(self, batch: List[Frame]) -> None:
        if self._encode_pool is None:
            self._encode_chunk(batch)
            return
        self._encode_pool.submit(self._encode_chunk, batch)

    def _encode_chunk(self, batch: List[Frame]) -> None:
        try:
            self.encoder.encode(batch)
        except Exception as e:
            logger.error(f"Chunk encoding failed: {e}", exc_info=True)

    def flush(self) -> None:
        """Synchronously encode every frame still in the buffer."""
        if self.buffer is None:
            return
        remaining = self.buffer.drain()
        if not remaining:
            return
        logger.info(f"Flushing {len(remaining)} buffered frames")
        if self._encode_pool is not None:
            # Queue behind chunks already pending so chunks stay in frame order
            self._encode_pool.submit(self._encode_chunk, remaining).result()
        else:
            self._encode_chunk(remaining)
