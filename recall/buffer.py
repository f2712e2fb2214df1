"""Bounded FIFO of frames waiting to be encoded into video chunks."""

import logging
import threading
from collections import deque
from typing import Callable, List, Optional

from .models import Frame

logger = logging.getLogger(__name__)

FlushHandler = Callable[[List[Frame]], None]


class FrameBuffer:
    """Capacity-bounded frame queue that flushes fixed-size batches.

    push() never blocks: at capacity the oldest frame is evicted and logged.
    Once the queue holds `flush_threshold` frames, that many of the oldest are
    removed as one batch and passed to `on_flush` after the lock is released,
    so a slow encoder never holds up producers. Without a flush handler frames
    stay queued until drain(), and eviction is what bounds the queue.
    """

    def __init__(self, capacity: int = 100, flush_threshold: int = 30,
                 on_flush: Optional[FlushHandler] = None):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        if not 1 <= flush_threshold <= capacity:
            raise ValueError("flush_threshold must be between 1 and capacity")
        self.capacity = capacity
        self.flush_threshold = flush_threshold
        self.on_flush = on_flush
        self.evicted_count = 0
        self._frames: deque = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def push(self, frame: Frame) -> Optional[List[Frame]]:
        """Append a frame, evicting the oldest at capacity.

        Returns:
            The batch handed to the flush handler, if this push triggered one
        """
        batch = None
        with self._lock:
            if len(self._frames) >= self.capacity:
                dropped = self._frames.popleft()
                self.evicted_count += 1
                logger.warning(f"Frame buffer full ({self.capacity}), dropped frame {dropped.frame_id}")
            self._frames.append(frame)
            if self.on_flush is not None and len(self._frames) >= self.flush_threshold:
                batch = [self._frames.popleft() for _ in range(self.flush_threshold)]

        if batch is not None:
            self.on_flush(batch)
        return batch

    def drain(self) -> List[Frame]:
        """Remove and return every buffered frame, oldest first."""
        with self._lock:
            frames = list(self._frames)
            self._frames.clear()
        return frames
