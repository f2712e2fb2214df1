"""Background worker that turns rolled-over buckets into summary files.

The aggregator and export writer only swap buckets out; summarizing and
writing happens here, off the capture path. Tasks are processed in the
order they were submitted. On stop the queue is drained before the thread
exits so no completed hour or day is lost at shutdown.
"""

import logging
import queue
import threading
from typing import Dict, Optional

from .aggregator import DailyBucket, HourlyBucket
from .export import ExportWriter
from .summaries import summarize_day, summarize_hour

logger = logging.getLogger(__name__)


class SummarizerWorker:
    """Background worker for hourly summaries, daily journals and digests.

    Attributes:
        writer: ExportWriter the documents are written through
        max_topics: Cap on key topics per hourly summary
        top_domains: Number of domains kept in the daily journal
    """

    def __init__(self, writer: ExportWriter, max_topics: int = 30, top_domains: int = 10):
        self.writer = writer
        self.max_topics = max_topics
        self.top_domains = top_domains
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._pending_queue: queue.Queue = queue.Queue()
        self._current_task: Optional[str] = None

    def start(self):
        """Start the background worker thread."""
        if self._running:
            logger.warning("SummarizerWorker already running")
            return

        self._running = True
        self._thread = threading.Thread(target=self._run_loop, name="summarizer", daemon=True)
        self._thread.start()
        logger.info("SummarizerWorker started")

    def stop(self, timeout: float = 10):
        """Stop the worker after the queued tasks are done."""
        if not self._running:
            return

        self._running = False
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"SummarizerWorker still busy after {timeout}s, "
                               f"{self._pending_queue.qsize()} tasks pending")
            self._thread = None
        logger.info("SummarizerWorker stopped")

    def submit_hour(self, bucket: HourlyBucket) -> None:
        self._pending_queue.put(('hour', bucket))

    def submit_day(self, date: str, bucket: DailyBucket, digest: dict) -> None:
        self._pending_queue.put(('day', (date, bucket, digest)))

    def get_status(self) -> Dict:
        return {
            "running": self._running,
            "current_task": self._current_task,
            "queue_size": self._pending_queue.qsize(),
        }

    def _run_loop(self):
        """Background loop processing the summary queue."""
        logger.info("SummarizerWorker run loop started")

        while self._running or not self._pending_queue.empty():
            try:
                task = self._pending_queue.get(timeout=1)
            except queue.Empty:
                continue

            task_type, payload = task
            self._current_task = task_type

            try:
                if task_type == 'hour':
                    self._do_hour(payload)
                elif task_type == 'day':
                    self._do_day(*payload)
            except Exception as e:
                logger.error(f"Summary task {task_type} failed: {e}", exc_info=True)
            finally:
                self._current_task = None
                self._pending_queue.task_done()

        logger.info("SummarizerWorker run loop stopped")

    def _do_hour(self, bucket: HourlyBucket):
        summary = summarize_hour(bucket, max_topics=self.max_topics)
        self.writer.write_hourly_summary(summary)

    def _do_day(self, date: str, bucket: DailyBucket, digest: dict):
        journal = summarize_day(bucket, top_domains=self.top_domains)
        self.writer.write_daily_journal(journal)
        self.writer.write_digest(date, digest)
