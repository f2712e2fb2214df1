"""Screen Recall Daemon Module.

Wires the capture pipeline together and runs it until interrupted:

    ScreenCapture -> CaptureScheduler -> FrameBuffer -> ChunkEncoder (video)
                                      -> TesseractRecognizer -> CaptureProcessor
                                         -> ExportWriter / ActivityAggregator
                                         -> SummarizerWorker (hour and day files)

The daemon owns process-level concerns only: configuration, logging setup,
signal handling, periodic maintenance (video retention and the in-progress
day's digest) and shutdown order.

Shutdown order:
1. Scheduler stops: the loop exits, buffered frames are encoded, pools drain
2. Summarizer worker finishes every queued hour and day
3. The current day's digest is written as a snapshot

Exit status is 0 after a requested stop (SIGTERM, SIGINT) and 1 when the
scheduler gave up after exhausting its capture retries.

Example:
    # Run with defaults from ~/.config/recall/config.yaml
    $ python -m recall.daemon

    # Faster ticks, no video, verbose
    $ python -m recall.daemon --interval 1 --no-video --log-level DEBUG
"""

import argparse
import logging
import shutil
import signal
import sys
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .aggregator import ActivityAggregator
from .capture import ScreenCapture
from .clipboard import ClipboardReader
from .config import Config, ConfigManager, clamp_invalid_values
from .encoder import ChunkEncoder
from .export import ExportWriter
from .ocr import TesseractRecognizer
from .pipeline import CaptureProcessor
from .privacy import SensitiveContentFilter
from .scheduler import CaptureScheduler
from .sessions import SessionTracker
from .storage import RecallStorage
from .summarizer_worker import SummarizerWorker
from .window_info import WindowInfoProvider

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# First maintenance pass runs shortly after start, then hourly
FIRST_MAINTENANCE_DELAY = 60
MAINTENANCE_INTERVAL = 3600


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger: stderr always, plus a rotating file if given."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024,
                                               backupCount=5, encoding="utf-8")
        except OSError as e:
            logger.warning(f"File logging disabled, cannot open {log_path}: {e}")
            return
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


class RecallDaemon:
    """Builds the pipeline from a Config and runs it until stopped.

    Providers (frame source, recognizer, window info, clipboard) can be
    injected; by default the X11 and tesseract implementations are used.

    Attributes:
        config: Effective configuration (invalid values already clamped)
        running: False once a stop was requested or capture failed for good
        capture_failed: True if the scheduler stopped itself after retries
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        enable_video: bool = True,
        frame_source=None,
        recognizer=None,
        window_info=None,
        clipboard=None,
    ):
        self.config = clamp_invalid_values(config or Config())
        self.running = False
        self.capture_failed = False
        self._wake = threading.Event()

        cfg = self.config
        export_dir = cfg.storage.export_dir
        self.storage = RecallStorage(cfg.storage.db_path)

        self.aggregator = ActivityAggregator(max_key_moments=cfg.export.max_key_moments)
        self.writer = ExportWriter(
            export_dir,
            aggregator=self.aggregator,
            top_domains=cfg.export.top_domains,
            digest_top_urls=cfg.export.digest_top_urls,
        )
        self.worker = SummarizerWorker(
            self.writer,
            max_topics=cfg.export.max_topics,
            top_domains=cfg.export.top_domains,
        )
        # Completed buckets go to the background worker, not the capture path
        self.aggregator.on_hour_rollover = self.worker.submit_hour
        self.writer.on_day_rollover = self.worker.submit_day

        self.processor = CaptureProcessor(
            self.writer,
            self.aggregator,
            sessions=SessionTracker(cfg.session.timeout_seconds),
            storage=self.storage,
            sensitive_filter=SensitiveContentFilter(),
            confidence_threshold=cfg.capture.ocr_confidence_threshold,
            excluded_apps=cfg.privacy.excluded_apps,
            redact=cfg.privacy.redact_sensitive,
        )

        self.encoder: Optional[ChunkEncoder] = None
        if enable_video:
            self.encoder = ChunkEncoder(
                cfg.storage.video_dir,
                storage=self.storage,
                timeout=cfg.video.encoder_timeout_seconds,
                ffmpeg_path=cfg.video.ffmpeg_path,
                codec=cfg.video.codec,
                crf=cfg.video.crf,
            )

        if clipboard is None and cfg.capture.include_clipboard:
            clipboard = ClipboardReader()

        self.scheduler = CaptureScheduler(
            frame_source or ScreenCapture(),
            self.processor,
            recognizer or TesseractRecognizer(),
            encoder=self.encoder,
            window_info=window_info or WindowInfoProvider(),
            storage=self.storage,
            clipboard=clipboard,
            interval=cfg.capture.interval_seconds,
            max_retries=cfg.capture.max_retries,
            retry_backoff=cfg.capture.retry_backoff_seconds,
            active_window_only=cfg.capture.active_window_only,
            fast_ocr=cfg.capture.fast_ocr,
            ocr_workers=cfg.capture.ocr_workers,
            buffer_capacity=cfg.video.buffer_capacity,
            flush_threshold=cfg.video.flush_threshold,
            on_failure=self._on_capture_failure,
        )

    def _signal_handler(self, signum, frame):
        """Handle SIGTERM/SIGINT by requesting a graceful stop."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.request_stop()

    def request_stop(self) -> None:
        self.running = False
        self._wake.set()

    def _on_capture_failure(self, error: Exception) -> None:
        logger.error(f"Capture stopped after repeated failures: {error}")
        self.capture_failed = True
        self.request_stop()

    def run_maintenance(self) -> None:
        """Apply video retention and snapshot today's digest."""
        if self.encoder is not None:
            try:
                self.encoder.cleanup_old_chunks(self.config.video.retention_hours)
            except Exception as e:
                logger.error(f"Video cleanup failed: {e}", exc_info=True)
        self.writer.write_current_digest()

    def run(self) -> int:
        """Record until a stop is requested or capture fails for good.

        Returns:
            Process exit status (0 on requested stop, 1 on capture failure)
        """
        logger.info("Screen recall daemon starting...")
        logger.info(f"Data directory: {self.config.storage.root}")

        previous_handlers = {}
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGTERM, signal.SIGINT):
                previous_handlers[signum] = signal.signal(signum, self._signal_handler)

        self.running = True
        self._wake.clear()
        try:
            self.worker.start()
            self.scheduler.start()

            next_maintenance = time.monotonic() + FIRST_MAINTENANCE_DELAY
            while self.running:
                self._wake.wait(timeout=1)
                if time.monotonic() >= next_maintenance:
                    self.run_maintenance()
                    next_maintenance = time.monotonic() + MAINTENANCE_INTERVAL
        finally:
            self.shutdown()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

        if self.capture_failed:
            logger.error("Screen recall daemon stopped after capture failure")
            return 1
        logger.info("Screen recall daemon stopped")
        return 0

    def shutdown(self) -> None:
        logger.info("Shutting down...")
        self.scheduler.stop()
        self.worker.stop()
        self.writer.write_current_digest()


def forget_everything(config: Config, storage: RecallStorage) -> int:
    """Delete every chunk and exported document, then empty the database.

    The database file itself is kept so a running daemon can continue.

    Returns:
        Number of files and directories removed from disk
    """
    removed = 0
    for directory in (config.storage.video_dir, config.storage.export_dir):
        if not directory.exists():
            continue
        for path in directory.iterdir():
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Failed to delete {path}: {e}")
    storage.purge()
    logger.info(f"Purged stored data ({removed} entries removed from disk)")
    return removed


def _print_rows(rows) -> None:
    for row in rows:
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(row['timestamp'] or 0))
        first_line = row['text'].splitlines()[0] if row['text'] else ""
        print(f"[{when}] {row['app_name'] or 'Unknown'} (frame {row['frame_id']}): {first_line[:100]}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Screen recall daemon")
    parser.add_argument("--config", type=Path, default=None,
                        help=f"Config file (default: {ConfigManager.DEFAULT_PATH})")
    parser.add_argument("--data-dir", default=None,
                        help="Override storage.data_dir")
    parser.add_argument("--interval", type=float, default=None,
                        help="Override capture.interval_seconds")
    parser.add_argument("--log-level", default=None,
                        help="Override logging.level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--no-video", action="store_true",
                        help="Skip video chunk encoding")
    parser.add_argument("--init-config", action="store_true",
                        help="Write a default config file and exit")
    parser.add_argument("--search", metavar="QUERY", default=None,
                        help="Search recognized text and exit")
    parser.add_argument("--recent", type=int, metavar="N", default=None,
                        help="Print the N most recent captures and exit")
    parser.add_argument("--purge", action="store_true",
                        help="Delete all stored frames, video chunks, exports and text and exit")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config_mgr = ConfigManager(args.config)
    if args.init_config:
        config_mgr.create_default_file()
        return 0

    config = config_mgr.config
    if args.data_dir:
        config.storage.data_dir = args.data_dir
    if args.interval is not None:
        config.capture.interval_seconds = args.interval
    if args.log_level:
        config.logging.level = args.log_level

    clamp_invalid_values(config)
    setup_logging(config.logging.level, config.logging.file or None)

    if args.search is not None or args.recent is not None or args.purge:
        try:
            storage = RecallStorage(config.storage.db_path)
            if args.purge:
                forget_everything(config, storage)
            if args.search is not None:
                _print_rows(storage.search_text(args.search))
            if args.recent is not None:
                _print_rows(storage.get_recent_text(args.recent))
        except RuntimeError as e:
            logger.error(f"Storage error: {e}")
            return 1
        return 0

    daemon = RecallDaemon(config, enable_video=not args.no_video)
    return daemon.run()


if __name__ == "__main__":
    sys.exit(main())
