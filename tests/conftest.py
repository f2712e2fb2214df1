"""Shared fakes for the capture pipeline.

None of the tests need a display, tesseract, xdotool or ffmpeg: every
provider the scheduler talks to is replaced here.
"""

import threading
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from recall.aggregator import ActivityAggregator
from recall.capture import ScreenCaptureError
from recall.export import ExportWriter
from recall.models import TextObservation
from recall.pipeline import CaptureProcessor


def make_image(color=(255, 255, 255), size=(40, 30)) -> Image.Image:
    return Image.new("RGB", size, color)


class FakeFrameSource:
    """Returns queued images (the last one repeats), or fails a number of times first."""

    def __init__(self, images=None, failures=0, always_fail=False):
        self.images = list(images or [make_image()])
        self.failures = failures
        self.always_fail = always_fail
        self.calls = 0

    def capture_frame(self, display_id=1):
        self.calls += 1
        if self.always_fail or self.failures > 0:
            self.failures -= 1
            raise ScreenCaptureError("display unavailable")
        if len(self.images) > 1:
            return self.images.pop(0)
        return self.images[0]


class FakeRecognizer:
    """Returns one observation per queued text (the last one repeats)."""

    def __init__(self, texts=None, confidence=0.9):
        self.texts = list(texts or [])
        self.confidence = confidence
        self.calls = 0
        self._lock = threading.Lock()

    def recognize(self, image, mode="fast"):
        with self._lock:
            self.calls += 1
            if not self.texts:
                return []
            text = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        return [TextObservation(line, self.confidence, (0, 0, 10, 10)) for line in text.splitlines()]


class FakeWindowInfo:
    def __init__(self, app="Code", title="main.py - recall - Code", url=None, geometry=None):
        self.app = app
        self.title = title
        self.url = url
        self.geometry = geometry

    def frontmost_application(self):
        return self.app

    def window_title(self, app=None):
        return self.title

    def browser_url(self, app):
        return self.url

    def focused_window_geometry(self):
        return self.geometry


class FakeEncoder:
    def __init__(self):
        self.batches = []

    def encode(self, frames):
        self.batches.append([f.frame_id for f in frames])
        return Path(f"output-{len(self.batches)}.mp4")


class FixedClock:
    """Hands out the queued datetimes in order, repeating the last one."""

    def __init__(self, *times):
        self.times = list(times) or [datetime(2024, 5, 1, 10, 0, 0)]

    def __call__(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


@pytest.fixture
def export_dir(tmp_path):
    return tmp_path / "export"


@pytest.fixture
def aggregator():
    return ActivityAggregator()


@pytest.fixture
def writer(export_dir, aggregator):
    return ExportWriter(export_dir, aggregator=aggregator)


@pytest.fixture
def processor(writer, aggregator):
    return CaptureProcessor(writer, aggregator)
