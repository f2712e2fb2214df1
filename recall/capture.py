"""Screen Capture and Change Detection Module.

Frames are grabbed with MSS from a single display and converted to PIL images.
The scheduler encodes each frame to PNG once; those bytes are what the change
detector compares and what the frame buffer hands to the video encoder.

Key Classes:
    ScreenCapture: Grabs frames from a display
    ChangeDetector: Decides whether a frame differs from the last accepted one
    ScreenCaptureError: Raised when the display cannot be captured

Dependencies:
    - mss: Multi-platform screenshot library
    - PIL (Pillow): Image conversion, cropping and PNG encoding

Example:
    >>> capture = ScreenCapture()
    >>> image = capture.capture_frame(1)
    >>> png = encode_png(image)
"""

import io
import logging
from typing import Optional, Tuple

import mss
from PIL import Image

logger = logging.getLogger(__name__)


class ScreenCaptureError(Exception):
    """Raised when a frame cannot be acquired.

    Covers an unreachable display server, a missing monitor and grab
    failures. The scheduler treats it as transient and retries.
    """
    pass


class ScreenCapture:
    """Grabs frames from one display.

    Display ids follow MSS numbering: 1 is the primary monitor, 0 is the
    union of all monitors.
    """

    def capture_frame(self, display_id: int = 1) -> Image.Image:
        """Capture the full display as an RGB image.

        Raises:
            ScreenCaptureError: If the display is unavailable or the grab fails
        """
        try:
            with mss.mss() as sct:
                if display_id >= len(sct.monitors):
                    raise ScreenCaptureError(f"Display {display_id} not found "
                                             f"({len(sct.monitors) - 1} monitors detected)")
                screenshot = sct.grab(sct.monitors[display_id])
                return Image.frombytes("RGB", screenshot.size, screenshot.rgb)
        except ScreenCaptureError:
            raise
        except OSError as e:
            if "cannot connect to display" in str(e).lower():
                raise ScreenCaptureError("Cannot connect to display server. Is X11 running?") from e
            raise ScreenCaptureError(f"Display server error: {e}") from e
        except Exception as e:
            raise ScreenCaptureError(f"Failed to capture frame: {e}") from e

    def display_origin(self, display_id: int = 1) -> Tuple[int, int]:
        """Top-left corner of the display in virtual screen coordinates."""
        try:
            with mss.mss() as sct:
                monitor = sct.monitors[display_id]
                return monitor['left'], monitor['top']
        except Exception as e:
            raise ScreenCaptureError(f"Failed to read display geometry: {e}") from e


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, "PNG", compress_level=1)
    return buf.getvalue()


def crop_to_window(image: Image.Image, geometry: Optional[dict],
                   origin: Tuple[int, int] = (0, 0)) -> Image.Image:
    """Crop a frame to the focused window, clamped to the frame bounds.

    Returns the original image when there is no usable geometry or the window
    covers the whole display.
    """
    if not geometry or not geometry.get('width') or not geometry.get('height'):
        return image

    x = geometry['x'] - origin[0]
    y = geometry['y'] - origin[1]
    w = geometry['width']
    h = geometry['height']

    # Partially off-screen windows
    x1 = max(0, min(x, image.width))
    y1 = max(0, min(y, image.height))
    x2 = max(0, min(x + w, image.width))
    y2 = max(0, min(y + h, image.height))

    if (x1, y1, x2, y2) == (0, 0, image.width, image.height) or x2 <= x1 or y2 <= y1:
        return image
    return image.crop((x1, y1, x2, y2))


class ChangeDetector:
    """Byte-for-byte comparison against the last accepted frame.

    A frame counts as changed if its encoded bytes differ, or if the
    frontmost application or the display changed since the last accepted
    frame. Identically encoded frames of a changed screen are accepted misses.
    """

    def __init__(self):
        self.last_bytes: Optional[bytes] = None
        self.last_app: Optional[str] = None
        self.last_display: Optional[int] = None

    def has_changed(self, frame_bytes: bytes, app: Optional[str], display_id: int) -> bool:
        if self.last_bytes is None:
            return True
        return (frame_bytes != self.last_bytes
                or app != self.last_app
                or display_id != self.last_display)

    def accept(self, frame_bytes: bytes, app: Optional[str], display_id: int) -> None:
        self.last_bytes = frame_bytes
        self.last_app = app
        self.last_display = display_id

    def reset(self) -> None:
        self.last_bytes = None
        self.last_app = None
        self.last_display = None
