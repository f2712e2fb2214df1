"""
Text recognition with the Tesseract CLI.

Images are scaled down, saved to a temporary PNG and passed to tesseract with
TSV output, which carries per-word confidences and boxes. Words are grouped
back into lines; each line becomes one TextObservation whose confidence is the
mean word confidence scaled to 0..1.

Failures (tesseract missing, timeout, non-zero exit) are logged and produce an
empty list, which the pipeline treats as "no usable text" for that capture.
"""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Tuple

from PIL import Image

from .models import TextObservation

logger = logging.getLogger(__name__)

FAST = "fast"
ACCURATE = "accurate"

# (max width, max height) per mode
MODE_LIMITS = {
    FAST: (1280, 1280),
    ACCURATE: (1920, 1080),
}


def _scale(img: Image.Image, max_width: int, max_height: int) -> Image.Image:
    if img.width > max_width:
        ratio = max_width / img.width
        img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)
    if img.height > max_height:
        ratio = max_height / img.height
        img = img.resize((int(img.width * ratio), max_height), Image.Resampling.LANCZOS)
    return img


def parse_tsv(tsv: str) -> List[TextObservation]:
    """Group tesseract TSV words into line observations, in reading order."""
    lines: Dict[Tuple[int, int, int, int], dict] = {}
    rows = tsv.splitlines()
    for row in rows[1:]:
        cols = row.split("\t")
        if len(cols) < 12:
            continue
        text = cols[11].strip()
        try:
            conf = float(cols[10])
            key = (int(cols[1]), int(cols[2]), int(cols[3]), int(cols[4]))
            left, top, width, height = (int(c) for c in cols[6:10])
        except ValueError:
            continue
        if not text or conf < 0:
            continue

        line = lines.setdefault(key, {'words': [], 'confs': [], 'box': [left, top, left + width, top + height]})
        line['words'].append(text)
        line['confs'].append(conf)
        box = line['box']
        box[0] = min(box[0], left)
        box[1] = min(box[1], top)
        box[2] = max(box[2], left + width)
        box[3] = max(box[3], top + height)

    observations = []
    for line in lines.values():
        x1, y1, x2, y2 = line['box']
        observations.append(TextObservation(
            text=" ".join(line['words']),
            confidence=sum(line['confs']) / len(line['confs']) / 100.0,
            bbox=(x1, y1, x2 - x1, y2 - y1),
        ))
    return observations


class TesseractRecognizer:
    """Runs tesseract on PIL images."""

    def __init__(self, binary: str = "tesseract", language: str = "eng", timeout: float = 30):
        self.binary = binary
        self.language = language
        self.timeout = timeout

    def recognize(self, image: Image.Image, mode: str = FAST) -> List[TextObservation]:
        max_width, max_height = MODE_LIMITS.get(mode, MODE_LIMITS[FAST])
        tmp_path = None
        try:
            img = _scale(image, max_width, max_height)
            with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as tmp:
                tmp_path = tmp.name
                img.save(tmp_path, "PNG")

            result = subprocess.run(
                [self.binary, tmp_path, "stdout", "-l", self.language, "--psm", "3", "tsv"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            if result.returncode != 0:
                logger.warning(f"Tesseract returned non-zero: {result.stderr.strip()}")
                return []
            return parse_tsv(result.stdout)

        except subprocess.TimeoutExpired:
            logger.warning("Tesseract timed out")
            return []
        except FileNotFoundError:
            logger.warning("Tesseract not installed or not in PATH")
            return []
        except OSError as e:
            logger.warning(f"Text recognition failed: {e}")
            return []
        finally:
            if tmp_path:
                Path(tmp_path).unlink(missing_ok=True)
