"""Clipboard text capture via xclip."""

import hashlib
import logging
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class ClipboardReader:
    """Returns clipboard text only when it changed since the previous read.

    The first read establishes the baseline, so text copied before recording
    started is not reported.
    """

    def __init__(self, command=("xclip", "-o", "-selection", "clipboard")):
        self.command = list(command)
        self._last_digest: Optional[str] = None
        self._primed = False

    def _read(self) -> Optional[str]:
        try:
            result = subprocess.run(self.command, capture_output=True, text=True, timeout=2)
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError) as e:
            logger.debug(f"Clipboard read failed: {e}")
            return None
        if result.returncode != 0:
            return None
        return result.stdout

    def read_if_changed(self) -> Optional[str]:
        text = self._read()
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest() if text else None
        changed = self._primed and digest != self._last_digest
        self._last_digest = digest
        self._primed = True
        if changed and text and text.strip():
            return text
        return None
