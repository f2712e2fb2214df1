"""
Focused-window metadata via xdotool and xprop (X11).

All lookups are optional enrichment: any failure (tool missing, no X11
access, no focused window) yields None rather than an exception.
"""

import logging
import re
import subprocess
from typing import List, Optional

from .categories import is_browser
from .urls import FULL_URL_PATTERN, is_valid_url

logger = logging.getLogger(__name__)


class WindowInfoProvider:
    """Queries the X server for the focused window's app, title and bounds."""

    TIMEOUT = 5

    def _run(self, args: List[str]) -> Optional[str]:
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.TIMEOUT)
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError) as e:
            logger.debug(f"{args[0]} failed: {e}")
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def _focused_window_id(self) -> Optional[str]:
        return self._run(["xdotool", "getwindowfocus"]) or None

    def frontmost_application(self) -> Optional[str]:
        """WM_CLASS class name of the focused window."""
        window_id = self._focused_window_id()
        if window_id is None:
            return None
        output = self._run(["xprop", "-id", window_id, "WM_CLASS"])
        if not output or '=' not in output:
            return None
        # WM_CLASS(STRING) = "tilix", "Tilix"
        matches = re.findall(r'"([^"]*)"', output.split('=', 1)[1])
        if len(matches) >= 2:
            return matches[1] or None
        return matches[0] if matches else None

    def window_title(self, app: Optional[str] = None) -> Optional[str]:
        return self._run(["xdotool", "getwindowfocus", "getwindowname"]) or None

    def browser_url(self, app: Optional[str]) -> Optional[str]:
        """URL shown in a browser's window title, when the title carries one."""
        if not app or not is_browser(app):
            return None
        title = self.window_title(app)
        if not title:
            return None
        match = FULL_URL_PATTERN.search(title)
        if match:
            url = match.group(0).rstrip(".,:")
            if is_valid_url(url):
                return url
        return None

    def focused_window_geometry(self) -> Optional[dict]:
        """Absolute position and size of the focused window."""
        window_id = self._run(['xdotool', 'getactivewindow'])
        if not window_id:
            return None
        output = self._run(['xdotool', 'getwindowgeometry', '--shell', window_id])
        if not output:
            return None

        # WINDOW=123\nX=100\nY=200\nWIDTH=1920\nHEIGHT=1080
        geo = {}
        for line in output.split('\n'):
            key, _, value = line.partition('=')
            try:
                geo[key] = int(value)
            except ValueError:
                continue

        if not all(k in geo for k in ['X', 'Y', 'WIDTH', 'HEIGHT']):
            return None
        return {
            'x': geo['X'],
            'y': geo['Y'],
            'width': geo['WIDTH'],
            'height': geo['HEIGHT'],
        }
