import sys

from recall.clipboard import ClipboardReader
from recall.window_info import WindowInfoProvider


class ScriptedProvider(WindowInfoProvider):
    """Answers xdotool/xprop invocations from a table instead of the X server."""

    def __init__(self, answers):
        self.answers = answers

    def _run(self, args):
        return self.answers.get(tuple(args))


def test_frontmost_application_uses_wm_class():
    provider = ScriptedProvider({
        ("xdotool", "getwindowfocus"): "4242",
        ("xprop", "-id", "4242", "WM_CLASS"): 'WM_CLASS(STRING) = "navigator", "firefox"',
    })
    assert provider.frontmost_application() == "firefox"


def test_nothing_focused():
    assert ScriptedProvider({}).frontmost_application() is None
    assert ScriptedProvider({}).focused_window_geometry() is None


def test_browser_url_from_title():
    provider = ScriptedProvider({
        ("xdotool", "getwindowfocus", "getwindowname"):
            "Docs - https://docs.python.org/3/library/ - Mozilla Firefox",
    })
    assert provider.browser_url("Firefox") == "https://docs.python.org/3/library/"
    assert provider.browser_url("Code") is None


def test_focused_window_geometry():
    provider = ScriptedProvider({
        ("xdotool", "getactivewindow"): "4242",
        ("xdotool", "getwindowgeometry", "--shell", "4242"):
            "WINDOW=4242\nX=100\nY=200\nWIDTH=1280\nHEIGHT=720\nSCREEN=0",
    })
    assert provider.focused_window_geometry() == {"x": 100, "y": 200, "width": 1280, "height": 720}


def test_clipboard_reports_only_changes(tmp_path):
    clip = tmp_path / "clip.txt"
    clip.write_text("copied before start")
    script = f"import sys; sys.stdout.write(open({str(clip)!r}).read())"
    reader = ClipboardReader(command=[sys.executable, "-c", script])

    assert reader.read_if_changed() is None
    assert reader.read_if_changed() is None

    clip.write_text("freshly copied")
    assert reader.read_if_changed() == "freshly copied"
    assert reader.read_if_changed() is None


def test_clipboard_tool_missing(tmp_path):
    reader = ClipboardReader(command=[str(tmp_path / "no-such-xclip")])
    assert reader.read_if_changed() is None
    assert reader.read_if_changed() is None
