"""App name allowlists used by intent extraction and summary flags.

Names cover both the window-manager class names seen on Linux and the
display names other platforms report. Matching is case-insensitive.
"""

from typing import Dict, Iterable

IDE_APPS = [
    'Xcode', 'Visual Studio Code', 'Code', 'Cursor', 'IntelliJ IDEA', 'WebStorm',
    'PyCharm', 'Android Studio',
]

# Linux window classes not covered by the display names above
EXTRA_IDE_APPS = ['jetbrains', 'sublime_text', 'dev.zed.Zed']

TERMINAL_APPS = [
    'Terminal', 'iTerm2', 'iTerm', 'Warp', 'Alacritty', 'kitty', 'konsole',
    'tilix', 'wezterm', 'xterm',
]

BROWSER_APPS = [
    'Safari', 'Google Chrome', 'Chrome', 'Chromium', 'Arc', 'Firefox', 'Brave',
    'Edge', 'Vivaldi', 'Opera',
]

# Summary categories use whole-name matches so that e.g. "Code" does not
# claim every app containing "code".
CATEGORY_APPS: Dict[str, set] = {
    'browser': {a.lower() for a in [
        'Safari', 'Google Chrome', 'Google-chrome', 'Arc', 'Firefox', 'Brave Browser',
        'Brave-browser', 'Chromium', 'Microsoft-edge',
    ]},
    'dev': {a.lower() for a in [
        'Xcode', 'Visual Studio Code', 'Code', 'Cursor', 'Terminal', 'iTerm2',
        'IntelliJ IDEA', 'gnome-terminal-server', 'Alacritty', 'kitty', 'konsole',
        'jetbrains-pycharm', 'jetbrains-idea',
    ]},
    'communication': {a.lower() for a in [
        'Slack', 'Discord', 'Messages', 'Mail', 'Microsoft Teams', 'Zoom',
        'thunderbird', 'Signal', 'telegram-desktop',
    ]},
}


def _matches_any(app: str, names: Iterable[str]) -> bool:
    lowered = app.lower()
    return any(name.lower() in lowered for name in names)


def is_ide(app: str) -> bool:
    return _matches_any(app, IDE_APPS) or _matches_any(app, EXTRA_IDE_APPS)


def is_terminal(app: str) -> bool:
    return _matches_any(app, TERMINAL_APPS)


def is_browser(app: str) -> bool:
    return _matches_any(app, BROWSER_APPS)


def category_minutes(apps: Dict[str, int]) -> Dict[str, int]:
    """Sum per-app minutes into the browser/dev/communication categories."""
    totals = {category: 0 for category in CATEGORY_APPS}
    for app, minutes in apps.items():
        for category, names in CATEGORY_APPS.items():
            if app.lower() in names:
                totals[category] += minutes
    return totals
