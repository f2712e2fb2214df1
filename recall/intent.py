"""
Derive "what the user was doing" phrases from screen text and window titles.

Heuristics, in priority order:
1. Active project from IDE title conventions or terminal commands
2. Edited source files from titles and file-operation text
3. Search queries from search-engine URLs or a "Search:" label
4. Discrete actions: builds, commits, installs, tests, deploys

Every extractor is best-effort. No match simply contributes nothing.
"""

import re
from pathlib import PurePosixPath
from typing import List, Optional, Sequence
from urllib.parse import unquote, urlsplit

from .categories import IDE_APPS, is_browser, is_ide, is_terminal

SOURCE_EXTENSIONS = [
    'swift', 'ts', 'tsx', 'js', 'jsx', 'py', 'rs', 'go', 'java', 'kt',
    'cpp', 'hpp', 'css', 'scss', 'html', 'json', 'yaml', 'yml', 'md',
    'sql', 'rb', 'vue', 'svelte', 'astro', 'prisma', 'graphql',
]
VALID_EXTENSIONS = set(SOURCE_EXTENSIONS) | {'sh'}


class IntentExtractor:
    """Rule based extraction of projects, files, searches and actions."""

    MAX_FILES = 3
    MAX_SEARCHES = 2
    MAX_ACTIONS = 3

    # At least two characters before the extension
    FILE_PATTERN = re.compile(r'\w[\w-]+\.(?:' + '|'.join(SOURCE_EXTENSIONS) + r')\b')

    FILE_OPERATION_PATTERNS = [
        re.compile(r'(?:Read|Edit|Update|Write|Modified|Created|Deleted)(?:\s+file)?:?\s*'
                   r'([\w/.-]+\.(?:swift|ts|tsx|js|py|rs|go|java|json|md|yml))', re.IGNORECASE),
        re.compile(r'modified:\s*([\w/.-]+\.(?:swift|ts|tsx|js|py|rs|go|java|json|md|yml))', re.IGNORECASE),
        re.compile(r'new file:\s*([\w/.-]+\.(?:swift|ts|tsx|js|py|rs|go|java|json|md|yml))', re.IGNORECASE),
    ]

    REVERSE_DOMAIN_PREFIXES = ("com.", "org.", "net.", "io.", "dev.", "co.", "app.", "eom.", "eo.")
    GARBAGE_FILE_PATTERNS = [
        re.compile(r'^[a-z]{1,3}\.[a-z]+$'),      # "c.c", "go.ts"
        re.compile(r'^[A-Z][a-z]{0,2}\.[a-z]+$'),  # "On.js", "Co.py"
        re.compile(r'mailout|ollabstr|hotmail'),
        re.compile(r'^Il[a-z]'),                   # misread "// " or "| "
    ]

    CD_PATTERN = re.compile(r'cd\s+([~/\w.-]+)')
    SCHEME_PATTERN = re.compile(r'-scheme\s+(\w+)')
    RUN_SCRIPT_PATTERN = re.compile(r'(?:npm run|yarn)\s+\w+')

    SEARCH_ENGINE_PATTERNS = [
        re.compile(r'google\.com/search\?q=([^&\s]+)'),
        re.compile(r'duckduckgo\.com/\?q=([^&\s]+)'),
    ]
    SEARCH_LABEL_PATTERN = re.compile(r'Search:?\s+([^\n]{3,50})', re.IGNORECASE)

    COMPILED_PATTERN = re.compile(r'Compiled \d+ (?:files?|source files?)')
    COMMIT_SUMMARY_PATTERN = re.compile(r'\[[\w-]+\s+\w+\]')
    COMMIT_MESSAGE_PATTERN = re.compile(r'-m ["\']([^"\']+)["\']')

    PROJECT_TITLE_APP_NAMES = ["Visual Studio Code", "Xcode", "Cursor", "IntelliJ", "WebStorm", "PyCharm"]

    def extract(self, text: str, window_title: Optional[str], app: str) -> List[str]:
        """Combine all extractors into a short, ordered list of intents."""
        intents = []

        project = self.extract_active_project(window_title, app, text)
        if project:
            intents.append(project)

        files = self.extract_files_edited(window_title, text)
        if files:
            intents.append(f"Edited: {', '.join(files[:self.MAX_FILES])}")

        for query in self.extract_searches(app, text)[:self.MAX_SEARCHES]:
            intents.append(f"Searched: {query}")

        intents.extend(self.extract_key_actions(text)[:self.MAX_ACTIONS])
        return intents

    def extract_active_project(self, window_title: Optional[str], app: str, text: str) -> Optional[str]:
        if is_ide(app) and window_title:
            parts = window_title.split(" - ")
            if len(parts) >= 2:
                # "file - Project - App" puts the project second to last
                project = (parts[-2] if len(parts) >= 3 else parts[0]).strip()
                file_name = parts[0].strip()
                if not any(name in project for name in IDE_APPS) and len(project) < 50:
                    return f"Working on {project}: {file_name}"

        if is_terminal(app):
            match = self.CD_PATTERN.search(text)
            if match:
                path = match.group(1)
                name = path.rstrip("/").split("/")[-1] or path
                return f"Working in: {name}"

            if "xcodebuild" in text:
                match = self.SCHEME_PATTERN.search(text)
                if match:
                    return f"Building: {match.group(1)}"
                return "Building Xcode project"

            if "npm run" in text or "yarn" in text:
                match = self.RUN_SCRIPT_PATTERN.search(text)
                if match:
                    return f"Running: {match.group(0)}"

            if "claude" in text or "Claude Code" in text:
                return "Using Claude Code"

        if "Xcode" in app and window_title:
            if ".xcodeproj" in window_title or ".xcworkspace" in window_title:
                return f"Working on: {window_title.split('.xc')[0]}"
            if "—" in window_title:
                parts = window_title.split("—")
                return f"Working on {parts[1].strip()}: {parts[0].strip()}"

        return None

    def extract_files_edited(self, window_title: Optional[str], text: str) -> List[str]:
        """Source file names from the title and text, sorted and unique."""
        files = set()

        if window_title:
            match = self.FILE_PATTERN.search(window_title)
            if match and self.is_valid_source_file(match.group(0)):
                files.add(match.group(0))

        for pattern in self.FILE_OPERATION_PATTERNS:
            for match in list(pattern.finditer(text))[:5]:
                name = match.group(1).split("/")[-1]
                if self.is_valid_source_file(name):
                    files.add(name)

        for match in list(self.FILE_PATTERN.finditer(text))[:10]:
            if self.is_valid_source_file(match.group(0)):
                files.add(match.group(0))

        return sorted(files)

    def is_valid_source_file(self, filename: str) -> bool:
        """Reject recognition noise that merely looks like a file name."""
        if not 3 <= len(filename) < 60:
            return False

        if filename.lower().startswith(self.REVERSE_DOMAIN_PREFIXES):
            return False
        if any(token in filename for token in (".apple.", ".google.", ".microsoft.")):
            return False

        for pattern in self.GARBAGE_FILE_PATTERNS:
            if pattern.search(filename):
                return False

        path = PurePosixPath(filename)
        if path.suffix[1:].lower() not in VALID_EXTENSIONS:
            return False
        return len(path.stem) >= 2

    def extract_searches(self, app: str, text: str) -> List[str]:
        if not is_browser(app):
            return []

        searches = []
        for pattern in self.SEARCH_ENGINE_PATTERNS:
            for match in list(pattern.finditer(text))[:3]:
                query = unquote(match.group(1).replace("+", " "))
                if 2 < len(query) < 100:
                    searches.append(query)

        for match in list(self.SEARCH_LABEL_PATTERN.finditer(text))[:2]:
            query = match.group(1).strip()
            if len(query) > 2 and query not in searches:
                searches.append(query)

        return searches

    def extract_key_actions(self, text: str) -> List[str]:
        actions = []

        if "Build Succeeded" in text or "BUILD SUCCEEDED" in text:
            actions.append("Build succeeded")
        if "Build Failed" in text or "BUILD FAILED" in text:
            actions.append("Build failed")
        match = self.COMPILED_PATTERN.search(text)
        if match:
            actions.append(match.group(0))

        if "git commit" in text or self.COMMIT_SUMMARY_PATTERN.search(text):
            message = self.COMMIT_MESSAGE_PATTERN.search(text)
            if message is None:
                actions.append("Git commit")
            elif len(message.group(1)) < 80:
                actions.append(f"Committed: {message.group(1)[:50]}")
        if "git push" in text or "pushed to" in text:
            actions.append("Pushed to remote")
        if "git pull" in text or "Already up to date" in text:
            actions.append("Git pull")

        if "installed to /Applications" in text or "Successfully installed" in text:
            actions.append("Installed application")
        if "npm install" in text or "yarn add" in text:
            actions.append("Installed dependencies")

        if "Tests Passed" in text or "All tests passed" in text:
            actions.append("Tests passed")
        if "Test Failed" in text or ("FAILED" in text and "test" in text):
            actions.append("Tests failed")

        if "deployed to" in text or "Deployment successful" in text:
            actions.append("Deployed")
        if "Download complete" in text or "Downloaded" in text:
            actions.append("Downloaded file")

        return actions

    def extract_projects(self, window_titles: Sequence[Optional[str]], urls: Sequence[str]) -> List[str]:
        """Project or repository names from titles and code-hosting URLs."""
        projects = set()

        for title in filter(None, window_titles):
            if "/" in title:
                first = title.split("/")[0]
                if 2 < len(first) < 30:
                    cleaned = first.strip()
                    if " " not in cleaned or "-" in cleaned:
                        projects.add(cleaned)

            if " - " in title:
                last = title.split(" - ")[-1]
                if not any(name in last for name in self.PROJECT_TITLE_APP_NAMES) and len(last) < 40:
                    projects.add(last.strip())

        for url in urls:
            if "github.com" in url or "gitlab.com" in url:
                try:
                    path_parts = [p for p in urlsplit(url).path.split("/") if p]
                except ValueError:
                    continue
                if len(path_parts) >= 2:
                    projects.add(f"{path_parts[0]}/{path_parts[1]}")

        return sorted(p for p in projects if p)
