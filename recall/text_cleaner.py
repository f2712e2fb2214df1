"""
Normalize recognized text and suppress consecutive duplicate captures.

Recognition output is noisy: stray one or two character lines, runs of blank
lines, replacement characters and ruled-line artifacts. Cleaning strips those
so that identical screens produce identical text, which the duplicate check
then hashes.
"""

import hashlib
import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def merge_texts(texts: Iterable[str]) -> str:
    """Join recognized lines in order, skipping blanks and exact repeats."""
    seen = set()
    merged = []
    for text in texts:
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped in seen:
                continue
            seen.add(stripped)
            merged.append(stripped)
    return "\n".join(merged)


class TextCleaner:
    """Cleans recognized text and remembers the last accepted capture.

    The duplicate state is a single (hash, app) pair, so only back-to-back
    repeats are suppressed.
    """

    ARTIFACTS = ["￿", "�", "|||", "•••", "....", "____"]
    MIN_WORDS = 5
    MIN_WORD_LENGTH = 3

    _BLANK_RUN = re.compile(r'\n{3,}')

    def __init__(self):
        self.last_hash: Optional[str] = None
        self.last_app: Optional[str] = None
        self.duplicate_skip_count = 0

    def clean(self, raw_text: str) -> str:
        lines = [
            line for line in raw_text.split("\n")
            if len(line.strip()) > 2 or not line.strip()
        ]
        cleaned = "\n".join(lines)
        cleaned = self._BLANK_RUN.sub("\n\n", cleaned)
        for artifact in self.ARTIFACTS:
            cleaned = cleaned.replace(artifact, "")
        return cleaned.strip()

    def has_minimum_content(self, text: str) -> bool:
        """True when at least five words longer than two characters remain."""
        words = [w for w in text.split() if len(w) >= self.MIN_WORD_LENGTH]
        return len(words) >= self.MIN_WORDS

    @staticmethod
    def content_hash(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def is_duplicate(self, cleaned_text: str, app_name: Optional[str]) -> bool:
        """Check against the previous accepted capture.

        A non-duplicate becomes the new reference, so calling this is also
        what marks a capture as accepted.
        """
        digest = self.content_hash(cleaned_text)
        app = app_name or "Unknown"

        if digest == self.last_hash and app == self.last_app:
            self.duplicate_skip_count += 1
            logger.debug(f"Duplicate capture for {app} ({self.duplicate_skip_count} in a row)")
            return True

        self.last_hash = digest
        self.last_app = app
        self.duplicate_skip_count = 0
        return False
