"""Detect and redact secrets in recognized or copied text."""

import logging
import re
from typing import List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


class SensitiveContentFilter:
    """Pattern based detection of passwords, keys, card numbers and tokens."""

    # (kind, pattern, replacement), applied in this order when redacting
    PATTERNS: List[Tuple[str, Pattern, str]] = [
        ('password',
         re.compile(r'(?i)(password|passwd|pwd|secret|api[_-]?key|private[_-]?key|auth[_-]?token)\s*[=:]\s*\S+'),
         '[REDACTED:PASSWORD]'),
        ('api key',
         re.compile(r'(?i)(sk-[a-zA-Z0-9]{20,}|api[_-]?key[_-]?[a-zA-Z0-9]{16,})'),
         '[REDACTED:API_KEY]'),
        ('credit card',
         re.compile(r'\b(?:\d{4}[- ]?){3}\d{4}\b'),
         '[REDACTED:CARD]'),
        ('SSN',
         re.compile(r'\b\d{3}[- ]\d{2}[- ]\d{4}\b'),
         '[REDACTED:SSN]'),
        ('JWT',
         re.compile(r'eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*'),
         '[REDACTED:TOKEN]'),
        ('AWS key',
         re.compile(r'AKIA[0-9A-Z]{16}'),
         '[REDACTED:AWS_KEY]'),
    ]

    # Clips shorter than this are dropped outright when sensitive
    SHORT_CLIP_LENGTH = 200

    def contains_sensitive_content(self, text: str) -> bool:
        for kind, pattern, _ in self.PATTERNS:
            if pattern.search(text):
                logger.debug(f"Detected {kind} pattern in content")
                return True
        return False

    def redact(self, text: str) -> str:
        for _, pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter_clipboard(self, text: str) -> Optional[str]:
        """Return clipboard text safe to keep, or None if it should be skipped."""
        if not self.contains_sensitive_content(text):
            return text
        if len(text) < self.SHORT_CLIP_LENGTH:
            logger.info("Skipping clipboard text: sensitive content detected")
            return None
        logger.info("Redacting sensitive content from clipboard text")
        return self.redact(text)
