"""
Recover URLs and domains from recognized screen text.

Window metadata often cannot provide the current URL (unsupported browser,
no title hint), so addresses are pulled out of the text itself. Recognition
misreads bundle identifiers and process names as domains, hence the
validation filters.
"""

import re
from typing import List, Optional
from urllib.parse import urlsplit

FULL_URL_PATTERN = re.compile(r'https?://[^\s"\'<>)\]}]+')
BARE_DOMAIN_PATTERN = re.compile(
    r'(?:^|\s)((?:[\w-]+\.)+(?:com|org|net|io|dev|ai|co|app|me|tv|edu|gov)(?:/\S*)?)',
    re.IGNORECASE,
)

REVERSE_DOMAIN_PREFIXES = ("com.", "org.", "net.", "io.", "dev.", "co.", "app.", "eom.", "eo.")
KNOWN_SHORT_DOMAINS = {"x", "t", "fb", "g", "yt", "ok", "vk", "wa", "me", "be", "go", "so", "is"}
GARBAGE_PATTERNS = [
    "apple.co", "apple.me",
    "logger.de", "sereen.dev",
    "intents.app", "parts.app",
    "shared.fr", "frame.c",
    "httpjlwww", "httpllwww",
]


def _host(url: str) -> Optional[str]:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def is_valid_url(url: str) -> bool:
    """Reject strings that parse as URLs but are recognition noise."""
    host = _host(url)
    if not host:
        return False
    host = host.lower()

    if host.startswith(REVERSE_DOMAIN_PREFIXES) and ".apple" in host:
        return False
    if host.startswith(("com.", "org.", "eom.")):
        return False

    parts = host.split(".")
    if len(parts[0]) <= 2 and parts[0] not in KNOWN_SHORT_DOMAINS:
        return False

    lowered = url.lower()
    for pattern in GARBAGE_PATTERNS:
        if pattern in host or pattern in lowered:
            return False

    return len(parts) >= 2


def extract_urls_from_text(text: str) -> List[str]:
    """Find protocol URLs and bare domains in text, sorted and unique."""
    urls = set()

    for match in list(FULL_URL_PATTERN.finditer(text))[:10]:
        url = match.group(0).rstrip(".,:")
        if 10 < len(url) < 500 and is_valid_url(url):
            urls.add(url)

    for match in list(BARE_DOMAIN_PATTERN.finditer(text))[:5]:
        domain = match.group(1).rstrip(".,")
        url = f"https://{domain}"
        if 5 < len(domain) < 200 and is_valid_url(url):
            urls.add(url)

    return sorted(urls)


def extract_domain(url: str) -> Optional[str]:
    """Host of a URL without the www. prefix."""
    host = _host(url)
    if host is None:
        return None
    return host[4:] if host.startswith("www.") else host
