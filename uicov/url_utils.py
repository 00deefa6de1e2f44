"""Shared URL utilities: normalize page URLs and recover them from discovery contexts."""

from __future__ import annotations

import re
from urllib.parse import urlparse

UNKNOWN_URL = "unknown"

_URL_RE = re.compile(r"https?://\S+")


def normalize_url(url: str) -> str:
    """Normalize a URL for grouping coverage by page."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return url
    path = parsed.path.rstrip("/") or "/"
    query = ""
    if parsed.query:
        params = sorted(parsed.query.split("&"))
        query = "?" + "&".join(params)
    return f"{parsed.scheme}://{parsed.netloc}{path}{query}"


def url_from_discovery_context(context: str, fallback: str = "") -> str:
    """Extract the page URL a discoverer embedded in its context tag.

    Discoverers tag elements with strings like ``"runtime-http://host/login"``.
    Falls back to ``fallback`` when it is itself a URL, else ``"unknown"``.
    """
    for candidate in (context or "", fallback or ""):
        match = _URL_RE.search(candidate)
        if match:
            return normalize_url(match.group(0))
    return UNKNOWN_URL
