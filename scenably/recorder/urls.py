"""Target URL validation and normalization for recording sessions."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from scenably.errors import InvalidUrl

ALLOWED_SCHEMES = {"http", "https"}

_DUPLICATED_PROTOCOL = re.compile(r"^(https?)://\s*(?=https?://)", re.IGNORECASE)


def collapse_duplicated_protocol(url: str) -> str:
    """Collapse repeated protocol prefixes, e.g. ``https:// https://x`` -> ``https://x``."""
    collapsed = url
    while True:
        match = _DUPLICATED_PROTOCOL.match(collapsed)
        if not match:
            return collapsed
        collapsed = collapsed[match.end():]


def normalize_target_url(raw_url: str | None) -> str:
    """Validate and normalize a recording target URL or raise InvalidUrl."""
    url = (raw_url or "").strip()
    if not url:
        raise InvalidUrl("target url is required")
    url = collapse_duplicated_protocol(url)
    if any(char.isspace() for char in url):
        raise InvalidUrl(f"target url contains whitespace: {raw_url!r}")

    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl(f"target url must use http or https: {raw_url!r}")
    if not parsed.hostname:
        raise InvalidUrl(f"target url has no host: {raw_url!r}")
    try:
        parsed.port
    except ValueError as exc:
        raise InvalidUrl(f"target url has invalid port: {raw_url!r}") from exc
    return url
