"""
URL normalization for the reader and screenshot tools.
"""

import re
from urllib.parse import unquote_plus, urlsplit, urlunsplit

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}
# Query parameters that only track the visitor and never change page content
TRACKING_PARAM_PREFIXES = ("utm_",)
TRACKING_PARAMS = {"fbclid", "gclid", "mc_cid", "mc_eid"}
SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def _is_tracking_param(name: str) -> bool:
    name = name.lower()
    return name in TRACKING_PARAMS or name.startswith(TRACKING_PARAM_PREFIXES)


def _strip_tracking(query: str) -> str:
    # kept segments are passed through untouched, encoding included
    segments = [
        segment
        for segment in query.split("&")
        if not _is_tracking_param(unquote_plus(segment.split("=", 1)[0]))
    ]
    return "&".join(segments)


def normalize_url(url: str) -> str | None:
    """
    Canonicalize a user-supplied URL, or return None if it cannot be read.

    - Surrounding whitespace is removed
    - A missing scheme becomes https
    - Only http and https with a host are accepted
    - Scheme and host are lowercased, default ports dropped
    - Fragments and tracking parameters are removed

    Examples:
        normalize_url("Example.com/a?utm_source=x#top")  # "https://example.com/a"
        normalize_url("ftp://example.com")               # None
    """
    if not isinstance(url, str):
        return None
    url = url.strip()
    if not url:
        return None
    if not SCHEME_PATTERN.match(url):
        url = f"https://{url.lstrip('/')}"

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if scheme not in ALLOWED_SCHEMES or not host or " " in host:
        return None

    netloc = host
    if ":" in host:
        # IPv6 literal
        netloc = f"[{host}]"
    if parts.username:
        auth = parts.username
        if parts.password:
            auth = f"{auth}:{parts.password}"
        netloc = f"{auth}@{netloc}"
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    query = _strip_tracking(parts.query)
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, query, ""))
