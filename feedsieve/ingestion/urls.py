"""URL canonicalization and item identity."""

import hashlib
from urllib.parse import urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Return the canonical form of a feed or item URL.

    Scheme and host are lower-cased, default ports dropped, an empty path
    becomes ``/`` and a trailing slash is stripped from any other path.
    The fragment is dropped; the query string is kept as-is.
    """
    if not url:
        return ""
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if not parts.netloc:
        # file: URLs and bare paths have no host to normalize
        return urlunsplit((scheme, "", parts.path, parts.query, ""))

    host = (parts.hostname or "").lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += ":" + parts.password
        netloc = f"{userinfo}@{netloc}"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc += f":{port}"

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def title_hash(title: str) -> str:
    """Stable hash of a title, used for title-based deduplication."""
    normalized = " ".join((title or "").lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:32]


def item_identity(item, by_title: bool = False) -> str:
    """Identity of an item within its feed.

    Uses the title hash when ``by_title`` is set; otherwise the normalized
    link, falling back to the guid and then to the title hash.
    """
    if by_title:
        return "title:" + title_hash(item.title)
    if item.url:
        return normalize_url(item.url)
    if item.guid:
        return "guid:" + item.guid
    return "title:" + title_hash(item.title)
