"""URL canonicalization used for every dedup key in the crawler."""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

from requests.utils import requote_uri

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize_url(raw: str | None) -> str | None:
    """
    Canonical form of an absolute http(s) URL, or None when it cannot be parsed.

    Fragment and query are dropped, scheme and host lower-cased, trailing
    slashes removed from the path. Applying it to its own output is a no-op.
    """
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    try:
        parts = urlsplit(requote_uri(s))
        host = parts.hostname  # validates the port / IPv6 brackets as a side effect
        _ = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not host:
        return None

    netloc = parts.netloc.rsplit("@", 1)[-1].lower()
    path = parts.path.rstrip("/")
    return urlunsplit((scheme, netloc, path, "", ""))


def normalize_domain(value: str | None) -> str:
    """Bare lower-case host: 'https://Acme.com/careers' -> 'acme.com'."""
    s = (value or "").strip()
    s = _SCHEME_RE.sub("", s)
    s = re.split(r"[/?#]", s, maxsplit=1)[0]
    return s.lower()


def host_of(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def is_same_root(url: str, domain: str) -> bool:
    """True if the URL's host is `domain` or one of its subdomains."""
    host = host_of(url)
    d = normalize_domain(domain)
    if not host or not d:
        return False
    if d.startswith("www."):
        d = d[4:]
    return host == d or host.endswith("." + d)
