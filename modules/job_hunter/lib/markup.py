"""
Tolerant HTML/XML text helpers. No network, never raises on malformed input.
"""

from __future__ import annotations

from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .models import Link
from .urls import normalize_url
from .utils import collapse_ws

_INVISIBLE_TAGS = ["script", "style", "noscript"]
_SKIP_SCHEMES = ("javascript:", "mailto:")

LINK_TEXT_CHARS = 200
TITLE_CHARS = 140


def _soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html.parser")


def strip_html(markup: str) -> str:
    """Visible text only: script/style bodies are removed before tags are dropped."""
    soup = _soup(markup)
    for tag in soup(_INVISIBLE_TAGS):
        tag.decompose()
    return collapse_ws(soup.get_text(" "))


def extract_links(markup: str, base_url: str) -> list[Link]:
    """Every <a href> resolved against base_url, in document order."""
    out: list[Link] = []
    for a in _soup(markup).find_all("a", href=True):
        href = (a.get("href") or "").strip()
        if not href or href.lower().startswith(_SKIP_SCHEMES):
            continue
        try:
            url = urljoin(base_url, href)
        except ValueError:
            continue
        for tag in a(_INVISIBLE_TAGS):
            tag.decompose()
        text = collapse_ws(a.get_text(" "))[:LINK_TEXT_CHARS]
        out.append(Link(url=url, text=text))
    return out


def extract_title(markup: str) -> str:
    title = _soup(markup).find("title")
    if title is None:
        return ""
    return collapse_ws(title.get_text(" "))[:TITLE_CHARS]


def parse_sitemap_urls(xml: str) -> list[str]:
    """Normalized <loc> entries of a sitemap or sitemap index."""
    urls: list[str] = []
    for loc in _soup(xml).find_all("loc"):
        n = normalize_url(collapse_ws(loc.get_text(" ")))
        if n:
            urls.append(n)
    return urls
