"""
Revision and article locators.

Canonical URL forms used throughout the pipeline:

    revision:  {base}/w/index.php?title=<Title>&oldid=<revid>
    article:   {base}/wiki/<Title>
    diff:      {base}/w/index.php?title=<Title>&type=revision&diff=<revid>&oldid=<previd>
"""

from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import parse_qs, quote, unquote, urlparse

from ..config import settings
from ..core.errors import InvalidLocator


def parse_revision_locator(url: str) -> Tuple[str, Optional[int]]:
    """
    Return ``(title, oldid)`` from a revision URL.

    ``oldid`` is None when the URL does not pin a revision.

    Raises
    ------
    InvalidLocator
        If the ``title`` query parameter is missing or ``oldid`` is not numeric.
    """
    query = parse_qs(urlparse(url).query)

    titles = query.get("title")
    if not titles or not titles[0].strip():
        raise InvalidLocator(f"Invalid revision URL: missing title parameter: {url}")
    title = titles[0]

    oldids = query.get("oldid")
    if not oldids:
        return title, None
    try:
        return title, int(oldids[0])
    except ValueError as exc:
        raise InvalidLocator(f"Invalid revision URL: non-numeric oldid: {url}") from exc


def title_from_article_url(url: str) -> str:
    """Return the page title from an article URL (everything after ``/wiki/``)."""
    path = urlparse(url).path.rstrip("/")
    if "/wiki/" in path:
        segment = path.split("/wiki/", 1)[1]
    else:
        segment = path.split("/")[-1]
    if not segment:
        raise InvalidLocator(f"Invalid article URL: missing page title: {url}")
    return unquote(segment)


def revision_url(title: str, revid: int, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.wiki_base_url).rstrip("/")
    return f"{base}/w/index.php?title={quote(title)}&oldid={revid}"


def article_url(title: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.wiki_base_url).rstrip("/")
    return f"{base}/wiki/{quote(title)}"


def diff_url(
    title: str,
    revid: int,
    previd: Optional[int],
    base_url: Optional[str] = None,
) -> str:
    """Diff page for ``revid`` against ``previd``; empty string without a predecessor."""
    if previd is None:
        return ""
    base = (base_url or settings.wiki_base_url).rstrip("/")
    return (
        f"{base}/w/index.php?title={quote(title)}"
        f"&type=revision&diff={revid}&oldid={previd}"
    )
