"""
Revision History Fetcher

Walks the paginated ``prop=revisions`` listing of an article and returns its
edit history newest-first, ending with the oldest revision.

Pagination is an explicit loop: each page's continuation cursor is only known
once the previous page has arrived, so pages are fetched sequentially.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .diffs import DiffRetriever
from .locators import (
    article_url,
    diff_url,
    parse_revision_locator,
    revision_url,
    title_from_article_url,
)
from .transport import WikiTransport
from ..config import settings
from ..core.errors import UpstreamShapeError
from ..features.models import ArticleMetadata, Revision, RevisionListRow

logger = logging.getLogger("npov.history")


def parse_timestamp(value: str) -> float:
    """Convert an API timestamp (``2024-01-31T12:00:00Z``) to epoch seconds."""
    return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()


def next_start_id(data: Dict[str, Any]) -> Optional[int]:
    """
    Return the revision id the next page starts at, or None on the last page.

    ``rvcontinue`` has the form ``<timestamp>|<revid>``.
    """
    cursor = data.get("continue", {}).get("rvcontinue")
    if not cursor:
        return None
    try:
        return int(cursor.split("|")[1])
    except (IndexError, ValueError) as exc:
        raise UpstreamShapeError(f"Malformed continuation cursor: {cursor!r}") from exc


def _single_page(data: Any, title: str) -> Dict[str, Any]:
    if not isinstance(data, dict) or "query" not in data or "pages" not in data["query"]:
        raise UpstreamShapeError(f"Unexpected API response structure for {title}")

    pages = data["query"]["pages"]
    if isinstance(pages, dict):
        pages = list(pages.values())
    if not pages:
        raise UpstreamShapeError(f"Unexpected API response structure for {title}")
    return pages[0]


class RevisionHistoryFetcher:
    """
    Reconstructs article edit timelines from the MediaWiki Action API.
    """

    def __init__(
        self,
        transport: WikiTransport,
        diffs: Optional[DiffRetriever] = None,
        fetch_all_diffs: Optional[bool] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        transport : WikiTransport
            Cached, rate-limited API transport.

        diffs : Optional[DiffRetriever]
            Diff client. Built on the same transport when omitted.

        fetch_all_diffs : Optional[bool]
            Populate ``diff`` on every revision instead of only the newest.
            Defaults to settings.fetch_all_diffs.
        """
        self._transport = transport
        self._diffs = diffs or DiffRetriever(transport)
        self._fetch_all_diffs = (
            settings.fetch_all_diffs if fetch_all_diffs is None else fetch_all_diffs
        )
        self._base_url = base_url or settings.wiki_base_url

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_history(self, revision_url: str) -> List[Revision]:
        """
        Return the article's history up to and including the subject revision.

        Index 0 is the subject revision (or the latest one when the locator
        does not pin an ``oldid``); the last element is the oldest revision.
        The subject revision carries its diff text.

        Raises
        ------
        InvalidLocator
            If the locator has no title.

        UpstreamShapeError
            If a page of the response lacks the expected structure.
        """
        title, oldid = parse_revision_locator(revision_url)

        raw_revisions = await self._fetch_all_pages(
            title,
            rvprop="ids|timestamp|user|userid",
            start_id=oldid,
        )
        if not raw_revisions:
            raise UpstreamShapeError(f"No revisions returned for {title}")

        revisions: List[Revision] = []
        for raw in raw_revisions:
            diff = None
            if self._fetch_all_diffs:
                diff = await self._diffs.fetch_diff(raw["revid"])
            revisions.append(self._to_revision(title, raw, diff))

        if not self._fetch_all_diffs:
            newest_diff = await self._diffs.fetch_diff(revisions[0].revision_id)
            revisions[0] = revisions[0].model_copy(update={"diff": newest_diff})

        logger.info("Fetched %d revisions of %s", len(revisions), title)
        return revisions

    async def list_article_revisions(
        self,
        article: str,
        limit: Optional[int] = 500,
    ) -> List[RevisionListRow]:
        """
        Return revision list rows for an article URL, newest-first.

        Each row's ``diffUrl`` points at the diff against the next older
        revision; the article's first revision has an empty ``diffUrl``.
        """
        title = title_from_article_url(article)
        # One extra revision so the last listed row still has a predecessor
        raw_revisions = await self._fetch_all_pages(
            title,
            rvprop="ids|timestamp",
            limit=None if limit is None else limit + 1,
        )
        listed = raw_revisions if limit is None else raw_revisions[:limit]

        rows: List[RevisionListRow] = []
        for index, raw in enumerate(listed):
            previous = raw_revisions[index + 1]["revid"] if index + 1 < len(raw_revisions) else None
            rows.append(
                RevisionListRow(
                    revision_url=revision_url(title, raw["revid"], self._base_url),
                    article_url=article,
                    diff_url=diff_url(title, raw["revid"], previous, self._base_url),
                )
            )
        return rows

    async def get_article_metadata(self, title: str) -> ArticleMetadata:
        """Return title, canonical URL and content length of an article."""
        params = {
            "action": "query",
            "prop": "info",
            "inprop": "url",
            "titles": title,
            "format": "json",
        }
        page = _single_page(await self._transport.get_json(params), title)
        try:
            return ArticleMetadata(
                title=page["title"],
                canonical_url=page["fullurl"],
                content_length=page["length"],
            )
        except KeyError as exc:
            raise UpstreamShapeError(f"Missing article metadata field {exc} for {title}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_all_pages(
        self,
        title: str,
        rvprop: str,
        start_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Accumulate raw revision dicts over all pages, newest-first."""
        collected: List[Dict[str, Any]] = []
        cursor = start_id

        while True:
            params: Dict[str, Any] = {
                "action": "query",
                "prop": "revisions",
                "rvprop": rvprop,
                "rvlimit": "max",
                "titles": title,
                "format": "json",
            }
            if cursor is not None:
                params["rvstartid"] = cursor

            logger.debug("Fetching revisions of %s starting at %s", title, cursor)
            data = await self._transport.get_json(params)
            page = _single_page(data, title)
            if "revisions" not in page:
                raise UpstreamShapeError(f"Unexpected API response structure for {title}")

            collected.extend(page["revisions"])
            if limit is not None and len(collected) >= limit:
                return collected[:limit]

            cursor = next_start_id(data)
            if cursor is None:
                return collected

    def _to_revision(self, title: str, raw: Dict[str, Any], diff: Optional[str]) -> Revision:
        try:
            return Revision(
                revision_id=raw["revid"],
                revision_url=revision_url(title, raw["revid"], self._base_url),
                article_url=article_url(title, self._base_url),
                user_name=raw.get("user", ""),
                user_id=raw.get("userid", 0),
                timestamp=parse_timestamp(raw["timestamp"]),
                diff=diff,
            )
        except KeyError as exc:
            raise UpstreamShapeError(f"Revision of {title} missing field {exc}") from exc
