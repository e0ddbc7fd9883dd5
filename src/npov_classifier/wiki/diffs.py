"""
Diff Retriever

Fetches the unified diff of a revision against its immediate predecessor
through ``action=compare`` and extracts it from the HTML wrapper.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from .locators import parse_revision_locator
from .transport import WikiTransport
from ..core.errors import InvalidLocator, UnexpectedFormat, UpstreamShapeError

logger = logging.getLogger("npov.diffs")

_PRE_OPEN = re.compile(r"<pre>")
_PRE_BLOCK = re.compile(r"<pre>([\s\S]*?)</pre>")


def extract_unified_diff(payload: str) -> str:
    """
    Return the inner text of the single ``<pre>`` block in ``payload``.

    Raises
    ------
    UnexpectedFormat
        If the payload holds zero or several ``<pre>`` blocks.
    """
    count = len(_PRE_OPEN.findall(payload))
    if count != 1:
        logger.debug("Diff payload with %d <pre> blocks: %r", count, payload)
        raise UnexpectedFormat(
            f"Unexpected diff format: expected exactly one <pre> block, found {count}"
        )

    match = _PRE_BLOCK.search(payload)
    if match is None:
        raise UnexpectedFormat("Unexpected diff format: unterminated <pre> block")
    return match.group(1)


class DiffRetriever:
    """Unified-diff client backed by a shared WikiTransport."""

    def __init__(self, transport: WikiTransport) -> None:
        self._transport = transport

    async def fetch_diff(self, revision_id: int) -> str:
        """
        Return the unified diff of ``revision_id`` against the previous revision.

        Raises
        ------
        UpstreamShapeError
            If the response has no ``compare`` body.

        UnexpectedFormat
            If the body does not contain exactly one diff block.
        """
        params: Dict[str, Any] = {
            "action": "compare",
            "fromrev": revision_id,
            "torelative": "prev",
            "prop": "diff",
            "difftype": "unified",
            "format": "json",
        }
        logger.info("Fetching diff for revision %s", revision_id)
        data = await self._transport.get_json(params)

        compare = data.get("compare") if isinstance(data, dict) else None
        if not isinstance(compare, dict) or not isinstance(compare.get("*"), str):
            raise UpstreamShapeError(
                f"Unexpected API response structure for diff request for {revision_id}"
            )

        return extract_unified_diff(compare["*"])

    async def fetch_diff_from_url(self, revision_url: str) -> str:
        """
        Return the diff for the revision a locator points at.

        Raises
        ------
        InvalidLocator
            If the locator lacks a title or an ``oldid``.
        """
        _, oldid = parse_revision_locator(revision_url)
        if oldid is None:
            raise InvalidLocator(
                f"Invalid revision URL: missing oldid parameter: {revision_url}"
            )
        return await self.fetch_diff(oldid)
