"""
Wiki Package

Clients for the MediaWiki Action API: the cached, rate-limited transport,
the revision history fetcher and the diff retriever.
"""

from .transport import ResponseCache, WikiTransport
from .history import RevisionHistoryFetcher
from .diffs import DiffRetriever, extract_unified_diff

__all__ = [
    "ResponseCache",
    "WikiTransport",
    "RevisionHistoryFetcher",
    "DiffRetriever",
    "extract_unified_diff",
]
