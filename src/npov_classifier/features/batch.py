"""
Batch runner for concurrent feature extraction.

Items are processed in fixed-size batches: all members of a batch run
concurrently, and the next batch starts only once the whole batch is done.
Results keep the input order. An ``on_batch`` callback runs after every
batch so callers can persist progress incrementally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from .extractor import FeatureExtractor
from .models import FeatureRecord
from ..config import settings

logger = logging.getLogger("npov.batch")

T = TypeVar("T")
R = TypeVar("R")

BatchCallback = Callable[[int, Sequence[T], List[R]], Awaitable[None]]


def batched(items: Sequence[T], batch_size: int) -> List[Sequence[T]]:
    """Split ``items`` into consecutive slices of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1.")
    return [items[start : start + batch_size] for start in range(0, len(items), batch_size)]


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: Optional[int] = None,
    on_batch: Optional[BatchCallback] = None,
) -> List[R]:
    """
    Apply ``worker`` to every item, ``batch_size`` items at a time.

    Every member of a batch runs to completion before the first exception
    (in input order) raised inside it propagates. No later batch is started;
    results of earlier batches have already reached ``on_batch``.
    """
    size = batch_size or settings.batch_size
    results: List[R] = []
    done = 0

    for index, batch in enumerate(batched(items, size)):
        outcomes = await asyncio.gather(
            *(worker(item) for item in batch), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        batch_results = list(outcomes)
        results.extend(batch_results)
        done += len(batch)

        if on_batch is not None:
            await on_batch(index, batch, batch_results)

        logger.info("=> %.1f%% complete (%d/%d)", done / len(items) * 100, done, len(items))

    return results


async def extract_many(
    extractor: FeatureExtractor,
    revision_urls: Sequence[str],
    batch_size: Optional[int] = None,
    on_batch: Optional[BatchCallback] = None,
) -> List[FeatureRecord]:
    """Extract feature records for ``revision_urls`` in input order."""
    logger.info("Extracting features from %d revisions...", len(revision_urls))
    return await run_in_batches(
        revision_urls,
        extractor.extract,
        batch_size=batch_size,
        on_batch=on_batch,
    )
