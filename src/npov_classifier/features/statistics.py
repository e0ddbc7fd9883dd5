"""
Distribution statistics over numeric samples.

Median and quartiles use positional floor indexing into the sorted sample
(``n // 2``, ``n // 4``, ``3 * n // 4``) with no interpolation, and the
standard deviation is the population one (divide by ``n``). Existing feature
tables were produced with exactly these rules.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Sequence

logger = logging.getLogger("npov.features")

STAT_SUFFIXES = ("Average", "Median", "Q1", "Q3", "StdDev")


def differences(values: Sequence[float]) -> list[float]:
    """Pairwise differences ``values[i + 1] - values[i]``."""
    return [after - before for before, after in zip(values, values[1:])]


def distribution_statistics(base_name: str, sample: Sequence[float]) -> Dict[str, float]:
    """
    Return ``{base}Average``, ``{base}Median``, ``{base}Q1``, ``{base}Q3`` and
    ``{base}StdDev`` for ``sample``.

    The caller's sequence is never reordered. An empty sample yields NaN for
    every field instead of raising.
    """
    n = len(sample)
    if n == 0:
        stats = {f"{base_name}{suffix}": math.nan for suffix in STAT_SUFFIXES}
        logger.debug("Distribution statistics for %s: %s", base_name, stats)
        return stats

    ordered = sorted(sample)
    average = math.fsum(ordered) / n
    variance = math.fsum((value - average) ** 2 for value in ordered) / n

    stats = {
        f"{base_name}Average": average,
        f"{base_name}Median": float(ordered[n // 2]),
        f"{base_name}Q1": float(ordered[n // 4]),
        f"{base_name}Q3": float(ordered[(n * 3) // 4]),
        f"{base_name}StdDev": math.sqrt(variance),
    }
    logger.debug("Distribution statistics for %s: %s", base_name, stats)
    return stats


def average_gap(timestamps_newest_first: Sequence[float]) -> float:
    """
    Sum of the gaps between consecutive timestamps divided by the number of
    timestamps (not the number of gaps). Zero for fewer than two timestamps.
    """
    n = len(timestamps_newest_first)
    if n < 2:
        return 0.0
    total = math.fsum(
        newer - older
        for newer, older in zip(timestamps_newest_first, timestamps_newest_first[1:])
    )
    return total / n
