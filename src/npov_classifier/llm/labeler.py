"""
LLM Labeler Comparison

Asks a chat model to classify each human-labelled diff and measures how often
the model agrees with the human label. LLM labels are used for comparison
only, never for training.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from .client import LLMClient
from ..core.errors import LabelParseError, NPOVError
from ..features.batch import BatchCallback, run_in_batches
from ..features.models import Label, LabelRecord

logger = logging.getLogger("npov.llm")

SYSTEM_PROMPT = (
    "You are a classifier that decides whether a wikipedia change is NPOV "
    "increasing, NPOV decreasing or neutral"
)


def build_prompt(diff_text: str) -> str:
    return (
        "According to the wikipedia definition of NPOV, classify the following diff "
        'as either "INCREASES npov", "DECREASES npov" or "DOES NOT AFFECT npov"\n'
        "Answer only with the classification label and nothing else.\n\n"
        f"Text: {diff_text}\n\n"
        "Classification: "
    )


class LLMLabeler:
    def __init__(self, client: Optional[LLMClient] = None) -> None:
        self._client = client or LLMClient()

    async def classify(self, diff_text: str) -> str:
        """Return the model's answer for ``diff_text`` verbatim."""
        logger.info("Classifying diff...")
        return await self._client.chat(
            SYSTEM_PROMPT,
            [{"role": "user", "content": build_prompt(diff_text)}],
            temperature=0.0,
        )


# ---------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------

@dataclass
class ComparisonRow:
    revision_url: str
    label: Label
    llm_raw: str
    llm_label: Optional[Label]
    # Set when the diff or the LLM answer could not be obtained
    error: Optional[str] = None

    @property
    def agrees(self) -> bool:
        return self.llm_label is self.label

    def to_row(self) -> Dict[str, object]:
        return {
            "revisionUrl": self.revision_url,
            "label": self.label.value,
            "llmLabel": self.llm_label.value if self.llm_label else "",
            "llmRaw": f"error: {self.error}" if self.error else self.llm_raw,
            "agrees": self.agrees,
        }


@dataclass
class ComparisonSummary:
    total: int = 0
    agreed: int = 0
    unparseable: int = 0
    failed: int = 0
    # confusion[human label][llm label, "UNPARSEABLE" or "FAILED"]
    confusion: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def agreement_rate(self) -> float:
        return self.agreed / self.total if self.total else 0.0


def summarize(rows: Sequence[ComparisonRow]) -> ComparisonSummary:
    summary = ComparisonSummary(total=len(rows))
    for row in rows:
        if row.error:
            predicted = "FAILED"
            summary.failed += 1
        elif row.llm_label is None:
            predicted = "UNPARSEABLE"
            summary.unparseable += 1
        else:
            predicted = row.llm_label.value
        bucket = summary.confusion.setdefault(row.label.value, {})
        bucket[predicted] = bucket.get(predicted, 0) + 1
        if row.agrees:
            summary.agreed += 1
    return summary


async def compare_labels(
    labels: Sequence[LabelRecord],
    labeler: LLMLabeler,
    diff_lookup: Callable[[str], Awaitable[str]],
    batch_size: Optional[int] = None,
    on_batch: Optional[BatchCallback] = None,
) -> List[ComparisonRow]:
    """
    Classify the diff behind every labelled revision with the LLM.

    ``diff_lookup`` resolves a revision URL to its diff text. Rows keep the
    order of ``labels``. A revision whose diff or LLM answer cannot be
    obtained yields a row with ``error`` set instead of aborting the run.
    """

    async def _compare_one(record: LabelRecord) -> ComparisonRow:
        try:
            diff_text = await diff_lookup(record.revision_url)
            raw = await labeler.classify(diff_text)
        except (NPOVError, httpx.HTTPError) as exc:
            logger.error("Could not compare %s: %s", record.revision_url, exc)
            return ComparisonRow(
                revision_url=record.revision_url,
                label=record.label,
                llm_raw="",
                llm_label=None,
                error=str(exc) or type(exc).__name__,
            )

        try:
            parsed: Optional[Label] = Label.parse(raw)
        except LabelParseError:
            logger.warning("Unparseable LLM label for %s: %r", record.revision_url, raw)
            parsed = None
        return ComparisonRow(
            revision_url=record.revision_url,
            label=record.label,
            llm_raw=raw,
            llm_label=parsed,
        )

    return await run_in_batches(
        list(labels), _compare_one, batch_size=batch_size, on_batch=on_batch
    )
