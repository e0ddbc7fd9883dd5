"""
Feature Data Models

Canonical records passed between the fetch layer, the feature assembler and
the tabular exports.

- Revision: one historical edit of one article
- FeatureRecord: one row of the training/evaluation dataset
- Label: the three-way NPOV classification target
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from ..core.errors import LabelParseError


# ---------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------

class Revision(BaseModel):
    """
    A single saved edit of an article.

    ``timestamp`` is the commit time in seconds since the epoch.
    """

    revision_id: int
    revision_url: str = Field(..., min_length=1)
    article_url: str = Field(..., min_length=1)
    user_name: str = ""
    user_id: int = 0
    timestamp: float
    diff: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ArticleMetadata(BaseModel):
    title: str
    canonical_url: str
    content_length: int = Field(..., ge=0)


class RevisionListRow(BaseModel):
    """Row of the revision list artifact handed to human labellers."""

    revision_url: str = Field(..., alias="revisionUrl")
    article_url: str = Field(..., alias="articleUrl")
    diff_url: str = Field("", alias="diffUrl")

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------
# Feature Record
# ---------------------------------------------------------------------

class FeatureRecord(BaseModel):
    """
    Fixed-schema feature vector for one revision.

    Field aliases are the column names of the feature table. The set and
    order of columns never depends on the size of the history; statistics
    over empty samples are NaN rather than missing.

    ``average_time_between_revisions`` duplicates
    ``time_between_revisions_average`` up to the divisor and is kept for
    compatibility with existing feature tables and trained models.
    """

    revision_url: str = Field(..., alias="revisionUrl")

    author_user_name: str = Field(..., alias="authorUserName")
    past_revisions_count: int = Field(..., ge=0, alias="pastRevisionsCount")
    average_time_between_revisions: float = Field(..., alias="averageTimeBetweenRevisions")
    past_revisions_authored_by_user: int = Field(..., ge=0, alias="pastRevisionsAuthoredByUser")
    revert_risk_model_score: float = Field(..., alias="revertRiskModelScore")
    perc_past_revisions_authored: float = Field(..., alias="percPastRevisionsAuthored")
    average_time_between_user_authored_revisions: float = Field(
        ..., alias="averageTimeBetweenUserAuthoredRevisions"
    )
    diff_text: Optional[str] = Field(None, alias="diffText")

    time_between_revisions_average: float = Field(..., alias="timeBetweenRevisionsAverage")
    time_between_revisions_median: float = Field(..., alias="timeBetweenRevisionsMedian")
    time_between_revisions_q1: float = Field(..., alias="timeBetweenRevisionsQ1")
    time_between_revisions_q3: float = Field(..., alias="timeBetweenRevisionsQ3")
    time_between_revisions_std_dev: float = Field(..., alias="timeBetweenRevisionsStdDev")

    time_between_user_revisions_average: float = Field(..., alias="timeBetweenUserRevisionsAverage")
    time_between_user_revisions_median: float = Field(..., alias="timeBetweenUserRevisionsMedian")
    time_between_user_revisions_q1: float = Field(..., alias="timeBetweenUserRevisionsQ1")
    time_between_user_revisions_q3: float = Field(..., alias="timeBetweenUserRevisionsQ3")
    time_between_user_revisions_std_dev: float = Field(..., alias="timeBetweenUserRevisionsStdDev")

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def columns(cls) -> List[str]:
        """Feature table header, ``revisionUrl`` first."""
        return [field.alias or name for name, field in cls.model_fields.items()]

    def to_row(self) -> Dict[str, Any]:
        """Return the record keyed by column name."""
        return self.model_dump(by_alias=True)

    def to_json_row(self) -> Dict[str, Any]:
        """Like to_row(), with NaN replaced by None so the row is valid JSON."""
        return {
            key: None if isinstance(value, float) and math.isnan(value) else value
            for key, value in self.to_row().items()
        }


# ---------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------

class Label(str, Enum):
    """NPOV effect of an edit, as authored by a human or an LLM labeler."""

    INCREASES = "INCREASES_NPOV"
    DECREASES = "DECREASES_NPOV"
    NO_EFFECT = "DOES_NOT_AFFECT_NPOV"

    @property
    def code(self) -> int:
        """Integer class used by the classifier."""
        return _LABEL_CODES[self]

    @classmethod
    def parse(cls, text: str) -> "Label":
        """
        Parse a label from its enum name, its value, or the free-text form
        an LLM answers with (``"INCREASES npov"``, ``"DOES NOT AFFECT npov"``).

        Raises
        ------
        LabelParseError
            If the text matches no label.
        """
        if not isinstance(text, str):
            raise LabelParseError(f"Label must be a string, got {text!r}")

        normalized = "_".join(text.strip().strip("\"'.").upper().split())
        if normalized in cls.__members__:
            return cls[normalized]

        for label in cls:
            if normalized == label.value:
                return label

        if normalized.startswith("DOES_NOT_AFFECT") or normalized.startswith("NO_EFFECT"):
            return cls.NO_EFFECT
        if normalized.startswith("INCREASES"):
            return cls.INCREASES
        if normalized.startswith("DECREASES"):
            return cls.DECREASES

        raise LabelParseError(f"Unknown NPOV label: {text!r}")


_LABEL_CODES = {
    Label.INCREASES: 1,
    Label.DECREASES: -1,
    Label.NO_EFFECT: 0,
}


class LabelRecord(BaseModel):
    revision_url: str = Field(..., alias="revisionUrl")
    label: Label

    model_config = ConfigDict(populate_by_name=True, frozen=True)
