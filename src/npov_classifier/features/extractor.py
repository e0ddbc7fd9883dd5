"""
Feature Assembler

Builds one FeatureRecord per revision URL from the article's edit history,
the subject revision's diff and the revert-risk score of its author.

Any failure other than the revert-risk lookup propagates to the caller and
aborts extraction for that revision only.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from .models import FeatureRecord, Revision
from .statistics import average_gap, differences, distribution_statistics
from ..config import settings
from ..scoring.revert_risk import RevertRiskScorer
from ..wiki.history import RevisionHistoryFetcher
from ..wiki.transport import ResponseCache, WikiTransport

logger = logging.getLogger("npov.features")

RiskBinding = Literal["user_id", "revision_id"]


def _chronological_gaps(revisions_newest_first: List[Revision]) -> List[float]:
    timestamps = [revision.timestamp for revision in reversed(revisions_newest_first)]
    return differences(timestamps)


def _ratio(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return float("nan")
    return numerator / denominator


class FeatureExtractor:
    """
    Orchestrates history fetching, statistics and risk scoring.
    """

    def __init__(
        self,
        history: RevisionHistoryFetcher,
        revert_risk: RevertRiskScorer,
        risk_binding: Optional[RiskBinding] = None,
    ) -> None:
        """
        Parameters
        ----------
        history : RevisionHistoryFetcher
            Source of the article's edit timeline.

        revert_risk : RevertRiskScorer
            Best-effort revert-risk client.

        risk_binding : Optional[RiskBinding]
            Identifier passed to the revert-risk model: the author's user id
            (the behaviour existing feature tables were built with) or the
            subject revision id. Defaults to settings.revert_risk_binding.
        """
        self._history = history
        self._revert_risk = revert_risk
        self._risk_binding = risk_binding or settings.revert_risk_binding

    async def extract(self, revision_url: str) -> FeatureRecord:
        """
        Return the feature record of the revision at ``revision_url``.

        ``pastRevisionsCount`` includes the subject revision itself.
        """
        logger.info("Extracting features for revision URL: %s", revision_url)

        past_revisions = await self._history.fetch_history(revision_url)
        this_revision = past_revisions[0]

        user_revisions = [
            revision for revision in past_revisions
            if revision.user_id == this_revision.user_id
        ]

        revisions_stats = distribution_statistics(
            "timeBetweenRevisions", _chronological_gaps(past_revisions)
        )
        user_revisions_stats = distribution_statistics(
            "timeBetweenUserRevisions", _chronological_gaps(user_revisions)
        )

        risk_key = (
            this_revision.revision_id
            if self._risk_binding == "revision_id"
            else this_revision.user_id
        )
        revert_risk_score = await self._revert_risk.score(risk_key)

        past_revisions_count = len(past_revisions)
        authored_by_user = len(user_revisions)

        record = FeatureRecord.model_validate(
            {
                "revisionUrl": revision_url,
                "authorUserName": this_revision.user_name,
                "pastRevisionsCount": past_revisions_count,
                "averageTimeBetweenRevisions": average_gap(
                    [revision.timestamp for revision in past_revisions]
                ),
                "pastRevisionsAuthoredByUser": authored_by_user,
                "revertRiskModelScore": revert_risk_score,
                "percPastRevisionsAuthored": _ratio(authored_by_user, past_revisions_count),
                "averageTimeBetweenUserAuthoredRevisions": average_gap(
                    [revision.timestamp for revision in user_revisions]
                ),
                "diffText": this_revision.diff,
                **revisions_stats,
                **user_revisions_stats,
            }
        )
        logger.debug("Features: %s", record.to_row())
        return record


def create_extractor(cache: Optional[ResponseCache] = None) -> FeatureExtractor:
    """Wire a FeatureExtractor from settings, sharing one response cache."""
    transport = WikiTransport(cache=cache)
    return FeatureExtractor(
        history=RevisionHistoryFetcher(transport),
        revert_risk=RevertRiskScorer(),
    )
