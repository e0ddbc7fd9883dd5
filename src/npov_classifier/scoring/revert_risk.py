"""
Revert Risk Scorer

Client for the LiftWing ``revertrisk-language-agnostic`` model, which
estimates the probability that an edit will be reverted.

The score is an auxiliary feature: failures degrade to a default score and
never abort feature extraction. Responses are not cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..config import settings

logger = logging.getLogger("npov.revert_risk")

DEFAULT_SCORE = 0.0


class RevertRiskScorer:
    """
    Best-effort revert-risk client with a fixed attempt budget.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        language: Optional[str] = None,
        max_attempts: Optional[int] = None,
        wait_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_url = api_url or str(settings.revert_risk_url)
        self.language = language or settings.wiki_language
        self.max_attempts = (
            settings.revert_risk_max_attempts if max_attempts is None else max_attempts
        )
        self.wait_seconds = (
            settings.rate_limit_wait_seconds if wait_seconds is None else wait_seconds
        )
        self.timeout = timeout or settings.http_timeout
        self._transport = transport
        self._sleep = sleep

    async def score(self, rev_id: int) -> float:
        """
        Return the probability in [0, 1] that ``rev_id`` gets reverted.

        Transient failures (HTTP 429, 5xx, transport errors, malformed
        responses) are each followed by a fixed wait and retried. A 4xx
        answer other than 429 means the request itself is rejected and
        returns the default score immediately, as does exhausting every
        attempt.
        """
        payload = {"rev_id": rev_id, "lang": self.language}

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport,
                    headers={"User-Agent": settings.user_agent},
                ) as client:
                    resp = await client.post(self.api_url, json=payload)

                if resp.status_code == 429:
                    logger.warning(
                        "Rate limit exceeded (attempt %d/%d). Waiting for %s seconds...",
                        attempt,
                        self.max_attempts,
                        self.wait_seconds,
                    )
                elif 400 <= resp.status_code < 500:
                    logger.error(
                        "Revert risk request for %s rejected with HTTP %d; using %s",
                        rev_id,
                        resp.status_code,
                        DEFAULT_SCORE,
                    )
                    return DEFAULT_SCORE
                else:
                    resp.raise_for_status()
                    return self._extract_probability(resp.json())
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                logger.warning(
                    "Error fetching revert risk score for %s (attempt %d/%d): %s",
                    rev_id,
                    attempt,
                    self.max_attempts,
                    exc,
                )

            await self._sleep(self.wait_seconds)

        logger.error(
            "Failed to fetch revert risk score for %s after %d attempts; using %s",
            rev_id,
            self.max_attempts,
            DEFAULT_SCORE,
        )
        return DEFAULT_SCORE

    @staticmethod
    def _extract_probability(data: Any) -> float:
        """
        Parse ``{"output": {"probabilities": {"true": p}}}``.

        Raises
        ------
        ValueError
            If the probability is missing or outside [0, 1].
        """
        probability = float(data["output"]["probabilities"]["true"])
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"Revert risk probability out of range: {probability}")
        return probability
