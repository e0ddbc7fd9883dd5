import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx
import pytest

from npov_classifier.features.models import FeatureRecord


def iso(seconds: float) -> str:
    """Epoch seconds -> MediaWiki API timestamp."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def history_page(title: str, revisions: List[dict], rvcontinue: Optional[str] = None) -> dict:
    payload = {
        "batchcomplete": "",
        "query": {"pages": {"123": {"pageid": 123, "ns": 0, "title": title, "revisions": revisions}}},
    }
    if rvcontinue:
        payload["continue"] = {"rvcontinue": rvcontinue, "continue": "||"}
    return payload


def rev(revid: int, seconds: float, user: str = "Alice", userid: int = 7) -> dict:
    return {"revid": revid, "parentid": revid - 1, "user": user, "userid": userid, "timestamp": iso(seconds)}


def compare_payload(body: str) -> dict:
    return {"compare": {"fromid": 123, "fromrevid": 1, "torevid": 2, "*": body}}


class FakeWikiApi:
    """
    Serves canned Action API responses keyed by request shape and records
    every request it receives.
    """

    def __init__(self) -> None:
        self.history: Dict[Optional[str], dict] = {}
        self.diffs: Dict[str, dict] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        if params.get("action") == "compare":
            payload = self.diffs.get(params.get("fromrev"))
            if payload is None:
                return httpx.Response(404, json={"error": "nosuchrevid"})
            return httpx.Response(200, json=payload)
        if params.get("action") == "query" and params.get("prop") == "revisions":
            payload = self.history.get(params.get("rvstartid"))
            if payload is None:
                return httpx.Response(404, json={"error": "nosuchpage"})
            return httpx.Response(200, json=payload)
        return httpx.Response(400, json={"error": "unsupported"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_wiki() -> FakeWikiApi:
    return FakeWikiApi()


def risk_transport(responses: List[tuple], seen: Optional[list] = None) -> httpx.MockTransport:
    """POST endpoint replaying ``(status, json_body)`` pairs in order; the last one repeats."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def make_record(**overrides) -> FeatureRecord:
    values = {
        "revisionUrl": "https://en.wikipedia.org/w/index.php?title=Foo&oldid=3",
        "authorUserName": "Alice",
        "pastRevisionsCount": 3,
        "averageTimeBetweenRevisions": 250 / 3,
        "pastRevisionsAuthoredByUser": 3,
        "revertRiskModelScore": 0.25,
        "percPastRevisionsAuthored": 1.0,
        "averageTimeBetweenUserAuthoredRevisions": 250 / 3,
        "diffText": "@@ -1 +1 @@\n-a\n+b\n",
        "timeBetweenRevisionsAverage": 125.0,
        "timeBetweenRevisionsMedian": 150.0,
        "timeBetweenRevisionsQ1": 100.0,
        "timeBetweenRevisionsQ3": 150.0,
        "timeBetweenRevisionsStdDev": 25.0,
        "timeBetweenUserRevisionsAverage": 125.0,
        "timeBetweenUserRevisionsMedian": 150.0,
        "timeBetweenUserRevisionsQ1": 100.0,
        "timeBetweenUserRevisionsQ3": 150.0,
        "timeBetweenUserRevisionsStdDev": 25.0,
    }
    values.update(overrides)
    return FeatureRecord.model_validate(values)
