import math
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import make_record
from npov_classifier.api.dependencies import get_extractor
from npov_classifier.core.errors import InvalidLocator, RateLimitExceeded, UnexpectedFormat
from npov_classifier.features.extractor import FeatureExtractor
from npov_classifier.main import app


@pytest.fixture
def mock_extractor():
    mock = AsyncMock(spec=FeatureExtractor)
    mock.extract.side_effect = lambda url: make_record(revisionUrl=url)
    return mock


@pytest.fixture
def client(mock_extractor):
    app.dependency_overrides[get_extractor] = lambda: mock_extractor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = {}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_extract_single_revision(client, mock_extractor):
    url = "https://en.wikipedia.org/w/index.php?title=Foo&oldid=3"

    resp = client.post("/features", json={"revision_url": url})

    assert resp.status_code == 200
    data = resp.json()
    assert data["revisionUrl"] == url
    assert data["pastRevisionsCount"] == 3
    assert data["timeBetweenRevisionsStdDev"] == 25.0
    mock_extractor.extract.assert_awaited_once_with(url)


def test_nan_fields_are_returned_as_null(client, mock_extractor):
    mock_extractor.extract.side_effect = None
    mock_extractor.extract.return_value = make_record(timeBetweenUserRevisionsAverage=math.nan)

    resp = client.post("/features", json={"revision_url": "https://en.wikipedia.org/w/index.php?title=Foo&oldid=3"})

    assert resp.status_code == 200
    assert resp.json()["timeBetweenUserRevisionsAverage"] is None


def test_batch_preserves_order(client, mock_extractor):
    urls = [f"https://en.wikipedia.org/w/index.php?title=Foo&oldid={i}" for i in range(7)]

    resp = client.post("/features/batch", json={"revision_urls": urls})

    assert resp.status_code == 200
    assert [row["revisionUrl"] for row in resp.json()] == urls


def test_invalid_locator_is_422(client, mock_extractor):
    mock_extractor.extract.side_effect = InvalidLocator("Invalid revision URL: missing title parameter")

    resp = client.post("/features", json={"revision_url": "https://en.wikipedia.org/w/index.php?oldid=3"})

    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_locator"


def test_rate_limit_is_503(client, mock_extractor):
    mock_extractor.extract.side_effect = RateLimitExceeded("Maximum retries reached")

    resp = client.post("/features", json={"revision_url": "https://en.wikipedia.org/w/index.php?title=Foo&oldid=3"})

    assert resp.status_code == 503
    assert resp.json() == {"error": "rate_limit_exceeded"}


def test_unexpected_diff_format_is_502(client, mock_extractor):
    mock_extractor.extract.side_effect = UnexpectedFormat("two <pre> blocks")

    resp = client.post("/features", json={"revision_url": "https://en.wikipedia.org/w/index.php?title=Foo&oldid=3"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "unexpected_format"}


def test_request_validation(client):
    resp = client.post("/features", json={"revision_url": ""})
    assert resp.status_code == 422
