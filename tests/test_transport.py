from unittest.mock import AsyncMock

import httpx
import pytest

from npov_classifier.config import settings
from npov_classifier.core.errors import RateLimitExceeded
from npov_classifier.wiki.transport import ResponseCache, WikiTransport, request_key

API = "https://wiki.test/w/api.php"


def scripted(responses):
    """Replay ``responses`` (status, kwargs) in order; the last one repeats."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status, kwargs = responses[min(len(calls), len(responses)) - 1]
        return httpx.Response(status, **kwargs)

    return httpx.MockTransport(handler), calls


def make_transport(mock, sleep=None, cache=None):
    return WikiTransport(
        api_url=API,
        cache=cache,
        wait_seconds=10,
        max_retries=3,
        transport=mock,
        sleep=sleep or AsyncMock(),
    )


def test_request_key_ignores_parameter_order():
    assert request_key(API, {"a": 1, "b": "x"}) == request_key(API, {"b": "x", "a": 1})


@pytest.mark.asyncio
async def test_cache_hit_skips_network():
    mock, calls = scripted([(200, {"json": {"ok": True}})])
    cache = ResponseCache()
    transport = make_transport(mock, cache=cache)

    first = await transport.get_json({"action": "query", "titles": "Foo"})
    second = await transport.get_json({"titles": "Foo", "action": "query"})

    assert first == second == {"ok": True}
    assert len(calls) == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_shared_cache_across_transports():
    mock, calls = scripted([(200, {"json": {"n": 1}})])
    cache = ResponseCache()

    await make_transport(mock, cache=cache).get_json({"titles": "Foo"})
    await make_transport(mock, cache=cache).get_json({"titles": "Foo"})

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_separate_caches_are_isolated():
    mock, calls = scripted([(200, {"json": {"n": 1}})])

    await make_transport(mock).get_json({"titles": "Foo"})
    await make_transport(mock).get_json({"titles": "Foo"})

    assert len(calls) == 2


def test_cache_evicts_least_recently_used_entry():
    cache = ResponseCache(max_entries=2)
    cache.set("a", {"n": 1})
    cache.set("b", {"n": 2})
    assert cache.get("a") == {"n": 1}

    cache.set("c", {"n": 3})

    assert len(cache) == 2
    assert "b" not in cache
    assert "a" in cache and "c" in cache


def test_cache_size_defaults_to_settings():
    assert ResponseCache().max_entries == settings.response_cache_max_entries


def test_cache_rejects_non_positive_size():
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)


@pytest.mark.asyncio
async def test_evicted_entry_is_fetched_again():
    mock, calls = scripted([(200, {"json": {"ok": True}})])
    transport = make_transport(mock, cache=ResponseCache(max_entries=1))

    await transport.get_json({"titles": "Foo"})
    await transport.get_json({"titles": "Bar"})
    await transport.get_json({"titles": "Foo"})

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_rate_limit_waits_then_succeeds():
    mock, calls = scripted([
        (429, {}),
        (429, {}),
        (200, {"json": {"done": 1}}),
    ])
    sleep = AsyncMock()

    data = await make_transport(mock, sleep=sleep).get_json({"titles": "Foo"})

    assert data == {"done": 1}
    assert len(calls) == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(10)


@pytest.mark.asyncio
async def test_rate_limit_budget_exhausted():
    mock, calls = scripted([(429, {})])
    sleep = AsyncMock()
    cache = ResponseCache()

    with pytest.raises(RateLimitExceeded):
        await make_transport(mock, sleep=sleep, cache=cache).get_json({"titles": "Foo"})

    assert len(calls) == 4
    assert sleep.await_count == 3
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_other_http_errors_are_not_retried():
    mock, calls = scripted([(500, {})])
    sleep = AsyncMock()

    with pytest.raises(httpx.HTTPStatusError):
        await make_transport(mock, sleep=sleep).get_json({"titles": "Foo"})

    assert len(calls) == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_undecodable_body_propagates():
    mock, calls = scripted([(200, {"content": b"<html>not json</html>"})])

    with pytest.raises(ValueError):
        await make_transport(mock).get_json({"titles": "Foo"})

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_user_agent_header_is_sent():
    mock, calls = scripted([(200, {"json": {}})])
    await make_transport(mock).get_json({"titles": "Foo"})
    assert calls[0].headers["User-Agent"] == settings.user_agent
