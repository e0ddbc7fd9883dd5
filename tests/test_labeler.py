import json
from unittest.mock import AsyncMock

import httpx
import pytest

from npov_classifier.core.errors import InvalidLocator, LLMLabelerError
from npov_classifier.features.models import Label, LabelRecord
from npov_classifier.llm.client import LLMClient
from npov_classifier.llm.labeler import (
    SYSTEM_PROMPT,
    LLMLabeler,
    build_prompt,
    compare_labels,
    summarize,
)


def test_prompt_embeds_diff_and_label_vocabulary():
    prompt = build_prompt("+The best city in the world")
    assert "+The best city in the world" in prompt
    assert '"INCREASES npov"' in prompt
    assert '"DOES NOT AFFECT npov"' in prompt
    assert prompt.endswith("Classification: ")


@pytest.mark.asyncio
async def test_labeler_sends_fixed_prompt_at_zero_temperature():
    client = AsyncMock(spec=LLMClient)
    client.chat.return_value = "DECREASES npov"

    answer = await LLMLabeler(client).classify("+awesome")

    assert answer == "DECREASES npov"
    system_prompt, messages = client.chat.await_args.args
    assert system_prompt == SYSTEM_PROMPT
    assert messages == [{"role": "user", "content": build_prompt("+awesome")}]
    assert client.chat.await_args.kwargs["temperature"] == 0.0


@pytest.mark.asyncio
async def test_compare_labels_and_summary():
    answers = {
        "+neutral": "DOES NOT AFFECT npov",
        "+puffery": "INCREASES npov",
        "+???": "I cannot tell",
    }
    labeler = AsyncMock(spec=LLMLabeler)
    labeler.classify.side_effect = lambda diff: answers[diff]
    diffs = {"u1": "+neutral", "u2": "+puffery", "u3": "+???"}

    async def lookup(url):
        return diffs[url]

    labels = [
        LabelRecord(revision_url="u1", label=Label.NO_EFFECT),
        LabelRecord(revision_url="u2", label=Label.DECREASES),
        LabelRecord(revision_url="u3", label=Label.INCREASES),
    ]

    rows = await compare_labels(labels, labeler, lookup, batch_size=2)

    assert [row.revision_url for row in rows] == ["u1", "u2", "u3"]
    assert [row.agrees for row in rows] == [True, False, False]
    assert rows[2].llm_label is None
    assert rows[2].to_row()["llmLabel"] == ""
    assert rows[2].to_row()["llmRaw"] == "I cannot tell"

    summary = summarize(rows)
    assert summary.total == 3
    assert summary.agreed == 1
    assert summary.unparseable == 1
    assert summary.agreement_rate == pytest.approx(1 / 3)
    assert summary.confusion["DECREASES_NPOV"] == {"INCREASES_NPOV": 1}
    assert summary.confusion["INCREASES_NPOV"] == {"UNPARSEABLE": 1}


@pytest.mark.asyncio
async def test_failed_comparison_is_recorded_and_run_continues():
    labeler = AsyncMock(spec=LLMLabeler)

    async def classify(diff):
        if diff == "+diff-11":
            raise LLMLabelerError("429")
        return "DOES NOT AFFECT npov"

    labeler.classify.side_effect = classify

    async def lookup(url):
        if url == "u3":
            raise InvalidLocator("missing oldid")
        return "+diff-" + url[1:]

    labels = [LabelRecord(revision_url=f"u{i}", label=Label.NO_EFFECT) for i in range(12)]
    persisted = []

    async def on_batch(index, batch, rows):
        persisted.extend(row.to_row() for row in rows)

    rows = await compare_labels(labels, labeler, lookup, batch_size=5, on_batch=on_batch)

    assert len(rows) == 12
    assert len(persisted) == 12
    assert rows[11].error == "429"
    assert rows[11].to_row()["llmLabel"] == ""
    assert rows[11].to_row()["llmRaw"] == "error: 429"
    assert rows[3].error == "missing oldid"
    assert rows[0].agrees

    summary = summarize(rows)
    assert summary.failed == 2
    assert summary.unparseable == 0
    assert summary.agreed == 10
    assert summary.confusion["DOES_NOT_AFFECT_NPOV"] == {"DOES_NOT_AFFECT_NPOV": 10, "FAILED": 2}


def test_empty_summary():
    assert summarize([]).agreement_rate == 0.0


@pytest.mark.asyncio
async def test_llm_client_returns_message_content():
    seen = []

    def handler(request):
        seen.append((request.headers["Authorization"], json.loads(request.content)))
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "INCREASES npov"}}]})

    client = LLMClient(api_key="sk-test", model="gpt-test", api_url="https://llm.test/v1/chat", transport=httpx.MockTransport(handler))

    content = await client.chat("system", [{"role": "user", "content": "hi"}])

    assert content == "INCREASES npov"
    auth, payload = seen[0]
    assert auth == "Bearer sk-test"
    assert payload["model"] == "gpt-test"
    assert payload["messages"][0] == {"role": "system", "content": "system"}
    assert payload["temperature"] == 0.0


@pytest.mark.asyncio
async def test_llm_client_wraps_http_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "down"}))
    client = LLMClient(api_key="sk-test", api_url="https://llm.test/v1/chat", transport=transport)

    with pytest.raises(LLMLabelerError):
        await client.chat("system", [])


@pytest.mark.asyncio
async def test_llm_client_requires_api_key():
    client = LLMClient(api_key="", api_url="https://llm.test/v1/chat")
    with pytest.raises(LLMLabelerError):
        await client.chat("system", [])
