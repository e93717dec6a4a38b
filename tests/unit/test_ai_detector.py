"""
Unit tests for the AI-backed detector and its fallback path.
"""

import json

import pytest

from src.anomaly.ai_detector import AIAnomalyDetector
from src.core.config import AIDetectionConfig


def _payload(*items):
    return json.dumps({"anomalies": [dict(i) for i in items]})


@pytest.mark.asyncio
async def test_maps_scores_and_explanations(text_client_factory):
    client = text_client_factory(
        output=_payload({"index": 2, "score": 0.9, "explanation": "sudden spike"}, {"index": 0, "score": 0.4})
    )
    detector = AIAnomalyDetector(client=client)

    scores = await detector.score([1.0, 1.0, 9.0, 1.0])

    assert [s.index for s in scores] == [0, 1, 2, 3]
    assert scores[2].is_anomaly
    assert scores[2].explanation == "sudden spike"
    assert scores[0].score == 0.4
    assert not scores[0].is_anomaly
    assert scores[1].score == 0.0


@pytest.mark.asyncio
async def test_request_uses_configured_model_settings(text_client_factory):
    client = text_client_factory()
    detector = AIAnomalyDetector(client=client)

    await detector.score([1.0, 2.0, 3.0])

    call = client.calls[0]
    assert call["model_id"] == "gpt-3.5-turbo"
    assert call["max_tokens"] == 500
    assert call["temperature"] == 0.2
    assert "RETURN_JSON_ONLY" in call["prompt"]


@pytest.mark.asyncio
async def test_only_recent_window_is_sent_and_indices_are_offset(text_client_factory):
    client = text_client_factory(output=_payload({"index": 4, "score": 0.95}))
    detector = AIAnomalyDetector(client=client, settings=AIDetectionConfig(max_points=5))

    values = [float(v) for v in range(20)]
    scores = await detector.score(values)

    assert "DATA (index: value): 0: 15, 1: 16, 2: 17, 3: 18, 4: 19" in client.calls[0]["prompt"]
    assert len(scores) == 20
    assert [s.index for s in scores if s.is_anomaly] == [19]


@pytest.mark.asyncio
async def test_first_mention_of_an_index_wins(text_client_factory):
    client = text_client_factory(output=_payload({"index": 1, "score": 0.8}, {"index": 1, "score": 0.1}))
    scores = await AIAnomalyDetector(client=client).score([1.0, 2.0])

    assert scores[1].score == 0.8


@pytest.mark.asyncio
async def test_prose_around_json_is_tolerated(text_client_factory):
    client = text_client_factory(output="Sure! " + _payload({"index": 0, "score": 0.75}) + " Hope this helps.")
    scores = await AIAnomalyDetector(client=client).score([5.0, 1.0])

    assert scores[0].is_anomaly
    assert "fallback" not in scores[0].metadata


@pytest.mark.parametrize(
    "output",
    [
        "not json at all",
        '{"anomalies": "nope"}',
        _payload({"index": 99, "score": 0.9}),
        _payload({"index": 0, "score": 1.5}),
        _payload({"index": "0", "score": 0.9}),
    ],
)
@pytest.mark.asyncio
async def test_invalid_payload_falls_back_to_zscore(text_client_factory, output):
    client = text_client_factory(output=output)
    values = [1.0] * 29 + [100.0]

    scores = await AIAnomalyDetector(client=client).score(values)

    assert len(scores) == len(values)
    assert all(s.metadata.get("fallback") == "zscore" for s in scores)
    assert [s.index for s in scores if s.is_anomaly] == [29]


@pytest.mark.asyncio
async def test_transport_error_falls_back(text_client_factory, caplog):
    client = text_client_factory(error=ConnectionError("boom"))

    with caplog.at_level("WARNING"):
        scores = await AIAnomalyDetector(client=client).score([1.0, 1.0, 1.0, 50.0])

    assert all(s.metadata.get("fallback") == "zscore" for s in scores)
    assert "falling back to z-score" in caplog.text


@pytest.mark.asyncio
async def test_timeout_falls_back(text_client_factory):
    client = text_client_factory(delay=1.0)
    detector = AIAnomalyDetector(client=client, settings=AIDetectionConfig(timeout_seconds=0.01))

    scores = await detector.score([1.0, 2.0, 3.0])

    assert all(s.metadata.get("fallback") == "zscore" for s in scores)


@pytest.mark.asyncio
async def test_missing_client_falls_back():
    scores = await AIAnomalyDetector(client=None).score([1.0, 2.0])
    assert all(s.metadata.get("fallback") == "zscore" for s in scores)


@pytest.mark.asyncio
async def test_empty_input_makes_no_call(text_client_factory):
    client = text_client_factory()
    assert await AIAnomalyDetector(client=client).score([]) == []
    assert client.calls == []
