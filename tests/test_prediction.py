import json

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import ConfigurationError, InvalidResponseError, UpstreamError
from app.core.models import HistoryTurn
from app.core.prediction import PredictionClient, build_payload, extract_reply


def test_extract_reply_prefers_text_over_reply():
    assert extract_reply({"text": "new", "reply": "old"}) == "new"


def test_extract_reply_falls_back_to_reply_when_text_empty():
    assert extract_reply({"text": "", "reply": "old"}) == "old"


@pytest.mark.parametrize("data", [{}, {"text": None}, {"reply": 42}, "Hello!", None])
def test_extract_reply_rejects_unknown_shapes(data):
    with pytest.raises(InvalidResponseError):
        extract_reply(data)


def test_build_payload_shape():
    payload = build_payload("Hi", [HistoryTurn(role="userMessage", content="Hi")], "u1-abc")

    assert payload == {
        "question": "Hi",
        "history": [{"role": "userMessage", "content": "Hi"}],
        "overrideConfig": {"sessionId": "u1-abc", "returnSourceDocuments": False},
    }


def test_error_classes_carry_status_and_message():
    assert UpstreamError().status_code == 502
    assert UpstreamError(status_code=503).status_code == 503
    assert UpstreamError(status_code=503).message == "Error from prediction API"
    assert ConfigurationError().status_code == 500


@pytest.mark.asyncio
async def test_predict_uses_configured_timeout_and_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": "Hello!"})

    settings = Settings(
        prediction_api_endpoint="https://zep.example.com/predict",
        prediction_api_token="t0k",
        prediction_api_timeout=12.5,
    )
    client = PredictionClient(settings, transport=httpx.MockTransport(handler))

    reply = await client.predict("Hi", [], "u1-abc", return_source_documents=True)

    assert reply == "Hello!"
    assert seen[0].url == "https://zep.example.com/predict"
    assert seen[0].extensions["timeout"]["read"] == 12.5
    assert json.loads(seen[0].content)["overrideConfig"]["returnSourceDocuments"] is True


@pytest.mark.asyncio
async def test_permanent_redirect_is_followed_with_same_post():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/predict":
            return httpx.Response(308, headers={"Location": "https://zep.example.com/v2/predict"})
        return httpx.Response(200, json={"text": "Moved hello"})

    settings = Settings(prediction_api_endpoint="https://zep.example.com/predict", prediction_api_token="t0k")
    client = PredictionClient(settings, transport=httpx.MockTransport(handler))

    reply = await client.predict("Hi", [], "u1-abc")

    assert reply == "Moved hello"
    assert [r.url.path for r in seen] == ["/predict", "/v2/predict"]
    assert seen[1].method == "POST"
    assert seen[1].headers["Authorization"] == "Bearer t0k"
    assert json.loads(seen[1].content)["question"] == "Hi"


@pytest.mark.asyncio
async def test_non_redirect_3xx_is_reported_as_bad_gateway():
    settings = Settings(prediction_api_endpoint="https://zep.example.com/predict", prediction_api_token="t0k")
    client = PredictionClient(
        settings,
        transport=httpx.MockTransport(lambda request: httpx.Response(304)),
    )

    with pytest.raises(UpstreamError) as excinfo:
        await client.predict("Hi", [], "u1-abc")

    assert excinfo.value.status_code == 502


def test_legacy_env_names_are_accepted(monkeypatch):
    monkeypatch.delenv("PREDICTION_API_ENDPOINT", raising=False)
    monkeypatch.delenv("PREDICTION_API_TOKEN", raising=False)
    monkeypatch.setenv("ZEP_API_ENDPOINT", "https://zep.example.com/predict")
    monkeypatch.setenv("ZEP_API_TOKEN", "legacy")

    settings = Settings()

    assert settings.prediction_api_endpoint == "https://zep.example.com/predict"
    assert settings.prediction_api_token == "legacy"
    assert settings.prediction_configured
