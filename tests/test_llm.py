import json

import httpx
import pytest

from aiworks.errors import InvalidAPIKeyError, LLMError, MissingAPIKeyError
from aiworks.llm import GeminiClient, build_request_body, extract_text

BASE = "https://llm.test/v1beta"


def _client(handler) -> GeminiClient:
    return GeminiClient(
        base_url=BASE,
        default_model="gemini-1.5-flash",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_build_request_body_omits_unset_config():
    body = build_request_body("hi", temperature=0.5, top_k=40)

    assert body == {
        "contents": [{"parts": [{"text": "hi"}]}],
        "generationConfig": {"temperature": 0.5, "topK": 40},
    }


def test_extract_text_joins_parts_of_first_candidate():
    payload = {
        "candidates": [
            {"content": {"parts": [{"text": "one"}, {"inlineData": {}}, {"text": "two"}]}, "finishReason": "MAX_TOKENS"},
            {"content": {"parts": [{"text": "ignored"}]}},
        ]
    }

    assert extract_text(payload) == ("one\ntwo", "MAX_TOKENS")
    assert extract_text({}) == ("", "STOP")


@pytest.mark.asyncio
async def test_generate_posts_to_generate_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello!"}]}, "finishReason": "STOP"}]},
        )

    result = await _client(handler).generate("Say hi", api_key="abc", model="gemini-1.5-pro", temperature=0.1)

    assert result.text == "Hello!"
    assert result.model == "gemini-1.5-pro"
    assert seen["url"] == f"{BASE}/models/gemini-1.5-pro:generateContent?key=abc"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "Say hi"
    assert seen["body"]["generationConfig"] == {"temperature": 0.1}


@pytest.mark.asyncio
async def test_generate_uses_default_model():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/models/gemini-1.5-flash:generateContent")
        return httpx.Response(200, json={"candidates": []})

    result = await _client(handler).generate("x", api_key="abc")

    assert result.text == ""


@pytest.mark.asyncio
async def test_generate_surfaces_api_error_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid."}})

    with pytest.raises(LLMError, match="API key not valid") as excinfo:
        await _client(handler).generate("x", api_key="abc")

    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_generate_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LLMError, match="request failed"):
        await _client(handler).generate("x", api_key="abc")


@pytest.mark.asyncio
async def test_generate_requires_key():
    with pytest.raises(MissingAPIKeyError):
        await _client(lambda request: httpx.Response(200)).generate("x", api_key="")


@pytest.mark.asyncio
async def test_validate_key():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1beta/models"
        if request.url.params["key"] == "good":
            return httpx.Response(200, json={"models": []})
        return httpx.Response(403, json={"error": {"message": "Permission denied"}})

    client = _client(handler)

    await client.validate_key("good")
    with pytest.raises(InvalidAPIKeyError, match="Permission denied"):
        await client.validate_key("bad")
