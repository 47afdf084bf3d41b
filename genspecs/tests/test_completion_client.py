import asyncio
import json

import httpx
import pytest

from genspecs.core.errors import ProviderError, TransportError
from genspecs.llm.openrouter_adapter import OpenRouterCompletionClient


def _completion(content):
    return {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 0,
        "model": "test/model",
        "choices": [
            {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
        ],
    }


def _client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouterCompletionClient(
        api_key="sk-test",
        base_url="https://openrouter.test/api/v1",
        model="test/model",
        site_url="http://localhost:3000",
        site_name="GenSpecs",
        timeout=5.0,
        http_client=http_client,
    )


def test_complete_sends_chat_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion("# Hello"))

    async def inner():
        client = _client(handler)
        try:
            return await client.complete("system text", "user text")
        finally:
            await client.aclose()

    assert asyncio.run(inner()) == "# Hello"
    assert seen["url"] == "https://openrouter.test/api/v1/chat/completions"
    assert seen["headers"]["authorization"] == "Bearer sk-test"
    assert seen["headers"]["http-referer"] == "http://localhost:3000"
    assert seen["headers"]["x-title"] == "GenSpecs"
    assert seen["body"]["model"] == "test/model"
    assert seen["body"]["temperature"] == 0.7
    assert seen["body"]["max_tokens"] == 2000
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "user text"},
    ]


def test_missing_content_becomes_empty_string():
    client = _client(lambda request: httpx.Response(200, json=_completion(None)))
    assert asyncio.run(client.complete("s", "u")) == ""


def test_mapped_status_message():
    client = _client(lambda request: httpx.Response(401, json={"error": {"message": "No auth credentials found"}}))
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(client.complete("s", "u"))
    assert excinfo.value.status_code == 401
    assert str(excinfo.value) == "Invalid API key. Please check your OpenRouter API key."
    assert excinfo.value.detail == "No auth credentials found"
    assert not excinfo.value.retryable


def test_unmapped_status_includes_request_id():
    def handler(request):
        return httpx.Response(422, json={"error": {"message": "bad params"}}, headers={"x-request-id": "req-42"})

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(_client(handler).complete("s", "u"))
    assert str(excinfo.value) == "Error: bad params (Request ID: req-42)"


def test_connection_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_client(handler).complete("s", "u"))
    assert not excinfo.value.timed_out


def test_timeout_is_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_client(handler).complete("s", "u"))
    assert excinfo.value.timed_out
