import json

import httpx
import pytest

from news_narrator.config import Settings
from news_narrator.errors import UpstreamGenerationError
from news_narrator.services.llm_client import LLMClient


def _settings(**overrides) -> Settings:
    values = {"llm_api_key": "test-key", "llm_retry_backoff_seconds": 0.0}
    values.update(overrides)
    return Settings(**values)


def _completion(content) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.mark.asyncio
async def test_generate_posts_chat_completion_and_trims() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _completion("  A narrative.  \n")

    client = LLMClient(_settings(llm_model="gpt-4o"), transport=httpx.MockTransport(handler))
    result = await client.generate("You are Tolstoy.", "Narrate the flood.")
    await client.aclose()

    assert result == "A narrative."
    request = seen[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o"
    assert body["messages"] == [
        {"role": "system", "content": "You are Tolstoy."},
        {"role": "user", "content": "Narrate the flood."},
    ]


@pytest.mark.asyncio
async def test_missing_key_fails_only_on_first_call() -> None:
    client = LLMClient(_settings(llm_api_key=None))

    with pytest.raises(UpstreamGenerationError):
        await client.generate("system", "user")


@pytest.mark.asyncio
async def test_http_error_raises_upstream_generation_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad key"}))
    client = LLMClient(_settings(), transport=transport)

    with pytest.raises(UpstreamGenerationError) as excinfo:
        await client.generate("system", "user")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_missing_content_raises_upstream_generation_error() -> None:
    client = LLMClient(_settings(), transport=httpx.MockTransport(lambda request: _completion(None)))

    with pytest.raises(UpstreamGenerationError):
        await client.generate("system", "user")


@pytest.mark.asyncio
async def test_empty_choices_raise_upstream_generation_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
    client = LLMClient(_settings(), transport=transport)

    with pytest.raises(UpstreamGenerationError):
        await client.generate("system", "user")


@pytest.mark.asyncio
async def test_timeout_is_flagged() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = LLMClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamGenerationError) as excinfo:
        await client.generate("system", "user")
    assert excinfo.value.timed_out is True


@pytest.mark.asyncio
async def test_retries_transient_failures_when_enabled() -> None:
    responses = [httpx.Response(503), _completion("Recovered.")]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    client = LLMClient(_settings(llm_max_retries=1), transport=httpx.MockTransport(handler))

    assert await client.generate("system", "user") == "Recovered."
    assert responses == []


@pytest.mark.asyncio
async def test_no_retry_by_default() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    client = LLMClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamGenerationError):
        await client.generate("system", "user")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_blank_inputs_are_rejected() -> None:
    client = LLMClient(_settings())

    with pytest.raises(ValueError):
        await client.generate("", "user")
    with pytest.raises(ValueError):
        await client.generate("system", "  ")
