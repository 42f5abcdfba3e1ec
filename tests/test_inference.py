"""
Tests for the OpenAI wrapper: request shape and error translation.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from greendocs.domain.errors import MalformedAIResponseError, UpstreamUnavailableError
from greendocs.services.inference import InferenceClient, InferenceConfig, load_json_object

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _client(create: AsyncMock) -> InferenceClient:
    sdk = MagicMock()
    sdk.chat.completions.create = create
    return InferenceClient(InferenceConfig(api_key="test-key", max_completion_tokens=512), client=sdk)


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_config_requires_api_key():
    with pytest.raises(ValueError):
        InferenceConfig(api_key="  ")


@pytest.mark.asyncio
async def test_text_prompt():
    create = AsyncMock(return_value=_response('{"errors": []}'))

    raw = await _client(create).complete_json(model="gpt-4o-mini", prompt="check these")

    assert raw == '{"errors": []}'
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [{"role": "user", "content": "check these"}]
    assert kwargs["max_completion_tokens"] == 512
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_image_prompt():
    create = AsyncMock(return_value=_response("{}"))

    await _client(create).complete_json(model="gpt-4o", prompt="extract", image_url="data:image/png;base64,AA==")

    (message,) = create.await_args.kwargs["messages"]
    assert message["content"] == [
        {"type": "text", "text": "extract"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AA=="}},
    ]


@pytest.mark.asyncio
async def test_empty_answer():
    create = AsyncMock(return_value=SimpleNamespace(choices=[]))
    assert await _client(create).complete_json(model="m", prompt="p") == ""

    create = AsyncMock(return_value=_response(None))
    assert await _client(create).complete_json(model="m", prompt="p") == ""


@pytest.mark.asyncio
async def test_status_error_keeps_upstream_status():
    error = openai.RateLimitError(
        "Rate limit reached",
        response=httpx.Response(429, request=REQUEST),
        body=None,
    )
    create = AsyncMock(side_effect=error)

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await _client(create).complete_json(model="m", prompt="p")

    assert exc_info.value.status_code == 429
    assert exc_info.value.retryable
    assert exc_info.value.to_dict()["upstream_status"] == 429


@pytest.mark.asyncio
async def test_timeout_has_no_status():
    create = AsyncMock(side_effect=openai.APITimeoutError(request=REQUEST))

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await _client(create).complete_json(model="m", prompt="p")

    assert exc_info.value.status_code is None


@pytest.mark.parametrize("raw", ["", "  \n", "{", "[]", '"text"'])
def test_load_json_object_rejects(raw):
    with pytest.raises(MalformedAIResponseError):
        load_json_object(raw, "test")


def test_load_json_object():
    assert load_json_object('{"fields": []}', "test") == {"fields": []}
