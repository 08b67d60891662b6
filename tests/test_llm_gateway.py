from __future__ import annotations

import httpx
import pytest

from fixology_chat.errors import ConfigurationError, ProviderError
from fixology_chat.llm_gateway import (
    AnthropicProvider,
    OpenAIProvider,
    build_gateway,
    prepare_messages,
)

from .conftest import RecordingTransport, anthropic_reply, make_settings

CONVERSATION = [
    {"role": "user", "content": "My phone is dead"},
    {"role": "system", "content": "Note: customer is in a hurry"},
    {"role": "assistant", "content": "Does it charge?"},
    {"role": "user", "content": "No"},
]


def test_system_turns_become_user_turns() -> None:
    messages = prepare_messages(CONVERSATION)
    assert [message["role"] for message in messages] == ["user", "user", "assistant", "user"]
    assert CONVERSATION[1]["role"] == "system"


def test_context_is_appended_to_last_user_turn_only() -> None:
    messages = prepare_messages(CONVERSATION, {"deviceCatalog": {"totalModels": 3}})

    assert messages[0]["content"] == "My phone is dead"
    assert messages[-1]["content"].startswith("No\n\n[CONTEXT DATA]\n")
    assert '"totalModels": 3' in messages[-1]["content"]
    assert CONVERSATION[-1]["content"] == "No"


def test_empty_context_leaves_messages_untouched() -> None:
    assert prepare_messages(CONVERSATION, {})[-1]["content"] == "No"


@pytest.mark.asyncio
async def test_anthropic_request_shape() -> None:
    transport = RecordingTransport(payload=anthropic_reply("  Try a hard reset.  "))
    provider = AnthropicProvider("secret", http_client=transport.client())

    reply = await provider.generate("SYSTEM", CONVERSATION[:1])

    assert reply == "Try a hard reset."
    request = transport.requests[0]
    assert str(request.url) == AnthropicProvider.endpoint
    assert request.headers["x-api-key"] == "secret"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert transport.json_bodies()[0] == {
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 1024,
        "system": "SYSTEM",
        "messages": [{"role": "user", "content": "My phone is dead"}],
    }


@pytest.mark.asyncio
async def test_openai_request_shape() -> None:
    transport = RecordingTransport(payload={"choices": [{"message": {"content": "Hello"}}]})
    provider = OpenAIProvider("secret", model="gpt-4o-mini", http_client=transport.client())

    reply = await provider.generate("SYSTEM", CONVERSATION[:1])

    assert reply == "Hello"
    assert transport.requests[0].headers["authorization"] == "Bearer secret"
    body = transport.json_bodies()[0]
    assert body["model"] == "gpt-4o-mini"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 1024
    assert body["messages"][0] == {"role": "system", "content": "SYSTEM"}


@pytest.mark.asyncio
async def test_missing_reply_text_is_empty_string() -> None:
    transport = RecordingTransport(payload={"content": []})
    provider = AnthropicProvider("secret", http_client=transport.client())
    assert await provider.generate("SYSTEM", CONVERSATION[:1]) == ""


@pytest.mark.asyncio
async def test_non_2xx_raises_provider_error() -> None:
    transport = RecordingTransport(status_code=500, text="upstream exploded")
    provider = AnthropicProvider("secret", http_client=transport.client())

    with pytest.raises(ProviderError) as excinfo:
        await provider.generate("SYSTEM", CONVERSATION[:1])

    assert excinfo.value.provider == "anthropic"
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "upstream exploded"
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_transport_error_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    provider = OpenAIProvider("secret", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(ProviderError) as excinfo:
        await provider.generate("SYSTEM", CONVERSATION[:1])

    assert excinfo.value.status_code is None


def test_build_gateway_selects_provider_and_model_override() -> None:
    assert isinstance(build_gateway(make_settings()), AnthropicProvider)
    openai = build_gateway(make_settings(llm_provider="openai", llm_model="gpt-4.1"))
    assert isinstance(openai, OpenAIProvider)
    assert openai.model == "gpt-4.1"


def test_build_gateway_rejects_unknown_provider() -> None:
    with pytest.raises(ConfigurationError, match="bogus"):
        build_gateway(make_settings(llm_provider="bogus", llm_api_key=""))


def test_build_gateway_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        build_gateway(make_settings(llm_api_key=""))
