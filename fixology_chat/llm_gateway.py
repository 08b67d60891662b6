"""Model gateway: one call contract over interchangeable chat-completion providers.

Each provider turns (system prompt, conversation, optional context) into a single
HTTP POST with its own auth headers and request schema, and normalizes the reply to
plain text. Providers are chosen by configuration through the PROVIDERS table.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

import httpx

from .config import Settings
from .errors import ConfigurationError, ProviderError
from .utils import clip_text, to_pretty_json

logger = logging.getLogger("fixology.gateway")

MAX_TOKENS = 1024
CONTEXT_HEADER = "[CONTEXT DATA]"


def prepare_messages(
    conversation: Sequence[Mapping[str, Any]],
    context: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, str]]:
    """Purpose: Convert request turns into the provider-neutral message list.
    Inputs/Outputs: Inputs are ordered turns and an optional context mapping; output
        is a new list of {role, content} dicts.
    Side Effects / State: None; input turns are not mutated.
    Dependencies: Uses to_pretty_json for the context block.
    Failure Modes: When no user turn exists the context is not attached.
    If Removed: Providers receive system turns they reject and no context data.
    Testing Notes: A mid-conversation system turn becomes a user turn; the context
        block lands on the last user turn only.
    """
    # Only one system slot exists per provider call, so inline system turns become user turns.
    messages: List[Dict[str, str]] = []
    for turn in conversation:
        role = str(turn.get("role") or "user")
        if role == "system":
            role = "user"
        messages.append({"role": role, "content": str(turn.get("content") or "")})

    if context:
        for message in reversed(messages):
            if message["role"] == "user":
                message["content"] += f"\n\n{CONTEXT_HEADER}\n{to_pretty_json(dict(context))}"
                break
    return messages


class ChatProvider:
    """Base class for chat-completion providers reached over HTTP."""

    name = ""
    endpoint = ""
    default_model = ""

    def __init__(self, api_key: str, model: str = "", http_client: Optional[httpx.AsyncClient] = None) -> None:
        """Purpose: Store credentials, model choice, and the optional HTTP client.
        Inputs/Outputs: Inputs are the API key, a model override, and a client.
        Side Effects / State: None beyond attribute storage.
        Dependencies: Subclasses supply name, endpoint, default_model.
        Failure Modes: Raises ConfigurationError when the key is empty.
        If Removed: Providers cannot be instantiated by build_gateway.
        Testing Notes: Construct with an empty key and expect ConfigurationError.
        """
        # Fail before any network activity when the key is missing.
        if not api_key:
            raise ConfigurationError("LLM_API_KEY environment variable not set")
        self._api_key = api_key
        self.model = model or self.default_model
        self._http_client = http_client

    def build_headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def build_body(self, system_prompt: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        raise NotImplementedError

    def parse_reply(self, data: Mapping[str, Any]) -> str:
        raise NotImplementedError

    async def generate(
        self,
        system_prompt: str,
        conversation: Sequence[Mapping[str, Any]],
        context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Purpose: Ask the provider for a reply to the conversation.
        Inputs/Outputs: Inputs are the system prompt, ordered turns, and optional
            context; output is the reply text (possibly empty).
        Side Effects / State: Issues exactly one POST; no retry, no fallback.
        Dependencies: Uses prepare_messages, build_headers, build_body, parse_reply.
        Failure Modes: Non-2xx responses and transport errors raise ProviderError.
        If Removed: The assistant cannot produce replies.
        Testing Notes: Stub a 500 with httpx.MockTransport and expect ProviderError
            carrying provider name, status, and body.
        """
        # Build the provider payload and send it without a client-side timeout.
        messages = prepare_messages(conversation, context)
        body = self.build_body(system_prompt, messages)
        logger.info("provider=%s model=%s messages=%s", self.name, self.model, len(messages))
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.endpoint, headers=self.build_headers(), json=body)
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await client.post(self.endpoint, headers=self.build_headers(), json=body)
        except httpx.HTTPError as exc:
            logger.error("provider=%s request failed: %s", self.name, exc)
            raise ProviderError(self.name, None, str(exc)) from exc

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                "provider=%s status=%s body=%s",
                self.name,
                response.status_code,
                clip_text(response.text, 500),
            )
            raise ProviderError(self.name, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(self.name, response.status_code, response.text) from exc
        reply = self.parse_reply(data if isinstance(data, dict) else {})
        logger.info("provider=%s reply_chars=%s", self.name, len(reply))
        return reply


class OpenAIProvider(ChatProvider):
    name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o"
    temperature = 0.7

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def build_body(self, system_prompt: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        # The system prompt travels as the leading system message.
        return {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "max_tokens": MAX_TOKENS,
            "temperature": self.temperature,
        }

    def parse_reply(self, data: Mapping[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "").strip()


class AnthropicProvider(ChatProvider):
    name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"
    default_model = "claude-sonnet-4-20250514"
    api_version = "2023-06-01"

    def build_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def build_body(self, system_prompt: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "system": system_prompt,
            "messages": messages,
        }

    def parse_reply(self, data: Mapping[str, Any]) -> str:
        for block in data.get("content") or []:
            if isinstance(block, dict) and block.get("type", "text") == "text":
                return str(block.get("text") or "").strip()
        return ""


PROVIDERS: Dict[str, Type[ChatProvider]] = {
    OpenAIProvider.name: OpenAIProvider,
    AnthropicProvider.name: AnthropicProvider,
}


def build_gateway(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> ChatProvider:
    """Purpose: Resolve the configured provider into a ready-to-call instance.
    Inputs/Outputs: Inputs are Settings and an optional HTTP client; output is a
        ChatProvider.
    Side Effects / State: None; no network activity.
    Dependencies: Uses the PROVIDERS lookup table.
    Failure Modes: Unknown provider names and missing keys raise ConfigurationError.
    If Removed: The pipeline has no way to pick a provider from configuration.
    Testing Notes: LLM_PROVIDER=bogus must fail without any HTTP request.
    """
    # Look up the implementation first so a bad name is reported even without a key.
    provider_cls = PROVIDERS.get(settings.llm_provider)
    if provider_cls is None:
        supported = ", ".join(sorted(PROVIDERS))
        raise ConfigurationError(f"Unknown LLM provider: {settings.llm_provider} (supported: {supported})")
    return provider_cls(settings.llm_api_key, model=settings.llm_model, http_client=http_client)
