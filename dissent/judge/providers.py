"""httpx adapters for the chat-completion providers used as the judge.

Each adapter turns the provider-neutral ``[{role, content}]`` message list into
the provider's request shape and returns a ``Completion``:

  AnthropicProvider  POST {base}/v1/messages
                     system prompt lifted out of the message list; no native
                     JSON mode, so a JSON-only instruction is appended instead
  OpenAIProvider     POST {base}/v1/chat/completions
                     response_format={"type": "json_object"} in JSON mode
  GeminiProvider     POST {base}/v1beta/models/{model}:generateContent?key=...
                     systemInstruction + responseMimeType=application/json

Adapters raise on transport and HTTP errors (``httpx.HTTPError``) and on
unexpected response shapes (``KeyError`` / ``TypeError``); the router decides
what to do about it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dissent.interfaces import Completion

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0
_DEFAULT_MAX_TOKENS = 2000

_JSON_ONLY_INSTRUCTION = (
    "IMPORTANT: You must respond with valid JSON only. No other text before or after the JSON."
)


def split_system(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    """Separate system messages (joined) from the conversational ones."""
    system_parts = []
    rest = []
    for message in messages:
        if message.get("role") == "system":
            system_parts.append(message.get("content", ""))
        else:
            rest.append(message)
    return "\n\n".join(system_parts), rest


class LLMProvider:
    """Base class for a keyed HTTP chat provider.

    Args:
        api_key:   Provider API key. A provider without a key is disabled.
        model:     Model identifier sent with every request.
        base_url:  API root, without a trailing slash.
        timeout:   httpx timeout in seconds for one request.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    provider_type = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r}, enabled={self.enabled})"

    async def _post(self, url: str, headers: dict[str, str], body: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, headers=headers, json=body)
            response.raise_for_status()
            return response.json()

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        raise NotImplementedError


class AnthropicProvider(LLMProvider):
    provider_type = "anthropic"

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        system_text, rest = split_system(messages)
        if json_mode and system_text:
            system_text = f"{system_text}\n\n{_JSON_ONLY_INSTRUCTION}"

        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or _DEFAULT_MAX_TOKENS,
            "messages": [
                {
                    "role": "assistant" if m.get("role") == "assistant" else "user",
                    "content": m.get("content", ""),
                }
                for m in rest
            ],
        }
        if system_text:
            body["system"] = system_text
        if temperature is not None:
            body["temperature"] = temperature

        data = await self._post(
            f"{self.base_url}/v1/messages",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            body=body,
        )
        content = "".join(
            block.get("text", "") for block in data["content"] if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        input_tokens = int(usage.get("input_tokens") or 0)
        output_tokens = int(usage.get("output_tokens") or 0)
        return Completion(
            content=content,
            model=self.model,
            provider_type=self.provider_type,
            usage={
                "prompt_tokens": input_tokens,
                "completion_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
        )


class OpenAIProvider(LLMProvider):
    provider_type = "openai"

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or _DEFAULT_MAX_TOKENS,
        }
        if temperature is not None:
            body["temperature"] = temperature
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        data = await self._post(
            f"{self.base_url}/v1/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "content-type": "application/json",
            },
            body=body,
        )
        return Completion(
            content=data["choices"][0]["message"]["content"] or "",
            model=data.get("model", self.model),
            provider_type=self.provider_type,
            usage={k: int(v) for k, v in (data.get("usage") or {}).items() if isinstance(v, int)},
        )


class GeminiProvider(LLMProvider):
    provider_type = "gemini"

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        system_text, rest = split_system(messages)
        generation_config: dict[str, Any] = {
            "temperature": 0.3 if temperature is None else temperature,
            "maxOutputTokens": max_tokens or _DEFAULT_MAX_TOKENS,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.get("role") == "assistant" else "user",
                    "parts": [{"text": m.get("content", "")}],
                }
                for m in rest
            ],
            "generationConfig": generation_config,
        }
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        data = await self._post(
            f"{self.base_url}/v1beta/models/{self.model}:generateContent?key={self.api_key}",
            headers={"content-type": "application/json"},
            body=body,
        )
        candidates = data.get("candidates") or []
        parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
        usage = data.get("usageMetadata") or {}
        return Completion(
            content="".join(part.get("text", "") for part in parts),
            model=self.model,
            provider_type=self.provider_type,
            usage={
                "prompt_tokens": int(usage.get("promptTokenCount") or 0),
                "completion_tokens": int(usage.get("candidatesTokenCount") or 0),
                "total_tokens": int(usage.get("totalTokenCount") or 0),
            },
        )


PROVIDER_TYPES: dict[str, type[LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}
