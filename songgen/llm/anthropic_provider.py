"""Anthropic messages provider."""

from typing import Any

from anthropic import AsyncAnthropic


class AnthropicProvider:
    """Anthropic chat completion (async client)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
    ):
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str, system: str | None = None, **kwargs: Any) -> str:
        params: dict[str, Any] = {
            "model": kwargs.get("model") or self._model,
            "max_tokens": kwargs.get("max_tokens", 1000),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system
        if "temperature" in kwargs:
            params["temperature"] = kwargs["temperature"]
        response = await self._client.messages.create(**params)
        return response.content[0].text if response.content else ""
