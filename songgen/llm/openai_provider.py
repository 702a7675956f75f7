"""OpenAI chat completion provider."""

from typing import Any

from openai import AsyncOpenAI


class OpenAIProvider:
    """OpenAI chat completion (async client)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4",
    ):
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str, system: str | None = None, **kwargs: Any) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        # openai.APIError subclasses propagate; callers map status codes.
        response = await self._client.chat.completions.create(
            model=kwargs.get("model") or self._model,
            messages=messages,
            **{k: v for k, v in kwargs.items() if k not in ("model",)},
        )
        msg = response.choices[0].message
        return msg.content or ""
