"""Abstract LLM provider protocol."""

from typing import Any, Protocol


class LLMProvider(Protocol):
    """Protocol for LLM backends (OpenAI, Anthropic)."""

    async def complete(self, prompt: str, system: str | None = None, **kwargs: Any) -> str:
        """Return raw text completion."""
        ...
