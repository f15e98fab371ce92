"""
OpenAI completion provider.
"""

import logging
from typing import Any, AsyncIterator

from notechat.errors import GenerationFailure
from notechat.providers.base import BaseCompletionProvider

logger = logging.getLogger(__name__)


class OpenAICompletionProvider(BaseCompletionProvider):
    """
    Streaming chat completions from the OpenAI API.
    """

    def __init__(
        self,
        model: str = "gpt-3.5-turbo",
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = None

    def _get_client(self):
        """Get or create OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url
            )
        return self._client

    async def stream(
        self,
        messages: list[dict[str, Any]],
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """Stream a completion from OpenAI."""
        from openai import OpenAIError

        client = self._get_client()

        params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": True,
        }
        if self.max_tokens:
            params["max_tokens"] = self.max_tokens

        params.update(kwargs)

        try:
            stream = await client.chat.completions.create(**params)
        except OpenAIError as e:
            raise GenerationFailure(str(e)) from e

        try:
            async for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None

                if delta is None:
                    continue

                if delta.content:
                    yield delta.content
        except OpenAIError as e:
            raise GenerationFailure(str(e)) from e
        finally:
            # Releases the HTTP connection when the consumer stops early
            await stream.close()
