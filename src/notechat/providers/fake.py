"""
Scripted completion provider for tests and offline runs.
"""

import asyncio
from typing import Any, AsyncIterator

from notechat.errors import GenerationFailure
from notechat.providers.base import BaseCompletionProvider


class FakeCompletionProvider(BaseCompletionProvider):
    """
    Streams a fixed answer word by word.

    Every prompt it receives is recorded in ``calls`` so tests can inspect
    what the model was asked.
    """

    def __init__(
        self,
        response: str = "I don't know.",
        fail_after: int | None = None,
        error: str = "model unavailable",
        delay: float = 0.0
    ):
        """
        Args:
            response: Answer to stream
            fail_after: Raise after this many tokens (None never fails)
            error: Error text raised on failure
            delay: Seconds to sleep before each token
        """
        self.response = response
        self.fail_after = fail_after
        self.error = error
        self.delay = delay
        self.calls: list[list[dict[str, Any]]] = []
        self.closed = 0

    def tokens(self) -> list[str]:
        words = self.response.split(" ")
        return [word if i == 0 else " " + word for i, word in enumerate(words)]

    async def stream(
        self,
        messages: list[dict[str, Any]],
        **kwargs: Any
    ) -> AsyncIterator[str]:
        self.calls.append(messages)
        try:
            for i, token in enumerate(self.tokens()):
                if self.fail_after is not None and i >= self.fail_after:
                    raise GenerationFailure(self.error)
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield token

            if self.fail_after is not None and self.fail_after >= len(self.tokens()):
                raise GenerationFailure(self.error)
        finally:
            self.closed += 1
