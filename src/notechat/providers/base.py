"""
Base completion provider interface.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class StreamHandler:
    """
    Callbacks invoked while a completion streams.

    Subclass and override the hooks you need; the defaults do nothing.
    """

    def on_start(self) -> None:
        pass

    def on_token(self, text: str) -> None:
        pass

    def on_end(self) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass


class BaseCompletionProvider(ABC):
    """
    Abstract base class for streaming completion providers.
    """

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, Any]],
        **kwargs: Any
    ) -> AsyncIterator[str]:
        """
        Stream a completion.

        Args:
            messages: List of messages in API format
            **kwargs: Additional provider-specific options

        Yields:
            Incremental text tokens

        Raises:
            GenerationFailure: If the provider fails mid-stream
        """
        pass

    async def stream_complete(
        self,
        messages: list[dict[str, Any]],
        handler: StreamHandler,
        **kwargs: Any
    ) -> str:
        """
        Drive a streaming completion through ``handler`` callbacks.

        ``on_start`` fires once, then ``on_token`` per token, then exactly
        one of ``on_end`` or ``on_error``. Cancellation propagates without
        invoking either.

        Returns:
            The full generated text (partial text on error)
        """
        parts: list[str] = []
        tokens = self.stream(messages, **kwargs)
        handler.on_start()

        try:
            async for token in tokens:
                if not token:
                    continue
                parts.append(token)
                handler.on_token(token)
        except Exception as e:
            handler.on_error(e)
            return "".join(parts)
        finally:
            # Close the provider stream even when cancelled mid-way
            aclose = getattr(tokens, "aclose", None)
            if aclose is not None:
                await aclose()

        handler.on_end()
        return "".join(parts)
