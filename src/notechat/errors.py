"""
notechat exceptions.
"""


class NoteChatError(Exception):
    """Base exception for notechat errors."""

    def __init__(self, message: str, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class EmbeddingFailure(NoteChatError):
    """Raised when the embedding provider is unreachable or rejects input.

    The operation that triggered the embedding is aborted and the index is
    left unchanged.
    """

    def __init__(self, message: str = "Embedding provider failed"):
        super().__init__(message, code=1001)


class GenerationFailure(NoteChatError):
    """Raised by a completion provider when streaming fails mid-answer."""

    def __init__(self, message: str = "Completion provider failed"):
        super().__init__(message, code=1002)


class IndexLoadFailure(NoteChatError):
    """Raised when a persisted index snapshot cannot be read."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Snapshot '{path}' could not be loaded: {message}", code=1003)
