"""
Completion providers module.
"""

from notechat.providers.base import BaseCompletionProvider, StreamHandler
from notechat.providers.fake import FakeCompletionProvider
from notechat.providers.openai import OpenAICompletionProvider

__all__ = [
    "BaseCompletionProvider",
    "StreamHandler",
    "FakeCompletionProvider",
    "OpenAICompletionProvider",
]
