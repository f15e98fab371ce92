"""Ask questions of your own notes.

This package provides the retrieval-augmented generation core of a notes
application:
- Note chunking into bounded segments
- Embedding providers (OpenAI, local, fake)
- An incrementally maintained vector index with tombstoned deletes,
  in memory or persisted to a snapshot
- A lifecycle manager that builds the index exactly once per process
- A chat orchestrator that answers from the asker's own notes only
- An event bus streaming answers to the requesting owner

Example:
    ```python
    from notechat import build_assistant, load_config

    assistant = build_assistant(load_config())
    await assistant.start()

    note = await assistant.create_note("Trip", "Paris was great.", owner_id="u1")

    async with assistant.subscribe("u1") as events:
        related = await assistant.ask("Where did I travel?", owner_id="u1")
        async for event in events:
            if event.type == "token":
                print(event.text, end="")
            elif event.type in ("end", "error"):
                break
    ```
"""

# Data structures
from .document import Chunk, ChunkMetadata, IndexRecord, Note, RelatedNote, SearchResult

# Errors
from .errors import EmbeddingFailure, GenerationFailure, IndexLoadFailure, NoteChatError

# Base classes
from .base import BaseChunker, BaseEmbedding, BaseNoteStore, BaseVectorIndex

# Chunking
from .chunking import RecursiveChunker

# Embedding providers
from .embeddings import DummyEmbedding, FakeEmbedding, LocalEmbedding, OpenAIEmbedding

# Vector indexes
from .vectorstore import (
    MemoryVectorIndex,
    PersistentVectorIndex,
    cosine_similarity,
    owner_filter,
)

# Lifecycle
from .lifecycle import IndexManager

# Events
from .events import (
    ChatEvent,
    EndEvent,
    ErrorEvent,
    EventBus,
    StartEvent,
    Subscription,
    TokenEvent,
    parse_event,
)

# Completion providers
from .providers import (
    BaseCompletionProvider,
    FakeCompletionProvider,
    OpenAICompletionProvider,
    StreamHandler,
)

# Chat
from .chat import ChatOrchestrator, ChatRequest, ChatState, build_messages

# Notes
from .store import InMemoryNoteStore
from .transport import format_sse, sse_events
from .app import NotesAssistant, build_assistant, related_notes
from .utils import NoteChatConfig, load_config

__all__ = [
    # Data structures
    "Chunk",
    "ChunkMetadata",
    "IndexRecord",
    "Note",
    "RelatedNote",
    "SearchResult",
    # Errors
    "EmbeddingFailure",
    "GenerationFailure",
    "IndexLoadFailure",
    "NoteChatError",
    # Base classes
    "BaseChunker",
    "BaseEmbedding",
    "BaseNoteStore",
    "BaseVectorIndex",
    # Chunking
    "RecursiveChunker",
    # Embeddings
    "DummyEmbedding",
    "FakeEmbedding",
    "LocalEmbedding",
    "OpenAIEmbedding",
    # Vector indexes
    "MemoryVectorIndex",
    "PersistentVectorIndex",
    "cosine_similarity",
    "owner_filter",
    # Lifecycle
    "IndexManager",
    # Events
    "ChatEvent",
    "EndEvent",
    "ErrorEvent",
    "EventBus",
    "StartEvent",
    "Subscription",
    "TokenEvent",
    "parse_event",
    # Completion providers
    "BaseCompletionProvider",
    "FakeCompletionProvider",
    "OpenAICompletionProvider",
    "StreamHandler",
    # Chat
    "ChatOrchestrator",
    "ChatRequest",
    "ChatState",
    "build_messages",
    # Notes
    "InMemoryNoteStore",
    "format_sse",
    "sse_events",
    "NotesAssistant",
    "build_assistant",
    "related_notes",
    "NoteChatConfig",
    "load_config",
]
