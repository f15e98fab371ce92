"""
Notes assistant facade.

Wires the note store, index lifecycle, orchestrator and event bus together
and keeps the index in step with note mutations.
"""

from typing import Optional

from notechat.base import BaseEmbedding
from notechat.chat import ChatOrchestrator
from notechat.chunking import RecursiveChunker
from notechat.document import Note, RelatedNote, SearchResult
from notechat.embeddings import FakeEmbedding, LocalEmbedding, OpenAIEmbedding
from notechat.events import EventBus, Subscription
from notechat.lifecycle import IndexManager
from notechat.providers import BaseCompletionProvider, OpenAICompletionProvider
from notechat.store import InMemoryNoteStore
from notechat.utils.config import NoteChatConfig
from notechat.utils.logging import get_logger, set_log_level

logger = get_logger(__name__)


def related_notes(results: list[SearchResult]) -> list[RelatedNote]:
    """Collapse chunk results to one entry per note, keeping rank order."""
    seen: dict[str, RelatedNote] = {}
    for result in results:
        metadata = result.metadata
        if metadata.document_id not in seen:
            seen[metadata.document_id] = RelatedNote(
                id=metadata.document_id,
                title=metadata.title,
                score=result.score,
            )
    return list(seen.values())


class NotesAssistant:
    """
    Notes application backend.

    Manages:
    - Note mutations, mirrored into the vector index
    - Questions, answered from the asker's own notes
    - Per-owner event subscriptions for streamed answers
    """

    def __init__(
        self,
        note_store: InMemoryNoteStore,
        index_manager: IndexManager,
        orchestrator: ChatOrchestrator,
        bus: EventBus,
    ):
        self.note_store = note_store
        self.index_manager = index_manager
        self.orchestrator = orchestrator
        self.bus = bus

    async def start(self) -> None:
        """Build or load the index ahead of the first request."""
        index = await self.index_manager.get()
        logger.info(f"Index ready with {index.live_count()} chunks")

    async def create_note(self, title: str, body: str, owner_id: str) -> Note:
        # The writer initialises first, a cold build would already include the new note
        async with self.index_manager.writer() as index:
            note = await self.note_store.create(title=title, body=body, owner_id=owner_id)
            try:
                await index.add_document(note)
            except Exception:
                # Keep the store and the index in agreement
                await self.note_store.delete(note.id, owner_id)
                raise
        return note

    async def update_note(
        self,
        id: str,
        owner_id: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Optional[Note]:
        async with self.index_manager.writer() as index:
            note = await self.note_store.update(id, owner_id, title=title, body=body)
            if note is None:
                return None

            await index.update_document(note)
        return note

    async def delete_note(self, id: str, owner_id: str) -> bool:
        async with self.index_manager.writer() as index:
            deleted = await self.note_store.delete(id, owner_id)
            if deleted:
                await index.remove_document(id)
        return deleted

    async def ask(self, question: str, owner_id: str) -> list[RelatedNote]:
        """Ask a question; the answer streams to ``subscribe(owner_id)``."""
        results = await self.orchestrator.ask_question(question, owner_id)
        return related_notes(results)

    def subscribe(self, owner_id: str) -> Subscription:
        return self.bus.subscribe(owner_id)

    async def aclose(self) -> None:
        await self.orchestrator.aclose()


def create_embedding(config: NoteChatConfig) -> BaseEmbedding:
    """Create the embedding model named in the config."""
    if config.embedding_provider == "local":
        return LocalEmbedding(model_name=config.embedding_model)
    if config.embedding_provider == "fake":
        return FakeEmbedding()
    return OpenAIEmbedding(
        model=config.embedding_model,
        api_key=config.api_key,
        base_url=config.base_url,
    )


def build_assistant(
    config: Optional[NoteChatConfig] = None,
    note_store: Optional[InMemoryNoteStore] = None,
    embedding: Optional[BaseEmbedding] = None,
    provider: Optional[BaseCompletionProvider] = None,
) -> NotesAssistant:
    """
    Build a notes assistant from configuration.

    Args:
        config: Configuration (defaults if None)
        note_store: Note store (empty in-memory store if None)
        embedding: Embedding model (from config if None)
        provider: Completion provider (OpenAI from config if None)

    Returns:
        NotesAssistant instance; call ``start()`` to warm the index
    """
    config = config or NoteChatConfig()
    set_log_level(config.log_level)

    note_store = note_store if note_store is not None else InMemoryNoteStore()
    embedding = embedding or create_embedding(config)
    provider = provider or OpenAICompletionProvider(
        model=config.completion_model,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature,
    )

    index_manager = IndexManager(
        note_store,
        embedding,
        chunker=RecursiveChunker(chunk_size=config.chunk_size, overlap=config.chunk_overlap),
        snapshot_path=config.snapshot_path,
    )
    bus = EventBus(queue_size=config.subscriber_queue_size)
    orchestrator = ChatOrchestrator(index_manager, provider, bus, top_k=config.top_k)

    return NotesAssistant(note_store, index_manager, orchestrator, bus)
