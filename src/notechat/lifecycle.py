"""Index lifecycle management.

``IndexManager`` owns the process's single vector index. The first caller
of :meth:`IndexManager.get` starts initialisation (load the snapshot, or
rebuild from the note store); every concurrent or later caller awaits that
same initialisation instead of starting its own.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from .base import BaseChunker, BaseEmbedding, BaseNoteStore
from .chunking import RecursiveChunker
from .errors import IndexLoadFailure
from .vectorstore import MemoryVectorIndex, PersistentVectorIndex

logger = logging.getLogger(__name__)


class IndexManager:
    """Produces one shared, ready-to-use vector index.

    Example:
        ```python
        manager = IndexManager(note_store, OpenAIEmbedding(), snapshot_path="index.json")
        index = await manager.get()
        await index.add_document(note)
        ```
    """

    def __init__(
        self,
        note_store: BaseNoteStore,
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
        snapshot_path: Optional[str | Path] = None,
    ):
        """Initialize the manager.

        Args:
            note_store: Source of truth the index is rebuilt from
            embedding: Embedding model for chunks and queries
            chunker: Note chunker (default: RecursiveChunker)
            snapshot_path: Where the index snapshot lives. None keeps the
                index in memory only and rebuilds it on every cold start.
        """
        self.note_store = note_store
        self.embedding = embedding
        self.chunker = chunker or RecursiveChunker()
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None

        self._lock = asyncio.Lock()
        # Held by writers and for the whole of a rebuild
        self._write_gate = asyncio.Lock()
        self._task: Optional[asyncio.Future[MemoryVectorIndex]] = None

    @property
    def persistent(self) -> bool:
        return self.snapshot_path is not None

    @property
    def ready(self) -> bool:
        """True once initialisation has completed successfully."""
        return (
            self._task is not None
            and self._task.done()
            and not self._task.cancelled()
            and self._task.exception() is None
        )

    async def get(self) -> MemoryVectorIndex:
        """Return the shared index, initialising it on first use."""
        async with self._lock:
            if self._task is None:
                self._task = asyncio.create_task(self._initialize())
            task = self._task

        try:
            # Shield so one cancelled waiter does not cancel everyone's build
            return await asyncio.shield(task)
        except Exception:
            async with self._lock:
                if self._task is task:
                    # Let a later call retry
                    self._task = None
            raise

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[MemoryVectorIndex]:
        """Borrow the current index for a mutation.

        Writers are kept out while :meth:`rebuild` runs and then receive
        the rebuilt index, so no note change lands in an index that is
        about to be replaced.

        Example:
            ```python
            async with manager.writer() as index:
                note = await note_store.create(...)
                await index.add_document(note)
            ```
        """
        await self.get()
        async with self._write_gate:
            yield await self.get()

    async def rebuild(self) -> MemoryVectorIndex:
        """Rebuild the index from the note store and swap it in.

        Drops every tombstoned record. Out-of-band maintenance: mutations
        made through :meth:`writer` wait for the swap and go to the new
        index. Callers still holding the old handle must not mutate it.
        """
        async with self._write_gate:
            index = await self._build()
            async with self._lock:
                self._task = asyncio.get_running_loop().create_future()
                self._task.set_result(index)

        logger.info(f"Rebuilt index with {index.live_count()} chunks")
        return index

    async def _initialize(self) -> MemoryVectorIndex:
        if self.snapshot_path is not None:
            try:
                index = await PersistentVectorIndex.load(
                    self.snapshot_path, self.embedding, self.chunker
                )
            except IndexLoadFailure as e:
                logger.warning(f"{e.message}; rebuilding from note store")
                index = None

            if index is not None:
                return index

        return await self._build()

    async def _build(self) -> MemoryVectorIndex:
        notes = await self.note_store.get_all_notes()
        logger.info(f"Building index from {len(notes)} notes")

        if self.snapshot_path is not None:
            return await PersistentVectorIndex.from_notes(
                notes,
                self.embedding,
                self.chunker,
                snapshot_path=self.snapshot_path,
            )
        return await MemoryVectorIndex.from_notes(notes, self.embedding, self.chunker)
