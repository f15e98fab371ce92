"""Vector index implementations."""

import asyncio
import logging
import math
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from pydantic import BaseModel, ValidationError

from .base import BaseChunker, BaseEmbedding, BaseVectorIndex, MetadataFilter
from .chunking import RecursiveChunker
from .document import Chunk, ChunkMetadata, IndexRecord, Note, SearchResult
from .errors import EmbeddingFailure, IndexLoadFailure

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def owner_filter(owner_id: str) -> MetadataFilter:
    """Build a filter that only accepts chunks owned by ``owner_id``."""

    def _matches(metadata: ChunkMetadata) -> bool:
        return isinstance(metadata.owner_id, str) and metadata.owner_id == owner_id

    return _matches


class MemoryVectorIndex(BaseVectorIndex):
    """In-memory vector index with exact similarity search.

    Holds one corpus for the lifetime of the process and is rebuilt from
    the note store on every cold start. Mutations are serialised by a lock;
    searches read a snapshot of the record list and never wait on it.
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
        records: Optional[list[IndexRecord]] = None,
    ) -> None:
        """Initialize the index.

        Args:
            embedding: Embedding model for chunks and queries
            chunker: Note chunker (default: RecursiveChunker)
            records: Records to start from, e.g. from a snapshot
        """
        self.embedding = embedding
        self.chunker = chunker or RecursiveChunker()
        self._records: list[IndexRecord] = list(records or [])
        self._lock = asyncio.Lock()

    @classmethod
    async def from_notes(
        cls,
        notes: list[Note],
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
        **kwargs,
    ) -> "MemoryVectorIndex":
        """Bulk-build an index from a full note corpus."""
        index = cls(embedding, chunker, **kwargs)
        chunks = index.chunker.split_documents(notes)

        logger.info(f"Creating embeddings for {len(notes)} notes ({len(chunks)} chunks)")
        embeddings = await index._embed_chunks(chunks)

        async with index._transaction():
            index._append(chunks, embeddings)

        return index

    async def add_document(self, note: Note) -> list[int]:
        """Add a note to the index."""
        chunks = self.chunker.chunk(note)
        if not chunks:
            logger.debug(f"Note {note.id} produced no chunks")
            return []

        # Embed before taking the lock; a failure leaves the index untouched
        embeddings = await self._embed_chunks(chunks)

        async with self._transaction():
            record_ids = self._append(chunks, embeddings)

        logger.info(f"Added note {note.id} to index ({len(record_ids)} chunks)")
        return record_ids

    async def remove_document(self, document_id: str) -> int:
        """Tombstone all records of a note."""
        async with self._transaction():
            removed = self._tombstone(document_id)

        if removed:
            logger.info(f"Removed note {document_id} from index ({removed} chunks)")
        else:
            logger.warning(f"No indexed chunks found for note {document_id}, nothing removed")
        return removed

    async def update_document(self, note: Note) -> list[int]:
        """Replace a note's records with freshly embedded ones."""
        chunks = self.chunker.chunk(note)
        embeddings = await self._embed_chunks(chunks) if chunks else []

        async with self._transaction():
            removed = self._tombstone(note.id)
            record_ids = self._append(chunks, embeddings)

        logger.info(
            f"Updated note {note.id} in index "
            f"({removed} chunks replaced by {len(record_ids)})"
        )
        return record_ids

    async def search(
        self,
        query: str,
        k: int = 5,
        filter: Optional[MetadataFilter] = None,
    ) -> list[SearchResult]:
        """Search for similar chunks using cosine similarity."""
        if k <= 0:
            return []

        query_embedding = await self._embed_query(query)

        # Calculate similarities over a snapshot of the live records
        similarities: list[tuple[float, IndexRecord]] = []
        for record in list(self._records):
            if record.deleted:
                continue
            if filter is not None and not filter(record.metadata):
                continue

            score = cosine_similarity(query_embedding, record.embedding)
            similarities.append((score, record))

        # Stable sort keeps insertion order for equal scores
        similarities.sort(key=lambda x: x[0], reverse=True)

        return [
            SearchResult(record=record.model_copy(), score=score)
            for score, record in similarities[:k]
        ]

    async def compact(self) -> int:
        """Drop tombstoned records and renumber the rest.

        Maintenance operation, not used on the indexing or query path.

        Returns:
            Number of records dropped
        """
        async with self._transaction():
            live = [record for record in self._records if not record.deleted]
            dropped = len(self._records) - len(live)
            self._records = [
                record.model_copy(update={"record_id": i})
                for i, record in enumerate(live)
            ]

        logger.info(f"Compacted index, dropped {dropped} tombstoned chunks")
        return dropped

    def count(self) -> int:
        """Return the number of records, tombstoned ones included."""
        return len(self._records)

    def live_count(self) -> int:
        """Return the number of records that are not tombstoned."""
        return sum(1 for record in self._records if not record.deleted)

    def records(self) -> list[IndexRecord]:
        """Return copies of all records in insertion order."""
        return [record.model_copy() for record in self._records]

    def _append(self, chunks: list[Chunk], embeddings: list[list[float]]) -> list[int]:
        if len(chunks) != len(embeddings):
            raise ValueError("Number of chunks must match number of embeddings")

        start = len(self._records)
        new_records = [
            IndexRecord(
                record_id=start + i,
                content=chunk.content,
                embedding=embedding,
                metadata=chunk.metadata,
            )
            for i, (chunk, embedding) in enumerate(zip(chunks, embeddings))
        ]
        self._records.extend(new_records)
        return [record.record_id for record in new_records]

    def _tombstone(self, document_id: str) -> int:
        removed = 0
        for record in self._records:
            if not record.deleted and record.metadata.document_id == document_id:
                record.deleted = True
                removed += 1
        return removed

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        """Hold the lock for one mutation and persist it.

        If persisting fails the records are restored to their state before
        the mutation, so memory never holds changes the caller saw fail.
        """
        async with self._lock:
            records = list(self._records)
            deleted = [record.deleted for record in records]
            try:
                yield
                await self._after_mutation()
            except Exception:
                for record, flag in zip(records, deleted):
                    record.deleted = flag
                self._records = records
                raise

    async def _after_mutation(self) -> None:
        """Called with the lock held after every mutation."""

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[list[float]]:
        if not chunks:
            return []
        try:
            return await self.embedding.embed_documents([chunk.content for chunk in chunks])
        except EmbeddingFailure:
            raise
        except Exception as e:
            raise EmbeddingFailure(str(e) or type(e).__name__) from e

    async def _embed_query(self, query: str) -> list[float]:
        try:
            return await self.embedding.embed_query(query)
        except EmbeddingFailure:
            raise
        except Exception as e:
            raise EmbeddingFailure(str(e) or type(e).__name__) from e


class IndexSnapshot(BaseModel):
    """On-disk representation of a vector index."""

    version: int = SNAPSHOT_VERSION
    dimension: Optional[int] = None
    records: list[IndexRecord] = []


class PersistentVectorIndex(MemoryVectorIndex):
    """Vector index persisted to a JSON snapshot.

    The snapshot is rewritten after every successful mutation, before the
    mutating call returns, so a cold start resumes from the latest state.
    """

    def __init__(
        self,
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
        records: Optional[list[IndexRecord]] = None,
        snapshot_path: str | Path = "notechat_index.json",
    ) -> None:
        """Initialize the persistent index.

        Args:
            embedding: Embedding model for chunks and queries
            chunker: Note chunker (default: RecursiveChunker)
            records: Records to start from
            snapshot_path: File the snapshot is written to
        """
        super().__init__(embedding, chunker, records)
        self.snapshot_path = Path(snapshot_path)

    @classmethod
    async def load(
        cls,
        snapshot_path: str | Path,
        embedding: BaseEmbedding,
        chunker: Optional[BaseChunker] = None,
    ) -> Optional["PersistentVectorIndex"]:
        """Load an index from its snapshot.

        Returns:
            The loaded index, or None if no snapshot exists

        Raises:
            IndexLoadFailure: If the snapshot exists but cannot be used
        """
        path = Path(snapshot_path)
        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(None, cls._read_snapshot, path)
        if snapshot is None:
            return None

        if snapshot.records and snapshot.dimension != embedding.dimension:
            raise IndexLoadFailure(
                str(path),
                f"dimension {snapshot.dimension} does not match "
                f"embedding dimension {embedding.dimension}",
            )

        logger.info(f"Loaded index snapshot from {path} ({len(snapshot.records)} chunks)")
        return cls(embedding, chunker, snapshot.records, snapshot_path=path)

    @staticmethod
    def _read_snapshot(path: Path) -> Optional[IndexSnapshot]:
        if not path.exists():
            return None

        try:
            snapshot = IndexSnapshot.model_validate_json(path.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            raise IndexLoadFailure(str(path), str(e)) from e

        if snapshot.version != SNAPSHOT_VERSION:
            raise IndexLoadFailure(str(path), f"unsupported version {snapshot.version}")
        return snapshot

    async def save(self) -> None:
        """Write the snapshot atomically."""
        snapshot = IndexSnapshot(
            dimension=len(self._records[0].embedding) if self._records else None,
            records=list(self._records),
        )
        data = snapshot.model_dump_json()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_snapshot, data)
        logger.debug(f"Saved index snapshot to {self.snapshot_path}")

    def _write_snapshot(self, data: str) -> None:
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.snapshot_path.with_name(self.snapshot_path.name + ".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        os.replace(tmp_path, self.snapshot_path)

    async def _after_mutation(self) -> None:
        await self.save()
