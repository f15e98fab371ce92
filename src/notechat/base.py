"""Base classes and abstract interfaces for the notes RAG components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .document import Chunk, ChunkMetadata, Note, SearchResult

MetadataFilter = Callable[["ChunkMetadata"], bool]


class BaseEmbedding(ABC):
    """Abstract base class for embedding models.

    Embedding models convert text into dense vector representations.
    Implementations must raise on failure, never return an empty or null
    vector.
    """

    @abstractmethod
    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, one per input text

        Raises:
            EmbeddingFailure: If the provider fails or rejects the input
        """
        pass

    @abstractmethod
    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query.

        Args:
            text: Query text to embed

        Returns:
            Embedding vector

        Raises:
            EmbeddingFailure: If the provider fails or rejects the input
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        pass


class BaseChunker(ABC):
    """Abstract base class for note chunkers."""

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split raw text into chunk strings."""
        pass

    def chunk(self, note: "Note") -> list["Chunk"]:
        """Split a single note into chunks carrying its metadata."""
        from .document import Chunk, ChunkMetadata

        metadata = ChunkMetadata.from_note(note)
        return [
            Chunk(content=text, metadata=metadata.model_copy())
            for text in self.split(note.page_content)
        ]

    def split_documents(self, notes: list["Note"]) -> list["Chunk"]:
        """Split many notes, preserving each note's metadata on its chunks."""
        chunks: list["Chunk"] = []
        for note in notes:
            chunks.extend(self.chunk(note))
        return chunks


class BaseVectorIndex(ABC):
    """Abstract base class for the notes vector index.

    Records are only ever appended; removal marks them as tombstoned and
    search skips tombstoned records.
    """

    @abstractmethod
    async def add_document(self, note: "Note") -> list[int]:
        """Chunk, embed and append a note.

        Either every chunk of the note is appended or none is.

        Args:
            note: Note to index

        Returns:
            Record ids of the appended chunks
        """
        pass

    @abstractmethod
    async def remove_document(self, document_id: str) -> int:
        """Tombstone every live record belonging to a note.

        Args:
            document_id: Id of the note to remove

        Returns:
            Number of records tombstoned (0 when nothing matched)
        """
        pass

    @abstractmethod
    async def update_document(self, note: "Note") -> list[int]:
        """Replace a note's records: tombstone the old ones, then add."""
        pass

    @abstractmethod
    async def search(
        self,
        query: str,
        k: int = 5,
        filter: Optional[MetadataFilter] = None,
    ) -> list["SearchResult"]:
        """Search for the chunks most similar to a query.

        Args:
            query: Query text
            k: Maximum number of results
            filter: Predicate over chunk metadata; records failing it are
                excluded before ranking

        Returns:
            Results ordered by descending similarity
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Return the number of records, tombstoned ones included."""
        pass

    @abstractmethod
    def live_count(self) -> int:
        """Return the number of records that are not tombstoned."""
        pass


class BaseNoteStore(ABC):
    """The source-of-truth note store the index is rebuilt from."""

    @abstractmethod
    async def get_all_notes(self) -> list["Note"]:
        """Return every note of every owner."""
        pass
