"""Note, chunk and index record data structures."""

from pydantic import BaseModel, Field


class Note(BaseModel):
    """An owner-scoped note, as held by the note store.

    Attributes:
        id: Stable identifier of the note
        title: Note title
        body: Note body text
        owner_id: Identity of the user who owns the note
    """

    id: str
    title: str
    body: str
    owner_id: str

    @property
    def page_content(self) -> str:
        """Text that gets chunked and embedded for this note."""
        return f"{self.title}\n{self.body}"

    def __repr__(self) -> str:
        return f"Note(id={self.id!r}, title={self.title!r}, owner_id={self.owner_id!r})"


class ChunkMetadata(BaseModel):
    """Metadata copied from a note onto every chunk it produces.

    Dumped with ``by_alias=True`` (the transport form) ``document_id`` is
    rendered as ``id``; snapshots keep the field name.
    """

    document_id: str = Field(serialization_alias="id")
    title: str
    owner_id: str

    @property
    def id(self) -> str:
        """Alias for ``document_id``."""
        return self.document_id

    @classmethod
    def from_note(cls, note: Note) -> "ChunkMetadata":
        return cls(document_id=note.id, title=note.title, owner_id=note.owner_id)


class Chunk(BaseModel):
    """A bounded slice of a note's text.

    Chunks have no lifecycle of their own; they only exist as index records
    once embedded.
    """

    content: str
    metadata: ChunkMetadata

    def __repr__(self) -> str:
        content_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return f"Chunk(doc_id={self.metadata.document_id!r}, content={content_preview!r})"


class IndexRecord(BaseModel):
    """The unit stored in a vector index.

    Attributes:
        record_id: Dense insertion-order identifier
        content: The chunk text
        embedding: Embedding vector of the chunk text
        metadata: Source note metadata
        deleted: Tombstone flag, deleted records are never returned by search
    """

    record_id: int
    content: str
    embedding: list[float]
    metadata: ChunkMetadata
    deleted: bool = False

    def __repr__(self) -> str:
        return (
            f"IndexRecord(record_id={self.record_id}, "
            f"doc_id={self.metadata.document_id!r}, deleted={self.deleted})"
        )


class SearchResult(BaseModel):
    """A ranked match from a vector index search.

    Attributes:
        record: The matching record
        score: Cosine similarity (higher is better)
    """

    record: IndexRecord
    score: float

    @property
    def content(self) -> str:
        return self.record.content

    @property
    def metadata(self) -> ChunkMetadata:
        return self.record.metadata

    def __repr__(self) -> str:
        return f"SearchResult(record_id={self.record.record_id}, score={self.score:.4f})"


class RelatedNote(BaseModel):
    """A note surfaced alongside an answer."""

    id: str
    title: str
    score: float = Field(default=0.0)
