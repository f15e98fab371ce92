"""Tests for note chunking."""

import pytest

from notechat import Note, RecursiveChunker


class TestRecursiveChunker:
    """Tests for RecursiveChunker."""

    def test_short_note_is_one_chunk(self, trip_note):
        """Test that a short note becomes a single chunk of title and body."""
        chunker = RecursiveChunker()

        chunks = chunker.chunk(trip_note)

        assert len(chunks) == 1
        assert chunks[0].content == "Trip\nParis was great."
        assert chunks[0].metadata.document_id == "n1"
        assert chunks[0].metadata.id == "n1"
        assert chunks[0].metadata.owner_id == "u1"
        assert chunks[0].metadata.title == "Trip"

    def test_empty_input(self):
        """Test that empty or blank text yields no chunks."""
        chunker = RecursiveChunker()

        assert chunker.split("") == []
        assert chunker.split("   \n\n  ") == []

    def test_paragraph_boundaries(self):
        """Test splitting on paragraphs first."""
        paragraph = ("word " * 40).strip()
        text = "\n\n".join([paragraph] * 3)
        chunker = RecursiveChunker(chunk_size=250)

        chunks = chunker.split(text)

        assert chunks == [paragraph] * 3

    def test_sentence_boundaries(self):
        """Test splitting on sentences when there are no line breaks."""
        sentence = "word " * 19 + "end."
        text = " ".join([sentence] * 4)
        chunker = RecursiveChunker(chunk_size=250)

        chunks = chunker.split(text)

        assert len(chunks) == 2
        for chunk in chunks:
            assert chunk.endswith("end.")
            assert len(chunk) <= 250

    def test_character_fallback(self):
        """Test that text without separators is cut into full-size pieces."""
        chunker = RecursiveChunker(chunk_size=250)

        chunks = chunker.split("a" * 1000)

        assert [len(c) for c in chunks] == [250, 250, 250, 250]

    def test_chunks_never_exceed_max(self):
        """Test the size bound on mixed text."""
        text = (
            "Intro line\n"
            + "A very long sentence without much punctuation " * 12
            + "\n\n"
            + "x" * 600
            + "\n\nShort tail."
        )
        chunker = RecursiveChunker(chunk_size=250)

        chunks = chunker.split(text)

        assert chunks
        assert all(0 < len(c) <= 250 for c in chunks)

    def test_deterministic(self):
        """Test that identical input yields identical chunks."""
        text = "First paragraph.\n\n" + "Second paragraph sentence. " * 30
        chunker = RecursiveChunker()

        assert chunker.split(text) == chunker.split(text)
        assert RecursiveChunker().split(text) == chunker.split(text)

    def test_no_overlap_by_default(self):
        """Test that consecutive chunks do not repeat words by default."""
        words = [f"w{i}" for i in range(200)]
        chunker = RecursiveChunker(chunk_size=50)

        chunks = chunker.split(" ".join(words))

        assert " ".join(chunks).split(" ") == words

    def test_overlap(self):
        """Test carrying a tail of the previous chunk forward."""
        chunker = RecursiveChunker(chunk_size=15, overlap=5)

        chunks = chunker.split("one two three four five six seven eight nine ten")

        assert chunks == ["one two three", "four five six", "six seven", "eight nine ten"]

    def test_invalid_overlap(self):
        """Test that overlap must be smaller than the chunk size."""
        with pytest.raises(ValueError):
            RecursiveChunker(chunk_size=100, overlap=100)

    def test_split_documents_preserves_metadata(self):
        """Test that every chunk carries its own note's metadata."""
        notes = [
            Note(id="a", title="Alpha", body="alpha " * 100, owner_id="u1"),
            Note(id="b", title="Beta", body="beta", owner_id="u2"),
        ]
        chunker = RecursiveChunker()

        chunks = chunker.split_documents(notes)

        a_chunks = [c for c in chunks if c.metadata.document_id == "a"]
        b_chunks = [c for c in chunks if c.metadata.document_id == "b"]
        assert len(a_chunks) > 1
        assert all(c.metadata.owner_id == "u1" and c.metadata.title == "Alpha" for c in a_chunks)
        assert [c.content for c in b_chunks] == ["Beta\nbeta"]
        assert b_chunks[0].metadata.owner_id == "u2"

    def test_metadata_transport_form(self, trip_note):
        """Test that chunk metadata renders the note id as ``id`` for clients."""
        metadata = RecursiveChunker().chunk(trip_note)[0].metadata

        assert metadata.model_dump(by_alias=True) == {"id": "n1", "title": "Trip", "owner_id": "u1"}
        assert metadata.model_dump()["document_id"] == "n1"
        assert type(metadata).model_validate(metadata.model_dump()) == metadata
