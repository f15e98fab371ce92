"""Note chunking."""

from typing import Optional

from .base import BaseChunker


class RecursiveChunker(BaseChunker):
    """Recursively chunk text using multiple separators.

    Tries to split on larger separators first (paragraphs), then
    progressively smaller ones (lines, sentences, words, characters) until
    every piece fits in ``chunk_size``. Adjacent small pieces are merged
    back together up to the limit.
    """

    DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]

    def __init__(
        self,
        chunk_size: int = 250,
        overlap: int = 0,
        separators: Optional[list[str]] = None,
    ):
        """Initialize the recursive chunker.

        Args:
            chunk_size: Maximum characters per chunk
            overlap: Number of characters to overlap between chunks
            separators: List of separators to try (in order of preference)
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("Overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.separators = separators or self.DEFAULT_SEPARATORS

    def split(self, text: str) -> list[str]:
        """Split text into chunk strings no longer than ``chunk_size``."""
        if not text or not text.strip():
            return []
        return self._split_text(text, self.separators)

    def _split_text(self, text: str, separators: list[str]) -> list[str]:
        """Recursively split text using separators."""
        # Find the best separator
        separator = separators[-1]
        remaining: list[str] = []
        for i, sep in enumerate(separators):
            if sep == "":
                separator = sep
                break
            if sep in text:
                separator = sep
                remaining = separators[i + 1:]
                break

        chunks: list[str] = []
        fitting: list[str] = []

        for piece in self._split_keep_separator(text, separator):
            if len(piece) <= self.chunk_size:
                fitting.append(piece)
                continue

            if fitting:
                chunks.extend(self._merge(fitting))
                fitting = []

            if remaining:
                chunks.extend(self._split_text(piece, remaining))
            else:
                chunks.extend(self._split_fixed(piece))

        if fitting:
            chunks.extend(self._merge(fitting))

        return chunks

    @staticmethod
    def _split_keep_separator(text: str, separator: str) -> list[str]:
        if separator == "":
            return list(text)

        splits = text.split(separator)
        # Add separator back (except for last split)
        return [
            split + separator if i < len(splits) - 1 else split
            for i, split in enumerate(splits)
            if split or i < len(splits) - 1
        ]

    def _merge(self, pieces: list[str]) -> list[str]:
        """Greedily merge pieces into chunks of at most ``chunk_size``."""
        chunks: list[str] = []
        current: list[str] = []
        total = 0

        for piece in pieces:
            if current and total + len(piece) > self.chunk_size:
                self._emit(chunks, current)

                # Keep a tail of the previous chunk as overlap
                while current and (
                    total > self.overlap or total + len(piece) > self.chunk_size
                ):
                    total -= len(current.pop(0))

            current.append(piece)
            total += len(piece)

        self._emit(chunks, current)
        return chunks

    @staticmethod
    def _emit(chunks: list[str], current: list[str]) -> None:
        text = "".join(current).strip()
        if text:
            chunks.append(text)

    def _split_fixed(self, text: str) -> list[str]:
        """Fall back to fixed-size splitting."""
        chunks = []
        step = self.chunk_size - self.overlap
        for start in range(0, len(text), step):
            piece = text[start:start + self.chunk_size].strip()
            if piece:
                chunks.append(piece)
            if start + self.chunk_size >= len(text):
                break
        return chunks
