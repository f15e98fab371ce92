"""
Test configuration and fixtures.
"""

import asyncio

import pytest

from notechat import (
    BaseEmbedding,
    FakeEmbedding,
    InMemoryNoteStore,
    Note,
)
from notechat.utils.config import ENV_OVERRIDES


class FlakyEmbedding(BaseEmbedding):
    """FakeEmbedding wrapper that fails on chosen calls or texts."""

    def __init__(self, fail_calls: int = 0, fail_on_text: str | None = None):
        self.inner = FakeEmbedding()
        self.fail_calls = fail_calls
        self.fail_on_text = fail_on_text
        self.calls = 0

    @property
    def dimension(self) -> int:
        return self.inner.dimension

    def _maybe_fail(self, texts: list[str]) -> None:
        self.calls += 1
        if self.calls <= self.fail_calls:
            raise RuntimeError("embedding service unreachable")
        if self.fail_on_text and any(self.fail_on_text in text for text in texts):
            raise RuntimeError(f"rejected input containing {self.fail_on_text!r}")

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self._maybe_fail(texts)
        return await self.inner.embed_documents(texts)

    async def embed_query(self, text: str) -> list[float]:
        self._maybe_fail([text])
        return await self.inner.embed_query(text)


class CountingNoteStore(InMemoryNoteStore):
    """Note store that counts full-corpus reads and answers slowly."""

    def __init__(self, notes=None, delay: float = 0.01):
        super().__init__(notes)
        self.delay = delay
        self.reads = 0

    async def get_all_notes(self) -> list[Note]:
        self.reads += 1
        await asyncio.sleep(self.delay)
        return await super().get_all_notes()


@pytest.fixture
def trip_note():
    """The single-note corpus from the product scenario."""
    return Note(id="n1", title="Trip", body="Paris was great.", owner_id="u1")


@pytest.fixture
def two_owner_notes():
    """Notes of two owners with overlapping vocabulary."""
    return [
        Note(id="a1", title="Paris trip", body="The Paris trip was great, lovely food.", owner_id="alice"),
        Note(id="a2", title="Groceries", body="Buy milk and eggs.", owner_id="alice"),
        Note(id="b1", title="Paris trip", body="The Paris trip was great, terrible hotel.", owner_id="bob"),
        Note(id="b2", title="Paris plans", body="Paris trip budget and Paris trip dates.", owner_id="bob"),
    ]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that override configuration."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def flaky_embedding():
    """Factory for embeddings that fail on demand."""
    return FlakyEmbedding


@pytest.fixture
def counting_store():
    """Factory for note stores that count corpus reads."""
    return CountingNoteStore
