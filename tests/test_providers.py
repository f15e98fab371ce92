"""Tests for completion and embedding providers."""

import math
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from notechat import (
    DummyEmbedding,
    EmbeddingFailure,
    FakeCompletionProvider,
    FakeEmbedding,
    GenerationFailure,
    LocalEmbedding,
    NoteChatConfig,
    OpenAICompletionProvider,
    OpenAIEmbedding,
    StreamHandler,
    cosine_similarity,
)
from notechat.app import create_embedding


class RecordingHandler(StreamHandler):
    """Handler that records every callback."""

    def __init__(self):
        self.calls = []

    def on_start(self):
        self.calls.append(("start",))

    def on_token(self, text):
        self.calls.append(("token", text))

    def on_end(self):
        self.calls.append(("end",))

    def on_error(self, error):
        self.calls.append(("error", str(error)))


class FakeStream:
    """Stand-in for the OpenAI streaming response."""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error

    async def close(self):
        self.closed = True


def completion_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def completions_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def embeddings_client(create):
    return SimpleNamespace(embeddings=SimpleNamespace(create=create))


class TestStreamComplete:
    """Tests for BaseCompletionProvider.stream_complete."""

    @pytest.mark.asyncio
    async def test_callback_order(self):
        """Test start, one token per word, then end."""
        provider = FakeCompletionProvider(response="Paris was great.")
        handler = RecordingHandler()

        answer = await provider.stream_complete([{"role": "user", "content": "hi"}], handler)

        assert answer == "Paris was great."
        assert handler.calls == [
            ("start",),
            ("token", "Paris"),
            ("token", " was"),
            ("token", " great."),
            ("end",),
        ]
        assert provider.closed == 1

    @pytest.mark.asyncio
    async def test_error_replaces_end(self):
        """Test that a failure is reported once and ends the stream."""
        provider = FakeCompletionProvider(response="a b c", fail_after=2, error="quota exceeded")
        handler = RecordingHandler()

        answer = await provider.stream_complete([], handler)

        assert answer == "a b"
        assert handler.calls == [
            ("start",),
            ("token", "a"),
            ("token", " b"),
            ("error", "quota exceeded"),
        ]

    @pytest.mark.asyncio
    async def test_failure_after_last_token(self):
        """Test a provider that fails once every token was sent."""
        provider = FakeCompletionProvider(response="a b", fail_after=2)
        handler = RecordingHandler()

        await provider.stream_complete([], handler)

        assert handler.calls[-1] == ("error", "model unavailable")
        assert ("end",) not in handler.calls


class TestOpenAICompletionProvider:
    """Tests for OpenAICompletionProvider with a stubbed client."""

    @pytest.mark.asyncio
    async def test_streams_content_deltas(self):
        """Test that empty deltas are skipped and the stream is closed."""
        stream = FakeStream([
            completion_chunk("Hello"),
            completion_chunk(None),
            SimpleNamespace(choices=[]),
            completion_chunk(" world"),
        ])
        params = {}

        async def create(**kwargs):
            params.update(kwargs)
            return stream

        provider = OpenAICompletionProvider(model="gpt-test", max_tokens=32)
        provider._client = completions_client(create)

        tokens = [t async for t in provider.stream([{"role": "user", "content": "hi"}])]

        assert tokens == ["Hello", " world"]
        assert stream.closed
        assert params["model"] == "gpt-test"
        assert params["stream"] is True
        assert params["max_tokens"] == 32

    @pytest.mark.asyncio
    async def test_request_error(self):
        """Test that a failed request raises GenerationFailure."""
        async def create(**kwargs):
            raise OpenAIError("invalid api key")

        provider = OpenAICompletionProvider()
        provider._client = completions_client(create)

        with pytest.raises(GenerationFailure, match="invalid api key"):
            async for _ in provider.stream([]):
                pass

    @pytest.mark.asyncio
    async def test_midstream_error_reaches_handler(self):
        """Test that a broken stream becomes an error callback."""
        stream = FakeStream([completion_chunk("Hel")], error=OpenAIError("connection reset"))

        async def create(**kwargs):
            return stream

        provider = OpenAICompletionProvider()
        provider._client = completions_client(create)
        handler = RecordingHandler()

        answer = await provider.stream_complete([], handler)

        assert answer == "Hel"
        assert handler.calls[-1] == ("error", "connection reset")
        assert stream.closed


class TestFakeEmbedding:
    """Tests for FakeEmbedding."""

    @pytest.mark.asyncio
    async def test_deterministic(self):
        """Test that the same text always maps to the same vector."""
        embedding = FakeEmbedding()

        first = await embedding.embed_query("Paris was great")
        second = (await FakeEmbedding().embed_documents(["Paris was great"]))[0]

        assert first == second
        assert len(first) == embedding.dimension
        assert math.isclose(math.sqrt(sum(v * v for v in first)), 1.0)

    @pytest.mark.asyncio
    async def test_shared_words_score_higher(self):
        """Test that similarity follows word overlap."""
        embedding = FakeEmbedding()
        query = await embedding.embed_query("paris trip")
        close, far = await embedding.embed_documents(["Paris trip notes", "buy milk"])

        assert cosine_similarity(query, close) > cosine_similarity(query, far)

    @pytest.mark.asyncio
    async def test_text_without_words(self):
        """Test that punctuation-only text still gets a usable vector."""
        vector = await FakeEmbedding(dimension=4).embed_query("?!")

        assert vector == [1.0, 0.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_dummy_embedding(self):
        """Test the constant embedding."""
        embedding = DummyEmbedding(dimension=3)

        assert await embedding.embed_documents(["a", "b"]) == [[1.0] * 3, [1.0] * 3]
        assert await embedding.embed_query("c") == [1.0] * 3


class TestOpenAIEmbedding:
    """Tests for OpenAIEmbedding with a stubbed client."""

    @pytest.mark.asyncio
    async def test_batches_documents(self):
        """Test that documents are sent in batches and kept in order."""
        batches = []

        async def create(model, input):
            batches.append(input)
            return SimpleNamespace(data=[
                SimpleNamespace(embedding=[float(len(text))]) for text in input
            ])

        embedding = OpenAIEmbedding(batch_size=2)
        embedding._client = embeddings_client(create)

        vectors = await embedding.embed_documents(["a", "bb", "ccc"])

        assert batches == [["a", "bb"], ["ccc"]]
        assert vectors == [[1.0], [2.0], [3.0]]

    @pytest.mark.asyncio
    async def test_api_error(self):
        """Test that API errors are raised as EmbeddingFailure."""
        async def create(model, input):
            raise OpenAIError("rate limited")

        embedding = OpenAIEmbedding()
        embedding._client = embeddings_client(create)

        with pytest.raises(EmbeddingFailure, match="rate limited"):
            await embedding.embed_query("hello")

    @pytest.mark.asyncio
    async def test_short_response(self):
        """Test that a missing vector is an embedding failure."""
        async def create(model, input):
            return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1])])

        embedding = OpenAIEmbedding()
        embedding._client = embeddings_client(create)

        with pytest.raises(EmbeddingFailure):
            await embedding.embed_documents(["one", "two"])

    def test_known_dimensions(self):
        """Test the dimension lookup."""
        assert OpenAIEmbedding(model="text-embedding-3-large").dimension == 3072
        assert OpenAIEmbedding().dimension == 1536


class StubVectors:
    """Array-like result of a sentence-transformers encode call."""

    def __init__(self, rows):
        self.rows = rows

    def tolist(self):
        return self.rows


class StubSentenceModel:
    """Stand-in for a loaded SentenceTransformer."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def encode(self, texts, **kwargs):
        self.calls.append((texts, kwargs))
        if self.error:
            raise self.error
        return StubVectors([[float(len(text)), 1.0] for text in texts])


class TestLocalEmbedding:
    """Tests for LocalEmbedding with a stubbed model."""

    @pytest.mark.asyncio
    async def test_encodes_off_the_event_loop(self):
        """Test that texts are encoded in one call with normalisation."""
        model = StubSentenceModel()
        embedding = LocalEmbedding()
        embedding._model = model

        vectors = await embedding.embed_documents(["ab", "abcd"])
        query = await embedding.embed_query("abc")

        assert vectors == [[2.0, 1.0], [4.0, 1.0]]
        assert query == [3.0, 1.0]
        assert model.calls[0][1]["normalize_embeddings"] is True

    @pytest.mark.asyncio
    async def test_no_texts_skips_model(self):
        """Test that an empty batch never loads or calls the model."""
        model = StubSentenceModel()
        embedding = LocalEmbedding()
        embedding._model = model

        assert await embedding.embed_documents([]) == []
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_model_error(self):
        """Test that model errors are raised as EmbeddingFailure."""
        embedding = LocalEmbedding()
        embedding._model = StubSentenceModel(error=RuntimeError("CUDA out of memory"))

        with pytest.raises(EmbeddingFailure, match="CUDA out of memory"):
            await embedding.embed_query("hello")

    def test_selected_by_config(self):
        """Test that the local provider is built from configuration."""
        embedding = create_embedding(
            NoteChatConfig(embedding_provider="local", embedding_model="all-mpnet-base-v2")
        )

        assert isinstance(embedding, LocalEmbedding)
        assert embedding.dimension == 768
