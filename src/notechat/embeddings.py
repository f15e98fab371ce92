"""Embedding model implementations."""

import asyncio
import hashlib
import logging
import math
import re
from typing import Optional

from .base import BaseEmbedding
from .errors import EmbeddingFailure

logger = logging.getLogger(__name__)


def _check_vectors(vectors: list[list[float]], expected: int) -> list[list[float]]:
    """Reject provider responses that are short or contain empty vectors."""
    if len(vectors) != expected:
        raise EmbeddingFailure(
            f"Provider returned {len(vectors)} embeddings for {expected} texts"
        )
    if any(not vector for vector in vectors):
        raise EmbeddingFailure("Provider returned an empty embedding")
    return vectors


class DummyEmbedding(BaseEmbedding):
    """A dummy embedding model for testing.

    Returns identical constant vectors, so every text scores the same
    against every query.
    """

    def __init__(self, dimension: int = 8):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [[1.0] * self._dimension for _ in texts]

    async def embed_query(self, text: str) -> list[float]:
        return [1.0] * self._dimension


class FakeEmbedding(BaseEmbedding):
    """Fake embedding that generates deterministic embeddings from text.

    Each lowercase word is hashed into one of ``dimension`` buckets and the
    bucket counts are L2-normalised, so texts sharing words score higher
    against each other. Useful for tests that need predictable rankings
    without a model.
    """

    _TOKEN = re.compile(r"\w+")

    def __init__(self, dimension: int = 256, seed: int = 42):
        """Initialize the fake embedding.

        Args:
            dimension: Dimension of the embedding vectors
            seed: Hash seed for reproducibility
        """
        self._dimension = dimension
        self.seed = seed

    @property
    def dimension(self) -> int:
        return self._dimension

    def _hash_text(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in self._TOKEN.findall(text.lower()):
            digest = hashlib.sha256(f"{self.seed}:{token}".encode()).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimension] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            # Texts without words still need a usable, non-null vector
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._hash_text(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        return self._hash_text(text)


class OpenAIEmbedding(BaseEmbedding):
    """OpenAI embedding model.

    Uses OpenAI's embedding API. Any client or API error is raised as
    ``EmbeddingFailure``.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: str = "text-embedding-ada-002",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: int = 100,
    ):
        """Initialize the OpenAI embedding model.

        Args:
            model: Embedding model name
            api_key: OpenAI API key (optional, uses env var if not provided)
            base_url: Optional base URL for API
            batch_size: Batch size for embedding documents
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.batch_size = batch_size
        self._client = None

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, 1536)

    def _get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs = {}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts using the OpenAI API."""
        from openai import OpenAIError

        if not texts:
            return []

        client = self._get_client()
        all_embeddings = []

        try:
            # Process in batches
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]

                response = await client.embeddings.create(
                    model=self.model,
                    input=batch,
                )

                all_embeddings.extend(item.embedding for item in response.data)
        except OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise EmbeddingFailure(str(e) or type(e).__name__) from e

        return _check_vectors(all_embeddings, len(texts))

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query using the OpenAI API."""
        from openai import OpenAIError

        client = self._get_client()

        try:
            response = await client.embeddings.create(
                model=self.model,
                input=text,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise EmbeddingFailure(str(e) or type(e).__name__) from e

        return _check_vectors([item.embedding for item in response.data], 1)[0]


class LocalEmbedding(BaseEmbedding):
    """Local embedding model using sentence-transformers.

    Runs entirely on the local machine. Requires the ``local`` extra.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "paraphrase-multilingual-MiniLM-L12-v2": 384,
        "multi-qa-mpnet-base-dot-v1": 768,
    }

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: Optional[str] = None,
        normalize: bool = True,
    ):
        """Initialize the local embedding model.

        Args:
            model_name: Name of the sentence-transformers model
            device: Device to run on (cuda, cpu, mps). Auto-detected if None.
            normalize: Whether to normalize embeddings
        """
        self.model_name = model_name
        self.device = device
        self.normalize = normalize
        self._model = None

    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model_name, 384)

    def _get_model(self):
        """Get or load the sentence-transformers model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "Local embedding requires 'sentence-transformers'. "
                    "Install it with: pip install notechat[local]"
                )

            self._model = SentenceTransformer(self.model_name, device=self.device)
            logger.info(f"Loaded embedding model: {self.model_name}")
        return self._model

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts using the local model."""
        if not texts:
            return []

        model = self._get_model()

        # Run in thread pool to avoid blocking
        loop = asyncio.get_running_loop()
        try:
            embeddings = await loop.run_in_executor(
                None,
                lambda: model.encode(
                    texts,
                    normalize_embeddings=self.normalize,
                    convert_to_numpy=True,
                ),
            )
        except (RuntimeError, ValueError) as e:
            raise EmbeddingFailure(str(e)) from e

        return _check_vectors(embeddings.tolist(), len(texts))

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query using the local model."""
        embeddings = await self.embed_documents([text])
        return embeddings[0]
