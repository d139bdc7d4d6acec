"""Embeddings for memory texts.

``Embeddings`` is the ``embedding_fn`` handed to ``VectorMemory`` when
``memory.embedding_model`` is configured. Vectors come from
``litellm.embedding()``; when the API is unreachable, ChromaDB's bundled
default embedder takes over for that batch. Both are only usable together
while they agree on the vector size, since a collection cannot mix sizes.
"""

from __future__ import annotations

from typing import Any

import litellm
from chromadb.utils.embedding_functions import DefaultEmbeddingFunction
from loguru import logger

from mimicbot.errors import MimicError


class EmbeddingError(MimicError):
    """Neither the configured model nor the local embedder produced usable vectors."""


def _as_floats(vectors: Any) -> list[list[float]]:
    # ChromaDB rejects numpy float32 values
    return [[float(x) for x in vector] for vector in vectors]


class Embeddings:
    """Callable ``texts -> vectors``.

    Usage:
        embed = Embeddings("openai/text-embedding-3-small", api_key="...")
        VectorMemory(path="data/memory", embedding_fn=embed)
    """

    def __init__(
        self,
        model: str = "openai/text-embedding-3-small",
        api_key: str | None = None,
        api_base: str | None = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.dimension: int | None = None
        self._local: DefaultEmbeddingFunction | None = None

    def __call__(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self._remote(texts)
        except Exception as e:
            logger.warning(f"Embeddings: {self.model} failed ({e}), using the local embedder")
            try:
                vectors = self._fallback(texts)
            except Exception as local_error:
                raise EmbeddingError(f"{self.model}: {e}; local embedder: {local_error}") from local_error
        return self._checked(vectors)

    def _remote(self, texts: list[str]) -> list[list[float]]:
        kwargs: dict[str, Any] = {"model": self.model, "input": texts}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        response = litellm.embedding(**kwargs)
        return _as_floats(item["embedding"] for item in response.data)

    def _fallback(self, texts: list[str]) -> list[list[float]]:
        if self._local is None:
            self._local = DefaultEmbeddingFunction()
        return _as_floats(self._local(texts))

    def _checked(self, vectors: list[list[float]]) -> list[list[float]]:
        size = len(vectors[0]) if vectors else None
        if size is None:
            return vectors
        if self.dimension is None:
            self.dimension = size
            logger.info(f"Embeddings: vector size is {size}")
        elif size != self.dimension:
            raise EmbeddingError(f"got {size}-dimensional vectors, the store holds {self.dimension}")
        return vectors
