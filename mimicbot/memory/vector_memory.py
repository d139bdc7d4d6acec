"""VectorMemory - ChromaDB-backed store for long-term memories.

Each memory is one document with metadata ``time``, ``target_kind`` and
``target_name`` ("" when the memory has no named target). Search is plain
similarity, optionally filtered by target.

ChromaDB is synchronous; the async ``insert``/``search`` methods run the
blocking calls in a worker thread.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import chromadb
from loguru import logger

from mimicbot.providers.base import MemoryEntry

EmbeddingFn = Callable[[list[str]], list[list[float]]]

TARGET_KINDS = ("self", "user", "guild")


class VectorMemory:
    """Vector store for ``MemoryEntry`` records.

    Args:
        client: Existing ChromaDB client (tests pass ``chromadb.Client()``).
        path: Directory for a persistent client when ``client`` is None.
            Without either, an in-memory client is created.
        collection: Collection name.
        embedding_fn: Optional ``texts -> vectors`` callable. When set,
            vectors are computed here and passed explicitly; otherwise the
            collection's default embedding function is used.
    """

    def __init__(
        self,
        client: Any = None,
        path: str | Path | None = None,
        collection: str = "mimicbot_memories",
        embedding_fn: EmbeddingFn | None = None,
    ) -> None:
        if client is None:
            client = chromadb.PersistentClient(path=str(path)) if path else chromadb.Client()
        self._client = client
        self._embed = embedding_fn
        self._collection = client.get_or_create_collection(
            name=collection,
            metadata={"hnsw:space": "cosine"},
        )

    # ── Sync API ──────────────────────────────────────────────────────

    def add(self, entries: list[MemoryEntry]) -> None:
        if not entries:
            return
        for entry in entries:
            if entry.target_kind not in TARGET_KINDS:
                raise ValueError(f"Unknown memory target kind: {entry.target_kind}")

        documents = [entry.text for entry in entries]
        kwargs: dict[str, Any] = {
            "ids": [entry.id for entry in entries],
            "documents": documents,
            "metadatas": [
                {
                    "time": entry.time,
                    "target_kind": entry.target_kind,
                    "target_name": entry.target_name or "",
                }
                for entry in entries
            ],
        }
        if self._embed is not None:
            kwargs["embeddings"] = self._embed(documents)
        self._collection.upsert(**kwargs)
        logger.debug(f"VectorMemory: stored {len(entries)} memories")

    def query(
        self,
        text: str,
        filters: dict[str, str] | None = None,
        limit: int = 4,
    ) -> list[MemoryEntry]:
        total = self._collection.count()
        if total == 0 or limit <= 0:
            return []

        kwargs: dict[str, Any] = {"n_results": min(limit, total)}
        if self._embed is not None:
            kwargs["query_embeddings"] = self._embed([text])
        else:
            kwargs["query_texts"] = [text]

        conditions = [{key: value} for key, value in (filters or {}).items() if value]
        if len(conditions) == 1:
            kwargs["where"] = conditions[0]
        elif conditions:
            kwargs["where"] = {"$and": conditions}

        result = self._collection.query(**kwargs)
        ids = result["ids"][0]
        documents = result["documents"][0]
        metadatas = result["metadatas"][0]
        distances = (result.get("distances") or [[None] * len(ids)])[0]

        return [
            MemoryEntry(
                id=mid,
                text=document,
                time=meta.get("time", ""),
                target_kind=meta.get("target_kind", "self"),
                target_name=meta.get("target_name") or None,
                distance=distance,
            )
            for mid, document, meta, distance in zip(ids, documents, metadatas, distances)
        ]

    def count(self) -> int:
        return self._collection.count()

    # ── VectorStore capability ────────────────────────────────────────

    async def insert(self, entries: list[MemoryEntry]) -> None:
        await asyncio.to_thread(self.add, entries)

    async def search(
        self,
        text: str,
        filters: dict[str, str] | None = None,
        limit: int = 4,
    ) -> list[MemoryEntry]:
        return await asyncio.to_thread(self.query, text, filters, limit)
