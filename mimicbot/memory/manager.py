"""MemoryManager - what the agent remembers and how it reads back.

Sits between the plugins/prompt builder and whatever ``VectorStore`` is
bound. Builds entries, applies target filters, and formats memories for
the prompt.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger

from mimicbot.providers.base import MemoryEntry

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.providers.base import VectorStore

# How many trailing history messages make up the recall query
RECALL_WINDOW = 3


class MemoryManager:
    def __init__(self, store: VectorStore, limit: int = 4) -> None:
        self._store = store
        self._limit = limit

    async def insert(self, targets: list[dict]) -> list[MemoryEntry]:
        """Store ``{text, type, name?}`` targets as memories, returning the new entries."""
        now = datetime.now(timezone.utc).isoformat()
        entries = [
            MemoryEntry(
                id=uuid.uuid4().hex[:8],
                text=str(target["text"]),
                time=now,
                target_kind=target.get("type", "self"),
                target_name=target.get("name") or None,
            )
            for target in targets
            if target.get("text")
        ]
        if entries:
            await self._store.insert(entries)
            logger.info(f"Memory: saved {len(entries)} entries")
        return entries

    async def retrieve(
        self,
        text: str,
        target_kind: str | None = None,
        target_name: str | None = None,
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        filters = {}
        if target_kind:
            filters["target_kind"] = target_kind
        if target_name:
            filters["target_name"] = target_name
        return await self._store.search(text, filters or None, limit or self._limit)

    async def relevant(self, env: Environment) -> list[MemoryEntry]:
        """Memories related to the latest messages of the turn. Empty on failure."""
        recent = [m.content for m in env.history.messages[-RECALL_WINDOW:]]
        if not recent:
            return []
        try:
            return await self.retrieve("\n".join(recent))
        except Exception as e:
            logger.error(f"Memory: recall failed: {e}")
            return []

    @staticmethod
    def to_prompt_string(entry: MemoryEntry) -> str:
        day = entry.time[:10] if entry.time else "unknown date"
        about = "me" if entry.target_kind == "self" else f"{entry.target_kind} {entry.target_name or '?'}"
        return f"({day}, about {about}) {entry.text}"
