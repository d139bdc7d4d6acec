"""Memory plugins - let the model write and search its long-term memory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mimicbot.agent.plugins.base import Plugin, PluginResponse

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.memory.manager import MemoryManager

_TARGET_ITEM = {
    "type": "object",
    "properties": {
        "text": {"type": "string"},
        "type": {"type": "string", "enum": ["guild", "user", "self"]},
        "name": {
            "type": "string",
            "description": "Name of the user or guild the memory is about, empty when about yourself",
        },
    },
    "required": ["text", "type"],
}


class _MemoryPlugin(Plugin):
    def __init__(self, memory: MemoryManager | None) -> None:
        self._memory = memory

    def is_available(self, env: Environment) -> bool:
        return self._memory is not None


class SaveMemoryPlugin(_MemoryPlugin):
    name = "save_memory"
    description = (
        "Save chat information, can save multiple memories at a time, "
        "only save related interactions/things per entry"
    )
    parameters = {
        "targets": {"type": "array", "items": _TARGET_ITEM, "required": True},
    }

    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse:
        inserted = await self._memory.insert(list(data.get("targets") or []))
        lines = "\n".join(self._memory.to_prompt_string(entry) for entry in inserted)
        return PluginResponse(text=f"New memory added, you don't have to mention it:\n{lines}")


class GetMemoryPlugin(_MemoryPlugin):
    name = "get_memory"
    description = "Search for previously saved memories"
    parameters = {
        "queries": {
            "type": "array",
            "items": {
                **_TARGET_ITEM,
                "properties": {
                    **_TARGET_ITEM["properties"],
                    "text": {"type": "string", "description": "Text to query your memory for"},
                },
            },
            "required": True,
        },
    }

    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse:
        queries = list(data.get("queries") or [])
        found = []
        for query in queries:
            kind = query.get("type", "self")
            # Queries about someone else are meaningless without a name
            if kind != "self" and not query.get("name"):
                continue
            found.extend(await self._memory.retrieve(
                str(query.get("text", "")), target_kind=kind, target_name=query.get("name"),
            ))

        asked = ", ".join(str(q.get("text", "")) for q in queries)
        if not found:
            return PluginResponse(text=f"No memories for queries {asked}")
        lines = "\n".join(self._memory.to_prompt_string(entry) for entry in found)
        return PluginResponse(text=f"List of memories fitting for queries '{asked}':\n{lines}")
