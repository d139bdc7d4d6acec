"""Plugins the model can call, and the startup registration list."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mimicbot.agent.plugins.base import Plugin, PluginResponse, ToolResult
from mimicbot.agent.plugins.memory import GetMemoryPlugin, SaveMemoryPlugin
from mimicbot.agent.plugins.react import ReactPlugin
from mimicbot.agent.plugins.registry import PluginRegistry
from mimicbot.agent.plugins.remind import RemindPlugin
from mimicbot.agent.plugins.sticker import StickerPlugin

if TYPE_CHECKING:
    from mimicbot.agent.scheduler import TaskScheduler
    from mimicbot.channels.base import PlatformClient
    from mimicbot.memory.manager import MemoryManager


def default_plugins(
    platform: PlatformClient,
    scheduler: TaskScheduler,
    memory: MemoryManager | None = None,
) -> list[Plugin]:
    """Every built-in plugin, in registration order."""
    return [
        SaveMemoryPlugin(memory),
        GetMemoryPlugin(memory),
        RemindPlugin(scheduler),
        ReactPlugin(platform),
        StickerPlugin(platform),
    ]


__all__ = [
    "Plugin",
    "PluginRegistry",
    "PluginResponse",
    "ToolResult",
    "default_plugins",
]
