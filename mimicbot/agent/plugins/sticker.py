"""Sticker plugin - send a guild sticker as the whole reply."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mimicbot.agent.plugins.base import Plugin, PluginResponse

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.channels.base import PlatformClient


class StickerPlugin(Plugin):
    name = "sticker"
    description = "Send a sticker in the channel"
    triggers = ("sticker", "big emoji")
    parameters = {
        "which": {"type": "string", "description": "Name of the sticker to send", "required": True},
    }

    def __init__(self, platform: PlatformClient) -> None:
        self._platform = platform

    def is_available(self, env: Environment) -> bool:
        return env.guild is not None

    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse:
        which = str(data["which"])
        sticker_id = self._platform.find_sticker(env.guild.id, which)
        if sticker_id is None:
            raise LookupError(f"Sticker {which} doesn't exist")
        return PluginResponse(stickers=[sticker_id], short_circuit=True)
