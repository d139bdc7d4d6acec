"""React plugin - add an emoji reaction to a message in the history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mimicbot.agent.plugins.base import Plugin, PluginResponse

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.channels.base import PlatformClient


class ReactPlugin(Plugin):
    name = "react"
    description = "React to a message in this channel with an emoji, either Unicode or <e:...> emoji"
    triggers = ("react",)
    parameters = {
        "id": {
            "type": "integer",
            "description": "Number in <...> of the message to react to in this channel",
            "required": True,
        },
        "emoji": {
            "type": "string",
            "description": "Unicode or <e:name> emoji to react with",
            "required": True,
        },
    }

    def __init__(self, platform: PlatformClient) -> None:
        self._platform = platform

    def is_available(self, env: Environment) -> bool:
        return self._platform.has_permission(env.channel.id, "react")

    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse:
        messages = env.history.messages
        index = int(data["id"])
        if not 0 <= index < len(messages):
            raise LookupError(f"No history message {index}")
        target = messages[index]

        emoji = str(data["emoji"]).strip()
        if emoji.startswith("<e:"):
            name = emoji[3:].rstrip(">")
            resolved = self._platform.find_emoji(env.guild.id, name) if env.guild else None
            if resolved is None:
                raise LookupError(f"Guild emoji {name} doesn't exist")
            emoji = resolved

        await self._platform.add_reaction(env.channel.id, target.id, emoji)
        return PluginResponse(text=f"Reacted with {data['emoji']} to the message")
