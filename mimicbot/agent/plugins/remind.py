"""Remind plugin - schedule a self-initiated work turn for later."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from mimicbot.agent.models import TurnRequest
from mimicbot.agent.plugins.base import Plugin, PluginResponse

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.agent.scheduler import TaskScheduler


def parse_when(text: str) -> datetime:
    """Parse an ISO date string; naive values are taken as UTC.

    Raises:
        ValueError: Not a valid ISO date.
    """
    when = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when


class RemindPlugin(Plugin):
    name = "remind"
    description = (
        "Remind yourself to do something at a specific time. "
        "Describe the task to plan in detail"
    )
    triggers = (
        "remind",
        "later",
        "tomorrow",
        re.compile(r"\bin \d+ ?(sec|min|hour|hr|day|week)", re.IGNORECASE),
    )
    parameters = {
        "instructions": {
            "type": "string",
            "description": "What to do when the time comes, detailed explanation for yourself",
            "required": True,
        },
        "time": {
            "type": "string",
            "description": "UTC ISO date string of when to do it. Use the given current date to work it out",
            "required": True,
        },
    }

    def __init__(self, scheduler: TaskScheduler) -> None:
        self._scheduler = scheduler

    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse:
        instructions = str(data.get("instructions", "")).strip()
        when = parse_when(str(data.get("time", "")))

        request = TurnRequest(
            kind="work",
            channel_id=env.channel.id,
            guild_id=env.channel.guild_id,
            instructions=instructions,
            author_id=env.trigger_user.id if env.trigger_user else None,
            created_at=datetime.now(timezone.utc),
        )
        task = self._scheduler.add("work", request, run_at=when.timestamp())
        if task is None:
            return PluginResponse(
                text=f"Couldn't remind myself to do '{instructions}', perhaps I already have too many things to remember"
            )
        return PluginResponse(text=f"Reminded myself to do '{instructions}' at {when.isoformat()}")
