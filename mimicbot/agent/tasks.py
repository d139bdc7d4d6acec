"""Task handlers for the scheduler.

Three kinds of turn exist:
    chat    reactive turn for a collected burst of messages
    work    self-initiated turn carrying instructions (reminders)
    revive  self-initiated turn that restarts a quiet guild channel
"""

from __future__ import annotations

from dataclasses import replace
from typing import Awaitable, Callable

from mimicbot.agent.models import TurnRequest
from mimicbot.agent.prompts.loader import PromptLoader
from mimicbot.agent.scheduler import TaskHandler

TurnRunner = Callable[[TurnRequest], Awaitable[None]]


class TurnHandler(TaskHandler):
    """Base for handlers that hand a ``TurnRequest`` to the agent."""

    def __init__(self, process: TurnRunner) -> None:
        self._process = process

    async def run(self, context: TurnRequest) -> None:
        await self._process(context)


class ChatTaskHandler(TurnHandler):
    kind = "chat"
    max_queue = 2


class WorkTaskHandler(TurnHandler):
    kind = "work"
    max_queue = 3

    def check(self, context: TurnRequest) -> bool:
        return bool(context.instructions)


class ReviveTaskHandler(TurnHandler):
    kind = "revive"
    max_queue = 1

    def __init__(self, process: TurnRunner, prompts: PromptLoader | None = None) -> None:
        super().__init__(process)
        self._prompts = prompts or PromptLoader()

    def check(self, context: TurnRequest) -> bool:
        # Reviving only makes sense in a server channel
        return context.guild_id is not None

    async def run(self, context: TurnRequest) -> None:
        instructions = self._prompts.load("revive")
        await self._process(replace(context, instructions=instructions))


def default_handlers(process: TurnRunner, prompts: PromptLoader | None = None) -> list[TaskHandler]:
    return [
        ChatTaskHandler(process),
        WorkTaskHandler(process),
        ReviveTaskHandler(process, prompts),
    ]
