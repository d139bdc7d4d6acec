"""Prompt assembly for completion calls.

A chat prompt is a handful of system messages followed by one user message
holding the whole rendered channel history:

    static     persona, tone and output rules
    dynamic    where the conversation is and the current date
    memories   recalled memories (only when there are any)
    users      roster of the people in the history (feature flag)
    task       instructions of a self-initiated turn
    history    "chat history of the channel:" + one line per entry
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from mimicbot.agent.environment import render_entry
from mimicbot.agent.prompts.loader import PromptLoader
from mimicbot.memory.manager import MemoryManager

if TYPE_CHECKING:
    from mimicbot.agent.formatter import PlaceholderFormatter
    from mimicbot.agent.models import Environment, TurnRequest
    from mimicbot.config.schema import Config
    from mimicbot.providers.base import MemoryEntry

HISTORY_HEADER = "chat history of the channel:"


def format_date(when: datetime) -> str:
    """``19 October 2026, 14:05 UTC``"""
    when = when.astimezone(timezone.utc)
    return f"{when.day} {when:%B %Y, %H:%M} UTC"


def _system(content: str) -> dict[str, Any]:
    return {"role": "system", "content": content}


def _drop_blank_lines(text: str) -> str:
    return "\n".join(line for line in text.splitlines() if line.strip())


class PromptBuilder:
    """Builds the message list for chat and classification calls."""

    def __init__(
        self,
        config: Config,
        formatter: PlaceholderFormatter,
        prompts: PromptLoader | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._formatter = formatter
        self._prompts = prompts or PromptLoader()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ── Sections ──────────────────────────────────────────────────────

    def static(self, env: Environment) -> str:
        personality = self._config.personality
        markers = self._config.markers
        nicknames = self._config.bot.nicknames
        text = self._prompts.load(
            "static",
            name=env.self_user.name,
            tone=personality.tone,
            persona=personality.persona,
            interests=f"you are into: {', '.join(personality.interests)}" if personality.interests else "",
            dislikes=f"you dislike: {', '.join(personality.dislikes)}" if personality.dislikes else "",
            nicknames=f"people also call you: {', '.join(nicknames)}" if nicknames else "",
            split=markers.split,
            ignore=markers.ignore,
            separator=markers.separator,
            self_tag=markers.self_tag,
        )
        return _drop_blank_lines(text)

    def dynamic(self, env: Environment) -> str:
        if env.guild is not None:
            location = f"server {env.guild.name}, channel #{env.channel.name}"
        else:
            location = f"DM with {env.channel.name}"
        return self._prompts.load("dynamic", location=location, date=format_date(self._clock()))

    def memories(self, entries: list[MemoryEntry]) -> str | None:
        if not entries:
            return None
        lines = "\n".join(MemoryManager.to_prompt_string(entry) for entry in entries)
        return self._prompts.load("memories", entries=lines)

    def users(self, env: Environment) -> str | None:
        if not env.history.users:
            return None
        lines = []
        for user in env.history.users.values():
            suffix = " (you)" if user.is_self else ""
            lines.append(f"{user.name} = @{user.username}{suffix}")
        return self._prompts.load("users", entries="\n".join(lines))

    def task(self, request: TurnRequest | None) -> str | None:
        if request is None or not request.instructions:
            return None
        return self._prompts.load(
            "task",
            added=format_date(request.created_at or self._clock()),
            instructions=request.instructions,
        )

    def history(self, env: Environment) -> str:
        markers = self._config.markers
        lines = [HISTORY_HEADER]
        for index, message in enumerate(env.history.messages):
            line = render_entry(message, markers.self_tag, markers.separator, index=index)
            lines.append(self._formatter.format(env, line, "input"))
        return "\n\n".join(lines)

    # ── Prompts ───────────────────────────────────────────────────────

    def build(
        self,
        env: Environment,
        request: TurnRequest | None = None,
        memories: list[MemoryEntry] | None = None,
    ) -> list[dict[str, Any]]:
        messages = [_system(self.static(env)), _system(self.dynamic(env))]

        memory_block = self.memories(memories or [])
        if memory_block:
            messages.append(_system(memory_block))

        if self._config.features.users:
            users_block = self.users(env)
            if users_block:
                messages.append(_system(users_block))

        task_block = self.task(request)
        if task_block:
            messages.append(_system(task_block))

        messages.append({"role": "user", "content": self.history(env)})
        return messages

    def classify(self, env: Environment) -> list[dict[str, Any]]:
        return [
            _system(self._prompts.load("classify", name=env.self_user.name)),
            {"role": "user", "content": self.history(env)},
        ]

    # ── Tool round trip ───────────────────────────────────────────────

    @staticmethod
    def add_assistant_message(
        messages: list[dict[str, Any]],
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        msg: dict[str, Any] = {"role": "assistant", "content": content or ""}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        messages.append(msg)
        return messages

    @staticmethod
    def add_tool_result(
        messages: list[dict[str, Any]],
        tool_call_id: str,
        tool_name: str,
        result: str,
    ) -> list[dict[str, Any]]:
        messages.append({
            "role": "tool",
            "tool_call_id": tool_call_id,
            "name": tool_name,
            "content": result,
        })
        return messages
