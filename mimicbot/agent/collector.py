"""Per-author debounce of incoming messages.

Each author gets at most one open collector:
    1. First message opens it and draws its wait from the collector window
    2. Every further message is appended and restarts the timer (sliding)
    3. On fire: the collector is removed, then the burst becomes a "chat" task
       if it was triggered (mention, nickname, own name) or the classifier
       says it continues a conversation with the agent

Timers only enqueue. They never touch a running turn.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from mimicbot.agent.models import TurnRequest

if TYPE_CHECKING:
    from mimicbot.agent.classifier import Classifier
    from mimicbot.agent.environment import EnvironmentAssembler
    from mimicbot.agent.scheduler import ScheduledTask, TaskScheduler
    from mimicbot.channels.base import PlatformClient, RawMessage
    from mimicbot.config.schema import Config


@dataclass
class PendingBurst:
    author_id: str
    channel_id: str
    guild_id: str | None
    wait: float
    messages: list[RawMessage] = field(default_factory=list)
    triggered: bool = False
    timer: asyncio.Task | None = None


class MessageCollector:
    """Turns bursts of messages into chat tasks."""

    def __init__(
        self,
        platform: PlatformClient,
        scheduler: TaskScheduler,
        config: Config,
        assembler: EnvironmentAssembler | None = None,
        classifier: Classifier | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._platform = platform
        self._scheduler = scheduler
        self._config = config
        self._assembler = assembler
        self._classifier = classifier
        self._rng = rng or random.Random()
        self._pending: dict[str, PendingBurst] = {}

    @property
    def pending(self) -> dict[str, int]:
        """Open collectors as author id -> buffered message count."""
        return {author: len(burst.messages) for author, burst in self._pending.items()}

    # ── Intake ────────────────────────────────────────────────────────

    def accepts(self, message: RawMessage) -> bool:
        if message.author.id == self._platform.self_user.id:
            return False
        blacklist = self._config.blacklist
        if message.author.id in blacklist.users:
            return False
        if message.guild_id is not None and message.guild_id in blacklist.guilds:
            return False
        return self._platform.has_permission(message.channel_id, "send")

    def is_triggered(self, message: RawMessage) -> bool:
        """Mention, nickname or own name; case-insensitive, first match wins."""
        me = self._platform.self_user
        if me.id in message.mentions or f"<@{me.id}>" in message.content:
            return True

        content = message.content.lower()
        for nickname in self._config.bot.nicknames:
            if nickname and nickname.lower() in content:
                return True

        names = {me.username, self._config.bot.name or me.name}
        return any(name and name.lower() in content for name in names)

    async def on_message(self, message: RawMessage) -> None:
        if not self.accepts(message):
            return

        author_id = message.author.id
        burst = self._pending.get(author_id)
        if burst is not None and burst.channel_id != message.channel_id:
            logger.debug(f"Collector: {author_id} has an open burst in another channel, ignoring")
            return

        if burst is None:
            window = self._config.delays.collector
            burst = PendingBurst(
                author_id=author_id,
                channel_id=message.channel_id,
                guild_id=message.guild_id,
                wait=self._rng.uniform(window.min, window.max),
            )
            self._pending[author_id] = burst

        burst.messages.append(message)
        if not burst.triggered:
            burst.triggered = self.is_triggered(message)

        if burst.timer is not None:
            burst.timer.cancel()
        burst.timer = asyncio.create_task(self._debounce_timer(burst))

    # ── Debounce timer ────────────────────────────────────────────────

    async def _debounce_timer(self, burst: PendingBurst) -> None:
        """Wait out the burst's window, then flush it."""
        await asyncio.sleep(burst.wait)
        if self._pending.get(burst.author_id) is burst:
            del self._pending[burst.author_id]
        try:
            await self.flush(burst)
        except Exception:
            logger.exception(f"Collector: flushing burst from {burst.author_id} failed")

    async def flush(self, burst: PendingBurst) -> ScheduledTask | None:
        triggered = burst.triggered
        if not triggered:
            triggered = await self._engage_anyway(burst)
        if not triggered:
            logger.debug(f"Collector: discarded {len(burst.messages)} messages from {burst.author_id}")
            return None

        request = TurnRequest(
            kind="chat",
            channel_id=burst.channel_id,
            guild_id=burst.guild_id,
            triggers=list(burst.messages),
            author_id=burst.author_id,
        )
        task = self._scheduler.add("chat", request)
        if task is not None:
            logger.debug(f"Collector: {len(burst.messages)} messages from {burst.author_id} → task {task.id}")
        return task

    async def _engage_anyway(self, burst: PendingBurst) -> bool:
        """Decide on an un-triggered burst.

        With classification on, the classifier decides. The random
        ``chances.trigger`` roll is only used when classification is off.
        """
        if self._config.features.classify:
            if self._classifier is None or self._assembler is None:
                return False
            env = await self._assembler.fetch(burst.channel_id, burst.messages)
            return await self._classifier.is_relevant(env)
        return self._rng.random() < self._config.chances.trigger

    def close(self) -> None:
        """Cancel every open collector without flushing."""
        for burst in self._pending.values():
            if burst.timer is not None:
                burst.timer.cancel()
        self._pending.clear()
