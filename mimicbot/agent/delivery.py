"""Output segmentation and humanlike delivery.

segment() turns raw model text into message parts:
    - everything up to the last separator marker is dropped (the model
      sometimes echoes the history line format)
    - newlines and the split marker both start a new part
    - the ignore marker is stripped, empty parts are dropped
    - nothing left means one empty part, so an attachment-only turn still
      has something to carry its payload

Dispatcher.deliver() then sends the parts one by one with acknowledge and
composing delays, a typing indicator, an occasional typo that gets edited
away, and a reply link on the first part when it is needed.
"""

from __future__ import annotations

import asyncio
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

from mimicbot.agent.typo import add_typo

if TYPE_CHECKING:
    from mimicbot.agent.formatter import PlaceholderFormatter
    from mimicbot.agent.models import Environment
    from mimicbot.agent.plugins.base import ToolResult
    from mimicbot.channels.base import PlatformClient, RawMessage
    from mimicbot.config.schema import Config, MarkersConfig, Window

Sleep = Callable[[float], Awaitable[None]]


class TurnState(Enum):
    BUILDING = "building"
    DELIVERING = "delivering"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class TurnMeta:
    triggers: list[RawMessage] = field(default_factory=list)


@dataclass
class DeliveryReport:
    state: TurnState = TurnState.BUILDING
    sent: list[RawMessage] = field(default_factory=list)
    reply_to: str | None = None


def segment(text: str, markers: MarkersConfig) -> list[str]:
    """Split raw model output into the message parts to send."""
    if markers.separator in text:
        text = text[text.rindex(markers.separator) + len(markers.separator):]

    parts = []
    for part in re.split(r"\n|" + re.escape(markers.split), text):
        part = part.replace(markers.ignore, "").strip()
        if part:
            parts.append(part)
    return parts or [""]


class Dispatcher:
    """Delivers one turn's output to the platform."""

    def __init__(
        self,
        platform: PlatformClient,
        config: Config,
        formatter: PlaceholderFormatter,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._platform = platform
        self._config = config
        self._formatter = formatter
        self._sleep = sleep
        self._rng = rng or random.Random()

    # ── Timing ────────────────────────────────────────────────────────

    def _draw(self, window: Window) -> float:
        return self._rng.uniform(window.min, window.max)

    def composing_delay(self, text: str) -> float:
        composing = self._config.delays.composing
        return max(composing.minimum, len(text) * composing.per_char) + self._rng.random() * composing.jitter

    # ── Reply linking ─────────────────────────────────────────────────

    def _reply_target(self, env: Environment, triggers: list[RawMessage]) -> str | None:
        """Message id to reply-link the first part to, or None."""
        if not triggers:
            return None
        trigger_ids = {m.id for m in triggers}
        cached = self._platform.cached_messages(env.channel.id)
        # Someone else kept talking while we were generating
        overtaken = bool(cached) and cached[-1].id not in trigger_ids
        if overtaken or self._rng.random() < self._config.chances.reply:
            return self._rng.choice(triggers).id
        return None

    # ── Delivery ──────────────────────────────────────────────────────

    async def deliver(
        self,
        env: Environment,
        raw_text: str | None,
        plugin_results: list[ToolResult] | None = None,
        meta: TurnMeta | None = None,
    ) -> DeliveryReport:
        report = DeliveryReport(state=TurnState.DELIVERING)
        channel_id = env.channel.id
        plugin_results = plugin_results or []
        attachments = [a for result in plugin_results for a in result.attachments]
        stickers = [s for result in plugin_results for s in result.stickers]
        triggers = (meta.triggers if meta and meta.triggers else list(env.triggers))

        text = self._formatter.format(env, raw_text or "", "output")
        parts = segment(text, self._config.markers)
        report.reply_to = self._reply_target(env, triggers)

        fixes: list[asyncio.Task] = []
        try:
            for index, part in enumerate(parts):
                first = index == 0
                if not part and not (first and (attachments or stickers)):
                    logger.debug(f"Delivery: empty part {index} with nothing to carry, stopping")
                    report.state = TurnState.ABORTED
                    break

                sent_text = part
                if part and self._rng.random() < self._config.chances.typo:
                    sent_text = add_typo(part, self._rng)

                await self._sleep(self._draw(self._config.delays.acknowledge))
                if part:
                    await self._platform.trigger_typing(channel_id)
                await self._sleep(self.composing_delay(part))

                message = await self._platform.send_message(
                    channel_id,
                    sent_text,
                    reply_to=report.reply_to if first else None,
                    attachments=attachments if first else None,
                    stickers=stickers if first else None,
                )
                report.sent.append(message)

                if sent_text != part:
                    fixes.append(asyncio.create_task(self._fix_typo(channel_id, message.id, part)))
        finally:
            # Corrections finish inside the turn so the next turn starts clean
            if fixes:
                await asyncio.gather(*fixes)

        if report.state is TurnState.DELIVERING:
            report.state = TurnState.DONE
        logger.info(f"Delivery: {len(report.sent)} messages to #{env.channel.name} ({report.state.value})")
        return report

    async def _fix_typo(self, channel_id: str, message_id: str, original: str) -> None:
        await self._sleep(self._draw(self._config.delays.typo_fix))
        await self._platform.edit_message(channel_id, message_id, original)
