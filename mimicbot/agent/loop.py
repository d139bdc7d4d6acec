"""AgentLoop - wires the turn pipeline together.

    platform message → MessageCollector → TaskScheduler.add("chat")
    scheduler runs the task → process():
        EnvironmentAssembler.fetch → PluginRegistry.triggered_plugins
        → GenerationLoop.generate → Dispatcher.deliver

The scheduler is the only caller of process(), so turns never overlap.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from loguru import logger

from mimicbot.agent.classifier import Classifier
from mimicbot.agent.collector import MessageCollector
from mimicbot.agent.context import PromptBuilder
from mimicbot.agent.delivery import DeliveryReport, Dispatcher, Sleep, TurnMeta, TurnState
from mimicbot.agent.environment import EnvironmentAssembler
from mimicbot.agent.formatter import PlaceholderFormatter
from mimicbot.agent.generation import GenerationLoop
from mimicbot.agent.models import TurnRequest
from mimicbot.agent.plugins import PluginRegistry, default_plugins
from mimicbot.agent.prompts.loader import PromptLoader
from mimicbot.agent.scheduler import ScheduledTask, TaskScheduler
from mimicbot.agent.tasks import default_handlers
from mimicbot.memory.manager import MemoryManager

if TYPE_CHECKING:
    from mimicbot.agent.plugins.base import Plugin
    from mimicbot.channels.base import PlatformClient, RawMessage
    from mimicbot.config.schema import Config
    from mimicbot.providers.base import Backends


class AgentLoop:
    """Owns every component of the agent for one platform connection."""

    def __init__(
        self,
        platform: PlatformClient,
        config: Config,
        backends: Backends,
        plugins: list[Plugin] | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.platform = platform
        self.config = config
        self.backends = backends
        completer = backends.require("chat")
        rng = rng or random.Random()

        loader = PromptLoader()
        self.formatter = PlaceholderFormatter(platform)
        self.prompts = PromptBuilder(config, self.formatter, loader, clock)
        self.scheduler = TaskScheduler(
            default_handlers(self.process, loader),
            max_queue=config.tasks.max_queue,
        )

        self.memory: MemoryManager | None = None
        vector = backends.get("vector")
        if config.memory.enable and vector is not None:
            self.memory = MemoryManager(vector, config.memory.length)

        self.registry = PluginRegistry(config.plugins.blacklist, enabled=config.plugins.enable)
        if plugins is None:
            plugins = default_plugins(platform, self.scheduler, self.memory)
        self.registry.load(plugins)

        self.assembler = EnvironmentAssembler(platform, config)
        self.classifier = Classifier(completer, self.prompts, config.resolve_model("classify"))
        self.generator = GenerationLoop(completer, self.registry, self.prompts, config, self.memory)
        self.dispatcher = Dispatcher(platform, config, self.formatter, sleep=sleep, rng=rng)
        self.collector = MessageCollector(
            platform, self.scheduler, config,
            assembler=self.assembler,
            classifier=self.classifier,
            rng=rng,
        )

    # ── Intake ────────────────────────────────────────────────────────

    async def on_message(self, message: RawMessage) -> None:
        """Entry point for platform message events."""
        await self.collector.on_message(message)

    def revive(self, channel_id: str, run_at: float | None = None) -> ScheduledTask | None:
        """Schedule a turn that restarts a quiet guild channel."""
        channel = self.platform.get_channel(channel_id)
        request = TurnRequest(
            kind="revive",
            channel_id=channel_id,
            guild_id=channel.guild_id if channel else None,
        )
        return self.scheduler.add("revive", request, run_at=run_at)

    # ── Turn ──────────────────────────────────────────────────────────

    async def process(self, request: TurnRequest) -> DeliveryReport:
        """Run one turn. Errors abort the turn and propagate to the scheduler."""
        env = await self.assembler.fetch(request.channel_id, request.triggers)
        extra = [request.instructions] if request.instructions else []
        plugins = self.registry.triggered_plugins(env, extra)
        logger.debug(
            f"Turn ({request.kind}) in #{env.channel.name}: {len(env.history.messages)} history entries, "
            f"plugins: {', '.join(p.name for p in plugins) or 'none'}"
        )

        try:
            result = await self.generator.generate(env, plugins, request)
        except Exception:
            logger.error(f"Turn ({request.kind}) in #{env.channel.name}: {TurnState.ABORTED.value} while building")
            raise

        return await self.dispatcher.deliver(
            env, result.text, result.plugin_results, TurnMeta(triggers=list(request.triggers)),
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def stop(self) -> None:
        self.collector.close()
        self.scheduler.stop()
        await self.scheduler.join()
