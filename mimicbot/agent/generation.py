"""Generation loop - one completion, optional tool round trip.

    1. Prompt + tool schema from the triggered plugins
    2. First completion call
    3. No tool calls: done, return the text
    4. Tool calls: run them all; any short-circuit result ends the turn with
       no text (attachments/stickers are delivered as-is)
    5. Otherwise exactly one follow-up call with the tool results folded in

Completion errors are not caught here; they abort the turn.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from mimicbot.agent.context import PromptBuilder
    from mimicbot.agent.models import Environment, TurnRequest
    from mimicbot.agent.plugins.base import Plugin, ToolResult
    from mimicbot.agent.plugins.registry import PluginRegistry
    from mimicbot.config.schema import Config
    from mimicbot.memory.manager import MemoryManager
    from mimicbot.providers.base import Completer

# Model type per task kind; anything self-initiated uses the work model
_MODEL_KIND = {"chat": "chat", "work": "work", "revive": "work"}


@dataclass
class GenerationResult:
    text: str | None
    plugin_results: list[ToolResult] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)
    calls: int = 0  # completion calls made


def _merge_usage(a: dict[str, int], b: dict[str, int]) -> dict[str, int]:
    merged = dict(a)
    for key, value in b.items():
        merged[key] = merged.get(key, 0) + value
    return merged


class GenerationLoop:
    def __init__(
        self,
        completer: Completer,
        registry: PluginRegistry,
        prompts: PromptBuilder,
        config: Config,
        memory: MemoryManager | None = None,
    ) -> None:
        self._completer = completer
        self._registry = registry
        self._prompts = prompts
        self._config = config
        self._memory = memory

    async def generate(
        self,
        env: Environment,
        plugins: list[Plugin],
        request: TurnRequest | None = None,
    ) -> GenerationResult:
        models = self._config.models
        model = self._config.resolve_model(_MODEL_KIND.get(request.kind if request else "chat", "chat"))

        memories = []
        if self._memory is not None and self._config.memory.enable:
            memories = await self._memory.relevant(env)

        messages = self._prompts.build(env, request, memories)
        tools = self._registry.as_tools(plugins) or None

        first = await self._completer.chat(
            messages, tools=tools, model=model,
            max_tokens=models.max_tokens, temperature=models.temperature,
        )
        if not first.has_tool_calls:
            return GenerationResult(text=first.content, usage=first.usage, calls=1)

        logger.debug(f"Generation: model called {', '.join(c.name for c in first.tool_calls)}")
        results = await self._registry.execute_all(env, first.tool_calls)

        if any(result.short_circuit for result in results):
            logger.debug("Generation: short-circuit result, skipping follow-up call")
            return GenerationResult(text=None, plugin_results=results, usage=first.usage, calls=1)

        answered = {result.id for result in results}
        tool_calls = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in first.tool_calls
            if call.id in answered
        ]
        follow_up = list(messages)
        if tool_calls:
            self._prompts.add_assistant_message(follow_up, first.content, tool_calls)
            for result in results:
                self._prompts.add_tool_result(follow_up, result.id, result.name, result.output)

        second = await self._completer.chat(
            follow_up, model=model,
            max_tokens=models.max_tokens, temperature=models.temperature,
        )
        return GenerationResult(
            text=second.content,
            plugin_results=results,
            usage=_merge_usage(first.usage, second.usage),
            calls=2,
        )
