"""Plugin registry - lookup, trigger matching, tool schema and execution."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Iterable

from loguru import logger

from mimicbot.agent.plugins.base import Plugin, ToolResult

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.providers.base import ToolCallRequest

# Tool output when a plugin raised. Stays in character; the real error only goes to the log.
PLUGIN_FAILURE_TEXT = (
    "that didn't work out for me, {name} isn't cooperating right now. "
    "don't mention errors, just move on like a normal person would"
)


class PluginRegistry:
    """Holds the registered plugins, keyed by unique name."""

    def __init__(self, blacklist: Iterable[str] = (), enabled: bool = True) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._blacklist = set(blacklist)
        self._enabled = enabled

    # ── Registration ──────────────────────────────────────────────────

    def register(self, plugin: Plugin) -> None:
        if not plugin.name:
            raise ValueError(f"{type(plugin).__name__} has no name")
        if plugin.name in self._plugins:
            logger.warning(f"Plugin '{plugin.name}' already registered, replacing")
        self._plugins[plugin.name] = plugin
        logger.debug(f"Registered plugin: {plugin.name}")

    def load(self, plugins: Iterable[Plugin]) -> None:
        """Register the startup plugin list."""
        for plugin in plugins:
            self.register(plugin)
        logger.info(f"Loaded {len(self._plugins)} plugins: {', '.join(self._plugins)}")

    def get(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    @property
    def plugins(self) -> dict[str, Plugin]:
        return dict(self._plugins)

    # ── Matching ──────────────────────────────────────────────────────

    def triggered_plugins(self, env: Environment, extra_texts: Iterable[str] = ()) -> list[Plugin]:
        """Plugins to offer the model this turn, each at most once.

        A plugin qualifies when it is not blacklisted, is available in this
        environment, and either declares no triggers or one of its triggers
        matches a history message (or one of ``extra_texts``).
        """
        if not self._enabled:
            return []

        texts = [m.content for m in env.history.messages] + list(extra_texts)
        result: list[Plugin] = []
        for plugin in self._plugins.values():
            if plugin.name in self._blacklist:
                continue
            if not self._available(plugin, env):
                continue
            if not plugin.triggers or any(plugin.matches(text) for text in texts):
                result.append(plugin)
        return result

    @staticmethod
    def _available(plugin: Plugin, env: Environment) -> bool:
        try:
            return bool(plugin.is_available(env))
        except Exception as e:
            logger.error(f"Plugin '{plugin.name}' availability check failed: {e}")
            return False

    # ── Schema translation ────────────────────────────────────────────

    @staticmethod
    def to_tool(plugin: Plugin) -> dict[str, Any]:
        """Tool schema for one plugin (OpenAI function format)."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for name, declared in plugin.parameters.items():
            prop = copy.deepcopy(declared)
            # A list is the nested schema's own required keys, not the flag
            if isinstance(prop.get("required"), bool) and prop.pop("required"):
                required.append(name)
            properties[name] = prop

        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return {
            "type": "function",
            "function": {
                "name": plugin.name,
                "description": plugin.description,
                "parameters": schema,
            },
        }

    def as_tools(self, plugins: Iterable[Plugin]) -> list[dict[str, Any]]:
        return [self.to_tool(plugin) for plugin in plugins]

    @staticmethod
    def parameters_from_tool(tool: dict[str, Any]) -> dict[str, dict[str, Any]]:
        """Inverse of ``to_tool`` for the parameter part.

        An object property that carries its own ``required`` list keeps it;
        the flag is only added where it cannot clash.
        """
        schema = tool["function"].get("parameters", {})
        required = set(schema.get("required", []))
        parameters: dict[str, dict[str, Any]] = {}
        for name, prop in schema.get("properties", {}).items():
            prop = copy.deepcopy(prop)
            if not isinstance(prop.get("required"), list):
                prop["required"] = name in required
            parameters[name] = prop
        return parameters

    # ── Execution ─────────────────────────────────────────────────────

    async def execute_all(self, env: Environment, calls: list[ToolCallRequest]) -> list[ToolResult]:
        """Run every call in order. Never raises for a plugin's own failure."""
        results: list[ToolResult] = []
        for call in calls:
            plugin = self._plugins.get(call.name)
            if plugin is None or plugin.name in self._blacklist:
                logger.warning(f"Tool call for unknown plugin '{call.name}', skipping")
                continue
            if not self._available(plugin, env):
                logger.warning(f"Tool call for '{call.name}', which is unavailable here, skipping")
                continue

            try:
                response = await plugin.run(env, call.arguments)
            except Exception:
                logger.exception(f"Plugin '{call.name}' failed")
                results.append(ToolResult(
                    id=call.id,
                    name=call.name,
                    input=call.arguments,
                    output=PLUGIN_FAILURE_TEXT.format(name=call.name),
                    is_error=True,
                ))
                continue

            if response is None:
                results.append(ToolResult(id=call.id, name=call.name, input=call.arguments, output="done"))
                continue

            results.append(ToolResult(
                id=call.id,
                name=call.name,
                input=call.arguments,
                output=response.text or "done",
                short_circuit=response.short_circuit,
                attachments=list(response.attachments),
                stickers=list(response.stickers),
            ))
            logger.debug(f"Plugin '{call.name}' ran (short_circuit={response.short_circuit})")
        return results
