"""Plugin contract.

A plugin is an action the model can call as a tool. It declares a name, a
description, a parameter list and, optionally, trigger phrases/patterns
that decide when it is offered to the model at all.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment


@dataclass
class PluginResponse:
    """What a plugin run hands back."""

    text: str | None = None
    attachments: list[str] = field(default_factory=list)
    stickers: list[str] = field(default_factory=list)
    # Deliver attachments/stickers as-is and skip the follow-up completion
    short_circuit: bool = False


@dataclass
class ToolResult:
    id: str
    name: str
    input: dict[str, Any]
    output: str
    is_error: bool = False
    short_circuit: bool = False
    attachments: list[str] = field(default_factory=list)
    stickers: list[str] = field(default_factory=list)


class Plugin(ABC):
    """Base class for actions the model may call.

    ``parameters`` maps each parameter name to a JSON-schema property plus a
    ``required`` bool. The bool never reaches the model: ``as_tools`` turns
    it into the schema's ``required`` list. An object parameter may carry its
    own ``required`` list of nested keys; that one is passed through as is.
    """

    name: str = ""
    description: str = ""
    triggers: tuple[str | re.Pattern, ...] = ()
    parameters: dict[str, dict[str, Any]] = {}

    def is_available(self, env: Environment) -> bool:
        return True

    def matches(self, content: str) -> bool:
        """Whether ``content`` triggers this plugin. No triggers means always."""
        if not self.triggers:
            return True
        lowered = content.lower()
        for trigger in self.triggers:
            if isinstance(trigger, re.Pattern):
                if trigger.search(content):
                    return True
            elif trigger.lower() in lowered:
                return True
        return False

    @abstractmethod
    async def run(self, env: Environment, data: dict[str, Any]) -> PluginResponse | None: ...
