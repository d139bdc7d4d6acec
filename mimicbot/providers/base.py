"""Backend capabilities.

A backend implements whichever capability it supports: chat completion,
vector storage, web search. ``Backends`` holds the configured implementation
for each and fails loudly when a turn needs one that was never bound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from mimicbot.errors import MissingCapability


@dataclass
class ToolCallRequest:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """Response from a chat completion."""

    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass
class MemoryEntry:
    """A long-term memory record."""

    id: str
    text: str
    time: str  # ISO-8601
    target_kind: str  # "self" | "user" | "guild"
    target_name: str | None = None
    distance: float | None = None  # set on search results


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str = ""


# ── Capabilities ──────────────────────────────────────────────────────


@runtime_checkable
class Completer(Protocol):
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse: ...


@runtime_checkable
class VectorStore(Protocol):
    async def insert(self, entries: list[MemoryEntry]) -> None: ...

    async def search(
        self, text: str, filters: dict[str, str] | None = None, limit: int = 4,
    ) -> list[MemoryEntry]: ...


@runtime_checkable
class Searcher(Protocol):
    async def search(self, query: str, limit: int = 5) -> list[SearchResult]: ...


class LLMProvider(ABC):
    """Base class for chat completion providers."""

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Send a chat completion request.

        Raises:
            CompletionError: The request could not be completed.
        """

    @abstractmethod
    def get_default_model(self) -> str: ...


_CAPABILITIES: dict[str, type] = {
    "chat": Completer,
    "vector": VectorStore,
    "search": Searcher,
}


class Backends:
    """Late-bound capability slots.

    Usage:
        backends = Backends(chat=LiteLLMProvider(...))
        backends.bind("vector", VectorMemory(...))
        backends.require("chat").chat(messages)
    """

    def __init__(
        self,
        chat: Completer | None = None,
        vector: VectorStore | None = None,
        search: Searcher | None = None,
    ) -> None:
        self._bound: dict[str, Any] = {}
        for capability, impl in (("chat", chat), ("vector", vector), ("search", search)):
            if impl is not None:
                self.bind(capability, impl)

    def bind(self, capability: str, impl: Any) -> None:
        """Bind an implementation, checking it actually provides the capability."""
        protocol = _CAPABILITIES.get(capability)
        if protocol is None:
            raise ValueError(f"Unknown capability: {capability}")
        if not isinstance(impl, protocol):
            raise TypeError(f"{type(impl).__name__} does not implement {protocol.__name__}")
        self._bound[capability] = impl

    def has(self, capability: str) -> bool:
        return capability in self._bound

    def get(self, capability: str) -> Any | None:
        return self._bound.get(capability)

    def require(self, capability: str) -> Any:
        impl = self._bound.get(capability)
        if impl is None:
            raise MissingCapability(f"No {capability} backend configured")
        return impl
