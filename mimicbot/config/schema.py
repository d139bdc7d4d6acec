"""Configuration schema.

Every knob the agent reads lives here. Values come from a JSON file (see
``loader.load_config``); anything the file leaves out can be supplied from
the environment with the ``MIMICBOT_`` prefix, using ``__`` between nested
keys::

    MIMICBOT_CHANCES__TYPO=0.1
    MIMICBOT_MODELS__CHAT=openrouter/deepseek/deepseek-v3.2
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Window(BaseModel):
    """A min/max window in seconds; a random point inside it is drawn per use."""

    min: float = 0.0
    max: float = 0.0


# ── Sections ──────────────────────────────────────────────────────────


class BotConfig(BaseModel):
    name: str | None = None  # display name override; platform name when unset
    nicknames: list[str] = Field(default_factory=list)


class PersonalityConfig(BaseModel):
    persona: str = "a laid back regular who hangs around this server"
    tone: str = "casual, lowercase, short messages"
    interests: list[str] = Field(default_factory=list)
    dislikes: list[str] = Field(default_factory=list)


class HistoryConfig(BaseModel):
    enable: bool = True
    length: int = 30
    group_by_author: bool = True
    grouping_limit: int = 5
    # Fewer cached messages than this means the cache is cold (fresh restart)
    cold_cache_threshold: int = 5
    fetch_limit: int = 50


class MemoryConfig(BaseModel):
    enable: bool = False
    length: int = 4
    chroma_path: Path | None = None  # None keeps the store in memory
    collection: str = "mimicbot_memories"
    embedding_model: str | None = None  # None uses chromadb's default embedder


class PluginsConfig(BaseModel):
    enable: bool = True
    blacklist: list[str] = Field(default_factory=list)


class FeaturesConfig(BaseModel):
    users: bool = True
    classify: bool = True


class ChancesConfig(BaseModel):
    typo: float = Field(default=0.05, ge=0.0, le=1.0)
    reply: float = Field(default=0.3, ge=0.0, le=1.0)
    # Legacy engagement roll, only consulted when classification is off
    trigger: float = Field(default=0.0, ge=0.0, le=1.0)


class ComposingDelay(BaseModel):
    """Typing time proportional to message length."""

    per_char: float = 0.055
    minimum: float = 2.0
    jitter: float = 1.5


class DelaysConfig(BaseModel):
    collector: Window = Field(default_factory=lambda: Window(min=3.0, max=6.0))
    acknowledge: Window = Field(default_factory=lambda: Window(min=1.0, max=2.5))
    typo_fix: Window = Field(default_factory=lambda: Window(min=1.0, max=3.0))
    composing: ComposingDelay = Field(default_factory=ComposingDelay)


class TasksConfig(BaseModel):
    max_queue: dict[str, int] = Field(
        default_factory=lambda: {"chat": 2, "work": 3, "revive": 1}
    )


class BlacklistConfig(BaseModel):
    guilds: list[str] = Field(default_factory=list)
    users: list[str] = Field(default_factory=list)


class ModelsConfig(BaseModel):
    base: str = "openrouter/deepseek/deepseek-v3.2"
    chat: str | None = None
    work: str | None = None
    classify: str | None = None
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = 0.9
    max_tokens: int = 1024
    fallback_models: list[str] = Field(default_factory=list)
    timeout: float = 45.0


class MarkersConfig(BaseModel):
    """Text tokens the model is taught to use in its output."""

    split: str = "---"
    ignore: str = "-+-"
    separator: str = "<|>"
    self_tag: str = "<self>"


# ── Root ──────────────────────────────────────────────────────────────


class Config(BaseSettings):
    """Root configuration, validated once at startup."""

    model_config = SettingsConfigDict(
        env_prefix="MIMICBOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    bot: BotConfig = Field(default_factory=BotConfig)
    personality: PersonalityConfig = Field(default_factory=PersonalityConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    chances: ChancesConfig = Field(default_factory=ChancesConfig)
    delays: DelaysConfig = Field(default_factory=DelaysConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    blacklist: BlacklistConfig = Field(default_factory=BlacklistConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    markers: MarkersConfig = Field(default_factory=MarkersConfig)

    def resolve_model(self, kind: str) -> str:
        """Model name for a call type (chat, work, classify), falling back to base."""
        return getattr(self.models, kind, None) or self.models.base
