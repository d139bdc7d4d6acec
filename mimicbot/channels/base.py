"""Messaging platform interface.

The agent never talks to a chat service directly. Everything it needs
(reading history, sending, editing, typing, reactions, name lookups) goes
through a ``PlatformClient``. A Discord adapter lives outside this package;
``mimicbot.channels.mock.InMemoryPlatform`` implements the same contract in
memory for tests and local runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


# ── Platform records ──────────────────────────────────────────────────


@dataclass
class PlatformUser:
    id: str
    username: str
    display_name: str | None = None
    bot: bool = False

    @property
    def name(self) -> str:
        return self.display_name or self.username


@dataclass
class Member:
    """A user's membership in a guild (server)."""

    user: PlatformUser
    guild_id: str
    nick: str | None = None

    @property
    def display_name(self) -> str:
        return self.nick or self.user.name


@dataclass
class Guild:
    id: str
    name: str


@dataclass
class Channel:
    id: str
    name: str
    guild_id: str | None = None  # None for direct messages
    topic: str | None = None

    @property
    def is_dm(self) -> bool:
        return self.guild_id is None


@dataclass
class RawMessage:
    """A message exactly as the platform reports it."""

    id: str
    channel_id: str
    author: PlatformUser
    content: str
    created_at: datetime
    guild_id: str | None = None
    member: Member | None = None  # present when the platform sent it along
    reference_id: str | None = None  # id of the message this one replies to
    mentions: list[str] = field(default_factory=list)  # mentioned user ids
    stickers: list[str] = field(default_factory=list)  # sticker names


# ── Client contract ───────────────────────────────────────────────────


class PlatformClient(ABC):
    """Everything the agent may ask of the messaging platform.

    Lookups that a real client answers from its local cache are plain
    methods; anything that may hit the network is a coroutine.
    """

    @property
    @abstractmethod
    def self_user(self) -> PlatformUser:
        """The account the agent is logged in as."""

    # ── Cached lookups ──

    @abstractmethod
    def get_guild(self, guild_id: str) -> Guild | None: ...

    @abstractmethod
    def get_channel(self, channel_id: str) -> Channel | None: ...

    @abstractmethod
    def get_user(self, user_id: str) -> PlatformUser | None: ...

    @abstractmethod
    def get_member(self, guild_id: str, user_id: str) -> Member | None: ...

    @abstractmethod
    def cached_messages(self, channel_id: str) -> list[RawMessage]:
        """Messages currently in the local cache, oldest first."""

    @abstractmethod
    def has_permission(self, channel_id: str, permission: str) -> bool:
        """Whether the agent holds ``permission`` ("send", "react", ...) in a channel."""

    @abstractmethod
    def find_member(self, guild_id: str, name: str) -> Member | None:
        """Resolve a member by username or display name (case-insensitive)."""

    @abstractmethod
    def find_emoji(self, guild_id: str, name: str) -> str | None:
        """Platform markup for a custom emoji, e.g. ``<:blobwave:1234>``."""

    @abstractmethod
    def find_channel(self, guild_id: str, name: str) -> Channel | None: ...

    @abstractmethod
    def find_sticker(self, guild_id: str, name: str) -> str | None:
        """Sticker id for a sticker name available in the guild."""

    # ── Network calls ──

    @abstractmethod
    async def fetch_messages(self, channel_id: str, limit: int) -> list[RawMessage]:
        """Most recent messages from the network, newest first."""

    @abstractmethod
    async def fetch_message(self, channel_id: str, message_id: str) -> RawMessage:
        """Fetch a single message. Raises if it does not exist."""

    @abstractmethod
    async def fetch_member(self, guild_id: str, user_id: str) -> Member | None: ...

    @abstractmethod
    async def send_message(
        self,
        channel_id: str,
        content: str,
        *,
        reply_to: str | None = None,
        attachments: list[str] | None = None,
        stickers: list[str] | None = None,
    ) -> RawMessage: ...

    @abstractmethod
    async def edit_message(self, channel_id: str, message_id: str, content: str) -> None: ...

    @abstractmethod
    async def trigger_typing(self, channel_id: str) -> None: ...

    @abstractmethod
    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None: ...
