"""In-memory platform for tests and local runs.

Implements the full ``PlatformClient`` contract against plain dicts and
records every outbound action so tests can assert on it. Injected messages
go through the same listener a real adapter would call, so the collector
sees mock traffic exactly like live traffic.

Usage:
    platform = InMemoryPlatform(self_user=PlatformUser("bot", "mimic"))
    platform.add_channel(Channel("general", "general", guild_id="g1"))
    platform.on_message(collector.on_message)
    await platform.inject_message("hey @mimic", author=alice, channel_id="general")
    platform.sent  # -> [SentRecord(...)]
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from loguru import logger

from mimicbot.channels.base import (
    Channel,
    Guild,
    Member,
    PlatformClient,
    PlatformUser,
    RawMessage,
)

MessageListener = Callable[[RawMessage], Awaitable[None]]

_EPOCH = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@dataclass
class SentRecord:
    """One message the agent sent."""

    channel_id: str
    message_id: str
    content: str
    reply_to: str | None = None
    attachments: list[str] = field(default_factory=list)
    stickers: list[str] = field(default_factory=list)


@dataclass
class EditRecord:
    channel_id: str
    message_id: str
    content: str


class InMemoryPlatform(PlatformClient):
    """Programmatic platform that keeps everything in memory."""

    def __init__(self, self_user: PlatformUser | None = None) -> None:
        self._self_user = self_user or PlatformUser(id="bot", username="mimic")
        self._ids = itertools.count(1)
        self._guilds: dict[str, Guild] = {}
        self._channels: dict[str, Channel] = {}
        self._users: dict[str, PlatformUser] = {self._self_user.id: self._self_user}
        self._members: dict[tuple[str, str], Member] = {}
        self._emojis: dict[tuple[str, str], str] = {}
        self._stickers: dict[tuple[str, str], str] = {}
        self._denied: set[tuple[str, str]] = set()

        # Full channel logs and the subset the "cache" exposes
        self._messages: dict[str, list[RawMessage]] = {}
        self._cache: dict[str, list[RawMessage]] = {}
        self._listeners: list[MessageListener] = []

        self.sent: list[SentRecord] = []
        self.edits: list[EditRecord] = []
        self.typing: list[str] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.fetch_calls: int = 0

    # ── Setup ─────────────────────────────────────────────

    def add_guild(self, guild: Guild) -> Guild:
        self._guilds[guild.id] = guild
        return guild

    def add_channel(self, channel: Channel) -> Channel:
        self._channels[channel.id] = channel
        self._messages.setdefault(channel.id, [])
        self._cache.setdefault(channel.id, [])
        return channel

    def add_user(self, user: PlatformUser, guild_id: str | None = None, nick: str | None = None) -> PlatformUser:
        """Register a user, and a guild membership when ``guild_id`` is given."""
        self._users[user.id] = user
        if guild_id is not None:
            self._members[(guild_id, user.id)] = Member(user=user, guild_id=guild_id, nick=nick)
        return user

    def add_emoji(self, guild_id: str, name: str, emoji_id: str) -> None:
        self._emojis[(guild_id, name.lower())] = f"<:{name}:{emoji_id}>"

    def add_sticker(self, guild_id: str, name: str, sticker_id: str) -> None:
        self._stickers[(guild_id, name.lower())] = sticker_id

    def deny(self, channel_id: str, permission: str) -> None:
        self._denied.add((channel_id, permission))

    def clear_cache(self, channel_id: str) -> None:
        """Simulate a fresh restart: the channel's cache is empty again."""
        self._cache[channel_id] = []

    def on_message(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    # ── Message injection ─────────────────────────────────

    def seed_message(
        self,
        content: str,
        author: PlatformUser,
        channel_id: str,
        *,
        reply_to: str | None = None,
        mentions: list[str] | None = None,
        stickers: list[str] | None = None,
        cached: bool = True,
    ) -> RawMessage:
        """Store a message without notifying listeners (backfill history)."""
        channel = self._channels[channel_id]
        index = next(self._ids)
        message = RawMessage(
            id=f"m{index}",
            channel_id=channel_id,
            author=author,
            content=content,
            created_at=_EPOCH + timedelta(seconds=index),
            guild_id=channel.guild_id,
            member=self._members.get((channel.guild_id, author.id)) if channel.guild_id else None,
            reference_id=reply_to,
            mentions=list(mentions or []),
            stickers=list(stickers or []),
        )
        self._messages[channel_id].append(message)
        if cached:
            self._cache[channel_id].append(message)
        return message

    async def inject_message(
        self,
        content: str,
        author: PlatformUser,
        channel_id: str,
        *,
        reply_to: str | None = None,
        mentions: list[str] | None = None,
        stickers: list[str] | None = None,
    ) -> RawMessage:
        """Store a message and deliver it to every listener, like a live event."""
        message = self.seed_message(
            content, author, channel_id,
            reply_to=reply_to, mentions=mentions, stickers=stickers,
        )
        for listener in self._listeners:
            await listener(message)
        return message

    # ── PlatformClient: cached lookups ────────────────────

    @property
    def self_user(self) -> PlatformUser:
        return self._self_user

    def get_guild(self, guild_id: str) -> Guild | None:
        return self._guilds.get(guild_id)

    def get_channel(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    def get_user(self, user_id: str) -> PlatformUser | None:
        return self._users.get(user_id)

    def get_member(self, guild_id: str, user_id: str) -> Member | None:
        return self._members.get((guild_id, user_id))

    def cached_messages(self, channel_id: str) -> list[RawMessage]:
        return list(self._cache.get(channel_id, []))

    def has_permission(self, channel_id: str, permission: str) -> bool:
        return (channel_id, permission) not in self._denied

    def find_member(self, guild_id: str, name: str) -> Member | None:
        needle = name.lower()
        for (gid, _), member in self._members.items():
            if gid != guild_id:
                continue
            if needle in (member.user.username.lower(), member.display_name.lower()):
                return member
        return None

    def find_emoji(self, guild_id: str, name: str) -> str | None:
        return self._emojis.get((guild_id, name.lower()))

    def find_channel(self, guild_id: str, name: str) -> Channel | None:
        for channel in self._channels.values():
            if channel.guild_id == guild_id and channel.name.lower() == name.lower():
                return channel
        return None

    def find_sticker(self, guild_id: str, name: str) -> str | None:
        return self._stickers.get((guild_id, name.lower()))

    # ── PlatformClient: network calls ─────────────────────

    async def fetch_messages(self, channel_id: str, limit: int) -> list[RawMessage]:
        self.fetch_calls += 1
        recent = self._messages.get(channel_id, [])[-limit:]
        return list(reversed(recent))

    async def fetch_message(self, channel_id: str, message_id: str) -> RawMessage:
        for message in self._messages.get(channel_id, []):
            if message.id == message_id:
                return message
        raise LookupError(f"Unknown message {message_id} in {channel_id}")

    async def fetch_member(self, guild_id: str, user_id: str) -> Member | None:
        return self._members.get((guild_id, user_id))

    async def send_message(
        self,
        channel_id: str,
        content: str,
        *,
        reply_to: str | None = None,
        attachments: list[str] | None = None,
        stickers: list[str] | None = None,
    ) -> RawMessage:
        message = self.seed_message(content, self._self_user, channel_id, reply_to=reply_to)
        self.sent.append(SentRecord(
            channel_id=channel_id,
            message_id=message.id,
            content=content,
            reply_to=reply_to,
            attachments=list(attachments or []),
            stickers=list(stickers or []),
        ))
        logger.debug(f"InMemoryPlatform: sent {message.id} to {channel_id}: {content[:60]!r}")
        return message

    async def edit_message(self, channel_id: str, message_id: str, content: str) -> None:
        for message in self._messages.get(channel_id, []):
            if message.id == message_id:
                message.content = content
                break
        self.edits.append(EditRecord(channel_id, message_id, content))

    async def trigger_typing(self, channel_id: str) -> None:
        self.typing.append(channel_id)

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        self.reactions.append((channel_id, message_id, emoji))
