"""Environment assembly - raw platform messages to a turn's history.

history() pipeline:
    1. Window: cached messages, or a network fetch when the cache is cold
    2. Triggers: drop their duplicates from the window, append them last
    3. Walk: skip empty messages, resolve each author once (memoized)
    4. Grouping: fold same-author follow-ups into one entry (split marker join)
    5. Replies: resolve one level; a reply to an absorbed message points at
       the entry that absorbed it
    6. Keep the most recent `history.length` entries
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from mimicbot.agent.models import (
    AIUser,
    ChannelInfo,
    Environment,
    GuildInfo,
    History,
    HistoryMessage,
)

if TYPE_CHECKING:
    from mimicbot.channels.base import Channel, PlatformClient, RawMessage
    from mimicbot.config.schema import Config

# Longest reply preview shown inside a rendered history line
REPLY_PREVIEW_CHARS = 80


class EnvironmentAssembler:
    """Builds a fresh ``Environment`` snapshot per turn."""

    def __init__(self, platform: PlatformClient, config: Config) -> None:
        self._platform = platform
        self._config = config

    # ── Environment ───────────────────────────────────────────────────

    def self_user(self) -> AIUser:
        me = self._platform.self_user
        return AIUser(
            id=me.id,
            name=self._config.bot.name or me.name,
            username=me.username,
            is_self=True,
            bot=me.bot,
        )

    async def fetch(
        self, channel_id: str, triggers: list[RawMessage] | None = None,
    ) -> Environment:
        """Assemble the environment for a channel.

        Raises:
            LookupError: The channel is unknown to the platform.
        """
        channel = self._platform.get_channel(channel_id)
        if channel is None:
            raise LookupError(f"Unknown channel {channel_id}")

        guild_info = None
        if channel.guild_id is not None:
            guild = self._platform.get_guild(channel.guild_id)
            if guild is not None:
                guild_info = GuildInfo(id=guild.id, name=guild.name)

        triggers = list(triggers or [])
        history = History()
        if self._config.history.enable:
            history = await self.history(channel, triggers)

        trigger_user = None
        if triggers:
            trigger_user = history.users.get(triggers[-1].author.id)

        return Environment(
            self_user=self.self_user(),
            channel=ChannelInfo(
                id=channel.id,
                name=channel.name,
                guild_id=channel.guild_id,
                topic=channel.topic,
            ),
            history=history,
            guild=guild_info,
            trigger_user=trigger_user,
            triggers=tuple(triggers),
        )

    # ── History ───────────────────────────────────────────────────────

    async def _window(self, channel: Channel) -> list[RawMessage]:
        """Recent raw messages, oldest first."""
        settings = self._config.history
        cached = self._platform.cached_messages(channel.id)
        if len(cached) >= settings.cold_cache_threshold:
            return cached[-settings.fetch_limit:]

        logger.debug(
            f"Environment: cache for #{channel.name} holds {len(cached)} messages, "
            f"fetching {settings.fetch_limit}"
        )
        fetched = await self._platform.fetch_messages(channel.id, settings.fetch_limit)
        return list(reversed(fetched))

    async def history(self, channel: Channel, triggers: list[RawMessage] | None = None) -> History:
        settings = self._config.history
        split = self._config.markers.split

        window = await self._window(channel)
        if triggers:
            trigger_ids = {m.id for m in triggers}
            window = [m for m in window if m.id not in trigger_ids] + list(triggers)

        users: dict[str, AIUser | None] = {}
        by_id: dict[str, HistoryMessage] = {}
        entries: list[HistoryMessage] = []

        i = 0
        while i < len(window):
            message = window[i]
            i += 1
            if not message.content.strip():
                continue

            author = await self._resolve_user(message, channel, users)
            if author is None:
                continue

            group = [message]
            if settings.group_by_author:
                while i < len(window) and len(group) <= settings.grouping_limit:
                    follower = window[i]
                    if (
                        follower.author.id != message.author.id
                        or not follower.content.strip()
                        or follower.reference_id is not None
                    ):
                        break
                    group.append(follower)
                    i += 1

            entry = self._to_entry(group, author, split)
            if message.reference_id is not None:
                entry.reply_to = await self._resolve_reply(message, channel, users, by_id)

            for member in group:
                by_id[member.id] = entry
            entries.append(entry)

        entries = entries[-settings.length:] if settings.length > 0 else []

        seen: dict[str, AIUser] = {}
        for entry in entries:
            seen.setdefault(entry.author.id, entry.author)
        return History(messages=entries, users=seen)

    # ── Helpers ───────────────────────────────────────────────────────

    def _to_entry(self, group: list[RawMessage], author: AIUser, split: str) -> HistoryMessage:
        head = group[0]
        self_id = self._platform.self_user.id
        stickers = [name for m in group for name in m.stickers]
        return HistoryMessage(
            id=head.id,
            author=author,
            when=head.created_at.isoformat(),
            content=split.join(m.content for m in group),
            tags=[f"stickers: {', '.join(stickers)}"] if stickers else [],
            mentioned_self=any(
                self_id in m.mentions or f"<@{self_id}>" in m.content for m in group
            ),
            is_self=author.is_self,
            absorbed_ids=[m.id for m in group[1:]],
        )

    async def _resolve_user(
        self,
        message: RawMessage,
        channel: Channel,
        users: dict[str, AIUser | None],
    ) -> AIUser | None:
        """Author as an ``AIUser``, memoized per history build.

        In guild channels the membership is needed for the display name; when
        it cannot be resolved the author (and their message) is skipped.
        """
        author = message.author
        if author.id in users:
            return users[author.id]

        name = author.name
        if channel.guild_id is not None:
            member = message.member or self._platform.get_member(channel.guild_id, author.id)
            if member is None:
                try:
                    member = await self._platform.fetch_member(channel.guild_id, author.id)
                except Exception as e:
                    logger.debug(f"Environment: member fetch failed for {author.id}: {e}")
                    member = None
            if member is None:
                users[author.id] = None
                return None
            name = member.display_name

        user = AIUser(
            id=author.id,
            name=name,
            username=author.username,
            is_self=author.id == self._platform.self_user.id,
            bot=author.bot,
        )
        users[author.id] = user
        return user

    async def _resolve_reply(
        self,
        message: RawMessage,
        channel: Channel,
        users: dict[str, AIUser | None],
        by_id: dict[str, HistoryMessage],
    ) -> HistoryMessage | None:
        """One level of reply resolution; best effort, None on failure."""
        target_id = message.reference_id
        if target_id in by_id:
            return by_id[target_id]

        try:
            target = await self._platform.fetch_message(channel.id, target_id)
        except Exception as e:
            logger.debug(f"Environment: reply target {target_id} unavailable: {e}")
            return None
        if not target.content.strip():
            return None

        author = await self._resolve_user(target, channel, users)
        if author is None:
            return None
        return self._to_entry([target], author, self._config.markers.split)


def render_entry(
    message: HistoryMessage,
    self_tag: str,
    separator: str,
    index: int | None = None,
) -> str:
    """One history line as the model sees it.

    ``(mentioned you) [name] <3> [reply to bob: "..."] [stickers: wave] <|> text``
    """
    parts = []
    if message.mentioned_self:
        parts.append("(mentioned you)")
    parts.append(f"[{self_tag if message.is_self else message.author.name}]")
    if index is not None:
        parts.append(f"<{index}>")
    if message.reply_to is not None:
        preview = message.reply_to.content.replace("\n", " ")
        if len(preview) > REPLY_PREVIEW_CHARS:
            preview = preview[:REPLY_PREVIEW_CHARS] + "..."
        parts.append(f'[reply to {message.reply_to.author.name}: "{preview}"]')
    for tag in message.tags:
        parts.append(f"[{tag}]")
    return f"{' '.join(parts)} {separator} {message.content}"
