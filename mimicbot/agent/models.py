"""Data types shared by the turn pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from mimicbot.channels.base import RawMessage


@dataclass
class AIUser:
    """A participant as the model sees them."""

    id: str
    name: str  # display name
    username: str
    is_self: bool = False
    bot: bool = False


@dataclass
class GuildInfo:
    id: str
    name: str


@dataclass
class ChannelInfo:
    id: str
    name: str
    guild_id: str | None = None
    topic: str | None = None

    @property
    def is_dm(self) -> bool:
        return self.guild_id is None


@dataclass
class HistoryMessage:
    """One logical entry of the rendered channel history.

    When grouping absorbed follow-up messages, ``content`` holds all of
    their text joined by the split marker and ``absorbed_ids`` lists the
    ids that were folded in.
    """

    id: str
    author: AIUser
    when: str  # ISO-8601
    content: str
    tags: list[str] = field(default_factory=list)
    reply_to: HistoryMessage | None = None
    mentioned_self: bool = False
    is_self: bool = False
    absorbed_ids: list[str] = field(default_factory=list)


@dataclass
class History:
    messages: list[HistoryMessage] = field(default_factory=list)
    users: dict[str, AIUser] = field(default_factory=dict)


@dataclass(frozen=True)
class Environment:
    """Snapshot of the conversation for one turn. Never modified after assembly."""

    self_user: AIUser
    channel: ChannelInfo
    history: History
    guild: GuildInfo | None = None
    trigger_user: AIUser | None = None
    triggers: tuple[RawMessage, ...] = ()


@dataclass
class TurnRequest:
    """Context of a scheduled turn.

    ``kind`` is the task kind that filed it. ``instructions`` is set for
    self-initiated turns (reminders, reviving a quiet channel) and is shown
    to the model as the task it has to carry out.
    ``created_at`` is when the turn was asked for; reminders run much later.
    """

    kind: str
    channel_id: str
    guild_id: str | None = None
    triggers: list[RawMessage] = field(default_factory=list)
    instructions: str | None = None
    author_id: str | None = None
    created_at: datetime | None = None
