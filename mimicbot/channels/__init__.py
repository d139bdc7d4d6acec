"""Messaging platform contract and the in-memory implementation."""

from mimicbot.channels.base import (
    Channel,
    Guild,
    Member,
    PlatformClient,
    PlatformUser,
    RawMessage,
)

__all__ = ["Channel", "Guild", "Member", "PlatformClient", "PlatformUser", "RawMessage"]
