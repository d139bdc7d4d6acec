"""Shared fixtures: a fast config and a small in-memory server."""

import os

# Keep litellm from fetching its model cost map over the network in a
# background thread at import time (it deadlocks collection when offline).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from unittest.mock import AsyncMock, MagicMock

import pytest

from mimicbot.channels.base import Channel, Guild, PlatformUser
from mimicbot.channels.mock import InMemoryPlatform
from mimicbot.config.schema import Config
from mimicbot.providers.base import LLMResponse


@pytest.fixture
def config() -> Config:
    """No delays, no randomness, classification off."""
    return Config(
        bot={"nicknames": ["mimi"]},
        delays={
            "collector": {"min": 0.02, "max": 0.02},
            "acknowledge": {"min": 0.0, "max": 0.0},
            "typo_fix": {"min": 0.0, "max": 0.0},
            "composing": {"per_char": 0.0, "minimum": 0.0, "jitter": 0.0},
        },
        chances={"typo": 0.0, "reply": 0.0, "trigger": 0.0},
        features={"users": True, "classify": False},
    )


@pytest.fixture
def platform() -> InMemoryPlatform:
    p = InMemoryPlatform(self_user=PlatformUser("bot", "mimic"))
    p.add_guild(Guild("g1", "test server"))
    p.add_channel(Channel("general", "general", guild_id="g1"))
    p.add_channel(Channel("memes", "memes", guild_id="g1"))
    p.add_user(p.self_user, guild_id="g1")
    return p


@pytest.fixture
def alice(platform: InMemoryPlatform) -> PlatformUser:
    return platform.add_user(PlatformUser("alice", "alice", "Alice"), guild_id="g1")


@pytest.fixture
def bob(platform: InMemoryPlatform) -> PlatformUser:
    return platform.add_user(PlatformUser("bob", "bob"), guild_id="g1", nick="Bobby")


@pytest.fixture
def make_completer():
    """Factory for a completer stub returning the given responses in order."""

    def _make(*responses: LLMResponse) -> MagicMock:
        completer = MagicMock()
        completer.chat = AsyncMock(side_effect=list(responses))
        return completer

    return _make
