"""Tests for MessageCollector: per-author debounce and engagement decision."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mimicbot.agent.collector import MessageCollector
from mimicbot.channels.base import PlatformUser
from mimicbot.config.schema import Window


# ── Helpers ───────────────────────────────────────────────


def make_scheduler() -> MagicMock:
    scheduler = MagicMock()
    scheduler.add = MagicMock(side_effect=lambda kind, request, run_at=None: MagicMock(id="t1"))
    return scheduler


def requests(scheduler: MagicMock) -> list:
    return [c.args[1] for c in scheduler.add.call_args_list]


async def settle(seconds: float = 0.08) -> None:
    await asyncio.sleep(seconds)


# ── Debounce ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_burst_becomes_one_task_in_arrival_order(platform, config, alice):
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    first = await platform.inject_message("hey mimic", author=alice, channel_id="general")
    second = await platform.inject_message("you there?", author=alice, channel_id="general")
    third = await platform.inject_message("hello??", author=alice, channel_id="general")
    await settle()

    assert scheduler.add.call_count == 1
    (request,) = requests(scheduler)
    assert scheduler.add.call_args.args[0] == "chat"
    assert [m.id for m in request.triggers] == [first.id, second.id, third.id]
    assert request.channel_id == "general"
    assert request.author_id == "alice"
    assert collector.pending == {}


@pytest.mark.asyncio
async def test_each_message_restarts_the_timer(platform, config, alice):
    config.delays.collector = Window(min=0.06, max=0.06)
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic", author=alice, channel_id="general")
    await asyncio.sleep(0.04)
    await platform.inject_message("one more", author=alice, channel_id="general")
    await asyncio.sleep(0.04)
    # 80ms since the first message, but only 40ms since the last
    assert scheduler.add.call_count == 0
    assert collector.pending == {"alice": 2}

    await asyncio.sleep(0.06)
    assert scheduler.add.call_count == 1


@pytest.mark.asyncio
async def test_authors_are_collected_separately(platform, config, alice, bob):
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic hi", author=alice, channel_id="general")
    await platform.inject_message("mimic yo", author=bob, channel_id="general")
    await settle()

    assert sorted(r.author_id for r in requests(scheduler)) == ["alice", "bob"]


@pytest.mark.asyncio
async def test_open_burst_in_other_channel_ignores_message(platform, config, alice):
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic", author=alice, channel_id="general")
    await platform.inject_message("over here", author=alice, channel_id="memes")
    await settle()

    (request,) = requests(scheduler)
    assert [m.channel_id for m in request.triggers] == ["general"]


# ── Trigger detection ─────────────────────────────────────


@pytest.mark.parametrize("content,mentions,expected", [
    ("hey <@bot>", [], True),
    ("hey you", ["bot"], True),
    ("MIMI what do you think", [], True),
    ("ask Mimic about it", [], True),
    ("just talking", [], False),
])
def test_is_triggered(platform, config, content, mentions, expected):
    collector = MessageCollector(platform, make_scheduler(), config)
    message = platform.seed_message(content, PlatformUser("x", "x"), "general", mentions=mentions)
    assert collector.is_triggered(message) is expected


@pytest.mark.asyncio
async def test_trigger_is_sticky_for_the_burst(platform, config, alice):
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic", author=alice, channel_id="general")
    await platform.inject_message("unrelated follow-up", author=alice, channel_id="general")
    await settle()

    assert scheduler.add.call_count == 1


# ── Engagement decision ───────────────────────────────────


@pytest.mark.asyncio
async def test_untriggered_burst_discarded_without_classifier(platform, config, alice):
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("just chatting", author=alice, channel_id="general")
    await settle()

    scheduler.add.assert_not_called()


@pytest.mark.asyncio
async def test_legacy_chance_engages_when_classification_off(platform, config, alice):
    config.chances.trigger = 1.0
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("just chatting", author=alice, channel_id="general")
    await settle()

    assert scheduler.add.call_count == 1


@pytest.mark.asyncio
async def test_classifier_decides_untriggered_burst(platform, config, alice):
    config.features.classify = True
    config.chances.trigger = 1.0  # ignored while classification is on
    scheduler = make_scheduler()
    assembler = MagicMock()
    assembler.fetch = AsyncMock(return_value="env")
    classifier = MagicMock()
    classifier.is_relevant = AsyncMock(return_value=False)
    collector = MessageCollector(platform, scheduler, config, assembler=assembler, classifier=classifier)
    platform.on_message(collector.on_message)

    message = await platform.inject_message("so what then", author=alice, channel_id="general")
    await settle()

    assembler.fetch.assert_awaited_once_with("general", [message])
    classifier.is_relevant.assert_awaited_once_with("env")
    scheduler.add.assert_not_called()

    classifier.is_relevant.return_value = True
    await platform.inject_message("right?", author=alice, channel_id="general")
    await settle()
    assert scheduler.add.call_count == 1


@pytest.mark.asyncio
async def test_triggered_burst_skips_classifier(platform, config, alice):
    config.features.classify = True
    scheduler = make_scheduler()
    classifier = MagicMock()
    classifier.is_relevant = AsyncMock(return_value=False)
    collector = MessageCollector(platform, scheduler, config, assembler=MagicMock(), classifier=classifier)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic!", author=alice, channel_id="general")
    await settle()

    classifier.is_relevant.assert_not_called()
    assert scheduler.add.call_count == 1


@pytest.mark.asyncio
async def test_flush_error_is_contained(platform, config, alice):
    config.features.classify = True
    assembler = MagicMock()
    assembler.fetch = AsyncMock(side_effect=RuntimeError("platform down"))
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config, assembler=assembler, classifier=MagicMock())
    platform.on_message(collector.on_message)

    await platform.inject_message("hmm", author=alice, channel_id="general")
    await settle()

    scheduler.add.assert_not_called()
    assert collector.pending == {}


# ── Filters ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ignored_messages(platform, config, alice, bob):
    config.blacklist.users = ["bob"]
    platform.deny("memes", "send")
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)
    platform.on_message(collector.on_message)

    await platform.inject_message("mimic", author=platform.self_user, channel_id="general")
    await platform.inject_message("mimic", author=bob, channel_id="general")
    await platform.inject_message("mimic", author=alice, channel_id="memes")
    await settle()

    scheduler.add.assert_not_called()
    assert collector.pending == {}


@pytest.mark.asyncio
async def test_blacklisted_guild_ignored(platform, config, alice):
    config.blacklist.guilds = ["g1"]
    scheduler = make_scheduler()
    collector = MessageCollector(platform, scheduler, config)

    message = platform.seed_message("mimic", alice, "general")
    await collector.on_message(message)
    await settle()

    scheduler.add.assert_not_called()
