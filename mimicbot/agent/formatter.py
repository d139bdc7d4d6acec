"""Placeholder substitution between platform markup and model text.

The model reads and writes friendly placeholders; the platform uses ids:

    input  (platform -> model)   <@123> -> @name   <:wave:9> -> <e:wave>   <#5> -> #general
    output (model -> platform)   @name -> <@123>   <e:wave> -> <:wave:9>   #general -> <#5>

A placeholder that cannot be resolved is left exactly as written.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from loguru import logger

if TYPE_CHECKING:
    from mimicbot.agent.models import Environment
    from mimicbot.channels.base import PlatformClient

Replacer = Callable[["PlatformClient", "Environment", re.Match], "str | None"]


@dataclass(frozen=True)
class FormatRule:
    pattern: re.Pattern
    replacer: Replacer


@dataclass(frozen=True)
class FormatterPair:
    name: str
    input: FormatRule
    output: FormatRule


# ── Mentions ──────────────────────────────────────────────────────────


def _mention_in(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    user = platform.get_user(match.group(1))
    if user is None:
        return None
    return f"@{user.username}"


def _mention_out(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    if env.guild is None:
        return None
    member = platform.find_member(env.guild.id, match.group(1))
    return f"<@{member.user.id}>" if member else None


# ── Emojis ────────────────────────────────────────────────────────────


def _emoji_in(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    return f"<e:{match.group(2)}>"


def _emoji_out(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    if env.guild is None:
        return None
    return platform.find_emoji(env.guild.id, match.group(1))


# ── Channels ──────────────────────────────────────────────────────────


def _channel_in(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    channel = platform.get_channel(match.group(1))
    return f"#{channel.name}" if channel else None


def _channel_out(platform: PlatformClient, env: Environment, match: re.Match) -> str | None:
    if env.guild is None:
        return None
    channel = platform.find_channel(env.guild.id, match.group(1))
    return f"<#{channel.id}>" if channel else None


FORMATTERS: tuple[FormatterPair, ...] = (
    FormatterPair(
        name="mentions",
        input=FormatRule(re.compile(r"<@!?(\d+|[\w-]+)>"), _mention_in),
        output=FormatRule(re.compile(r"(?<![\w<])@(\w+)"), _mention_out),
    ),
    FormatterPair(
        name="emojis",
        input=FormatRule(re.compile(r"<(a)?:(\w+):(\d+)>"), _emoji_in),
        output=FormatRule(re.compile(r"<e:(\w+)>"), _emoji_out),
    ),
    FormatterPair(
        name="channels",
        input=FormatRule(re.compile(r"<#(\d+|[\w-]+)>"), _channel_in),
        output=FormatRule(re.compile(r"(?<![\w<&])#([\w-]+)"), _channel_out),
    ),
)


class PlaceholderFormatter:
    """Apply every formatter pair in one direction."""

    def __init__(self, platform: PlatformClient, pairs: tuple[FormatterPair, ...] = FORMATTERS) -> None:
        self._platform = platform
        self._pairs = pairs

    def format(self, env: Environment, text: str, direction: str = "output") -> str:
        if direction not in ("input", "output"):
            raise ValueError(f"Unknown format direction: {direction}")
        for pair in self._pairs:
            rule: FormatRule = getattr(pair, direction)
            text = rule.pattern.sub(lambda m, r=rule: self._replace(env, r, m, pair.name), text)
        return text

    def _replace(self, env: Environment, rule: FormatRule, match: re.Match, name: str) -> str:
        try:
            replacement = rule.replacer(self._platform, env, match)
        except Exception as e:
            logger.warning(f"Formatter '{name}': lookup failed for {match.group(0)!r}: {e}")
            return match.group(0)
        return match.group(0) if replacement is None else replacement
