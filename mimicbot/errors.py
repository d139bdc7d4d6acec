"""Error types raised across mimicbot.

Only failures that cross a component boundary get a class here. Plugin
failures never raise past the registry and admission rejections are plain
``None`` returns, so neither has a type.
"""


class MimicError(Exception):
    """Base class for all mimicbot errors."""


class ConfigError(MimicError):
    """Configuration file could not be read or failed validation."""


class CompletionError(MimicError):
    """The completion backend failed on the primary and the fallback model."""


class UnknownTaskKind(MimicError):
    """A task was filed under a kind with no registered handler.

    This is a programming error, not something a chat user can cause.
    """


class MissingCapability(MimicError):
    """A backend capability (chat, vector, search) was required but never bound."""
