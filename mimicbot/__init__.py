"""mimicbot - a chat agent that talks like one of the regulars."""

__version__ = "0.1.0"
