"""Configuration schema and loader."""

from mimicbot.config.loader import load_config
from mimicbot.config.schema import Config

__all__ = ["Config", "load_config"]
