"""Load the configuration file."""

from __future__ import annotations

import json
import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from mimicbot.config.schema import Config
from mimicbot.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.json")


def get_config_path(path: str | Path | None = None) -> Path:
    """Explicit path, else ``MIMICBOT_CONFIG``, else ``config.json`` in the cwd."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get("MIMICBOT_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: str | Path | None = None) -> Config:
    """Read and validate the configuration.

    A missing file is not an error: defaults (plus any ``MIMICBOT_*``
    environment overrides) are used instead.

    Raises:
        ConfigError: The file is not valid JSON or fails validation.
    """
    config_path = get_config_path(path)
    data: dict = {}
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"{config_path}: invalid JSON ({e})") from e
        logger.info(f"Loaded config from {config_path}")
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"{config_path}: {e}") from e
