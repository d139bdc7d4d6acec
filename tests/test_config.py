import json

import pytest

from mimicbot.config.loader import get_config_path, load_config
from mimicbot.config.schema import Config
from mimicbot.errors import ConfigError


def test_defaults():
    config = Config()

    assert config.history.length == 30
    assert config.history.grouping_limit == 5
    assert config.memory.enable is False
    assert config.tasks.max_queue == {"chat": 2, "work": 3, "revive": 1}
    assert config.markers.split == "---"
    assert config.markers.self_tag == "<self>"
    assert config.delays.collector.min <= config.delays.collector.max


def test_resolve_model_falls_back_to_base():
    config = Config(models={"base": "base-model", "classify": "tiny-model"})

    assert config.resolve_model("classify") == "tiny-model"
    assert config.resolve_model("chat") == "base-model"
    assert config.resolve_model("work") == "base-model"


def test_load_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "bot": {"name": "mimi", "nicknames": ["mims"]},
        "chances": {"reply": 0.5},
        "blacklist": {"users": ["spammer"]},
        "unknown_section": {"ignored": True},
    }))

    config = load_config(path)

    assert config.bot.name == "mimi"
    assert config.chances.reply == 0.5
    assert config.chances.typo == 0.05
    assert config.blacklist.users == ["spammer"]


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "absent.json")
    assert config.history.length == 30


def test_bad_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ConfigError):
        load_config(path)


def test_invalid_values_raise(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"history": {"length": "lots"}}))

    with pytest.raises(ConfigError):
        load_config(path)


def test_env_fills_gaps(tmp_path, monkeypatch):
    monkeypatch.setenv("MIMICBOT_MODELS__API_KEY", "sk-test")
    monkeypatch.setenv("MIMICBOT_CHANCES__REPLY", "0.9")

    config = load_config(tmp_path / "absent.json")

    assert config.models.api_key == "sk-test"
    assert config.chances.reply == 0.9


def test_config_path_resolution(monkeypatch, tmp_path):
    monkeypatch.delenv("MIMICBOT_CONFIG", raising=False)
    assert str(get_config_path()) == "config.json"

    monkeypatch.setenv("MIMICBOT_CONFIG", str(tmp_path / "from_env.json"))
    assert get_config_path() == tmp_path / "from_env.json"
    assert get_config_path("explicit.json").name == "explicit.json"
