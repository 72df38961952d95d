"""Tests for depths.config — defaults, config.json and env overrides."""

import json

import pytest

from depths.config import load_config, tick_timeout

_ENV_NAMES = (
    "INTENT_PROVIDER_URL", "INTENT_API_KEY", "INTENT_PROVIDER_FORMAT", "INTENT_MODEL",
    "TICK_TIMEOUT", "AUTO_TICK", "TICK_POLL_INTERVAL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config["intent"]["provider_url"] == ""
    assert config["intent"]["model"] == "gpt-3.5-turbo"
    assert config["intent"]["temperature"] == 0.3
    assert config["auto_tick"] is False
    assert tick_timeout(config) == 30.0


def test_config_file_merges_intent_key_by_key(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({
        "intent": {"provider_url": "http://localhost:5001", "provider_format": "koboldcpp"},
        "tick_timeout": 0,
    }))
    config = load_config(tmp_path)
    assert config["intent"]["provider_url"] == "http://localhost:5001"
    assert config["intent"]["provider_format"] == "koboldcpp"
    assert config["intent"]["model"] == "gpt-3.5-turbo"
    assert tick_timeout(config) is None


def test_env_overrides_file(tmp_path, monkeypatch):
    (tmp_path / "config.json").write_text(json.dumps({"intent": {"model": "from-file"}}))
    monkeypatch.setenv("INTENT_MODEL", "from-env")
    monkeypatch.setenv("AUTO_TICK", "true")
    monkeypatch.setenv("TICK_TIMEOUT", "2.5")
    config = load_config(tmp_path)
    assert config["intent"]["model"] == "from-env"
    assert config["auto_tick"] is True
    assert tick_timeout(config) == 2.5


def test_unknown_provider_format_falls_back(tmp_path, monkeypatch):
    monkeypatch.setenv("INTENT_PROVIDER_FORMAT", "carrier-pigeon")
    assert load_config(tmp_path)["intent"]["provider_format"] == "openai_chat"
