"""Service configuration: defaults, then ``<data_dir>/config.json``, then env vars.

Environment variables (``.env`` is loaded by the app and launcher):

    INTENT_PROVIDER_URL     Completion backend for intent parsing ("" = keyword parser only)
    INTENT_API_KEY          Bearer token for the backend
    INTENT_PROVIDER_FORMAT  openai_chat | openai | koboldcpp
    INTENT_MODEL            Model name sent to the backend
    TICK_TIMEOUT            Seconds allowed per tick invocation (0 = no limit)
    AUTO_TICK               "1"/"true" to run the background tick runner
    TICK_POLL_INTERVAL      Seconds between runner passes
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "intent": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "openai_chat",
        "model": "gpt-3.5-turbo",
        "timeout": 10.0,
        "temperature": 0.3,
        "max_tokens": 150,
    },
    "tick_timeout": 30.0,
    "auto_tick": False,
    "tick_poll_interval": 15.0,
}

_ENV_INTENT = {
    "INTENT_PROVIDER_URL": "provider_url",
    "INTENT_API_KEY": "api_key",
    "INTENT_PROVIDER_FORMAT": "provider_format",
    "INTENT_MODEL": "model",
}


def _truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env overrides."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))

    path = data_dir / "config.json"
    if path.is_file():
        stored = json.loads(path.read_text())
        if isinstance(stored.get("intent"), dict):
            config["intent"].update(stored["intent"])
        for key in ("tick_timeout", "auto_tick", "tick_poll_interval"):
            if key in stored:
                config[key] = stored[key]

    for env_name, key in _ENV_INTENT.items():
        if os.getenv(env_name):
            config["intent"][key] = os.environ[env_name]
    if os.getenv("TICK_TIMEOUT"):
        config["tick_timeout"] = float(os.environ["TICK_TIMEOUT"])
    if os.getenv("AUTO_TICK"):
        config["auto_tick"] = _truthy(os.environ["AUTO_TICK"])
    if os.getenv("TICK_POLL_INTERVAL"):
        config["tick_poll_interval"] = float(os.environ["TICK_POLL_INTERVAL"])

    if config["intent"]["provider_format"] not in ("openai_chat", "openai", "koboldcpp"):
        logger.warning(
            "Unknown intent provider format %r, using openai_chat",
            config["intent"]["provider_format"],
        )
        config["intent"]["provider_format"] = "openai_chat"
    return config


def tick_timeout(config: dict[str, Any]) -> float | None:
    """Configured tick budget in seconds; 0 or less means unlimited."""
    value = float(config.get("tick_timeout") or 0)
    return value if value > 0 else None
