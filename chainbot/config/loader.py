"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from loguru import logger

from chainbot.config.schema import BotSettings


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".chainbot" / "config.json"


def load_config(config_path: Path | None = None) -> BotSettings:
    """
    Load configuration from file, falling back to defaults and environment.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded settings object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("Config root must be a JSON object")
            return BotSettings.model_validate(convert_keys(raw))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to load config from {}: {}. Using defaults.", path, e)

    return BotSettings()


def save_config(settings: BotSettings, config_path: Path | None = None) -> None:
    """Write *settings* as camelCase JSON."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = convert_to_camel(settings.model_dump(mode="json", exclude_none=True))
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)
