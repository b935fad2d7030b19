"""Configuration module for chainbot."""

from chainbot.config.loader import get_config_path, load_config, save_config
from chainbot.config.schema import BotSettings

__all__ = ["BotSettings", "get_config_path", "load_config", "save_config"]
