"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

from chainbot.core.models import BotInfo
from chainbot.filters.schema import UPDATE_KEYS


class BotSettings(BaseSettings):
    """Root configuration for a chainbot dispatcher."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_prefix="CHAINBOT_",
        env_nested_delimiter="__",
    )

    bot_info: BotInfo | None = None
    allowed_updates: list[str] | None = None
    log_level: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_json: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @field_validator("allowed_updates")
    @classmethod
    def _known_update_types(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        unknown = sorted({u for u in value if u not in UPDATE_KEYS})
        if unknown:
            raise ValueError("allowed_updates contains unknown update types: " + ", ".join(unknown))
        return value
