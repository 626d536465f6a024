"""Configuration management for Timelapse MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from PIL import ImageColor
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimelapseSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    captures_root: Path = Field(
        default=Path("./captures"), validation_alias="TIMELAPSE_CAPTURES_ROOT"
    )
    base_delay_ms: int = Field(default=500, validation_alias="TIMELAPSE_BASE_DELAY_MS")
    gif_quality: int = Field(default=10, validation_alias="TIMELAPSE_GIF_QUALITY")
    background: str = Field(default="#000000", validation_alias="TIMELAPSE_BACKGROUND")
    fetch_timeout: float | None = Field(default=None, validation_alias="TIMELAPSE_FETCH_TIMEOUT")
    log_level: str = Field(default="INFO", validation_alias="TIMELAPSE_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TIMELAPSE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("base_delay_ms")
    @classmethod
    def _validate_base_delay(cls, value: int) -> int:
        if value < 10:
            raise ValueError("TIMELAPSE_BASE_DELAY_MS must be >= 10")
        return value

    @field_validator("gif_quality")
    @classmethod
    def _validate_quality(cls, value: int) -> int:
        if not 1 <= value <= 20:
            raise ValueError("TIMELAPSE_GIF_QUALITY must be between 1 and 20")
        return value

    @field_validator("background")
    @classmethod
    def _validate_background(cls, value: str) -> str:
        try:
            ImageColor.getrgb(value)
        except ValueError as exc:
            raise ValueError(f"TIMELAPSE_BACKGROUND is not a color: {value!r}") from exc
        return value

    @field_validator("fetch_timeout", mode="before")
    @classmethod
    def _parse_fetch_timeout(cls, value):
        if value is None or value == "":
            return None
        return value

    @property
    def background_rgb(self) -> tuple[int, int, int]:
        """Background fill as an RGB triple."""

        return ImageColor.getrgb(self.background)[:3]


@lru_cache(maxsize=1)
def get_settings() -> TimelapseSettings:
    """Return cached settings instance."""

    settings = TimelapseSettings()
    settings.captures_root = settings.captures_root.expanduser().resolve()
    return settings


__all__ = ["TimelapseSettings", "get_settings"]
