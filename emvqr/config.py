"""Application configuration utilities."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AdditionalDataMode


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(default=True, description="Enable JSON formatted logs")


class RenderConfig(BaseModel):
    target_pixel_width: int = Field(default=400, ge=64, le=4096)
    margin_modules: int = Field(default=2, ge=0, le=16)
    foreground_color: str = Field(default="#000000")
    background_color: str = Field(default="#FFFFFF")


class Settings(BaseSettings):
    """Central application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    app_name: str = Field(default="emvqr")
    environment: Literal["development", "staging", "production"] = Field(default="development")
    api_key: str = Field(default="dev-secret-key")
    additional_data_mode: AdditionalDataMode = Field(
        default=AdditionalDataMode.PLACEHOLDER,
        validation_alias=AliasChoices("EMVQR_ADDITIONAL_DATA", "ADDITIONAL_DATA_MODE"),
    )
    export_dir: Path = Field(default=Path("./exports"))
    render: RenderConfig = Field(default_factory=RenderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return memoized application settings."""

    return Settings()


settings = get_settings()
