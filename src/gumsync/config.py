"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (GUMSYNC__POLLING__BASE_INTERVAL=4)
  3. gumsync.yaml           (searched in cwd, then the platform config dir)
  4. Hardcoded defaults

The config file is optional. All intervals are in seconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("gumsync")


def _find_config_file() -> str | None:
    """Return the path of the first gumsync.yaml found, or None."""
    candidates = [
        Path("gumsync.yaml"),
        Path(_DEFAULT_CONFIG_DIR) / "gumsync.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ApiSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = "http://localhost:3000"
    timeout: float = Field(default=10.0, gt=0)
    # NextAuth session cookie value; the backend owns authentication
    session_token: str | None = None


class PollingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_interval: float = Field(default=5.0, gt=0)
    max_interval: float = Field(default=10.0, gt=0)
    activity_threshold: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    notes_interval: float = Field(default=3.0, gt=0)
    boards_interval: float = Field(default=5.0, gt=0)
    invites_interval: float = Field(default=120.0, gt=0)

    @model_validator(mode="after")
    def _ceiling_above_base(self) -> PollingSettings:
        if self.max_interval < self.base_interval:
            raise ValueError("max_interval must be >= base_interval")
        return self


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: GUMSYNC__API__BASE_URL=https://...
        env_prefix="GUMSYNC__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="forbid",
    )

    api: ApiSettings = ApiSettings()
    polling: PollingSettings = PollingSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
