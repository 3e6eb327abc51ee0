from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BOXFLOW_", extra="ignore")

    app_name: str = "Boxflow API"
    app_version: str = "0.1.0"
    debug: bool = False
    engine_debug: bool = False

    api_prefix: str = "/api"

    feedback_group_prefix: str = Field(default="W", min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")


@lru_cache
def get_settings() -> Settings:
    return Settings()
