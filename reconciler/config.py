"""
Configuration settings for the count reconciler.

Uses Pydantic Settings to load environment variables for the topology file
location, logging and batch execution. Connection attributes of individual
data sources live in the topology file itself (see ``reconciler.rule_store``).
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Topology
    config_path: str = Field("reconciliation-config.json", alias="RECON_CONFIG_PATH")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Batch execution
    batch_max_workers: int = Field(1, ge=1, alias="RECON_BATCH_MAX_WORKERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
