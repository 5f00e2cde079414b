# awsx/config.py
"""
Settings for the awsx wrappers.

Values come from environment variables or a local .env file.
"""
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_CONCURRENCY = 10


class Settings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    The region is resolved from the first variable that is set.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    region: Optional[str] = Field(
        None,
        validation_alias=AliasChoices('AWSX_REGION', 'AWS_REGION', 'REGION', 'DB_REGION'),
    )
    max_concurrency: int = Field(
        DEFAULT_MAX_CONCURRENCY,
        validation_alias=AliasChoices('AWSX_MAX_CONCURRENCY'),
        gt=0,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
