"""
Configuration management using pydantic-settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from privwallet.constants import (
    DEFAULT_ANON_SCORE_TARGET,
    DEFAULT_MAX_ENUMERATED_SUBSETS,
    DEFAULT_MAX_SUBSET_SIZE,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # Coin selection search limits
    max_subset_size: int = Field(default=DEFAULT_MAX_SUBSET_SIZE, ge=1, le=32)
    max_enumerated_subsets: int = Field(default=DEFAULT_MAX_ENUMERATED_SUBSETS, ge=1)

    # Coins at or above this anonymity score go to the private pocket
    anon_score_target: int = Field(default=DEFAULT_ANON_SCORE_TARGET, ge=1)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
