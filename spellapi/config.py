"""Configuration loaded from ``SPELLAPI_*`` environment variables."""

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SPELLAPI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store
    store_backend: Literal["mongo", "memory"] = "mongo"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "spellapi"
    mongo_collection: str = "spells"
    mongo_timeout_ms: int = Field(default=5000, gt=0)

    # Feature flags: LaunchDarkly when an SDK key is set, else every flag is on
    # except those listed in disabled_flags.
    launchdarkly_sdk_key: Optional[str] = None
    launchdarkly_timeout_s: float = Field(default=5, gt=0)

    # Feature flags switched off, e.g. SPELLAPI_DISABLED_FLAGS='["delete-spell"]'
    disabled_flags: List[str] = Field(default_factory=list)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings (tests)."""
    global _settings
    _settings = None
