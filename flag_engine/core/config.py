"""Runtime settings for the feature flag engine."""

from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Ambient context used when a caller evaluates without one
    ENVIRONMENT: str = "development"
    SYSTEM_VERSION: str = "2.0.0"

    LOG_LEVEL: str = "INFO"

    # Per-flag evaluation history ring buffer size
    HISTORY_LIMIT: int = 1000
    # Cap on distinct requester identities remembered per flag
    UNIQUE_IDENTITY_LIMIT: int = 10000

    LOAD_DEFAULT_FLAGS: bool = False
    # environment name -> flag key -> value
    ENVIRONMENT_OVERRIDES: Dict[str, Dict[str, Any]] = {}

    # Persistence
    AUTOSAVE: bool = True
    CONFIG_FILE_PATH: Optional[str] = None

    # Change events
    PUBLISH_EVALUATION_EVENTS: bool = False
    EVENT_QUEUE_SIZE: int = 0  # 0 = unbounded

    model_config = {
        "env_prefix": "FLAG_ENGINE_",
        "env_file": ".env",
        "case_sensitive": False,
    }


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
