"""Application settings from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ConfigError(Exception):
    """Required configuration is missing at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required environment variables: {', '.join(missing)}")


class Settings(BaseSettings):
    """All configuration loaded from environment variables."""

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    # --- Bluesky account ---
    bsky_handle: str = ""
    bsky_password: str = ""
    did: str = ""  # repo that owns the lists
    pds: str = "bsky.social"

    # --- Labeler firehose ---
    wss_url: str = ""
    firehose_initial_delay_seconds: float = 1.0
    firehose_max_delay_seconds: float = 60.0
    firehose_resume_cursor: bool = True

    # --- Redis ---
    redis_url: str = "redis://redis:6379"
    dedup_ttl_seconds: int = 60 * 60 * 24 * 7
    redis_timeout_seconds: float = 5.0

    # --- Lists ---
    # JSON object mapping label value -> list record key, e.g. {"maga-trump": "3kexample"}
    list_registry: dict[str, str] = Field(default_factory=dict)
    mutation_concurrency: int = 5

    # --- HTTP ---
    http_timeout_seconds: float = 30.0

    # --- Process ---
    log_level: str = "INFO"
    environment: str = "production"
    shutdown_grace_seconds: float = 10.0


REQUIRED_FIELDS = ("bsky_handle", "bsky_password", "did", "wss_url")


def validate_settings(settings: Settings) -> None:
    """Raise ConfigError naming every required variable that is unset."""
    missing = [name.upper() for name in REQUIRED_FIELDS if not getattr(settings, name)]
    if missing:
        raise ConfigError(missing)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
