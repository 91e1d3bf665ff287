"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class PrimaryStoreMode(str, Enum):
    """Where the single-writer digest store lives."""

    local = "local"  # in this process, behind per-key locks
    remote = "remote"  # another process, reached over its HTTP surface
    none = "none"


class StateStorageBackend(str, Enum):
    memory = "memory"
    redis = "redis"


class FallbackStoreMode(str, Enum):
    redis = "redis"
    memory = "memory"
    none = "none"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Monitoring
    SENTRY_DSN: str = ""

    # Webhook ingress (HMAC-SHA256 shared secret; empty rejects every request)
    WEBHOOK_SECRET: str = ""

    # Digest storage
    DIGEST_PRIMARY_STORE: PrimaryStoreMode = PrimaryStoreMode.local
    DIGEST_STATE_STORAGE: StateStorageBackend = StateStorageBackend.memory
    DIGEST_STATE_URL: str = ""  # Base URL of a remote digest-state surface
    DIGEST_STATE_TIMEOUT: float = 10.0
    DIGEST_FALLBACK_STORE: FallbackStoreMode = FallbackStoreMode.none

    # Delivery (no transport is wired yet; a non-empty value only opens the gate)
    DIGEST_EMAIL_CHANNEL: str = ""

    # Transcript pipeline
    DEFAULT_TEAM_ID: str = "default"
    CHUNK_MAX_TOKENS: int = 1500

    # Daily finalize job
    FINALIZE_ENABLED: bool = False
    FINALIZE_AT_HOUR: int = 8  # UTC
    DIGEST_TEAMS: str = "default"  # Comma-separated team ids checked by finalize

    def get_digest_teams(self) -> list[str]:
        """Return the configured team ids, skipping blanks."""
        return [t.strip() for t in self.DIGEST_TEAMS.split(",") if t.strip()]


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
