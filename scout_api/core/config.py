"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- DATABASE_URL
- ADMIN_TOKEN
- SLACK_BOT_TOKEN (critical sync alerts)
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

from scout_api.core.exceptions import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_DATABASE_URL = "sqlite:///./scout.db"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = SettingsConfigDict(env_file_encoding="utf-8", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "Basketball Scouting API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Database
    DATABASE_URL: str = DEFAULT_DATABASE_URL

    # Security
    ADMIN_TOKEN: str = ""

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE: str = "memory"  # "memory" or "redis"
    REDIS_URL: Optional[str] = None  # Required if using Redis storage

    # Cache (response cache + job locks)
    CACHE_STORAGE: str = "memory"  # "memory" or "redis"
    CACHE_PREFIX: str = "scout:"
    CACHE_TTL_GAMES: int = 300  # 5 minutes
    CACHE_TTL_PLAYERS: int = 900  # 15 minutes
    CACHE_TTL_LLM_SCHEDULE: int = 3600  # 1 hour

    # SportsBlaze (primary stats provider)
    SPORTSBLAZE_API_KEY: str = ""
    SPORTSBLAZE_BASE_URL: str = "https://api.sportsblaze.com/nba/v1"
    SPORTSBLAZE_TIMEOUT: int = 30

    # BallDontLie (bulk provider)
    BALLDONTLIE_API_KEY: str = ""
    BALLDONTLIE_BASE_URL: str = "https://api.balldontlie.io/v1"
    BALLDONTLIE_TIMEOUT: int = 30
    BALLDONTLIE_REQUESTS_PER_MINUTE: int = 5
    BALLDONTLIE_PAGE_SIZE: int = 100

    # OpenAI Responses API (web-search schedule lookups)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_PROMPT_ID: str = ""  # Saved prompt for the multi-day schedule
    OPENAI_TIMEOUT: int = 30
    OPENAI_BULK_TIMEOUT: int = 180
    OPENAI_POLL_INTERVAL: float = 10.0
    OPENAI_POLL_MAX_ATTEMPTS: int = 30
    OPENAI_POLL_MAX_FAILURES: int = 3

    # Slack alerts
    SLACK_BOT_TOKEN: str = ""
    SLACK_CHANNEL: str = "#alerts"

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_TIMEZONE: str = "America/New_York"
    LLM_SYNC_INTERVAL_HOURS: int = 2
    LLM_SYNC_DAYS_AHEAD: int = 3
    MINUTES_SYNC_HOUR: int = 5

    # Job retry policy
    JOB_MAX_ATTEMPTS: int = 3
    JOB_BACKOFF_SECONDS: int = 120
    JOB_LOCK_TIMEOUT: int = 420  # per attempt; the lock TTL is derived from it

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """
        Browser origins allowed to call the API (the admin tools; the mobile
        client is not subject to CORS). Wildcards are dropped in production.
        """
        origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
        if self.is_production():
            if "*" in origins:
                logger.warning("Ignoring wildcard CORS origin in production")
            return [o for o in origins if o != "*"]
        return origins or ["http://localhost:3000", "http://localhost:8081"]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production():
            if not self.DATABASE_URL or self.DATABASE_URL == DEFAULT_DATABASE_URL:
                missing.append("DATABASE_URL")
            if not self.ADMIN_TOKEN:
                missing.append("ADMIN_TOKEN")
            if not self.SLACK_BOT_TOKEN:
                missing.append("SLACK_BOT_TOKEN")

        # Redis URL is required if anything is backed by Redis
        uses_redis = self.CACHE_STORAGE == "redis" or (
            self.RATE_LIMIT_ENABLED and self.RATE_LIMIT_STORAGE == "redis"
        )
        if uses_redis and not self.REDIS_URL:
            missing.append("REDIS_URL")

        return missing

    def require_api_key(self, name: str) -> str:
        """
        Return a provider credential or fail before any network call is made.

        Raises:
            ConfigurationError: If the setting is empty
        """
        value = getattr(self, name, "")
        if not value:
            raise ConfigurationError(f"{name} is not configured")
        return value


def _env_file() -> Path:
    """.env.{ENVIRONMENT} when it exists, else .env."""
    environment = os.getenv("ENVIRONMENT", "development")
    specific = PROJECT_ROOT / f".env.{environment}"
    return specific if specific.exists() else PROJECT_ROOT / ".env"


settings = Settings(_env_file=_env_file())

_missing = settings.validate_required_secrets()
if _missing:
    logger.warning(f"Missing required settings for {settings.ENVIRONMENT}: {', '.join(_missing)}")
    if settings.is_production():
        raise ConfigurationError(f"Cannot start in production without: {', '.join(_missing)}")
