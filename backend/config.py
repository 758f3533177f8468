"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./mom_vs_dad.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    frontend_url: str = "http://localhost:5173"
    environment: str = "development"
    allowed_origins: str = ""  # Comma-separated extra CORS origins

    # AI Service
    openai_api_key: str = ""
    ai_enabled: bool = True
    ai_openai_model: str = "gpt-4o-mini"
    ai_scenario_timeout_seconds: float = 10.0  # Hard abort for scenario generation
    ai_commentary_timeout_seconds: float = 8.0  # Hard abort for reveal roast commentary

    # Game limits
    session_code_length: int = 6
    session_code_max_attempts: int = 5
    name_max_length: int = 50
    default_total_rounds: int = 5
    max_total_rounds: int = 10
    default_intensity: float = 0.5
    default_theme: str = "general"
    default_max_players: int = 50
    max_players_limit: int = 100

    # Session maintenance
    session_max_age_hours: int = 24  # Idle sessions older than this are soft-completed
    session_maintenance_interval_minutes: int = 60

    # Game client
    client_vote_timeout_seconds: float = 4.0
    client_request_timeout_seconds: float = 10.0
    client_poll_interval_seconds: float = 7.0
    client_reconnect_delay_seconds: float = 2.0

    @field_validator("default_theme")
    @classmethod
    def normalize_theme(cls, value: str) -> str:
        """Themes are matched case-insensitively."""
        return (value or "general").strip().lower()

    def get_allowed_origins(self) -> list[str]:
        """Parse comma-separated origins, always including the frontend URL."""
        origins = [item.strip() for item in self.allowed_origins.split(",") if item.strip()]
        if self.frontend_url and self.frontend_url not in origins:
            origins.insert(0, self.frontend_url)
        return origins

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate game limits and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if not 1 <= self.default_total_rounds <= self.max_total_rounds:
            raise ValueError("default_total_rounds must be between 1 and max_total_rounds")

        if self.max_total_rounds > 10:
            raise ValueError("max_total_rounds cannot exceed 10")

        if not 0.1 <= self.default_intensity <= 1.0:
            raise ValueError("default_intensity must be between 0.1 and 1.0")

        if self.session_code_length < 4:
            raise ValueError("session_code_length must be at least 4")

        if self.ai_scenario_timeout_seconds <= 0 or self.ai_commentary_timeout_seconds <= 0:
            raise ValueError("AI timeouts must be positive")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover - defensive fallback
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")

        # Use render_as_string to properly re-encode special characters in password
        self.database_url = parsed.render_as_string(hide_password=False)
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
