"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # FPL API
    fpl_api_base_url: str = "https://fantasy.premierleague.com/api"
    fpl_requests_per_second: float = 5.0
    fpl_max_concurrent: int = 5
    fpl_timeout_seconds: float = 30.0

    # Database
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    # Sync tuning
    sync_concurrency: int = 5  # Per-entry upstream fetches in flight
    upsert_batch_size: int = 500  # Rows per INSERT ... ON CONFLICT statement
    standings_max_pages: int = 1000  # 50 entries per page upstream

    # Cup phase runs from GW17 to the end of the season
    cup_start_event: int = 17
    cup_end_event: int = 38

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def db_connection_string(self) -> str | None:
        """Connection string handed to asyncpg."""
        return self.database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
