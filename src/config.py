"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./guild_requests.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # SQLite writers wait on the database lock instead of failing fast
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0

    # Request lifecycle
    DUPLICATE_WINDOW_MS: int = 5000
    DEFAULT_QUERY_LIMIT: int = 10

    # Multi-step composition sessions
    SESSION_TTL_SECONDS: int = 24 * 60 * 60
    SESSION_SWEEP_INTERVAL_SECONDS: int = 30 * 60


settings = Settings()
