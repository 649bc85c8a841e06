"""Configuration settings for the state service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Shared access secret. When unset, every protected request is rejected.
    api_secret: str | None = None

    # SQLite file holding the key/value store table
    database_path: str = "./data/app-state.db"

    # Session tokens issued by /api/auth/login
    jwt_secret_key: str | None = None  # Falls back to api_secret
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 365  # Matches the 365-day auth cookie
    secure_cookies: bool = True

    # Rate limit applied to /api/state routes (slowapi syntax)
    state_rate_limit: str = "120/minute"

    # App
    debug: bool = False
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    @property
    def signing_key(self) -> str | None:
        """Key used to sign session tokens."""
        return self.jwt_secret_key or self.api_secret


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
