# intentmarket/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Env vars (.env), all optional for local development:
      - DATABASE_URL (SQLite file by default, Postgres in deployment)
      - STORAGE_BACKEND ("database" | "memory")
      - JWT_SECRET (signing secret for access tokens)

    Use a strong JWT_SECRET in any shared environment.
    """

    PROJECT_NAME: str = "Intent Marketplace API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Storage
    DATABASE_URL: str = "sqlite:///./marketplace.db"
    DATABASE_SSLMODE: str | None = None
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    STORAGE_BACKEND: Literal["database", "memory"] = "database"

    # Access tokens
    JWT_SECRET: str = "dev-secret"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
