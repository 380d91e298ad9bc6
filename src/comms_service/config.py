from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "info"

    WS_HEARTBEAT_SECONDS: int = 30
    WS_CONNECT_RATE_LIMIT: int = 10
    WS_CONNECT_RATE_WINDOW_SECONDS: int = 60

    PRESENCE_AWAY_AFTER_SECONDS: int = 300
    PRESENCE_OFFLINE_AFTER_SECONDS: int = 90
    PRESENCE_SWEEP_INTERVAL_SECONDS: float = 15.0

    TYPING_INDICATOR_TTL_MS: int = 3000
    HIGH_PRIORITY_TOAST_MS: int = 4000
    MESSAGE_MAX_LENGTH: int = 5000

    EVENTS_CONSUMER_ENABLED: bool = True
    EVENTS_STREAM: str = "platform.events"
    EVENTS_GROUP: str = "comms-service"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
