from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    WS_URL: str = "ws://localhost:8000/ws"
    WS_OPEN_TIMEOUT_SECONDS: float = 10.0
    WS_HEARTBEAT_SECONDS: int = 30

    TYPING_IDLE_SECONDS: float = 2.0

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Unknown user ids are admitted under their own id as display name.
    USER_DIRECTORY_OPEN: bool = True
    DEV_USERS: dict[str, str] = {}

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
