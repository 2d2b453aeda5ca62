from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:5000"
    API_VERSION: str = "v1"
    WS_URL: str = "ws://localhost:5000/ws/chat"
    AUTH_TOKEN: str | None = None

    HTTP_TIMEOUT_SECONDS: float = 30.0
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024

    TYPING_DEBOUNCE_SECONDS: float = 2.0
    TYPING_EXPIRY_SECONDS: float = 3.0

    RECONNECT_BASE_SECONDS: float = 1.0
    RECONNECT_MAX_SECONDS: float = 30.0
    RECONNECT_MAX_ATTEMPTS: int = 10

    SEND_MAX_ATTEMPTS: int = 3

    JWT_SECRET: str = "swapride-devserver-secret-change-me"
    JWT_ALGORITHM: str = "HS256"

    DEVSERVER_HOST: str = "127.0.0.1"
    DEVSERVER_PORT: int = 5000
    DEVSERVER_SEED: bool = False

    LOG_LEVEL: str = "info"

    @property
    def api_base_url(self) -> str:
        return f"{self.API_URL.rstrip('/')}/api/{self.API_VERSION}"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
