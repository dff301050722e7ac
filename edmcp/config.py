from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent

_env_file = BASE_DIR / ".env"
if _env_file.exists():
    load_dotenv(_env_file, override=True)

APP_NAME = "EDMCP"
APP_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    ALLOWED_ORIGINS: str = "*"

    # Easy Diffusion backend
    EASY_DIFFUSION_ADDRESS: str = "http://localhost:9000"
    REQUEST_TIMEOUT_SECONDS: float = 300.0

    # Generation defaults
    DEFAULT_MODEL: str = "animagineXL40_v4Opt"
    DEFAULT_NEGATIVE_PROMPT: str = "worst quality, low quality, low score"

    # Stream polling
    POLL_INTERVAL_SECONDS: float = 1.0
    POLL_TIMEOUT_SECONDS: float = 300.0
    POLL_MAX_ATTEMPTS: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_TO_FILE: bool = True
    MAX_LOG_FILE_SIZE: int = 10 * 1024 * 1024
    BACKUP_COUNT: int = 5

    @field_validator("EASY_DIFFUSION_ADDRESS")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("http"):
            value = "http://" + value
        return value.rstrip("/")

    @property
    def allowed_origin_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def render_url(self) -> str:
        return f"{self.EASY_DIFFUSION_ADDRESS}/render"


def get_settings() -> Settings:
    return Settings()
