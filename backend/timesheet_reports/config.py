from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "Timesheet Reports"
    environment: str = "development"
    host: str = os.getenv("TS_HOST", "127.0.0.1")
    port: int = int(os.getenv("TS_PORT", "8080"))
    log_level: str = os.getenv("TS_LOG_LEVEL", "INFO")
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("TS_ALLOWED_ORIGINS", "http://127.0.0.1:3000,http://localhost:3000").split(",")
            if origin.strip()
        ]
    )

    sqlite_path: Path = Path(os.getenv("TS_SQLITE_PATH", "./data/timesheets.db"))
    database_url: Optional[str] = os.getenv("TS_DATABASE_URL")
    user_group_id: int = int(os.getenv("TS_USER_GROUP_ID", "1"))

    upload_capacity: int = int(os.getenv("TS_UPLOAD_CAPACITY", "32"))

    session_secret: str = os.getenv("TS_SESSION_SECRET", "")
    session_ttl_days: int = int(os.getenv("TS_SESSION_TTL_DAYS", "7"))
    cookie_secure: bool = os.getenv("TS_COOKIE_SECURE", "false").lower() == "true"

    default_client_rate: float = float(os.getenv("TS_DEFAULT_CLIENT_RATE", "25"))
    currency: str = os.getenv("TS_CURRENCY", "AUD")
    paid_hours_per_day: float = float(os.getenv("TS_PAID_HOURS_PER_DAY", "8"))

    analysis_api_url: str = os.getenv("TS_ANALYSIS_API_URL", "https://api.openai.com/v1/chat/completions")
    analysis_api_key: Optional[str] = os.getenv("TS_ANALYSIS_API_KEY")
    analysis_model: str = os.getenv("TS_ANALYSIS_MODEL", "gpt-4")
    analysis_timeout: int = int(os.getenv("TS_ANALYSIS_TIMEOUT", "60"))

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.sqlite_path}"


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
