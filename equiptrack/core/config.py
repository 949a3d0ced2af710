from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Equipment Tracker"
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path.cwd() / "data")
    TZ: str = "America/Chicago"
    LOG_LEVEL: str = "INFO"

    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DATABASE_URL", "DB_URL"))

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    HOME_LOCATION: str = "Shop"
    REPAIR_LOCATIONS: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["Sent for Repair", "Waiting on Repair"])
    COMPUTER_CATEGORY: str = "Computer"
    RECENT_HISTORY_LIMIT: int = 50

    @field_validator("REPAIR_LOCATIONS", mode="before")
    @classmethod
    def parse_repair_locations(cls, value: Any) -> list[str]:
        if value is None:
            value = ""
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",") if item.strip()]
        elif isinstance(value, Iterable):
            items = [str(item).strip() for item in value if str(item).strip()]
        else:
            raise TypeError("REPAIR_LOCATIONS must be a comma separated string or list")
        if not items:
            raise ValueError("REPAIR_LOCATIONS needs at least one location")
        return items

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'equipment.db'}"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if not settings.DB_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
