from __future__ import annotations

from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TR_", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "TimeReporting"
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8080

    sqlite_path: Path = Path("./data/time_reporting.db")
    seed_catalog: bool = False

    token_secret: str = "change-me"
    token_algorithms: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["HS256"])
    token_audience: Optional[str] = None

    acl_claim: str = "extn.TimeReportingACL"
    acl_strict: bool = False

    log_level: str = "INFO"

    default_page_size: int = 50
    max_page_size: int = 200

    @field_validator("token_algorithms", mode="before")
    @classmethod
    def _split_algorithms(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return ["HS256"]
        return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()

settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
