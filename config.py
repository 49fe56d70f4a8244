from typing import Annotated, List, Optional
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration, built once at startup and passed around explicitly."""

    # Required: startup fails fast when these are missing
    database_url: str
    jwt_secret: str

    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 8

    schedule_timezone: str = "UTC"
    availability_days: int = 7
    max_range_days: int = 93

    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    email_from: str = "noreply@example.com"

    cors_origins: Annotated[List[str], NoDecode] = ["*"]
    log_level: str = "INFO"
    sql_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        """Accept a comma separated list from the environment."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.schedule_timezone)

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host)
