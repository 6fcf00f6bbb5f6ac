from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import AnyHttpUrl, AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Variable names follow the ones used by the hosted deployment so the same
    ``.env`` file can drive both the web service and the scheduler.
    """

    app_name: str = "Emive Portal"
    environment: str = "development"
    secret_key: str = Field(validation_alias=AliasChoices("SESSION_SECRET", "SECRET_KEY"))
    database_host: str | None = Field(default=None, validation_alias="DB_HOST")
    database_user: str | None = Field(default=None, validation_alias="DB_USER")
    database_password: str | None = Field(default=None, validation_alias="DB_PASSWORD")
    database_name: str | None = Field(default=None, validation_alias="DB_NAME")
    migration_lock_timeout: int = Field(
        default=60, validation_alias="MIGRATION_LOCK_TIMEOUT"
    )
    session_cookie_name: str = Field(
        default="emive_session",
        validation_alias=AliasChoices("SESSION_COOKIE_NAME", "SESSION_COOKIE"),
    )
    allowed_origins: List[AnyHttpUrl] = Field(
        default_factory=list,
        validation_alias="ALLOWED_ORIGINS",
    )
    smtp_host: str | None = Field(default=None, validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, validation_alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, validation_alias="SMTP_PASS")
    smtp_use_tls: bool = Field(default=True, validation_alias="SMTP_SECURE")
    smtp_sender: str | None = Field(default=None, validation_alias="SMTP_FROM")
    portal_url: AnyHttpUrl | None = Field(default=None, validation_alias="PORTAL_URL")
    customer_api_key: str | None = Field(default=None, validation_alias="CUSTOMER_API_KEY")
    ai_base_url: AnyHttpUrl | None = Field(default=None, validation_alias="AI_BASE_URL")
    ai_model: str = Field(default="llama3", validation_alias="AI_MODEL")
    ai_cost_per_interaction: float = Field(
        default=0.003, validation_alias="AI_COST_PER_INTERACTION"
    )
    default_timezone: str = Field(
        default="America/Sao_Paulo", validation_alias="CRON_TIMEZONE"
    )
    enable_csrf: bool = Field(default=True, validation_alias="ENABLE_CSRF")
    audit_log_path: Path | None = Field(default=None, validation_alias="AUDIT_LOG_PATH")
    preventive_notice_hours: int = Field(
        default=48, validation_alias="PREVENTIVE_NOTICE_HOURS"
    )
    stock_import_batch_size: int = Field(
        default=200, validation_alias="STOCK_IMPORT_BATCH_SIZE"
    )

    @field_validator("portal_url", "ai_base_url", mode="before")
    @classmethod
    def _empty_string_to_none(cls, value: AnyHttpUrl | None) -> AnyHttpUrl | None:  # type: ignore[override]
        """Coerce blank environment variables to ``None`` so optional URLs stay optional."""

        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    model_config = SettingsConfigDict(
        env_file=(Path(__file__).resolve().parent.parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
