from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """A credential required for the current call is not configured."""


class Settings(BaseSettings):
    database_url: str

    whatsapp_phone_number_id: str | None = None
    whatsapp_access_token: str | None = None
    whatsapp_webhook_verify_token: str | None = None
    whatsapp_api_base_url: str = "https://graph.facebook.com"
    whatsapp_graph_api_version: str = "v22.0"
    whatsapp_http_timeout_seconds: float = 30.0
    whatsapp_template_language: str = "en_US"

    bulk_send_delay_seconds: float = 1.0
    cors_allow_origins: str = "*"

    ops_console_enabled: bool = False
    ops_api_token: str | None = None
    ops_event_buffer_size: int = 500

    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_seconds: int = 30
    db_echo_sql: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("DATABASE_URL must be provided")
        return value

    @field_validator("bulk_send_delay_seconds")
    @classmethod
    def validate_bulk_send_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("BULK_SEND_DELAY_SECONDS must not be negative")
        return value

    def cors_allow_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
