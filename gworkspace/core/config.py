"""Settings for the plugin host.

Values come from the environment (and ``.env``); each field is read from the
``GWS_*`` or ``GOOGLE_*`` variable named in its alias.
"""

from typing import Annotated, Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

load_dotenv(override=True)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def _split_csv(value: Any) -> list[str] | None:
    items = value.split(",") if isinstance(value, str) else list(value or [])
    cleaned = [str(item).strip() for item in items if str(item).strip()]
    return cleaned or None


class Settings(BaseSettings):
    app_name: str = Field("gworkspace", alias="GWS_APP_NAME")
    version: str = Field("0.0.0-dev", alias="GWS_APP_VERSION")
    environment: str = Field("development", alias="GWS_ENVIRONMENT")

    log_level: str = Field("INFO", alias="GWS_LOG_LEVEL")
    log_format: str = Field("text", alias="GWS_LOG_FORMAT")
    log_dir: str | None = Field(None, alias="GWS_LOG_DIR")

    # Non-Google hosts (Chat webhooks behind proxies, etc.) use http_default_timeout
    http_default_timeout: float = Field(30.0, alias="GWS_HTTP_TIMEOUT")
    http_connect_timeout: float = Field(10.0, alias="GWS_HTTP_CONNECT_TIMEOUT")
    # ".googleapis.com" matches every subdomain; unset allows any host
    http_egress_allowlist: Annotated[list[str] | None, NoDecode] = Field(None, alias="GWS_HTTP_EGRESS_ALLOWLIST")

    google_read_timeout: float = Field(120.0, alias="GWS_GOOGLE_READ_TIMEOUT")
    google_service_account_json: str | None = Field(None, alias="GOOGLE_SERVICE_ACCOUNT_JSON")
    google_service_account_file: str | None = Field(None, alias="GOOGLE_SERVICE_ACCOUNT_FILE")

    storage_dir: str = Field("./data/storage", alias="GWS_STORAGE_DIR")
    state_dir: str = Field("./data/state", alias="GWS_STATE_DIR")
    storage_object_max_bytes: int = Field(256 * 1024, alias="GWS_STORAGE_OBJECT_MAX_BYTES")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {list(LOG_LEVELS)}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in LOG_FORMATS:
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()

    @field_validator("google_service_account_json", "google_service_account_file")
    @classmethod
    def blank_credentials_are_unset(cls, v: str | None) -> str | None:
        return v if v and v.strip() else None

    @field_validator("http_egress_allowlist", mode="before")
    @classmethod
    def validate_http_allowlist(cls, v: Any) -> list[str] | None:
        """Comma-separated string or list; blank means no restriction."""
        return _split_csv(v)


_settings: Settings | None = None


def get_settings_instance() -> Settings:
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings


def reset_settings_instance() -> None:
    """Forget the cached settings so the next access re-reads the environment."""
    global _settings  # noqa: PLW0603
    _settings = None
