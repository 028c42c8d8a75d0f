"""Application configuration via environment variables with Pydantic validation.

All configuration is loaded from environment variables (with .env file support).
The CLI fails loudly at startup if required values are missing or invalid.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """mwscope settings. All values sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote environment — required, nothing works without these
    environment_url: str
    api_token: str

    # HTTP client
    httpx_timeout_seconds: float = 10.0
    max_retries: int = 3

    # Entity index queries
    entity_page_size: int = 500
    observation_window: str = "now-30d"

    # Bulk host resolution
    max_bulk_hosts: int = 1000

    # Auto-tagging
    auto_tag_prefix: str = "Maintenance — "
    cleanup_on_start: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("environment_url")
    @classmethod
    def environment_url_is_https(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ENVIRONMENT_URL must not be empty")
        if not v.startswith("https://") and not v.startswith(("http://localhost", "http://127.0.0.1")):
            raise ValueError("ENVIRONMENT_URL must use HTTPS (http:// allowed only for localhost)")
        return v.rstrip("/")

    @field_validator("api_token")
    @classmethod
    def api_token_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API token must not be empty — set API_TOKEN")
        return v.strip()

    @field_validator("entity_page_size")
    @classmethod
    def page_size_in_range(cls, v: int) -> int:
        if not 1 <= v <= 500:
            raise ValueError("ENTITY_PAGE_SIZE must be between 1 and 500")
        return v

    @field_validator("max_bulk_hosts", "max_retries")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v


def get_settings() -> Settings:
    """Create and return a validated Settings instance.

    Raises ValidationError with clear messages if required env vars are missing.
    """
    return Settings()  # type: ignore[call-arg]
