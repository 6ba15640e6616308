"""
Bridge Settings

Immutable configuration loaded once at process start (environment + optional .env).
Components receive a Settings instance through their constructors.
"""

from functools import lru_cache

from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from openlines_bridge.core.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # WhatsApp (Meta Cloud API)
    whatsapp_provider: str = "meta"  # meta | stub
    whatsapp_api_version: str = "v18.0"
    whatsapp_phone_number_id: str = ""
    whatsapp_business_account_id: str = ""
    whatsapp_api_token: str = ""
    whatsapp_webhook_verify_token: str = ""
    whatsapp_app_secret: str = ""  # Optional: enables X-Hub-Signature-256 validation

    # Bitrix24
    bitrix24_provider: str = "rest"  # rest | memory
    bitrix24_domain: str = ""
    bitrix24_webhook_url: str = ""
    bitrix24_open_channel_id: str = ""
    bitrix24_user_id: str = ""

    # Transport
    http_timeout: float = 30.0

    # Relay polling
    relay_message_limit: int = 50
    relay_poll_interval: float = 10.0
    relay_lock_ttl_seconds: int = 300
    redis_url: str = ""  # Optional: cross-process relay lock

    # Logging
    app_debug: bool = False
    log_level: str = "INFO"

    @property
    def graph_api_base_url(self) -> str:
        return f"https://graph.facebook.com/{self.whatsapp_api_version}"

    @property
    def bitrix24_rest_url(self) -> str:
        """Webhook URL with a guaranteed trailing slash."""
        url = self.bitrix24_webhook_url
        if url and not url.endswith("/"):
            url += "/"
        return url

    def require(self, *fields: str) -> None:
        """Raise ConfigurationError listing every named setting that is empty."""
        missing = [name for name in fields if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(name.upper() for name in missing)}",
                missing=missing,
            )


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process. Use only at process entry points."""
    try:
        return Settings()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
