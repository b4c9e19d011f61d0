"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainsync.config.constants import (
    DEFAULT_FAUCET_URL,
    DEFAULT_NODE_SERVICE_URL,
    DEFAULT_WORLD_REGION,
    NOTIFICATION_RECONNECT_ATTEMPTS,
    NOTIFICATION_RECONNECT_DELAY,
)


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Application
    application_id: str | None = None

    # Endpoints
    faucet_url: str = DEFAULT_FAUCET_URL
    node_service_url: str = DEFAULT_NODE_SERVICE_URL
    environment_node_url: str | None = None  # Host-provided node service

    # Signing key persistence
    signer_key_path: Path | None = None
    encryption_key: str | None = None

    # Transport
    request_timeout: float | None = Field(
        default=None, gt=0, description="Per-request timeout in seconds (None disables it)"
    )

    # Notifications
    notification_reconnect_attempts: int = Field(
        default=NOTIFICATION_RECONNECT_ATTEMPTS, ge=0,
        description="Re-subscription attempts after the notification stream drops"
    )
    notification_reconnect_delay: float = Field(
        default=NOTIFICATION_RECONNECT_DELAY, ge=0,
        description="Delay between re-subscription attempts in seconds"
    )

    # Game
    default_world_region: str = DEFAULT_WORLD_REGION

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="CHAINSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('faucet_url', 'node_service_url', 'environment_node_url')
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate endpoint URLs."""
        if v is None:
            return v
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Endpoint URLs must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('application_id')
    @classmethod
    def normalize_application_id(cls, v: str | None) -> str | None:
        """Treat a blank application ID as not configured."""
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @model_validator(mode='after')
    def validate_key_storage(self) -> 'Settings':
        """Require an encryption key for persisted signers in production."""
        if self.signer_key_path and not self.encryption_key:
            if self.environment == 'production':
                raise ValueError(
                    "CHAINSYNC_ENCRYPTION_KEY is required when CHAINSYNC_SIGNER_KEY_PATH "
                    "is set in production. Generate a key with: python -c "
                    "'from cryptography.fernet import Fernet; "
                    "print(Fernet.generate_key().decode())'"
                )
            logger.warning(
                "Signer key will be stored without encryption (DEV ONLY)"
            )
        return self

    @property
    def persists_signer(self) -> bool:
        """Whether the signing key survives between sessions."""
        return self.signer_key_path is not None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings singleton, loading it from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
