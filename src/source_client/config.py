"""Configuration management for the Source client."""

from dataclasses import dataclass
from datetime import timedelta

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from source_client.domain.base import ValidationError

MIN_REQUEST_TIMEOUT = timedelta(seconds=30)


@dataclass
class ClientOptions:
    """Transport options for a client.

    Also a valid configuration item in its own right: it can be registered
    as a type example and saved like any other value.
    """

    insecure_transport: bool = True
    request_timeout: timedelta = timedelta(seconds=60)

    def validate(self) -> None:
        """Reject timeouts too short to cover a retried request."""
        if self.request_timeout < MIN_REQUEST_TIMEOUT:
            raise ValidationError(
                f"request timeout must be at least {int(MIN_REQUEST_TIMEOUT.total_seconds())} secs"
            )


class SourceSettings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SOURCE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    host: str = "http://localhost:8080"
    user: str = "admin"
    password: str = ""

    # Transport
    insecure_transport: bool = True
    request_timeout: float = Field(
        default=60.0,
        description="Seconds allowed for one call, retries included",
    )
    retry_max: int = 20
    retry_wait_min: float = 1.0
    retry_wait_max: float = 30.0

    # Logging
    log_level: str = Field(default="INFO", validation_alias="log_level")
    log_format: str = Field(default="console", validation_alias="log_format")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Require an http(s) base URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid SOURCE_HOST: '{v}'. Must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("retry_max")
    @classmethod
    def validate_retry_max(cls, v: int) -> int:
        if v < 0:
            raise ValueError("SOURCE_RETRY_MAX cannot be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(
                f"Invalid LOG_LEVEL: '{v}'. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is one of the supported renderers."""
        valid_formats = {"console", "json"}
        if v.lower() not in valid_formats:
            raise ValueError(
                f"Invalid LOG_FORMAT: '{v}'. Must be one of: {', '.join(sorted(valid_formats))}"
            )
        return v.lower()

    @model_validator(mode="after")
    def validate_retry_waits(self) -> "SourceSettings":
        if self.retry_wait_max < self.retry_wait_min:
            raise ValueError(
                "SOURCE_RETRY_WAIT_MAX must not be lower than SOURCE_RETRY_WAIT_MIN"
            )
        return self

    def client_options(self) -> ClientOptions:
        """Get the transport options described by these settings."""
        return ClientOptions(
            insecure_transport=self.insecure_transport,
            request_timeout=timedelta(seconds=self.request_timeout),
        )


# Lazy settings initialization
_settings = None


def get_settings() -> SourceSettings:
    """Get the settings instance, creating it if needed."""
    global _settings
    if _settings is None:
        _settings = SourceSettings()
    return _settings
