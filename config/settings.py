"""
Configuration management for the SafeButton Tracker backend.

This module provides centralized configuration loading and validation using
Pydantic settings. Values come from environment variables, a base ``.env``
file and an environment-specific ``.env.<environment>`` file.

The only required values are the Elasticsearch endpoint and API key, and
only when the Elasticsearch reading store is selected.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StoreBackend(str, Enum):
    """Reading store implementations selectable by configuration."""
    MEMORY = "memory"
    ELASTICSEARCH = "elasticsearch"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    Files are loaded in order, with later files overriding earlier ones.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The ENVIRONMENT variable determines which environment-specific
    .env file is layered on top of the base one.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Reading store
    store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY,
        description="Reading store implementation: 'memory' or 'elasticsearch'"
    )
    elastic_endpoint: Optional[str] = Field(
        default=None,
        description="Elasticsearch endpoint URL"
    )
    elastic_api_key: Optional[str] = Field(
        default=None,
        description="Elasticsearch API key for authentication"
    )
    elastic_index: str = Field(
        default="readings",
        description="Elasticsearch index holding location readings"
    )
    elastic_request_timeout: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Elasticsearch request timeout in seconds"
    )

    # Recency query
    recent_default_limit: int = Field(
        default=10,
        ge=1,
        description="Number of readings returned when the caller gives no limit"
    )
    recent_max_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Upper bound applied to any requested limit"
    )

    # Broadcast
    viewer_queue_size: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Readings buffered per live viewer before it is dropped as too slow"
    )

    # Rate Limiting Configuration
    rate_limit_enabled: bool = Field(
        default=True,
        description="Whether per-IP rate limiting of the ingest endpoint is active"
    )
    rate_limit_ingest_per_minute: int = Field(
        default=600,
        ge=1,
        le=100000,
        description="Maximum location reports per minute per IP"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="safebutton-tracker",
        description="Service name for OpenTelemetry traces"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("elastic_endpoint")
    @classmethod
    def validate_elastic_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Validate that elastic_endpoint, when given, is an HTTP/HTTPS URL."""
        if v is None:
            return v
        v = v.strip().strip('"')
        if not v:
            return None
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("elastic_endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("elastic_api_key")
    @classmethod
    def validate_elastic_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Strip quotes and whitespace; an empty key counts as not set."""
        if v is None:
            return v
        v = v.strip().strip('"')
        return v or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact dashboard domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins

    @model_validator(mode="after")
    def validate_store_config(self) -> "Settings":
        """Require Elasticsearch credentials when that backend is selected."""
        if self.store_backend == StoreBackend.ELASTICSEARCH:
            missing = [
                name for name in ("elastic_endpoint", "elastic_api_key")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} required when store_backend is 'elasticsearch'"
                )
        if self.recent_default_limit > self.recent_max_limit:
            raise ValueError("recent_default_limit cannot exceed recent_max_limit")
        return self


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    the ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()] or list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, "errors"):
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", [])) or "settings"
                error_msg = error.get("msg", str(error))

                if error.get("type", "") == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings at application startup, before accepting requests.

    Raises:
        ConfigurationError: If any settings are invalid for the environment.
    """
    settings = settings or get_settings()
    validation_errors = {}

    # Production dashboards must not be served from localhost only
    if settings.environment == Environment.PRODUCTION:
        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins. "
                "Configure your dashboard domain(s)."
            )
        if settings.store_backend == StoreBackend.MEMORY:
            validation_errors["store_backend"] = (
                "Production environment requires a durable reading store "
                "(store_backend=elasticsearch)."
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
