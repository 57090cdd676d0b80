"""Shared configuration base classes.

Provides common configuration patterns used by the engine service and any
tooling built on it, so logging and backend settings stay consistent.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "session",
    ]
    app_environment: str = "production"


class BaseBackendConfig(BaseSettings):
    """Location of the HTTP backend that owns identifier records and counters."""

    backend_base_url: str = "http://backend:8080"
    backend_timeout_seconds: float = 10.0


class BaseServiceConfig(BaseLoggingConfig, BaseBackendConfig):
    """Base configuration combining logging and backend settings.

    Services should inherit from this and add their own specific settings.
    The otel_service_name should be overridden by each service.
    """

    otel_service_name: str = "unknown"  # Should be overridden by service


__all__ = ["BaseLoggingConfig", "BaseBackendConfig", "BaseServiceConfig"]
