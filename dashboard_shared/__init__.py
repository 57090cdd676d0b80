"""Shared utilities and components for the engine and its tooling."""

from .config import BaseBackendConfig, BaseLoggingConfig, BaseServiceConfig
from .constants import Environment, MetricNames, StorageKeys

__all__ = [
    "Environment",
    "StorageKeys",
    "MetricNames",
    "BaseServiceConfig",
    "BaseLoggingConfig",
    "BaseBackendConfig",
]
