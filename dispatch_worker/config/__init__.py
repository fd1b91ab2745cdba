"""Configuration management for the dispatch worker."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_app_config, load_config
from .models import (
    AppConfig,
    DeliveryConfig,
    ListenerConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    RecoveryConfig,
    WorkerConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "load_app_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "ListenerConfig",
    "DeliveryConfig",
    "RecoveryConfig",
    "WorkerConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
