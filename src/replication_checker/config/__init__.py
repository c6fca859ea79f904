"""Application configuration helpers."""

from __future__ import annotations

from .checker import AutoCheckFrequency, CheckerSettings, get_checker_settings
from .env import env_bool, env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .flora import FloraConfig, get_flora_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "AutoCheckFrequency",
    "CheckerSettings",
    "ConfigurationError",
    "DatabaseConfig",
    "FloraConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "get_checker_settings",
    "get_database_config",
    "get_flora_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
