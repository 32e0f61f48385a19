"""Configuration package for audiolearn."""

from audiolearn.config.app_config import (
    AppConfig,
    AuthConfig,
    ContentApiConfig,
    EmailConfig,
    ServerConfig,
    clear_config_cache,
    load_app_config,
)
from audiolearn.config.logging_setup import configure_logging

__all__ = [
    "AppConfig",
    "AuthConfig",
    "ContentApiConfig",
    "EmailConfig",
    "ServerConfig",
    "clear_config_cache",
    "configure_logging",
    "load_app_config",
]
