"""Application configuration loader.

Loads centralized configuration from data/config/audiolearn.yaml,
falls back to built-in defaults and lets environment variables
override individual settings.

Usage:
    from audiolearn.config.app_config import load_app_config

    config = load_app_config()
    print(config.content_api.base_url)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/audiolearn.yaml")

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "AUDIOLEARN_DB_PATH": ("paths", "database"),
    "AUDIOLEARN_DOWNLOAD_DIR": ("paths", "download_dir"),
    "AUDIOLEARN_ENV": ("server", "environment"),
    "APP_BASE_URL": ("server", "base_url"),
    "CONTENT_API_URL": ("content_api", "base_url"),
    "CONTENT_API_KEY": ("content_api", "api_key"),
    "RESEND_API_KEY": ("email", "api_key"),
    "AUTH_FROM_EMAIL": ("email", "from_email"),
}


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 5000
    environment: str = "development"
    base_url: str | None = None

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def public_base_url(self) -> str:
        """Base URL used for magic links and relative audio URLs."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"http://localhost:{self.port}"


@dataclass
class ContentApiConfig:
    """Configuration for the external course-content API."""

    base_url: str = "https://api.bubble.io"
    api_key: str | None = None
    timeout: float = 30.0


@dataclass
class EmailConfig:
    """Configuration for magic-link email delivery (Resend)."""

    api_key: str | None = None
    from_email: str = "onboarding@resend.dev"
    api_url: str = "https://api.resend.com/emails"
    timeout: float = 10.0


@dataclass
class AuthConfig:
    """Magic-link and session policy."""

    token_ttl_minutes: int = 15
    session_ttl_days: int = 30
    email_limit_per_hour: int = 3
    ip_limit_per_hour: int = 10


@dataclass
class AppConfig:
    """Application-wide configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    content_api: ContentApiConfig = field(default_factory=ContentApiConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def database_path(self) -> Path:
        return Path(self.paths.get("database", "db/audiolearn.db"))

    @property
    def download_dir(self) -> Path:
        return Path(self.paths.get("download_dir", "downloads/audio"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "server": {
            "host": "127.0.0.1",
            "port": 5000,
            "environment": "development",
            "base_url": None,
        },
        "content_api": {
            "base_url": "https://api.bubble.io",
            "api_key": None,
            "timeout": 30.0,
        },
        "email": {
            "api_key": None,
            "from_email": "onboarding@resend.dev",
            "api_url": "https://api.resend.com/emails",
            "timeout": 10.0,
        },
        "auth": {
            "token_ttl_minutes": 15,
            "session_ttl_days": 30,
            "email_limit_per_hour": 3,
            "ip_limit_per_hour": 10,
        },
        "paths": {
            "database": "db/audiolearn.db",
            "download_dir": "downloads/audio",
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two section dictionaries one level deep."""
    result = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key].update(value)
        else:
            result[key] = value
    return result


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides."""
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    server_data = data.get("server", {})
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 5000)),
        environment=server_data.get("environment", "development"),
        base_url=server_data.get("base_url"),
    )

    api_data = data.get("content_api", {})
    content_api = ContentApiConfig(
        base_url=api_data.get("base_url", "https://api.bubble.io"),
        api_key=api_data.get("api_key"),
        timeout=float(api_data.get("timeout", 30.0)),
    )

    email_data = data.get("email", {})
    email = EmailConfig(
        api_key=email_data.get("api_key"),
        from_email=email_data.get("from_email", "onboarding@resend.dev"),
        api_url=email_data.get("api_url", "https://api.resend.com/emails"),
        timeout=float(email_data.get("timeout", 10.0)),
    )

    auth_data = data.get("auth", {})
    auth = AuthConfig(
        token_ttl_minutes=int(auth_data.get("token_ttl_minutes", 15)),
        session_ttl_days=int(auth_data.get("session_ttl_days", 30)),
        email_limit_per_hour=int(auth_data.get("email_limit_per_hour", 3)),
        ip_limit_per_hour=int(auth_data.get("ip_limit_per_hour", 10)),
    )

    return AppConfig(
        server=server,
        content_api=content_api,
        email=email,
        auth=auth,
        paths=dict(data.get("paths", {})),
    )


def load_app_config(force_reload: bool = False, config_file: Path | None = None) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.
        config_file: Alternate YAML file (defaults to CONFIG_FILE).

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    source = config_file or CONFIG_FILE
    data = _get_defaults()

    if source.exists():
        logger.debug("loading_app_config", source=str(source))
        file_data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        data = _merge(data, file_data)
    else:
        logger.info("using_default_config")

    _cached_config = _parse_config(_apply_env(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
