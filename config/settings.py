"""
Configuration loader for the notification queue processor.
Reads settings from an optional YAML file with environment variable
substitution, then resolves the database URL from the environment.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


class ConfigurationError(Exception):
    """Raised when required configuration cannot be resolved."""
    pass


@dataclass
class DatabaseConfig:
    url: str = ""                       # postgresql:// | sqlite://, resolved from env


@dataclass
class QueueConfig:
    batch_size: int = 50                # jobs fetched per store query
    max_retries: int = 3                # failed attempts before a job is FAILED
    delay_between_emails_ms: int = 1000 # pause after every delivery attempt
    stale_claim_minutes: int = 60       # PROCESSING older than this is reclaimed; 0 disables


@dataclass
class EmailConfig:
    api_key: str = ""
    from_email: str = "notifications@ekurim.com.tr"
    app_url: str = "https://ekurim.com.tr"
    api_base_url: str = "https://api.resend.com"
    timeout_seconds: float = 30.0


@dataclass
class Settings:
    app_name: str = "StableNotifier"
    debug: bool = False
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


_settings: Optional[Settings] = None

# Hosted providers used for the production database
_PRODUCTION_HOSTS = ("supabase", "neon")


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _blank_if_placeholder(value: str) -> str:
    """An unsubstituted ${VAR} means the variable was never set."""
    if value and re.fullmatch(r"\$\{\w+\}", value):
        return ""
    return value


def resolve_database_url(fallback: str = "") -> str:
    """PROD_DATABASE_URL wins over DATABASE_URL, which wins over the file value."""
    return (
        os.environ.get("PROD_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or _blank_if_placeholder(fallback)
    )


def database_label(url: str) -> str:
    return "PRODUCTION" if any(host in url for host in _PRODUCTION_HOSTS) else "LOCAL"


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file, then apply environment overrides."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "NOTIFIER_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "database" in raw:
            db = raw["database"] or {}
            settings.database = DatabaseConfig(url=db.get("url", ""))

        if "queue" in raw:
            q = raw["queue"] or {}
            settings.queue = QueueConfig(
                batch_size=int(q.get("batch_size", 50)),
                max_retries=int(q.get("max_retries", 3)),
                delay_between_emails_ms=int(q.get("delay_between_emails_ms", 1000)),
                stale_claim_minutes=int(q.get("stale_claim_minutes", 60)),
            )

        if "email" in raw:
            em = raw["email"] or {}
            defaults = EmailConfig()
            settings.email = EmailConfig(
                api_key=_blank_if_placeholder(em.get("api_key", "")),
                from_email=em.get("from_email", defaults.from_email),
                app_url=em.get("app_url", defaults.app_url),
                api_base_url=em.get("api_base_url", defaults.api_base_url),
                timeout_seconds=float(em.get("timeout_seconds", defaults.timeout_seconds)),
            )

    settings.database.url = resolve_database_url(settings.database.url)

    # Email provider credentials normally come straight from the environment
    settings.email.api_key = os.environ.get("RESEND_API_KEY", settings.email.api_key)
    settings.email.from_email = os.environ.get("RESEND_FROM_EMAIL", settings.email.from_email)
    settings.email.app_url = (
        os.environ.get("APP_URL")
        or os.environ.get("NEXT_PUBLIC_APP_URL")
        or settings.email.app_url
    )

    _settings = settings
    return settings


def require_database_url(settings: Settings) -> str:
    if not settings.database.url:
        raise ConfigurationError("DATABASE_URL or PROD_DATABASE_URL must be set")
    return settings.database.url


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    global _settings
    _settings = None
