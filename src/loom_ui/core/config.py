"""
Runtime configuration from environment variables.

Apps and the multi-app service read their settings from ``LOOM_*``
environment variables at startup. Explicit keyword arguments passed to the
server factories take precedence over the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from loom_ui.core.errors import ConfigError

_DEV_SECRET_KEY = "loom-ui-development-secret-key-change-in-production-environments"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _list_env(name: str) -> tuple[str, ...]:
    raw = os.environ.get(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass
class LoomConfig:
    """Configuration for the loom-ui HTTP runtime."""

    host: str = "127.0.0.1"
    port: int = 4567
    secret_key: str = _DEV_SECRET_KEY
    environment: str = "development"
    session_cookie: str = "loom-session"
    state_budget_bytes: int = 4096
    persist_exclude: tuple[str, ...] = ()
    log_level: str = "INFO"
    log_dir: Path | None = None
    agentic_timeout: float = 300.0
    cdn: bool = True
    extra_head: list[str] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> LoomConfig:
        """Load configuration from environment variables.

        Raises:
            ConfigError: If a numeric variable is malformed, or
                ``LOOM_ENV=production`` is set without ``LOOM_SECRET_KEY``.
        """
        environment = os.environ.get("LOOM_ENV", "development")
        secret_key = os.environ.get("LOOM_SECRET_KEY", "")
        if not secret_key:
            if environment == "production":
                raise ConfigError("LOOM_SECRET_KEY environment variable required in production")
            secret_key = _DEV_SECRET_KEY

        log_dir = os.environ.get("LOOM_LOG_DIR")
        return cls(
            host=os.environ.get("LOOM_HOST", "127.0.0.1"),
            port=_int_env("LOOM_PORT", 4567),
            secret_key=secret_key,
            environment=environment,
            session_cookie=os.environ.get("LOOM_SESSION_COOKIE", "loom-session"),
            state_budget_bytes=_int_env("LOOM_STATE_BUDGET", 4096),
            persist_exclude=_list_env("LOOM_PERSIST_EXCLUDE"),
            log_level=os.environ.get("LOOM_LOG_LEVEL", "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
            agentic_timeout=_float_env("LOOM_AGENTIC_TIMEOUT", 300.0),
            cdn=os.environ.get("LOOM_CDN", "1") != "0",
        )
