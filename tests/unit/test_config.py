"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from loom_ui.core.config import LoomConfig
from loom_ui.core.errors import ConfigError

_ENV_VARS = (
    "LOOM_ENV",
    "LOOM_SECRET_KEY",
    "LOOM_HOST",
    "LOOM_PORT",
    "LOOM_SESSION_COOKIE",
    "LOOM_STATE_BUDGET",
    "LOOM_PERSIST_EXCLUDE",
    "LOOM_LOG_LEVEL",
    "LOOM_LOG_DIR",
    "LOOM_AGENTIC_TIMEOUT",
    "LOOM_CDN",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self) -> None:
        config = LoomConfig.from_env()
        assert config.host == "127.0.0.1"
        assert config.port == 4567
        assert config.session_cookie == "loom-session"
        assert config.state_budget_bytes == 4096
        assert config.persist_exclude == ()
        assert config.cdn is True
        assert config.log_dir is None
        assert not config.is_production

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("LOOM_PORT", "8080")
        monkeypatch.setenv("LOOM_PERSIST_EXCLUDE", "report, cache ,")
        monkeypatch.setenv("LOOM_LOG_LEVEL", "debug")
        monkeypatch.setenv("LOOM_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("LOOM_AGENTIC_TIMEOUT", "30")
        monkeypatch.setenv("LOOM_CDN", "0")
        config = LoomConfig.from_env()
        assert config.port == 8080
        assert config.persist_exclude == ("report", "cache")
        assert config.log_level == "DEBUG"
        assert config.log_dir == tmp_path
        assert config.agentic_timeout == 30.0
        assert config.cdn is False

    def test_malformed_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_STATE_BUDGET", "lots")
        with pytest.raises(ConfigError, match="LOOM_STATE_BUDGET"):
            LoomConfig.from_env()

    def test_production_requires_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_ENV", "production")
        with pytest.raises(ConfigError, match="LOOM_SECRET_KEY"):
            LoomConfig.from_env()

    def test_production_with_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_ENV", "production")
        monkeypatch.setenv("LOOM_SECRET_KEY", "s3cret")
        config = LoomConfig.from_env()
        assert config.is_production
        assert config.secret_key == "s3cret"

    def test_fractional_agentic_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_AGENTIC_TIMEOUT", "1.5")
        assert LoomConfig.from_env().agentic_timeout == 1.5

    def test_malformed_agentic_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_AGENTIC_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="LOOM_AGENTIC_TIMEOUT"):
            LoomConfig.from_env()
