"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest

from sbtc_pay.config.settings import (
    AppConfig,
    CacheConfig,
    CacheEngine,
    ChainhookConfig,
    DatabaseConfig,
    DatabaseEngine,
    TaskConfig,
    WebhookConfig,
    _load_yaml,
)

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Verify default values."""

    def test_chainhook_defaults(self) -> None:
        cfg = ChainhookConfig()
        assert cfg.bearer_token == ""
        assert cfg.token_marker == "sbtc"
        assert cfg.match_window_seconds == 1800
        assert cfg.fallback_window_seconds == 600
        assert cfg.amount_tolerance_ratio == 0.01
        assert cfg.amount_tolerance_floor == 100

    def test_webhook_defaults(self) -> None:
        cfg = WebhookConfig()
        assert cfg.timeout_seconds == 30.0
        assert cfg.max_attempts == 5
        assert cfg.user_agent == "SBTC-Webhooks/1.0"
        assert cfg.response_body_limit == 1000

    def test_task_defaults(self) -> None:
        cfg = TaskConfig()
        assert cfg.enabled is True
        assert cfg.webhook_sweep_period == 15.0

    def test_app_config_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.debug is False
        assert cfg.admin_token == ""
        assert cfg.db.engine == DatabaseEngine.SQLITE
        assert cfg.cache.engine == CacheEngine.MEMORY
        assert cfg.server.port == 3000


class TestEnums:
    def test_database_engine_invalid(self) -> None:
        with pytest.raises(Exception):  # noqa: B017
            DatabaseConfig(engine="mysql")  # type: ignore[arg-type]

    def test_cache_engine_invalid(self) -> None:
        with pytest.raises(Exception):  # noqa: B017
            CacheConfig(engine="memcached")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Environment variable override
# ---------------------------------------------------------------------------


class TestEnvOverride:
    def test_top_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SBTCPAY_ADMIN_TOKEN", "admin-from-env")
        cfg = AppConfig()
        assert cfg.admin_token == "admin-from-env"

    def test_nested_chainhook_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SBTCPAY_CHAINHOOK__BEARER_TOKEN", "hook-secret")
        monkeypatch.setenv("SBTCPAY_CHAINHOOK__MATCH_WINDOW_SECONDS", "900")
        cfg = AppConfig()
        assert cfg.chainhook.bearer_token == "hook-secret"
        assert cfg.chainhook.match_window_seconds == 900

    def test_nested_webhook_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SBTCPAY_WEBHOOK__MAX_ATTEMPTS", "3")
        assert AppConfig().webhook.max_attempts == 3


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class TestYAML:
    def test_load_yaml_nonexistent(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "missing.yaml") == {}

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            textwrap.dedent(
                """\
                admin_token: yaml-admin
                chainhook:
                  bearer_token: yaml-hook
                webhook:
                  timeout_seconds: 5
                """
            )
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.admin_token == "yaml-admin"
        assert cfg.chainhook.bearer_token == "yaml-hook"
        assert cfg.webhook.timeout_seconds == 5.0

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("admin_token: yaml-admin\n")
        monkeypatch.setenv("SBTCPAY_ADMIN_TOKEN", "env-admin")
        assert AppConfig.from_yaml(path).admin_token == "env-admin"
