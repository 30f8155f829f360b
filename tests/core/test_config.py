from __future__ import annotations

import pytest

from plaidsync.core.config import ConfigError, load_config_from_env

BASE_ENV = {"PLAID_CLIENT_ID": "client-123", "PLAID_SECRET": "secret-abc"}


class TestLoadConfigFromEnv:
    def test_defaults(self) -> None:
        config = load_config_from_env(BASE_ENV)

        assert config.plaid_env == "sandbox"
        assert config.plaid_secret == "secret-abc"
        assert config.features == "transactions"
        assert config.transactions_enabled is True
        assert config.settle_seconds == 2.0
        assert config.webhook_log_limit == 200
        assert config.port == 3001
        assert config.allowed_origins == ("http://localhost:3000",)
        assert config.plaid_webhook_url is None

    def test_environment_scoped_secret_wins(self) -> None:
        env = {
            **BASE_ENV,
            "PLAID_ENV": "production",
            "PLAID_PRODUCTION_SECRET": "prod-secret",
        }

        config = load_config_from_env(env)

        assert config.plaid_env == "production"
        assert config.plaid_secret == "prod-secret"

    def test_overrides(self) -> None:
        env = {
            **BASE_ENV,
            "PLAIDSYNC_FEATURES": "auth",
            "PLAIDSYNC_SETTLE_SECONDS": "0.5",
            "PLAIDSYNC_WEBHOOK_LOG_LIMIT": "10",
            "PLAIDSYNC_LOG_LEVEL": "debug",
            "PLAID_WEBHOOK_URL": "https://example.com/webhook/plaid",
            "PORT": "8080",
            "ALLOWED_ORIGINS": "https://a.example, https://b.example",
        }

        config = load_config_from_env(env)

        assert config.transactions_enabled is False
        assert config.settle_seconds == 0.5
        assert config.webhook_log_limit == 10
        assert config.log_level == "DEBUG"
        assert config.plaid_webhook_url == "https://example.com/webhook/plaid"
        assert config.port == 8080
        assert config.allowed_origins == ("https://a.example", "https://b.example")

    def test_missing_client_id(self) -> None:
        with pytest.raises(ConfigError, match="PLAID_CLIENT_ID"):
            load_config_from_env({"PLAID_SECRET": "secret-abc"})

    def test_missing_secret(self) -> None:
        with pytest.raises(ConfigError, match="PLAID_SANDBOX_SECRET"):
            load_config_from_env({"PLAID_CLIENT_ID": "client-123"})

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("PLAID_ENV", "staging"),
            ("PLAIDSYNC_FEATURES", "investments"),
            ("PLAIDSYNC_SETTLE_SECONDS", "soon"),
            ("PLAIDSYNC_WEBHOOK_LOG_LIMIT", "0"),
            ("PORT", "http"),
        ],
    )
    def test_invalid_values(self, name: str, value: str) -> None:
        with pytest.raises(ConfigError):
            load_config_from_env({**BASE_ENV, name: value})

    def test_builds_plaid_client_for_environment(self) -> None:
        config = load_config_from_env({**BASE_ENV, "PLAID_ENV": "development"})

        client = config.build_plaid_client()

        assert client.env == "development"
        assert client.client_name == "plaidsync"
