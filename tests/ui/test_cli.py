from __future__ import annotations

import pytest
from typer.testing import CliRunner

from plaidsync.ui import cli
from plaidsync.ui.cli import app

runner = CliRunner()


@pytest.fixture
def plaid_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setenv("PLAID_CLIENT_ID", "test_client_id")
    monkeypatch.setenv("PLAID_SECRET", "test_secret")
    monkeypatch.setenv("PLAID_ENV", "sandbox")
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    return monkeypatch


class TestToolsCommand:
    def test_lists_auth_tools_with_schemas(self, plaid_env: pytest.MonkeyPatch) -> None:
        # setup
        plaid_env.setenv("PLAIDSYNC_FEATURES", "auth")

        # act
        result = runner.invoke(app, ["tools"])

        # assert
        assert result.exit_code == 0
        assert "Features: auth" in result.stdout
        assert "get-bank-transfer-events" in result.stdout
        assert "sync-transactions" not in result.stdout
        assert '"maximum": 25' in result.stdout

    def test_configuration_error_exits(self, plaid_env: pytest.MonkeyPatch) -> None:
        plaid_env.setenv("PLAIDSYNC_FEATURES", "everything")

        result = runner.invoke(app, ["tools"])

        assert result.exit_code == 1
