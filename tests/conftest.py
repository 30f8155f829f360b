"""Shared test fixtures."""

from __future__ import annotations

from plaid_fakes import FakePlaidClient, FakeTriggerBackend, RecordingSleep
import pytest

from plaidsync.context import AppContext
from plaidsync.core.config import AppConfig


@pytest.fixture
def plaid_client() -> FakePlaidClient:
    return FakePlaidClient()


@pytest.fixture
def trigger_backend() -> FakeTriggerBackend:
    return FakeTriggerBackend()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        plaid_client_id="test_client_id",
        plaid_secret="test_secret",
        plaid_webhook_url="https://example.com/webhook/plaid",
        settle_seconds=2.0,
    )


@pytest.fixture
def context(
    config: AppConfig,
    plaid_client: FakePlaidClient,
    trigger_backend: FakeTriggerBackend,
    sleep: RecordingSleep,
) -> AppContext:
    return AppContext.build(
        config,
        plaid_client=plaid_client,  # type: ignore[arg-type]
        trigger_backend=trigger_backend,
        sleep=sleep,
    )
