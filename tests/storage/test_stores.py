from __future__ import annotations

from plaid_fakes import create_test_transaction
import pytest

from plaidsync.models.settings import RefreshSetting, WebhookEvent
from plaidsync.storage import (
    NOT_LINKED_MESSAGE,
    CredentialStore,
    CursorStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    NotLinkedError,
    RefreshSettingsStore,
    TransactionLedger,
    WebhookEventLog,
)


class TestInMemoryKeyValueStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryKeyValueStore(), KeyValueStore)

    def test_set_get_delete(self) -> None:
        store: InMemoryKeyValueStore[str] = InMemoryKeyValueStore()

        store.set("u1", "c1")

        assert store.get("u1") == "c1"
        assert "u1" in store
        assert list(store.keys()) == ["u1"]
        assert store.delete("u1") is True
        assert store.delete("u1") is False
        assert store.get("u1") is None
        assert len(store) == 0


class TestCredentialStore:
    def test_link_indexes_item(self) -> None:
        credentials = CredentialStore()

        credentials.link("u1", access_token="access-1", item_id="item_1")

        assert credentials.user_for_item("item_1") == "u1"
        assert credentials.is_linked("u1")
        assert credentials.require("u1").access_token == "access-1"

    def test_relinking_drops_stale_item(self) -> None:
        credentials = CredentialStore()
        credentials.link("u1", access_token="access-1", item_id="item_1")

        credentials.link("u1", access_token="access-2", item_id="item_2")

        assert credentials.user_for_item("item_1") is None
        assert credentials.user_for_item("item_2") == "u1"

    def test_missing_item_id_routes_nowhere(self) -> None:
        assert CredentialStore().user_for_item(None) is None

    def test_require_unlinked_raises(self) -> None:
        with pytest.raises(NotLinkedError, match=NOT_LINKED_MESSAGE) as excinfo:
            CredentialStore().require("u1")

        assert excinfo.value.user_id == "u1"


class TestCursorStore:
    def test_never_synced_user_has_empty_cursor(self) -> None:
        assert CursorStore().get("u1") == ""


class TestTransactionLedger:
    def test_get_returns_a_copy(self) -> None:
        ledger = TransactionLedger()
        ledger.replace("u1", {"t1": create_test_transaction("t1")})

        snapshot = ledger.get("u1")
        snapshot.clear()

        assert list(ledger.get("u1")) == ["t1"]

    def test_has_distinguishes_empty_from_never_populated(self) -> None:
        ledger = TransactionLedger()

        assert ledger.has("u1") is False
        ledger.replace("u1", {})
        assert ledger.has("u1") is True
        assert ledger.records("u1") == []

    def test_clear_forgets_the_ledger(self) -> None:
        ledger = TransactionLedger()
        ledger.replace("u1", {})

        assert ledger.clear("u1") is True
        assert ledger.has("u1") is False
        assert ledger.clear("u1") is False


class TestRefreshSettingsStore:
    def test_touch_stamps_existing_setting(self) -> None:
        settings = RefreshSettingsStore()
        settings.set("u1", RefreshSetting(frequency="weekly"))

        settings.touch("u1", "2025-02-01T00:00:00+00:00")

        setting = settings.get("u1")
        assert setting is not None
        assert setting.last_refreshed == "2025-02-01T00:00:00+00:00"

    def test_touch_without_setting_is_noop(self) -> None:
        settings = RefreshSettingsStore()

        settings.touch("u1")

        assert settings.get("u1") is None


class TestWebhookEventLog:
    def test_drops_oldest_beyond_limit(self) -> None:
        log = WebhookEventLog(limit=3)

        for i in range(5):
            log.append("u1", WebhookEvent("TRANSACTIONS", f"CODE_{i}", payload={}))

        assert [event.webhook_code for event in log.events("u1")] == [
            "CODE_2",
            "CODE_3",
            "CODE_4",
        ]

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            WebhookEventLog(limit=0)
