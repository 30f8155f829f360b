"""Typed per-user stores built on the KeyValueStore protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from plaidsync.models.settings import RefreshSetting, WebhookEvent, utc_now_iso
from plaidsync.models.transaction import Account, Transaction
from plaidsync.storage.base import KeyValueStore
from plaidsync.storage.memory import InMemoryKeyValueStore

NOT_LINKED_MESSAGE = "User not connected to Plaid"
DEFAULT_WEBHOOK_LOG_LIMIT = 200


class NotLinkedError(LookupError):
    """Raised when an operation addresses a user with no stored credential."""

    def __init__(self, user_id: str) -> None:
        super().__init__(NOT_LINKED_MESSAGE)
        self.user_id = user_id


@dataclass(frozen=True, slots=True)
class Credential:
    """Durable Plaid access token and the item it belongs to."""

    access_token: str
    item_id: str


class CredentialStore:
    """
    user id -> Credential, with a reverse index item id -> user id.

    The reverse index is rewritten on every link so webhook routing is a
    single lookup instead of a scan over all users.
    """

    def __init__(
        self,
        backend: KeyValueStore[Credential] | None = None,
        item_index: KeyValueStore[str] | None = None,
    ) -> None:
        self._backend: KeyValueStore[Credential] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )
        self._item_index: KeyValueStore[str] = (
            item_index if item_index is not None else InMemoryKeyValueStore()
        )

    def link(self, user_id: str, *, access_token: str, item_id: str) -> Credential:
        previous = self._backend.get(user_id)
        if previous is not None and previous.item_id != item_id:
            self._item_index.delete(previous.item_id)
        credential = Credential(access_token=access_token, item_id=item_id)
        self._backend.set(user_id, credential)
        self._item_index.set(item_id, user_id)
        return credential

    def get(self, user_id: str) -> Credential | None:
        return self._backend.get(user_id)

    def require(self, user_id: str) -> Credential:
        credential = self._backend.get(user_id)
        if credential is None:
            raise NotLinkedError(user_id)
        return credential

    def is_linked(self, user_id: str) -> bool:
        return user_id in self._backend

    def user_for_item(self, item_id: str | None) -> str | None:
        if not item_id:
            return None
        return self._item_index.get(item_id)


class CursorStore:
    """user id -> last committed /transactions/sync cursor ("" = never synced)."""

    def __init__(self, backend: KeyValueStore[str] | None = None) -> None:
        self._backend: KeyValueStore[str] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )

    def get(self, user_id: str) -> str:
        return self._backend.get(user_id) or ""

    def set(self, user_id: str, cursor: str) -> None:
        self._backend.set(user_id, cursor)


class TransactionLedger:
    """user id -> transactions keyed by transaction_id, in insertion order."""

    def __init__(
        self, backend: KeyValueStore[dict[str, Transaction]] | None = None
    ) -> None:
        self._backend: KeyValueStore[dict[str, Transaction]] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )

    def has(self, user_id: str) -> bool:
        return user_id in self._backend

    def get(self, user_id: str) -> dict[str, Transaction]:
        return dict(self._backend.get(user_id) or {})

    def records(self, user_id: str) -> list[Transaction]:
        return list((self._backend.get(user_id) or {}).values())

    def replace(self, user_id: str, records: dict[str, Transaction]) -> None:
        self._backend.set(user_id, records)

    def clear(self, user_id: str) -> bool:
        """Forget the ledger so the next read sees it as never synced."""
        return self._backend.delete(user_id)


class AccountCache:
    """user id -> most recently fetched account list."""

    def __init__(self, backend: KeyValueStore[list[Account]] | None = None) -> None:
        self._backend: KeyValueStore[list[Account]] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )

    def get(self, user_id: str) -> list[Account] | None:
        return self._backend.get(user_id)

    def set(self, user_id: str, accounts: list[Account]) -> None:
        self._backend.set(user_id, accounts)


class AuthDataCache:
    """user id -> last /auth/get payload."""

    def __init__(
        self, backend: KeyValueStore[dict[str, Any]] | None = None
    ) -> None:
        self._backend: KeyValueStore[dict[str, Any]] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )

    def get(self, user_id: str) -> dict[str, Any] | None:
        return self._backend.get(user_id)

    def set(self, user_id: str, auth_data: dict[str, Any]) -> None:
        self._backend.set(user_id, auth_data)


class RefreshSettingsStore:
    """user id -> RefreshSetting."""

    def __init__(
        self, backend: KeyValueStore[RefreshSetting] | None = None
    ) -> None:
        self._backend: KeyValueStore[RefreshSetting] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )

    def get(self, user_id: str) -> RefreshSetting | None:
        return self._backend.get(user_id)

    def set(self, user_id: str, setting: RefreshSetting) -> None:
        self._backend.set(user_id, setting)

    def touch(self, user_id: str, timestamp: str | None = None) -> None:
        """Stamp last_refreshed on an existing setting; no-op otherwise."""
        setting = self._backend.get(user_id)
        if setting is None:
            return
        setting.last_refreshed = timestamp or utc_now_iso()
        self._backend.set(user_id, setting)


class WebhookEventLog:
    """user id -> recorded webhook events, keeping at most `limit` per user."""

    def __init__(
        self,
        backend: KeyValueStore[list[WebhookEvent]] | None = None,
        *,
        limit: int = DEFAULT_WEBHOOK_LOG_LIMIT,
    ) -> None:
        if limit < 1:
            raise ValueError("Webhook log limit must be at least 1")
        self._backend: KeyValueStore[list[WebhookEvent]] = (
            backend if backend is not None else InMemoryKeyValueStore()
        )
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, user_id: str, event: WebhookEvent) -> None:
        events = list(self._backend.get(user_id) or [])
        events.append(event)
        # Oldest entries go first once the cap is reached.
        self._backend.set(user_id, events[-self._limit :])

    def events(self, user_id: str) -> list[WebhookEvent]:
        return list(self._backend.get(user_id) or [])


@dataclass(slots=True)
class Stores:
    """All per-user state owned by one server process."""

    credentials: CredentialStore
    cursors: CursorStore
    ledger: TransactionLedger
    accounts: AccountCache
    auth_data: AuthDataCache
    refresh_settings: RefreshSettingsStore
    webhook_events: WebhookEventLog

    @classmethod
    def in_memory(cls, *, webhook_log_limit: int = DEFAULT_WEBHOOK_LOG_LIMIT) -> Stores:
        return cls(
            credentials=CredentialStore(),
            cursors=CursorStore(),
            ledger=TransactionLedger(),
            accounts=AccountCache(),
            auth_data=AuthDataCache(),
            refresh_settings=RefreshSettingsStore(),
            webhook_events=WebhookEventLog(limit=webhook_log_limit),
        )
