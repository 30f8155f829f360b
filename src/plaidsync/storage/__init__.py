"""Per-user state stores."""

from plaidsync.storage.base import KeyValueStore
from plaidsync.storage.memory import InMemoryKeyValueStore
from plaidsync.storage.stores import (
    NOT_LINKED_MESSAGE,
    AccountCache,
    AuthDataCache,
    Credential,
    CredentialStore,
    CursorStore,
    NotLinkedError,
    RefreshSettingsStore,
    Stores,
    TransactionLedger,
    WebhookEventLog,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    # Typed stores
    "AccountCache",
    "AuthDataCache",
    "Credential",
    "CredentialStore",
    "CursorStore",
    "RefreshSettingsStore",
    "Stores",
    "TransactionLedger",
    "WebhookEventLog",
    # Errors
    "NOT_LINKED_MESSAGE",
    "NotLinkedError",
]
