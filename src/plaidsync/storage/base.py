"""Storage protocol for per-user state."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, TypeVar, runtime_checkable

V = TypeVar("V")


@runtime_checkable
class KeyValueStore(Protocol[V]):
    """
    Key-value interface keyed by an opaque string (usually a user id).

    Every per-user store in plaidsync is built on this protocol, so the
    in-memory backend can be swapped for a durable one without touching the
    sync engine, scheduler or tools.

    Example:
        store: KeyValueStore[str] = InMemoryKeyValueStore()
        store.set("user-1", "cursor-abc")
        store.get("user-1")  # "cursor-abc"
        store.get("missing")  # None
    """

    def get(self, key: str) -> V | None:
        """Return the value stored under key, or None."""
        ...

    def set(self, key: str, value: V) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        ...

    def __contains__(self, key: object) -> bool: ...

    def keys(self) -> Iterator[str]:
        """Iterate over stored keys."""
        ...
