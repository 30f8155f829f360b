from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import loguru
from loguru import logger

from plaidsync.models.settings import WebhookEvent
from plaidsync.services.items import ItemService
from plaidsync.storage.stores import Stores
from plaidsync.sync.engine import SyncEngine

UNKNOWN_ITEM_MESSAGE = "Item ID not found for any user"

# SYNC_UPDATES_AVAILABLE is the /transactions/sync era code; the other three
# are the legacy /transactions/get codes some items still send.
TRANSACTION_SYNC_CODES = frozenset(
    {"SYNC_UPDATES_AVAILABLE", "INITIAL_UPDATE", "HISTORICAL_UPDATE", "DEFAULT_UPDATE"}
)

AUTH_MESSAGES: dict[str, str] = {
    "AUTOMATICALLY_VERIFIED": "Account automatically verified",
    "VERIFICATION_EXPIRED": "Account verification expired",
    "BANK_TRANSFERS_EVENTS_UPDATE": "New micro-deposit verification events available",
}


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of routing one webhook delivery."""

    success: bool
    user_id: str | None = None
    webhook_type: str | None = None
    webhook_code: str | None = None
    synced: bool = False
    message: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "message": self.message,
            "user_id": self.user_id,
            "webhook_type": self.webhook_type,
            "webhook_code": self.webhook_code,
            "synced": self.synced,
        }


class WebhookLogger:
    """Handles all logging for WebhookDispatcher with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def received(
        self, webhook_type: str | None, webhook_code: str | None, item_id: str | None
    ) -> None:
        self._logger.bind(
            webhook_type=webhook_type, webhook_code=webhook_code, item_id=item_id
        ).info("Received {}/{} webhook for item {}", webhook_type, webhook_code, item_id)

    def unknown_item(self, item_id: str | None) -> None:
        self._logger.bind(item_id=item_id).warning(
            "Webhook item {} does not belong to any linked user", item_id
        )

    def sync_triggered(self, user_id: str, webhook_code: str) -> None:
        self._logger.bind(user_id=user_id, webhook_code=webhook_code).info(
            "Syncing transactions for user {} after {} webhook", user_id, webhook_code
        )


class WebhookDispatcher:
    """
    Routes Plaid webhook payloads to the user owning the item.

    Every recognized delivery is appended to the user's webhook log. Transaction
    update codes drive SyncEngine.advance_sync; AUTH DEFAULT_UPDATE refreshes
    the cached auth data. Anything else is recorded only.
    """

    def __init__(
        self,
        stores: Stores,
        items: ItemService,
        engine: SyncEngine | None,
    ) -> None:
        """
        Args:
            stores: Per-user state
            items: Item service used to refetch auth data
            engine: Sync engine, or None when the transactions capability is off
        """
        self._stores = stores
        self._items = items
        self._engine = engine
        self._logger = WebhookLogger()

    async def handle(self, payload: Mapping[str, Any]) -> DispatchResult:
        """
        Route one webhook payload.

        Raises:
            PlaidClientError: If a sync or auth refresh triggered by the
                webhook fails; the event is already recorded by then
        """
        webhook_type = payload.get("webhook_type")
        webhook_code = payload.get("webhook_code")
        item_id = payload.get("item_id")
        self._logger.received(webhook_type, webhook_code, item_id)

        user_id = self._stores.credentials.user_for_item(item_id)
        if user_id is None:
            self._logger.unknown_item(item_id)
            return DispatchResult(success=False, error=UNKNOWN_ITEM_MESSAGE)

        self._stores.webhook_events.append(
            user_id,
            WebhookEvent(
                webhook_type=webhook_type,
                webhook_code=webhook_code,
                payload=dict(payload),
            ),
        )

        message = f"Processed {webhook_type}/{webhook_code} webhook for user {user_id}"
        synced = False

        if (
            webhook_type == "TRANSACTIONS"
            and webhook_code in TRANSACTION_SYNC_CODES
            and self._engine is not None
        ):
            self._logger.sync_triggered(user_id, webhook_code)
            await self._engine.advance_sync(user_id)
            synced = True
        elif webhook_type == "AUTH":
            if webhook_code == "DEFAULT_UPDATE":
                await self._items.fetch_auth_data(user_id)
                message = "Auth data updated due to DEFAULT_UPDATE webhook"
            elif webhook_code in AUTH_MESSAGES:
                message = AUTH_MESSAGES[webhook_code]

        return DispatchResult(
            success=True,
            user_id=user_id,
            webhook_type=webhook_type,
            webhook_code=webhook_code,
            synced=synced,
            message=message,
        )
