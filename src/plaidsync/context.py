"""Wiring of config, Plaid client, stores and sync components."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from plaidsync.core.config import AppConfig
from plaidsync.infra.clients.plaid import PlaidClient
from plaidsync.services.items import ItemService
from plaidsync.storage.stores import Stores
from plaidsync.sync.engine import SyncEngine
from plaidsync.sync.scheduler import CronTriggerBackend, RefreshScheduler, TriggerBackend
from plaidsync.sync.webhooks import WebhookDispatcher


@dataclass
class AppContext:
    """Everything a tool, resource or HTTP route needs, built once per process."""

    config: AppConfig
    plaid_client: PlaidClient
    stores: Stores
    items: ItemService
    engine: SyncEngine
    scheduler: RefreshScheduler
    dispatcher: WebhookDispatcher

    @property
    def transactions_enabled(self) -> bool:
        return self.config.transactions_enabled

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        plaid_client: PlaidClient | None = None,
        stores: Stores | None = None,
        trigger_backend: TriggerBackend | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AppContext:
        """
        Build the context for a config.

        Args:
            config: Loaded server configuration
            plaid_client: Client override (tests pass a fake)
            stores: Storage override; defaults to in-memory stores
            trigger_backend: Trigger backend override; defaults to asyncio cron
            sleep: Settle-interval sleep, overridable for tests
        """
        client = plaid_client if plaid_client is not None else config.build_plaid_client()
        state = (
            stores
            if stores is not None
            else Stores.in_memory(webhook_log_limit=config.webhook_log_limit)
        )
        items = ItemService(client, state)
        engine = SyncEngine(client, state)
        scheduler = RefreshScheduler(
            client,
            state,
            engine,
            trigger_backend if trigger_backend is not None else CronTriggerBackend(),
            settle_seconds=config.settle_seconds,
            sleep=sleep,
        )
        dispatcher = WebhookDispatcher(
            state, items, engine if config.transactions_enabled else None
        )
        return cls(
            config=config,
            plaid_client=client,
            stores=state,
            items=items,
            engine=engine,
            scheduler=scheduler,
            dispatcher=dispatcher,
        )

    def shutdown(self) -> None:
        """Cancel every recurring trigger."""
        self.scheduler.shutdown()
