from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import loguru
from loguru import logger

from plaidsync.infra.clients.plaid import (
    MUTATION_DURING_PAGINATION,
    PlaidClient,
    PlaidClientError,
)
from plaidsync.models.settings import utc_now_iso
from plaidsync.models.transaction import RemovedTransaction, Transaction
from plaidsync.storage.stores import Stores
from plaidsync.sync.merge import apply_delta


@dataclass
class SyncOutcome:
    """Accumulated result of draining /transactions/sync for one user."""

    added: list[Transaction] = field(default_factory=list)
    modified: list[Transaction] = field(default_factory=list)
    removed: list[RemovedTransaction] = field(default_factory=list)
    final_cursor: str = ""
    has_more: bool = False
    pages: int = 0

    def summary(self) -> dict[str, Any]:
        return {
            "added": len(self.added),
            "modified": len(self.modified),
            "removed": len(self.removed),
            "has_more": self.has_more,
        }


class SyncEngineLogger:
    """Handles all logging for SyncEngine with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def fetch_start(self, user_id: str, cursor: str, page_num: int) -> None:
        """Log start of page fetch from Plaid."""
        cursor_label = cursor or "initial"
        self._logger.bind(user_id=user_id, cursor=cursor_label, page=page_num).debug(
            "Fetching page {} for user {} (cursor: {})",
            page_num,
            user_id,
            cursor_label,
        )

    def page_merged(
        self,
        user_id: str,
        added_count: int,
        modified_count: int,
        removed_count: int,
        page_num: int,
    ) -> None:
        """Log a page merged into the ledger."""
        self._logger.bind(
            user_id=user_id,
            added=added_count,
            modified=modified_count,
            removed=removed_count,
            page=page_num,
        ).info(
            "Merged page {} for user {}: {} added, {} modified, {} removed",
            page_num,
            user_id,
            added_count,
            modified_count,
            removed_count,
        )

    def sync_complete(self, user_id: str, outcome: SyncOutcome, ledger_size: int) -> None:
        """Log summary of a completed sync."""
        self._logger.bind(
            user_id=user_id,
            total_added=len(outcome.added),
            total_modified=len(outcome.modified),
            total_removed=len(outcome.removed),
            pages=outcome.pages,
            ledger_size=ledger_size,
        ).info(
            "Sync complete for user {}: {} added, {} modified, {} removed "
            "across {} pages ({} transactions held)",
            user_id,
            len(outcome.added),
            len(outcome.modified),
            len(outcome.removed),
            outcome.pages,
            ledger_size,
        )

    def sync_failed(self, user_id: str, pages_committed: int, error: Exception) -> None:
        """Log a sync aborted mid-pagination."""
        self._logger.bind(user_id=user_id, pages_committed=pages_committed).warning(
            "Sync for user {} aborted after {} committed pages: {}",
            user_id,
            pages_committed,
            error,
        )

    def mutation_retry(self, user_id: str, attempt: int, max_retries: int) -> None:
        """Log mutation error retry attempt."""
        self._logger.bind(
            user_id=user_id, attempt=attempt, max_retries=max_retries
        ).warning(
            "Mutation detected for user {}, restarting pagination (attempt {}/{})",
            user_id,
            attempt,
            max_retries,
        )


class SyncEngine:
    """
    Drives Plaid's /transactions/sync endpoint for one user at a time.

    Each page is merged into the ledger before its next_cursor is committed,
    so a failure mid-pagination leaves the cursor at the last fully merged
    page and a retry resumes from there. Calls for the same user are
    serialized by a per-user lock.
    """

    def __init__(
        self,
        plaid_client: PlaidClient,
        stores: Stores,
        *,
        page_size: int = 500,
        max_mutation_retries: int = 3,
    ) -> None:
        """
        Initialize the sync engine.

        Args:
            plaid_client: Plaid client instance
            stores: Per-user state (credentials, cursors, ledger, settings)
            page_size: Transactions requested per /transactions/sync page
            max_mutation_retries: Pagination restarts allowed when Plaid
                reports TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION
        """
        self._plaid_client = plaid_client
        self._stores = stores
        self._page_size = page_size
        self._max_mutation_retries = max_mutation_retries
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = SyncEngineLogger()

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def advance_sync(self, user_id: str) -> SyncOutcome:
        """
        Drain all pending sync pages for a user into the ledger.

        Args:
            user_id: User whose item should be synced

        Returns:
            SyncOutcome with every added/modified/removed record seen

        Raises:
            NotLinkedError: If the user has no stored credential
            PlaidClientError: If a Plaid call fails; pages merged before the
                failure stay merged and their cursor stays committed
        """
        credential = self._stores.credentials.require(user_id)
        async with self.lock_for(user_id):
            outcome = await self._drain(user_id, credential.access_token)
            self._stores.refresh_settings.touch(user_id, utc_now_iso())
            self._logger.sync_complete(
                user_id, outcome, len(self._stores.ledger.get(user_id))
            )
            return outcome

    async def _drain(self, user_id: str, access_token: str) -> SyncOutcome:
        start_cursor = self._stores.cursors.get(user_id)
        cursor = start_cursor
        outcome = SyncOutcome(final_cursor=start_cursor)
        retry_count = 0

        while True:
            self._logger.fetch_start(user_id, cursor, outcome.pages + 1)
            try:
                page = await asyncio.to_thread(
                    self._plaid_client.sync_transactions,
                    access_token,
                    cursor=cursor,
                    count=self._page_size,
                )
            except PlaidClientError as e:
                if (
                    e.error_code == MUTATION_DURING_PAGINATION
                    and retry_count < self._max_mutation_retries
                ):
                    retry_count += 1
                    self._logger.mutation_retry(
                        user_id, retry_count, self._max_mutation_retries
                    )
                    cursor = start_cursor
                    outcome = SyncOutcome(final_cursor=start_cursor)
                    continue
                self._logger.sync_failed(user_id, outcome.pages, e)
                raise

            added = page.added_records()
            modified = page.modified_records()
            removed = page.removed_records()

            self._stores.ledger.replace(
                user_id,
                apply_delta(
                    self._stores.ledger.get(user_id),
                    added=added,
                    modified=modified,
                    removed=removed,
                ),
            )
            # Commit only after the page is merged.
            cursor = page.next_cursor or cursor
            self._stores.cursors.set(user_id, cursor)

            outcome.added.extend(added)
            outcome.modified.extend(modified)
            outcome.removed.extend(removed)
            outcome.final_cursor = cursor
            outcome.has_more = page.has_more
            outcome.pages += 1
            self._logger.page_merged(
                user_id, len(added), len(modified), len(removed), outcome.pages
            )

            if not page.has_more:
                return outcome
