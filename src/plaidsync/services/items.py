"""Account and auth lookups for a linked item, cached per user."""

from __future__ import annotations

import asyncio
from typing import Any

from plaidsync.infra.clients.plaid import PlaidClient
from plaidsync.models.transaction import Account
from plaidsync.storage.stores import Stores


class ItemService:
    """Fetches account and auth data for a user's item and caches it."""

    def __init__(self, plaid_client: PlaidClient, stores: Stores) -> None:
        self._plaid_client = plaid_client
        self._stores = stores

    async def fetch_accounts(self, user_id: str) -> list[Account]:
        """Fetch /accounts/get and replace the cached account list."""
        credential = self._stores.credentials.require(user_id)
        accounts = await asyncio.to_thread(
            self._plaid_client.get_accounts, credential.access_token
        )
        self._stores.accounts.set(user_id, accounts)
        return accounts

    async def accounts(self, user_id: str) -> list[Account]:
        """Cached accounts, fetched on first use."""
        self._stores.credentials.require(user_id)
        cached = self._stores.accounts.get(user_id)
        if cached is not None:
            return cached
        return await self.fetch_accounts(user_id)

    async def fetch_auth_data(self, user_id: str) -> dict[str, Any]:
        """Fetch /auth/get; its accounts also refresh the account cache."""
        credential = self._stores.credentials.require(user_id)
        auth_data = await asyncio.to_thread(
            self._plaid_client.get_auth, credential.access_token
        )
        self._stores.auth_data.set(user_id, auth_data)
        self._stores.accounts.set(user_id, auth_data.get("accounts", []))
        return auth_data

    async def auth_data(
        self, user_id: str, *, force_refresh: bool = False
    ) -> dict[str, Any]:
        """Cached auth data unless missing or force_refresh is set."""
        self._stores.credentials.require(user_id)
        cached = self._stores.auth_data.get(user_id)
        if cached is not None and not force_refresh:
            return cached
        return await self.fetch_auth_data(user_id)
