from __future__ import annotations

import asyncio
from typing import Any

from plaidsync.tools.base import USER_ID_PARAMETER, StandardTool, ToolArgumentError
from plaidsync.tools.protocol import ToolInputSchema

NO_ACCOUNTS_MESSAGE = "No accounts found for user"
DEFAULT_EVENT_COUNT = 25
MAX_EVENT_COUNT = 25


class GetAccountsTool(StandardTool):
    """Tool wrapper for the user's linked accounts, served from cache when present."""

    _name = "get-accounts"
    _description = "Get the bank accounts linked for a user."
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {"user_id": USER_ID_PARAMETER},
        "required": ["user_id"],
    }
    _failure_message = "Failed to fetch accounts"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        accounts = await self._context.items.accounts(kwargs["user_id"])
        return {"success": True, "accounts": accounts}


class GetAuthDataTool(StandardTool):
    """Tool wrapper for account and routing numbers from /auth/get."""

    _name = "get-auth-data"
    _description = (
        "Get account and routing numbers for a user's linked accounts. "
        "Cached data is returned unless force_refresh is set."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "force_refresh": {
                "type": "boolean",
                "description": "Fetch fresh data from Plaid instead of the cache",
                "default": False,
            },
        },
        "required": ["user_id"],
    }
    _failure_message = "Failed to fetch auth data"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        auth_data = await self._context.items.auth_data(
            kwargs["user_id"], force_refresh=kwargs.get("force_refresh", False)
        )
        return {"success": True, "auth_data": auth_data}


class GetBankTransferEventsTool(StandardTool):
    """Tool wrapper for bank transfer events on the user's first auth account."""

    _name = "get-bank-transfer-events"
    _description = (
        "List bank transfer events in a time window for the user's first "
        "linked account."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "start_date": {
                "type": "string",
                "description": "Window start (ISO 8601, YYYY-MM-DDTHH:MM:SSZ)",
            },
            "end_date": {
                "type": "string",
                "description": "Window end (ISO 8601, YYYY-MM-DDTHH:MM:SSZ)",
            },
            "count": {
                "type": "integer",
                "description": "Maximum number of events to return",
                "minimum": 1,
                "maximum": MAX_EVENT_COUNT,
                "default": DEFAULT_EVENT_COUNT,
            },
            "offset": {
                "type": "integer",
                "description": "Number of events to skip",
                "minimum": 0,
                "default": 0,
            },
        },
        "required": ["user_id", "start_date", "end_date"],
    }
    _failure_message = "Failed to fetch bank transfer events"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        count: int = kwargs.get("count", DEFAULT_EVENT_COUNT)
        offset: int = kwargs.get("offset", 0)
        if not 1 <= count <= MAX_EVENT_COUNT:
            raise ToolArgumentError(f"count must be between 1 and {MAX_EVENT_COUNT}")
        if offset < 0:
            raise ToolArgumentError("offset must not be negative")

        auth_data = await self._context.items.auth_data(user_id)
        accounts = auth_data.get("accounts") or []
        if not accounts:
            raise ToolArgumentError(NO_ACCOUNTS_MESSAGE)

        events = await asyncio.to_thread(
            self._context.plaid_client.list_bank_transfer_events,
            account_id=accounts[0]["account_id"],
            start_date=kwargs["start_date"],
            end_date=kwargs["end_date"],
            count=count,
            offset=offset,
        )
        return {"success": True, "events": events}
