from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Any

from plaidsync.models.settings import utc_now_iso
from plaidsync.tools.base import USER_ID_PARAMETER, StandardTool, ToolArgumentError
from plaidsync.tools.protocol import ToolInputSchema

DEFAULT_WINDOW_DAYS = 30
DEFAULT_PAGE_COUNT = 100
MAX_PAGE_COUNT = 500


def _parse_date(value: str, field_name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ToolArgumentError(f"{field_name} must be a YYYY-MM-DD date") from e


class SyncTransactionsTool(StandardTool):
    """
    Tool wrapper for advancing the user's incremental sync.

    With force_refresh, Plaid is first asked to check the institution and the
    settle interval is awaited before the cursor is advanced.
    """

    _name = "sync-transactions"
    _description = (
        "Fetch new, modified and removed transactions since the last sync "
        "and merge them into the user's stored transactions."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "force_refresh": {
                "type": "boolean",
                "description": "Ask Plaid to refresh the institution before syncing",
                "default": False,
            },
        },
        "required": ["user_id"],
    }
    _failure_message = "Failed to sync transactions"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        context = self._context

        if kwargs.get("force_refresh", False):
            if await context.scheduler.request_refresh(user_id):
                context.stores.refresh_settings.touch(user_id)

        outcome = await context.engine.advance_sync(user_id)
        return {
            "success": True,
            "summary": {**outcome.summary(), "last_synced": utc_now_iso()},
        }


class GetTransactionsTool(StandardTool):
    """Tool wrapper for a dated window of transactions from /transactions/get."""

    _name = "get-transactions"
    _description = (
        "Get transactions in a date range directly from Plaid. "
        "Defaults to the last 30 days."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "start_date": {
                "type": "string",
                "description": "First date to include (YYYY-MM-DD)",
            },
            "end_date": {
                "type": "string",
                "description": "Last date to include (YYYY-MM-DD)",
            },
            "account_id": {
                "type": "string",
                "description": "Restrict results to one account",
            },
            "count": {
                "type": "integer",
                "description": "Number of transactions to return",
                "minimum": 1,
                "maximum": MAX_PAGE_COUNT,
                "default": DEFAULT_PAGE_COUNT,
            },
            "offset": {
                "type": "integer",
                "description": "Number of transactions to skip",
                "minimum": 0,
                "default": 0,
            },
        },
        "required": ["user_id"],
    }
    _failure_message = "Failed to fetch transactions"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        count: int = kwargs.get("count", DEFAULT_PAGE_COUNT)
        offset: int = kwargs.get("offset", 0)
        account_id: str | None = kwargs.get("account_id")

        credential = self._context.stores.credentials.require(user_id)

        end = (
            _parse_date(kwargs["end_date"], "end_date")
            if kwargs.get("end_date")
            else date.today()
        )
        start = (
            _parse_date(kwargs["start_date"], "start_date")
            if kwargs.get("start_date")
            else end - timedelta(days=DEFAULT_WINDOW_DAYS)
        )
        if start > end:
            raise ToolArgumentError("start_date must not be after end_date")
        if not 1 <= count <= MAX_PAGE_COUNT:
            raise ToolArgumentError(f"count must be between 1 and {MAX_PAGE_COUNT}")
        if offset < 0:
            raise ToolArgumentError("offset must not be negative")

        response = await asyncio.to_thread(
            self._context.plaid_client.get_transactions,
            credential.access_token,
            start_date=start,
            end_date=end,
            account_ids=[account_id] if account_id else None,
            count=count,
            offset=offset,
        )
        accounts = [account.model_dump() for account in response.accounts]
        self._context.stores.accounts.set(user_id, accounts)

        return {
            "success": True,
            "transactions": [txn.to_typed() for txn in response.transactions],
            "accounts": accounts,
            "total": response.total_transactions,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "count": count,
            "offset": offset,
        }


class GetRecurringTransactionsTool(StandardTool):
    """Tool wrapper for Plaid's detected recurring inflow and outflow streams."""

    _name = "get-recurring-transactions"
    _description = (
        "Get recurring transaction streams (subscriptions, payroll, bills) "
        "detected by Plaid for a user."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "account_ids": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Restrict results to these accounts",
            },
        },
        "required": ["user_id"],
    }
    _failure_message = "Failed to fetch recurring transactions"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        credential = self._context.stores.credentials.require(kwargs["user_id"])
        response = await asyncio.to_thread(
            self._context.plaid_client.get_recurring_transactions,
            credential.access_token,
            account_ids=kwargs.get("account_ids"),
        )
        return {
            "success": True,
            "inflow_streams": response.inflow_streams,
            "outflow_streams": response.outflow_streams,
            "updated_datetime": response.updated_datetime,
        }
