from __future__ import annotations

import asyncio
from typing import Any

from plaidsync.tools.base import USER_ID_PARAMETER, StandardTool, ToolArgumentError
from plaidsync.tools.protocol import ToolInputSchema

DEFAULT_HISTORY_DAYS = 90
MIN_HISTORY_DAYS = 30
MAX_HISTORY_DAYS = 730

CONNECTED_MESSAGE = "Account successfully connected and initial sync started"
AUTH_CONNECTED_MESSAGE = "Account successfully connected"

# Bank transfers only work against checking and savings accounts.
BANK_TRANSFER_ACCOUNT_FILTERS: dict[str, Any] = {
    "depository": {"account_subtypes": ["checking", "savings"]}
}


class CreateLinkTokenTool(StandardTool):
    """
    Tool wrapper for starting the Plaid Link flow.

    The returned link token is handed to the client-side Link UI; the public
    token it yields is then passed to exchange-public-token.
    """

    _name = "create-link-token"
    _description = (
        "Create a Plaid Link token to start connecting a bank account. "
        "Pass the returned link_token to Plaid Link on the client."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "redirect_uri": {
                "type": "string",
                "description": "OAuth redirect URI registered with Plaid",
            },
            "include_bank_transfers": {
                "type": "boolean",
                "description": "Restrict Link to checking and savings accounts",
                "default": False,
            },
            "include_auth": {
                "type": "boolean",
                "description": "Request the auth product",
                "default": True,
            },
            "include_transactions": {
                "type": "boolean",
                "description": "Request the transactions product",
                "default": True,
            },
            "history_days": {
                "type": "integer",
                "description": "Days of transaction history to request",
                "minimum": MIN_HISTORY_DAYS,
                "maximum": MAX_HISTORY_DAYS,
                "default": DEFAULT_HISTORY_DAYS,
            },
        },
        "required": ["user_id"],
    }
    _failure_message = "Failed to create link token"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        redirect_uri: str | None = kwargs.get("redirect_uri")
        include_bank_transfers: bool = kwargs.get("include_bank_transfers", False)
        include_auth: bool = kwargs.get("include_auth", True)
        include_transactions: bool = kwargs.get("include_transactions", True)
        history_days: int = kwargs.get("history_days", DEFAULT_HISTORY_DAYS)

        if not self._context.transactions_enabled:
            include_auth, include_transactions = True, False

        products: list[str] = []
        if include_auth:
            products.append("auth")
        if include_transactions:
            products.append("transactions")
        if not products:
            raise ToolArgumentError("At least one Plaid product must be requested")

        if not MIN_HISTORY_DAYS <= history_days <= MAX_HISTORY_DAYS:
            raise ToolArgumentError(
                f"history_days must be between {MIN_HISTORY_DAYS} and {MAX_HISTORY_DAYS}"
            )

        response = await asyncio.to_thread(
            self._context.plaid_client.create_link_token,
            user_id=user_id,
            products=products,
            redirect_uri=redirect_uri,
            webhook=self._context.config.plaid_webhook_url,
            days_requested=history_days if include_transactions else None,
            account_filters=(
                BANK_TRANSFER_ACCOUNT_FILTERS if include_bank_transfers else None
            ),
        )
        return {
            "success": True,
            "link_token": response.link_token,
            "expiration": response.expiration,
        }


class ExchangePublicTokenTool(StandardTool):
    """
    Tool wrapper for finishing the Plaid Link flow.

    Stores the item credential, starts from an empty cursor and ledger,
    schedules a daily refresh and runs the first sync alongside the account
    fetch.
    """

    _name = "exchange-public-token"
    _description = (
        "Exchange the public token returned by Plaid Link for a stored access "
        "token and start the initial transaction sync."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "public_token": {
                "type": "string",
                "description": "Public token returned by Plaid Link",
            },
        },
        "required": ["user_id", "public_token"],
    }
    _failure_message = "Failed to exchange public token"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        public_token: str = kwargs["public_token"]
        context = self._context

        exchange = await asyncio.to_thread(
            context.plaid_client.exchange_public_token, public_token
        )
        context.stores.credentials.link(
            user_id, access_token=exchange.access_token, item_id=exchange.item_id
        )

        if context.transactions_enabled:
            # A new item starts a new history: the old ledger belongs to the
            # replaced item and would never see its removals.
            context.stores.cursors.set(user_id, "")
            context.stores.ledger.clear(user_id)
            context.scheduler.configure(user_id, "daily")
            await asyncio.gather(
                context.items.fetch_accounts(user_id),
                context.engine.advance_sync(user_id),
            )
            message = CONNECTED_MESSAGE
        else:
            await context.items.fetch_auth_data(user_id)
            message = AUTH_CONNECTED_MESSAGE

        return {
            "success": True,
            "user_id": user_id,
            "item_id": exchange.item_id,
            "message": message,
        }
