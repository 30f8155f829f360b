"""Read-only per-user views served as MCP resources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from plaidsync.storage.stores import NOT_LINKED_MESSAGE

if TYPE_CHECKING:
    from plaidsync.context import AppContext

CONNECT_PROMPT = (
    "Help me connect a bank account for user {user_id} using Plaid.\n\n"
    "First, create a link token using the create-link-token tool, then guide "
    "me through integrating it with a frontend application that uses Plaid "
    "Link. Once Link returns a public token, call exchange-public-token to "
    "finish the connection."
)


def _not_linked() -> dict[str, Any]:
    return {"success": False, "error": NOT_LINKED_MESSAGE}


async def transactions_view(context: AppContext, user_id: str) -> dict[str, Any]:
    """
    The user's ledger with refresh metadata.

    A user whose ledger has never been populated gets one sync attempt first;
    a failed attempt is logged and the (empty) ledger is served anyway.
    """
    if not context.stores.credentials.is_linked(user_id):
        return _not_linked()

    if not context.stores.ledger.has(user_id):
        try:
            await context.engine.advance_sync(user_id)
        except Exception as e:
            logger.bind(user_id=user_id).exception(
                "Error syncing transactions for resource read: {}", e
            )

    transactions = context.stores.ledger.records(user_id)
    setting = context.stores.refresh_settings.get(user_id)
    return {
        "success": True,
        "transactions": transactions,
        "count": len(transactions),
        "last_refreshed": setting.last_refreshed if setting else None,
        "refresh_schedule": setting.frequency if setting else "daily",
    }


def refresh_settings_view(context: AppContext, user_id: str) -> dict[str, Any]:
    if not context.stores.credentials.is_linked(user_id):
        return _not_linked()
    setting = context.stores.refresh_settings.get(user_id)
    settings = (
        setting.to_dict()
        if setting
        else {"frequency": "daily", "custom_schedule": None, "last_refreshed": None}
    )
    return {"success": True, "settings": settings}


def webhook_events_view(context: AppContext, user_id: str) -> dict[str, Any]:
    if not context.stores.credentials.is_linked(user_id):
        return _not_linked()
    events = [event.to_dict() for event in context.stores.webhook_events.events(user_id)]
    return {"success": True, "webhook_events": events}


def auth_data_view(context: AppContext, user_id: str) -> dict[str, Any]:
    """Cached auth data only; use the get-auth-data tool to fetch it."""
    if not context.stores.credentials.is_linked(user_id):
        return _not_linked()
    return {"success": True, "auth_data": context.stores.auth_data.get(user_id)}


def connect_bank_account_prompt(user_id: str) -> str:
    return CONNECT_PROMPT.format(user_id=user_id)
