"""The tool set exposed for a given capability mode."""

from __future__ import annotations

from typing import TYPE_CHECKING

from plaidsync.tools.accounts.accounts_tool import (
    GetAccountsTool,
    GetAuthDataTool,
    GetBankTransferEventsTool,
)
from plaidsync.tools.link.link_tool import CreateLinkTokenTool, ExchangePublicTokenTool
from plaidsync.tools.registry import ToolRegistry
from plaidsync.tools.schedule.schedule_tool import SetRefreshScheduleTool
from plaidsync.tools.transactions.transactions_tool import (
    GetRecurringTransactionsTool,
    GetTransactionsTool,
    SyncTransactionsTool,
)
from plaidsync.tools.webhook.webhook_tool import ProcessWebhookTool

if TYPE_CHECKING:
    from plaidsync.context import AppContext


def build_registry(context: AppContext) -> ToolRegistry:
    """
    Register the tools for the context's capability mode.

    Both modes expose linking, accounts, auth data and webhook processing.
    Transactions mode adds the sync, query and schedule tools; auth mode adds
    bank transfer events.
    """
    registry = ToolRegistry()
    registry.register(CreateLinkTokenTool(context))
    registry.register(ExchangePublicTokenTool(context))
    registry.register(GetAccountsTool(context))

    if context.transactions_enabled:
        registry.register(SyncTransactionsTool(context))
        registry.register(GetTransactionsTool(context))
        registry.register(GetRecurringTransactionsTool(context))
        registry.register(SetRefreshScheduleTool(context))
        registry.register(GetAuthDataTool(context))
    else:
        registry.register(GetAuthDataTool(context))
        registry.register(GetBankTransferEventsTool(context))

    registry.register(ProcessWebhookTool(context))
    return registry
