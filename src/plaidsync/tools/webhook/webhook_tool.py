from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from plaidsync.tools.base import StandardTool, ToolArgumentError
from plaidsync.tools.protocol import ToolInputSchema


class ProcessWebhookTool(StandardTool):
    """Tool wrapper that feeds a Plaid webhook body to the dispatcher."""

    _name = "process-webhook"
    _description = (
        "Process a Plaid webhook payload: record it for the owning user and "
        "sync transactions or refresh auth data when the webhook calls for it."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "webhook_body": {
                "type": "object",
                "description": "Webhook JSON body as sent by Plaid",
            },
        },
        "required": ["webhook_body"],
    }
    _failure_message = "Failed to process webhook"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        body = kwargs["webhook_body"]
        if not isinstance(body, Mapping):
            raise ToolArgumentError("webhook_body must be a JSON object")
        result = await self._context.dispatcher.handle(body)
        return result.to_dict()
