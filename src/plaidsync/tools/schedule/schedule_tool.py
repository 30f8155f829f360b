from __future__ import annotations

from typing import Any

from plaidsync.models.settings import FREQUENCIES, Frequency
from plaidsync.tools.base import USER_ID_PARAMETER, StandardTool
from plaidsync.tools.protocol import ToolInputSchema


class SetRefreshScheduleTool(StandardTool):
    """
    Tool wrapper for replacing the user's recurring refresh schedule.

    The schedule is validated before anything changes; the previous trigger
    is cancelled so a user never has two.
    """

    _name = "set-refresh-schedule"
    _description = (
        "Set how often a user's transactions refresh automatically. "
        "Use frequency 'custom' with a five-field cron expression "
        "(minute hour day-of-month month day-of-week, UTC; no seconds field, "
        "Sunday is 0 or 7)."
    )
    _input_schema: ToolInputSchema = {
        "type": "object",
        "properties": {
            "user_id": USER_ID_PARAMETER,
            "frequency": {
                "type": "string",
                "enum": list(FREQUENCIES),
                "description": "Refresh frequency",
            },
            "custom_schedule": {
                "type": "string",
                "description": "Cron expression, required when frequency is 'custom'",
            },
        },
        "required": ["user_id", "frequency"],
    }
    _failure_message = "Failed to set refresh schedule"

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        user_id: str = kwargs["user_id"]
        frequency: Frequency = kwargs["frequency"]
        custom_schedule: str | None = kwargs.get("custom_schedule")

        self._context.stores.credentials.require(user_id)
        setting = self._context.scheduler.configure(user_id, frequency, custom_schedule)

        suffix = " with custom schedule" if frequency == "custom" else ""
        return {
            "success": True,
            "message": f"Transactions will refresh {frequency}{suffix}",
            "settings": setting.to_dict(),
        }
