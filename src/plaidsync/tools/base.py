"""Base implementation for tools implementing the Tool protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import loguru
from loguru import logger

from plaidsync.storage.stores import NotLinkedError
from plaidsync.sync.scheduler import InvalidScheduleError
from plaidsync.tools.protocol import ToolInputSchema, ToolParameter

if TYPE_CHECKING:
    from plaidsync.context import AppContext

USER_ID_PARAMETER: ToolParameter = {
    "type": "string",
    "description": "Unique identifier for the user",
}


class ToolLogger:
    """Handles all logging for tools with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def invoked(self, tool_name: str, arg_names: list[str]) -> None:
        self._logger.bind(tool=tool_name, args=arg_names).debug(
            "Invoking {} with {}", tool_name, arg_names
        )

    def not_linked(self, tool_name: str, user_id: str) -> None:
        self._logger.bind(tool=tool_name, user_id=user_id).info(
            "{} called for unlinked user {}", tool_name, user_id
        )

    def rejected(self, tool_name: str, error: Exception) -> None:
        self._logger.bind(tool=tool_name).info("{} rejected: {}", tool_name, error)

    def failed(self, tool_name: str, error: Exception) -> None:
        self._logger.bind(tool=tool_name).exception(
            "Error in {}: {}", tool_name, error
        )


class ToolArgumentError(ValueError):
    """Raised by a tool for an argument it cannot use; the message is returned."""


def failure(error: str) -> dict[str, Any]:
    """Build the failure envelope."""
    return {"success": False, "error": error}


class StandardTool:
    """
    Base class providing the tool boundary for every Plaid operation.

    Subclasses must override:
    - _name: MCP tool name
    - _description: Tool description
    - _input_schema: Parameter schema
    - _failure_message: Generic error string returned for upstream failures
    - _execute_impl: Core async logic returning the success payload

    execute_async() converts every exception into the failure envelope:
    unlinked users get "User not connected to Plaid", rejected schedules and
    arguments get their validation message, anything else is logged with its traceback and
    reported as _failure_message.

    Example:
        class PingTool(StandardTool):
            _name = "ping"
            _description = "Check the server is alive"
            _input_schema: ToolInputSchema = {
                "type": "object", "properties": {}, "required": []
            }
            _failure_message = "Ping failed"

            async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
                return {"success": True, "pong": True}
    """

    _name: str
    _description: str
    _input_schema: ToolInputSchema
    _failure_message: str = "Tool execution failed"

    def __init__(self, context: AppContext) -> None:
        self._context = context
        self._logger = ToolLogger()

    @property
    def name(self) -> str:
        """Return the tool name."""
        return self._name

    @property
    def description(self) -> str:
        """Return the tool description."""
        return self._description

    @property
    def input_schema(self) -> ToolInputSchema:
        """Return the input schema."""
        return self._input_schema

    async def execute_async(self, **kwargs: Any) -> dict[str, Any]:
        """
        Execute tool logic and wrap any failure in the response envelope.

        Args:
            **kwargs: Parameters matching input_schema

        Returns:
            JSON-serializable response envelope
        """
        self._logger.invoked(self._name, sorted(kwargs))
        try:
            return await self._execute_impl(**kwargs)
        except NotLinkedError as e:
            self._logger.not_linked(self._name, e.user_id)
            return failure(str(e))
        except (InvalidScheduleError, ToolArgumentError) as e:
            self._logger.rejected(self._name, e)
            return failure(str(e))
        except Exception as e:
            self._logger.failed(self._name, e)
            return failure(self._failure_message)

    async def _execute_impl(self, **kwargs: Any) -> dict[str, Any]:
        """
        Override in subclass to implement tool logic.

        Raises:
            NotImplementedError: If subclass doesn't implement this method
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement _execute_impl"
        )
