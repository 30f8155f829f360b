"""Tool protocol shared by the MCP server, the CLI and tests."""

from __future__ import annotations

from typing import Any, Protocol, TypedDict, runtime_checkable


class ToolParameter(TypedDict, total=False):
    """JSON Schema for a single parameter."""

    type: str
    description: str
    enum: list[str]
    items: dict[str, Any]
    minimum: int
    maximum: int
    default: Any


class ToolInputSchema(TypedDict):
    """JSON Schema for tool input parameters."""

    type: str  # Always "object"
    properties: dict[str, ToolParameter]
    required: list[str]


@runtime_checkable
class Tool(Protocol):
    """
    Protocol for Plaid operations exposed to an agent host.

    Tool names are the MCP tool names (lowercase-with-dashes). Results are
    JSON-serializable envelopes: {"success": True, ...} or
    {"success": False, "error": "..."}.
    """

    @property
    def name(self) -> str:
        """Unique tool identifier (e.g., 'sync-transactions')."""
        ...

    @property
    def description(self) -> str:
        """Human-readable tool description for LLM context."""
        ...

    @property
    def input_schema(self) -> ToolInputSchema:
        """JSON Schema defining tool parameters."""
        ...

    async def execute_async(self, **kwargs: Any) -> dict[str, Any]:
        """Execute the tool and return its response envelope."""
        ...
