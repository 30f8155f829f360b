"""Central registry for managing tool instances."""

from __future__ import annotations

from typing import Any

from plaidsync.tools.protocol import Tool


class ToolRegistry:
    """
    Registry for managing tool instances.

    Example:
        registry = ToolRegistry()
        registry.register(SyncTransactionsTool(context))

        result = await registry.execute_async("sync-transactions", user_id="u1")
        names = registry.names()
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool with name '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """Retrieve tool by name, or None."""
        return self._tools.get(name)

    def all(self) -> list[Tool]:
        """Get all registered tools in registration order."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    async def execute_async(self, name: str, **kwargs: Any) -> dict[str, Any]:
        """
        Execute a tool by name.

        Returns:
            Tool response envelope; an unknown name yields a failure envelope
        """
        tool = self.get(name)
        if tool is None:
            return {"success": False, "error": f"Tool '{name}' not found"}
        return await tool.execute_async(**kwargs)

    def __len__(self) -> int:
        """Return number of registered tools."""
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Check if tool is registered."""
        return name in self._tools
