from __future__ import annotations

from typing import Any

import structlog

from codex_gateway.tools.base import BaseTool, ToolName

logger = structlog.get_logger()


class ToolRegistry:
    """Static catalog of gateway tools, in registration order.

    Populated once at startup and then sealed; tools/list and the scope
    check in tools/call both read from here.
    """

    def __init__(self) -> None:
        self._tools: dict[ToolName, BaseTool] = {}
        self._sealed = False
        self._descriptors: list[dict[str, Any]] | None = None

    def register(self, tool: BaseTool) -> None:
        """Register a tool. Raises ValueError if name already registered or sealed."""
        if self._sealed:
            raise ValueError(f"Registry is sealed; cannot register {tool.name}")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[ToolName(tool.name)] = tool
        logger.info("tool_registered", tool_name=str(tool.name), scopes=list(tool.required_scopes))

    def seal(self) -> None:
        """Freeze the registry. Raises ValueError if any ToolName has no implementation."""
        missing = [name for name in ToolName if name not in self._tools]
        if missing:
            raise ValueError(f"Tools not registered: {', '.join(missing)}")
        self._descriptors = [tool.descriptor() for tool in self._tools.values()]
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name. Returns None if not found."""
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def list_tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def descriptors(self) -> list[dict[str, Any]]:
        """Wire descriptors for tools/list, in registration order. Built once on seal."""
        if self._descriptors is not None:
            return self._descriptors
        return [tool.descriptor() for tool in self._tools.values()]
