"""
Tool ABC + ToolRegistry + JSON schema generation.
The agent runtime reaches the container engine only through registered tools.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from clawbox.utils.logger import get_logger

log = get_logger("tools.registry")

AuditFn = Callable[[str, dict, str, str], None]


class Tool(ABC):
    """Base class for all clawbox tools."""
    name: str = ""
    description: str = ""
    # JSON Schema for parameters
    parameters: dict = {}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> dict:
        """Execute the tool. Returns a dict; failures carry an 'error' key."""

    def to_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all_names(self) -> list[str]:
        return list(self._tools.keys())

    def schemas(self) -> list[dict]:
        """OpenAI-format tool schemas for every registered tool."""
        return [t.to_schema() for t in self._tools.values()]

    async def execute(self, name: str, kwargs: dict,
                      audit_fn: AuditFn | None = None) -> dict:
        """Look up, audit, execute. Missing required arguments come back as errors."""
        tool = self._tools.get(name)
        if not tool:
            return {"error": f"Tool '{name}' not found"}

        missing = [p for p in tool.parameters.get("required", []) if p not in kwargs]
        if missing:
            if audit_fn:
                audit_fn(name, kwargs, "denied", f"missing {missing}")
            return {"error": f"Tool '{name}' missing required arguments: {', '.join(missing)}"}

        if audit_fn:
            audit_fn(name, kwargs, "allowed", "")

        try:
            result = await tool.execute(**kwargs)
        except Exception as exc:
            log.exception("Tool %s raised", name)
            if audit_fn:
                audit_fn(name, kwargs, "error", str(exc))
            return {"error": str(exc)}

        if audit_fn and "error" in result:
            audit_fn(name, kwargs, "error", result["error"])
        return result


# ── Module-level singleton ─────────────────────────────────────────────────
_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
        _load_builtins(_registry)
    return _registry


def _load_builtins(reg: ToolRegistry) -> None:
    from clawbox.tools.builtins.container_exec import ContainerExecTool

    for tool in [ContainerExecTool()]:
        reg.register(tool)
    log.debug("Registered builtin tools: %s", reg.all_names())
