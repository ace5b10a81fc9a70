"""Tool capability base classes and the explicit tool registry."""

from planwave.tools.base import (
    BaseTool,
    FunctionTool,
    ParameterDefinition,
    ToolResult,
    ToolSchema,
)
from planwave.tools.registry import ToolRegistry

__all__ = [
    "BaseTool",
    "FunctionTool",
    "ParameterDefinition",
    "ToolResult",
    "ToolSchema",
    "ToolRegistry",
]
