"""Registry for plan tools.

Tools are registered explicitly, typically once at process startup from a
map of tool name to factory. Nothing is discovered by scanning modules.

The registry implements the executor's and validator's tool lookup port, and
checks step params against a tool's advertised ToolSchema.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from planwave.core.exceptions import ConfigurationError
from planwave.references.parser import contains_reference
from planwave.tools.base import BaseTool, FunctionTool, ToolSchema

logger = structlog.get_logger(__name__)

ToolFactory = Callable[[], BaseTool]

_TYPE_MAP = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


class ToolRegistry:
    """Explicit registry of plan tools.

    Example:
        registry = ToolRegistry.from_factories({
            "facilities_list": lambda: FacilitiesListTool(client),
            "contaminants_list": lambda: ContaminantsListTool(client),
        })

        @registry.tool("echo")
        async def echo(params):
            return params

        capability = registry.lookup("echo")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> BaseTool:
        """Register a tool in the registry.

        Raises:
            ConfigurationError: If a tool with the same name is already registered
        """
        if not tool.name:
            raise ConfigurationError("Tool name must be non-empty")
        if tool.name in self._tools:
            raise ConfigurationError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)
        return tool

    def register_factory(self, name: str, factory: ToolFactory) -> BaseTool:
        tool = factory()
        if tool.name != name:
            raise ConfigurationError(
                f"Factory registered as '{name}' built a tool named '{tool.name}'"
            )
        return self.register(tool)

    def tool(
        self,
        name: str,
        description: str = "",
        schema: Optional[ToolSchema] = None,
    ):
        """Decorator registering an async function as a tool."""
        def deco(fn):
            self.register(FunctionTool(name, fn, description=description, schema=schema))
            return fn
        return deco

    def unregister(self, tool_name: str) -> None:
        if tool_name in self._tools:
            del self._tools[tool_name]
            logger.debug("Tool unregistered", tool_name=tool_name)

    def lookup(self, tool_name: str) -> Optional[BaseTool]:
        """Get a tool instance by name, or None if not found."""
        return self._tools.get(tool_name)

    def has_tool(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def tool_names(self) -> List[str]:
        return sorted(self._tools)

    def get_all_schemas(self) -> Dict[str, ToolSchema]:
        return {name: tool.parameter_schema for name, tool in sorted(self._tools.items())}

    def validate_parameters(self, tool_name: str, params: Mapping[str, Any]) -> List[str]:
        """
        Check params against the tool's parameter schema.

        Checks:
        - Required parameters are present
        - Types, enum values and numeric ranges

        Values holding a reference expression are only known at run time and
        are skipped.

        Returns:
            List of error messages, empty when params conform
        """
        tool = self.lookup(tool_name)
        if tool is None:
            return [f"Tool not found: {tool_name}"]

        schema = tool.parameter_schema
        errors: List[str] = []

        for required in schema.required_parameters:
            if required not in params:
                errors.append(f"Missing required parameter: {required}")

        for param in schema.parameters:
            if param.name not in params:
                continue
            value = params[param.name]
            if contains_reference(value):
                continue

            expected = _TYPE_MAP.get(param.type)
            # bool is an int subclass; it is never a valid number
            if expected and (
                not isinstance(value, expected)
                or (isinstance(value, bool) and param.type != "boolean")
            ):
                errors.append(
                    f"Parameter {param.name} must be of type {param.type}, got {type(value).__name__}"
                )
                continue

            if param.enum and value not in param.enum:
                errors.append(
                    f"Parameter {param.name} must be one of: {', '.join(str(v) for v in param.enum)}"
                )

            if isinstance(value, (int, float)) and not isinstance(value, bool):
                if param.min is not None and value < param.min:
                    errors.append(f"Parameter {param.name} must be >= {param.min:g}")
                if param.max is not None and value > param.max:
                    errors.append(f"Parameter {param.name} must be <= {param.max:g}")

        return errors

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_tools": len(self._tools),
            "tool_names": self.tool_names(),
        }

    @classmethod
    def from_factories(cls, factories: Mapping[str, ToolFactory]) -> "ToolRegistry":
        """Build a registry from an explicit name -> factory map."""
        registry = cls()
        for name, factory in factories.items():
            registry.register_factory(name, factory)
        logger.info("Tool registry initialized", tool_count=len(registry._tools))
        return registry
