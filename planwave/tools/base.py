"""Base class for plan tools.

Tools are the capabilities a plan step names. The engine never interprets
what a tool does: it resolves the step's params, calls ``invoke`` and caches
the ToolResult. Concrete domain tools live outside this package and are
registered explicitly in a ToolRegistry at startup.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field


class ParameterDefinition(BaseModel):
    """Schema for a tool parameter."""
    name: str
    type: str = "any"  # "string", "number", "boolean", "object", "array", "any"
    description: str = ""
    required: bool = False
    enum: Optional[List[Any]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    default: Any = None


class ToolSchema(BaseModel):
    """Parameter schema advertised by a tool."""
    parameters: List[ParameterDefinition] = Field(default_factory=list)
    returns: str = ""

    @property
    def required_parameters(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def get(self, name: str) -> Optional[ParameterDefinition]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None


class ToolResult(BaseModel):
    """Result from tool execution.

    ``retryable`` marks a failure as transient so the executor may try again.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    retryable: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BaseTool(ABC):
    """Abstract base class for plan tools.

    Each tool must implement:
    - name: Unique identifier for the tool
    - description: What the tool does
    - invoke(): Run the tool with already-resolved params

    Example:
        class FacilitiesListTool(BaseTool):
            @property
            def name(self) -> str:
                return "facilities_list"

            @property
            def description(self) -> str:
                return "List facilities, optionally filtered by type"

            @property
            def parameter_schema(self) -> ToolSchema:
                return ToolSchema(parameters=[
                    ParameterDefinition(name="type", type="string",
                                        enum=["sorting", "processing", "disposal"]),
                ])

            async def invoke(self, params: Dict[str, Any]) -> ToolResult:
                facilities = await self._client.list_facilities(**params)
                return ToolResult(success=True, data=facilities)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool identifier."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this tool does."""
        pass

    @property
    def parameter_schema(self) -> ToolSchema:
        """Parameter schema used by validation rules. Empty by default."""
        return ToolSchema()

    @abstractmethod
    async def invoke(self, params: Dict[str, Any]) -> ToolResult:
        """Execute the tool with resolved params.

        Args:
            params: Step params with every reference expression already resolved

        Returns:
            ToolResult with success status and data or error
        """
        pass


class FunctionTool(BaseTool):
    """Adapts a plain async function into a tool.

    The function receives the resolved params. A returned ToolResult is
    passed through; any other value becomes successful ``data``. Exceptions
    propagate to the executor, which decides whether to retry.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[Dict[str, Any]], Awaitable[Any]],
        description: str = "",
        schema: Optional[ToolSchema] = None,
    ):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Tool '{name}' must wrap an async function")
        self._name = name
        self._func = func
        self._description = description or (func.__doc__ or "").strip()
        self._schema = schema or ToolSchema()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameter_schema(self) -> ToolSchema:
        return self._schema

    async def invoke(self, params: Dict[str, Any]) -> ToolResult:
        output = await self._func(params)
        if isinstance(output, ToolResult):
            return output
        return ToolResult(success=True, data=output)
