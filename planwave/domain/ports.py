"""Domain ports for the collaborators the engine consumes but does not own."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from planwave.domain.models import PlanStep
from planwave.tools.base import ToolResult, ToolSchema


class ToolCapability(Protocol):
    """A callable capability a plan step can name."""

    @property
    def name(self) -> str:
        ...

    @property
    def parameter_schema(self) -> ToolSchema:
        ...

    async def invoke(self, params: Dict[str, Any]) -> ToolResult:
        ...


class ToolLookupPort(Protocol):
    """Port for resolving a tool name to a capability."""

    def lookup(self, tool_name: str) -> Optional[ToolCapability]:
        ...


class PlanCancellationPort(Protocol):
    """Port for the cancellation signal of one in-flight execution."""

    async def is_cancelled(self) -> bool:
        ...


# (step_index, total_steps, tool_name); may be sync or async
ProgressCallback = Callable[[int, int, str], Union[None, Awaitable[None]]]

# Domain-specific constraint checked by the validator: (step) -> errors
DomainRule = Callable[[PlanStep], List[str]]
