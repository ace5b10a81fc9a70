"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import pytest

from planwave.core.config import ExecutorConfig
from planwave.domain.models import CachedStepResult, FailureReason
from planwave.execution.step_cache import StepResultCache
from planwave.tools.base import BaseTool, ToolResult, ToolSchema
from planwave.tools.registry import ToolRegistry


@pytest.fixture(autouse=True)
def configure_structlog():
    """Configure structlog for testing."""
    import structlog

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class StubTool(BaseTool):
    """Tool whose behaviour is driven by an AsyncMock.

    ``delay`` sleeps before every call so tests can observe concurrency.
    """

    def __init__(
        self,
        name: str,
        result: Optional[ToolResult] = None,
        side_effect: Any = None,
        schema: Optional[ToolSchema] = None,
        delay: float = 0.0,
    ):
        self._name = name
        self._schema = schema or ToolSchema()
        self.delay = delay
        self.mock = AsyncMock(
            return_value=result if result is not None else ToolResult(success=True, data=None),
            side_effect=side_effect,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Stub tool {self._name}"

    @property
    def parameter_schema(self) -> ToolSchema:
        return self._schema

    async def invoke(self, params: Dict[str, Any]) -> ToolResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        return await self.mock(params)


@pytest.fixture
def registry():
    """Fresh, empty tool registry."""
    return ToolRegistry()


@pytest.fixture
def make_tool(registry):
    """Create a StubTool and register it.

    Pass ``data`` as a shortcut for a successful ToolResult carrying it.
    """
    def _make(name, data=None, result=None, side_effect=None, schema=None, delay=0.0):
        if result is None and data is not None:
            result = ToolResult(success=True, data=data)
        tool = StubTool(name, result=result, side_effect=side_effect, schema=schema, delay=delay)
        registry.register(tool)
        return tool

    return _make


@pytest.fixture
def fast_config():
    """Executor config with no backoff waits and a short timeout."""
    return ExecutorConfig(
        max_parallel_steps=5,
        step_timeout_seconds=1.0,
        max_attempts=3,
        retry_backoff_seconds=0.0,
        retry_max_backoff_seconds=0.0,
    )


@pytest.fixture
def cache():
    return StepResultCache()


@pytest.fixture
def seed(cache):
    """Write a cached result for a step index and return the cache."""
    def _seed(step_index, data=None, success=True, error=None, tool="seed_tool"):
        if success:
            result = CachedStepResult.succeeded(step_index, tool, data, params={})
        else:
            result = CachedStepResult.failed(
                step_index,
                tool,
                error,
                FailureReason.TOOL_ERROR,
                "ToolExecutionError",
            )
        cache.set(step_index, result)
        return cache

    return _seed
