"""
Engine context.

One EngineContext is built per process at startup. It owns the tool registry
and the domain rules and hands out validators, executors and caches wired to
them. There is no module-level registry; pass the context (or the objects it
builds) to whatever needs them.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Optional

import structlog

from planwave.core.config import ExecutorConfig, Settings, settings as default_settings
from planwave.domain.ports import DomainRule
from planwave.execution.scheduler import PlanExecutor
from planwave.execution.step_cache import StepResultCache
from planwave.tools.base import BaseTool
from planwave.tools.registry import ToolFactory, ToolRegistry
from planwave.validation.plan_validator import PlanValidator

logger = structlog.get_logger(__name__)


@dataclass
class EngineContext:
    """Per-process bundle of settings, tool registry and validation rules."""
    settings: Settings
    registry: ToolRegistry
    rules: List[DomainRule] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        tools: Iterable[BaseTool] = (),
        tool_factories: Optional[Mapping[str, ToolFactory]] = None,
        rules: Iterable[DomainRule] = (),
    ) -> "EngineContext":
        """
        Build the context and its registry.

        Args:
            settings: Settings to derive executor defaults from
            tools: Tool instances to register
            tool_factories: Explicit tool name -> factory map
            rules: Domain rules every validator will apply
        """
        registry = ToolRegistry.from_factories(tool_factories or {})
        for tool in tools:
            registry.register(tool)

        context = cls(
            settings=settings or default_settings,
            registry=registry,
            rules=list(rules),
        )
        logger.info(
            "Engine context created",
            app_env=context.settings.APP_ENV,
            tool_count=len(registry.tool_names()),
            rule_count=len(context.rules),
        )
        return context

    def validator(self) -> PlanValidator:
        return PlanValidator(self.registry, rules=self.rules)

    def executor_config(self, **overrides: Any) -> ExecutorConfig:
        return replace(ExecutorConfig.from_settings(self.settings), **overrides)

    def executor(self, **overrides: Any) -> PlanExecutor:
        """Build an executor; keyword overrides replace ExecutorConfig fields."""
        return PlanExecutor(
            self.registry,
            config=self.executor_config(**overrides),
            validator=self.validator(),
        )

    def new_cache(self) -> StepResultCache:
        return StepResultCache()
