"""
planwave - declarative multi-step plan execution.

Runs plans of tool-invoking steps in dependency waves with bounded
concurrency, per-step timeouts and retries, cascading failure and
cancellation. Steps pass data with ``${step[N].path}`` references.

Example:
    from planwave import EngineContext, Plan

    context = EngineContext.create(tool_factories={"facilities_list": FacilitiesListTool})
    plan = Plan.from_dict({
        "steps": [
            {"tool": "facilities_list", "params": {"type": "sorting"}},
            {
                "tool": "contaminants_list",
                "params": {"facility_id": "${step[0].data[0].id}"},
                "depends_on": [0],
            },
        ]
    })
    report = await context.executor().run(plan)
"""

from planwave.context import EngineContext
from planwave.core.config import ExecutorConfig, Settings, settings
from planwave.core.exceptions import (
    ConfigurationError,
    DependencyFailedError,
    ExecutionCancelledError,
    IndexOutOfBoundsError,
    PathNotFoundError,
    PlanValidationException,
    PlanwaveException,
    ReferenceNotFoundError,
    ReferenceResolutionError,
    ReferenceSyntaxError,
    RetryableToolError,
    StepCacheError,
    StepCacheWriteError,
    StepFailedReferenceError,
    StepTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
    WildcardTypeError,
)
from planwave.core.logging import configure_logging
from planwave.domain.models import (
    CachedStepResult,
    ExecutionReport,
    ExecutionStatus,
    FailureReason,
    Plan,
    PlanStep,
    StepOutcome,
    ValidationResult,
)
from planwave.execution.cancellation import CancellationToken
from planwave.execution.scheduler import PlanExecutor
from planwave.execution.step_cache import StepResultCache
from planwave.references.resolver import resolve, validate_references
from planwave.tools.base import BaseTool, FunctionTool, ParameterDefinition, ToolResult, ToolSchema
from planwave.tools.registry import ToolRegistry
from planwave.validation.plan_validator import PlanValidator
from planwave.validation.rules import mutually_exclusive_params, parameter_schema_rule

__version__ = "0.1.0"

__all__ = [
    # Context
    "EngineContext",
    # Config
    "ExecutorConfig",
    "Settings",
    "settings",
    "configure_logging",
    # Models
    "Plan",
    "PlanStep",
    "CachedStepResult",
    "StepOutcome",
    "FailureReason",
    "ExecutionStatus",
    "ExecutionReport",
    "ValidationResult",
    # Engine
    "PlanExecutor",
    "PlanValidator",
    "StepResultCache",
    "CancellationToken",
    "resolve",
    "validate_references",
    "mutually_exclusive_params",
    "parameter_schema_rule",
    # Tools
    "BaseTool",
    "FunctionTool",
    "ParameterDefinition",
    "ToolResult",
    "ToolSchema",
    "ToolRegistry",
    # Exceptions
    "PlanwaveException",
    "ConfigurationError",
    "ValidationError",
    "PlanValidationException",
    "ReferenceResolutionError",
    "ReferenceSyntaxError",
    "ReferenceNotFoundError",
    "StepFailedReferenceError",
    "PathNotFoundError",
    "IndexOutOfBoundsError",
    "WildcardTypeError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "RetryableToolError",
    "StepTimeoutError",
    "DependencyFailedError",
    "ExecutionCancelledError",
    "StepCacheError",
    "StepCacheWriteError",
]
