"""
Plan and Result Data Models

Key concepts:
- Plan: ordered list of steps; a step's index is its position in the list
- PlanStep: one tool invocation, its params and the earlier steps it depends on
- CachedStepResult: immutable outcome of one step, written once to the cache
- ValidationResult: every problem found in a plan, not just the first
- ExecutionReport: ordered step results plus derived status and timing

Plan wire format:
{
    "query": "Show contaminants at the first sorting facility",
    "steps": [
        {"tool": "facilities_list", "params": {"type": "sorting"}},
        {
            "tool": "contaminants_list",
            "params": {"facility_id": "${step[0].data[0].id}"},
            "depends_on": [0]
        }
    ]
}
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return _utcnow()


class StepOutcome(Enum):
    """Terminal outcome of a step"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"                        # Resolution or tool failure
    DEPENDENCY_FAILED = "dependency_failed"  # Ancestor failed, never dispatched
    CANCELLED = "cancelled"                  # Wave never dispatched


class FailureReason(Enum):
    """Why a step did not succeed"""
    RESOLUTION_ERROR = "reference resolution failed"
    TOOL_ERROR = "tool execution failed"
    DEPENDENCY_FAILED = "dependency failed"
    CANCELLED = "cancelled"


class ExecutionStatus(Enum):
    """Overall status derived from the step results"""
    COMPLETED = "completed"  # Every step succeeded
    FAILED = "failed"        # At least one step did not succeed
    CANCELLED = "cancelled"  # Cancellation signal stopped dispatch


@dataclass
class PlanStep:
    """
    Single step in an execution plan.

    ``parallel`` is advisory only; ordering is controlled by ``depends_on``.
    """
    tool: str
    params: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[int] = field(default_factory=list)
    parallel: bool = False

    @property
    def dependencies(self) -> List[int]:
        """Integer entries of depends_on; empty when depends_on is not a list."""
        if not isinstance(self.depends_on, (list, tuple)):
            return []
        return [
            dep for dep in self.depends_on
            if isinstance(dep, int) and not isinstance(dep, bool)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "params": self.params,
            "depends_on": self.depends_on,
            "parallel": self.parallel,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanStep":
        if not isinstance(data, dict):
            raise ValueError(f"Plan step must be an object, got {type(data).__name__}")
        depends_on = data.get("depends_on")
        if depends_on is None:
            depends_on = []
        elif isinstance(depends_on, (list, tuple)):
            depends_on = list(depends_on)
        # Anything else is kept as given so validation can report it
        return cls(
            tool=data.get("tool", ""),
            params=data.get("params") or {},
            depends_on=depends_on,
            parallel=bool(data.get("parallel", False)),
        )


@dataclass
class Plan:
    """Ordered sequence of steps plus metadata about where it came from."""
    steps: List[PlanStep] = field(default_factory=list)
    query: str = ""
    id: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    estimated_duration_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Generate ID if not provided"""
        if not self.id:
            self.id = f"plan_{str(uuid.uuid4())[:8]}"

    def __len__(self) -> int:
        return len(self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "created_at": self.created_at.isoformat(),
            "estimated_duration_ms": self.estimated_duration_ms,
            "metadata": self.metadata,
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        if not isinstance(data, dict):
            raise ValueError(f"Plan must be an object, got {type(data).__name__}")
        steps = data.get("steps") or []
        if not isinstance(steps, list):
            raise ValueError("Plan 'steps' must be a list")
        return cls(
            steps=[PlanStep.from_dict(step) for step in steps],
            query=data.get("query", ""),
            id=data.get("id", ""),
            created_at=_parse_timestamp(data.get("created_at")),
            estimated_duration_ms=data.get("estimated_duration_ms"),
            metadata=data.get("metadata") or {},
        )

    @classmethod
    def from_json(cls, text: str) -> "Plan":
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class CachedStepResult:
    """
    Outcome of one executed (or skipped) step.

    Instances are frozen: once written to the StepResultCache an entry is
    never mutated.
    """
    step_index: int
    tool: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)
    outcome: StepOutcome = StepOutcome.SUCCEEDED
    reason: Optional[FailureReason] = None
    error_type: Optional[str] = None
    attempts: int = 0
    duration_ms: Optional[int] = None

    @classmethod
    def succeeded(
        cls,
        step_index: int,
        tool: str,
        data: Any,
        params: Dict[str, Any],
        attempts: int = 1,
        duration_ms: Optional[int] = None,
    ) -> "CachedStepResult":
        return cls(
            step_index=step_index,
            tool=tool,
            success=True,
            data=data,
            params=params,
            outcome=StepOutcome.SUCCEEDED,
            attempts=attempts,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(
        cls,
        step_index: int,
        tool: str,
        error: str,
        reason: FailureReason,
        error_type: str,
        params: Optional[Dict[str, Any]] = None,
        attempts: int = 0,
        duration_ms: Optional[int] = None,
    ) -> "CachedStepResult":
        outcome = {
            FailureReason.DEPENDENCY_FAILED: StepOutcome.DEPENDENCY_FAILED,
            FailureReason.CANCELLED: StepOutcome.CANCELLED,
        }.get(reason, StepOutcome.FAILED)
        return cls(
            step_index=step_index,
            tool=tool,
            success=False,
            error=error,
            params=params or {},
            outcome=outcome,
            reason=reason,
            error_type=error_type,
            attempts=attempts,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_index": self.step_index,
            "tool": self.tool,
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "params": self.params,
            "timestamp": self.timestamp.isoformat(),
            "outcome": self.outcome.value,
            "reason": self.reason.value if self.reason else None,
            "error_type": self.error_type,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ValidationResult:
    """Result of plan validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str], warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors), warnings=list(warnings or []))

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.from_errors(
            self.errors + other.errors, self.warnings + other.warnings
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "error_count": self.error_count,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def to_feedback(self) -> str:
        """
        Format errors as corrective feedback for regenerating a plan.

        Plan generation is external; this gives it an actionable list of
        what to fix.
        """
        if self.valid:
            return "Plan validation passed."

        lines = ["PLAN VALIDATION FAILED - Please fix the following errors:", ""]
        for i, error in enumerate(self.errors, 1):
            lines.append(f"{i}. {error}")
        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"- {warning}" for warning in self.warnings)
        lines.append("")
        lines.append("Steps may only depend on and reference earlier steps, e.g. ${step[0].data[0].id}")
        return "\n".join(lines)


@dataclass
class ExecutionReport:
    """Ordered step results of one plan execution plus derived aggregates."""
    plan_id: str
    results: List[CachedStepResult]
    started_at: datetime
    finished_at: datetime
    cancelled: bool = False

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def cancelled_count(self) -> int:
        return sum(1 for r in self.results if r.outcome == StepOutcome.CANCELLED)

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def status(self) -> ExecutionStatus:
        if self.cancelled:
            return ExecutionStatus.CANCELLED
        if self.failed_count:
            return ExecutionStatus.FAILED
        return ExecutionStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "status": self.status.value,
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "cancelled": self.cancelled_count,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
        }
