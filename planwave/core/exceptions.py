"""
Core exceptions for planwave.

Validation errors are raised before a plan runs. Every other error kind is
recorded against a single step (its class name lands in
``CachedStepResult.error_type``) and never halts sibling steps.
"""

from typing import List, Optional


class PlanwaveException(Exception):
    """Base exception for all planwave errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(PlanwaveException):
    """Invalid executor or engine configuration"""
    pass


# Plan validation
class ValidationError(PlanwaveException):
    """Validation error"""
    pass


class PlanValidationException(ValidationError):
    """Raised when a plan is rejected before execution."""

    def __init__(self, message: str, errors: List[str]):
        self.errors = list(errors)
        super().__init__(message)

    def __str__(self) -> str:
        error_summary = "; ".join(self.errors[:3])
        if len(self.errors) > 3:
            error_summary += f" (+{len(self.errors) - 3} more)"
        return f"{self.message}: {error_summary}" if error_summary else self.message


# Reference resolution
class ReferenceResolutionError(PlanwaveException):
    """A reference expression could not be evaluated"""
    pass


class ReferenceSyntaxError(ReferenceResolutionError):
    """Malformed ${step[N].path} expression"""

    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        super().__init__(message)


class ReferenceNotFoundError(ReferenceResolutionError):
    """Referenced step has no cache entry"""

    def __init__(self, step_index: int, available: List[int]):
        self.step_index = step_index
        self.available = list(available)
        listing = ", ".join(str(i) for i in self.available) or "none"
        super().__init__(f"Step {step_index} not found in cache. Available steps: {listing}")


class StepFailedReferenceError(ReferenceResolutionError):
    """Referenced step exists but did not succeed"""

    def __init__(self, step_index: int, error: Optional[str]):
        self.step_index = step_index
        self.error = error
        super().__init__(f"Step {step_index} failed: {error or 'Unknown error'}")


class PathNotFoundError(ReferenceResolutionError):
    """Field access on a value that has no such member"""

    def __init__(self, path: str, token: str):
        self.path = path
        self.token = token
        super().__init__(f"Path not found: {path} at field '{token}'")


class IndexOutOfBoundsError(ReferenceResolutionError):
    """Index access on a non-array or outside the array"""

    def __init__(self, path: str, index: int, length: Optional[int] = None):
        self.path = path
        self.index = index
        self.length = length
        if length is None:
            message = f"Trying to index non-array with [{index}] at path: {path}"
        else:
            message = (
                f"Array index {index} out of bounds (array length: {length}) at path: {path}"
            )
        super().__init__(message)


class WildcardTypeError(ReferenceResolutionError):
    """Wildcard broadcast over a non-array"""

    def __init__(self, path: str, actual_type: str):
        self.path = path
        self.actual_type = actual_type
        super().__init__(f"Wildcard used on non-array ({actual_type}) at path: {path}")


# Tool execution
class ToolExecutionError(PlanwaveException):
    """Tool invocation failed"""
    pass


class ToolNotFoundError(ToolExecutionError):
    """Capability lookup returned nothing"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class RetryableToolError(ToolExecutionError):
    """Transient tool failure, eligible for another attempt"""
    pass


class StepTimeoutError(PlanwaveException):
    """A single tool attempt exceeded the per-step timeout"""

    def __init__(self, tool_name: str, timeout_seconds: float):
        self.tool_name = tool_name
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timeout: {tool_name} did not finish within {timeout_seconds}s")


class DependencyFailedError(PlanwaveException):
    """An ancestor step failed, so this step was never dispatched"""

    def __init__(self, step_index: int, failed_step: int, failed_tool: str):
        self.step_index = step_index
        self.failed_step = failed_step
        self.failed_tool = failed_tool
        super().__init__(
            f"Dependency failed: step {failed_step} ({failed_tool}) did not succeed"
        )


class ExecutionCancelledError(PlanwaveException):
    """Step belonged to a wave that was never dispatched"""
    pass


# Cache
class StepCacheError(PlanwaveException):
    """Step result cache misuse"""
    pass


class StepCacheWriteError(StepCacheError):
    """A cache entry was written twice. Indicates a scheduler bug."""

    def __init__(self, step_index: int):
        self.step_index = step_index
        super().__init__(f"Step {step_index} already has a cached result")
