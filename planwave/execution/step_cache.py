"""
Write-once cache of step results for one plan execution.

The executor writes each step's result exactly once, after the step reaches a
terminal outcome. Reference resolution reads it. Entries are never replaced:
a second write to the same index raises StepCacheWriteError, since it can only
come from a scheduling bug.
"""

import copy
import dataclasses
from typing import Dict, List, Optional

import structlog

from planwave.core.exceptions import StepCacheError, StepCacheWriteError
from planwave.domain.models import CachedStepResult

logger = structlog.get_logger(__name__)


class StepResultCache:
    """In-memory step index -> CachedStepResult store."""

    def __init__(self):
        self._results: Dict[int, CachedStepResult] = {}

    def set(self, step_index: int, result: CachedStepResult) -> None:
        """
        Store the result of a step.

        The data is deep-copied so later changes to the tool's return value
        cannot leak into the cache.

        Raises:
            StepCacheWriteError: If the step already has a cached result
        """
        if step_index in self._results:
            raise StepCacheWriteError(step_index)
        if result.step_index != step_index:
            raise StepCacheError(
                f"Result for step {result.step_index} written under index {step_index}"
            )

        self._results[step_index] = dataclasses.replace(result, data=copy.deepcopy(result.data))
        logger.debug(
            "Step result cached",
            step_index=step_index,
            tool=result.tool,
            success=result.success,
        )

    def get(self, step_index: int) -> Optional[CachedStepResult]:
        return self._results.get(step_index)

    def has(self, step_index: int) -> bool:
        return step_index in self._results

    def get_available_steps(self) -> List[int]:
        """Indices of cached steps, ascending."""
        return sorted(self._results)

    def get_all_results(self) -> List[CachedStepResult]:
        """All cached results ordered by step index."""
        return [self._results[i] for i in sorted(self._results)]

    def delete(self, step_index: int) -> bool:
        """Drop a single entry. Only meant for re-planning, never during a run."""
        return self._results.pop(step_index, None) is not None

    def clear(self) -> None:
        self._results.clear()

    def size(self) -> int:
        return len(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, step_index: object) -> bool:
        return step_index in self._results
