"""
Plan Executor

Runs a validated plan wave by wave.

Execution flow:
1. Snapshot and validate the plan; an invalid plan raises before any step runs
2. Group steps into dependency waves
3. Per wave: poll cancellation, then dispatch every step in plan order under a
   semaphore bounding concurrency; the wave is a join point
4. Per step: skip if an ancestor failed, resolve references, look up the tool,
   invoke it with per-attempt timeout and retries, write the cache once,
   report progress
5. Return one result per step, in plan order

Failures are recorded per step and never abort sibling steps. Only an invalid
plan or a cache write collision raises out of ``execute``.
"""

import asyncio
import copy
import dataclasses
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from planwave.core.config import ExecutorConfig
from planwave.core.exceptions import (
    DependencyFailedError,
    ExecutionCancelledError,
    PlanValidationException,
    RetryableToolError,
    StepTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
)
from planwave.domain.models import (
    CachedStepResult,
    ExecutionReport,
    FailureReason,
    Plan,
    PlanStep,
    StepOutcome,
)
from planwave.domain.ports import (
    PlanCancellationPort,
    ProgressCallback,
    ToolCapability,
    ToolLookupPort,
)
from planwave.execution.step_cache import StepResultCache
from planwave.execution.waves import ancestors, build_waves
from planwave.references.resolver import resolve
from planwave.tools.base import ToolResult
from planwave.validation.plan_validator import PlanValidator

logger = structlog.get_logger(__name__)


class PlanExecutor:
    """
    Executes plans against a tool lookup.

    Example:
        executor = PlanExecutor(registry, ExecutorConfig(max_parallel_steps=2))
        results = await executor.execute(plan, progress_callback=on_progress)
        succeeded = sum(1 for r in results if r.success)
    """

    def __init__(
        self,
        tool_lookup: ToolLookupPort,
        config: Optional[ExecutorConfig] = None,
        validator: Optional[PlanValidator] = None,
    ):
        self._tool_lookup = tool_lookup
        self._config = config or ExecutorConfig.from_settings()
        self._validator = validator or PlanValidator(tool_lookup)

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    async def execute(
        self,
        plan: Plan,
        progress_callback: Optional[ProgressCallback] = None,
        cancellation: Optional[PlanCancellationPort] = None,
        cache: Optional[StepResultCache] = None,
    ) -> List[CachedStepResult]:
        """
        Execute a plan and return one result per step, in plan order.

        Args:
            plan: Plan to execute; its steps are snapshotted before validation
            progress_callback: Called with (step_index, total_steps, tool_name)
                after each step's result is cached; may be sync or async
            cancellation: Polled at every wave boundary
            cache: Cache to write results into; a fresh one is used if omitted

        Raises:
            PlanValidationException: If the plan fails validation
            StepCacheWriteError: If a step result is written twice
        """
        results, _ = await self._execute(plan, progress_callback, cancellation, cache)
        return results

    async def run(
        self,
        plan: Plan,
        progress_callback: Optional[ProgressCallback] = None,
        cancellation: Optional[PlanCancellationPort] = None,
        cache: Optional[StepResultCache] = None,
    ) -> ExecutionReport:
        """Execute a plan and wrap the results with status and timing."""
        started_at = datetime.now(timezone.utc)
        results, cancelled = await self._execute(plan, progress_callback, cancellation, cache)
        report = ExecutionReport(
            plan_id=plan.id,
            results=results,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            cancelled=cancelled,
        )

        logger.info(
            "Plan execution finished",
            plan_id=plan.id,
            status=report.status.value,
            succeeded=report.succeeded_count,
            failed=report.failed_count,
            duration_ms=report.duration_ms,
        )
        return report

    async def _execute(
        self,
        plan: Plan,
        progress_callback: Optional[ProgressCallback],
        cancellation: Optional[PlanCancellationPort],
        cache: Optional[StepResultCache],
    ) -> Tuple[List[CachedStepResult], bool]:
        snapshot = dataclasses.replace(plan, steps=copy.deepcopy(plan.steps))
        log = logger.bind(plan_id=snapshot.id)

        validation = self._validator.validate(snapshot)
        if not validation.valid:
            raise PlanValidationException(
                f"Plan {snapshot.id} failed validation", validation.errors
            )

        steps = snapshot.steps
        cache = cache if cache is not None else StepResultCache()
        waves = build_waves(steps)
        semaphore = asyncio.Semaphore(self._config.max_parallel_steps)
        cancelled = False
        stop_message: Optional[str] = None

        log.info(
            "Executing plan",
            step_count=len(steps),
            wave_count=len(waves),
            max_parallel_steps=self._config.max_parallel_steps,
        )

        for wave_number, wave in enumerate(waves):
            if stop_message is None and cancellation is not None and await cancellation.is_cancelled():
                cancelled = True
                reason = getattr(cancellation, "reason", None) or "cancellation requested"
                stop_message = f"Cancelled before wave {wave_number}: {reason}"
                log.info("Execution cancelled", wave=wave_number, reason=reason)

            if stop_message is not None:
                for index in wave:
                    await self._record(
                        cache,
                        self._cancelled_result(index, steps[index], stop_message),
                        len(steps),
                        progress_callback,
                        log,
                    )
                continue

            log.debug("Dispatching wave", wave=wave_number, step_indices=wave)
            await self._run_wave(wave, steps, cache, semaphore, progress_callback, log)

            if self._config.fail_fast:
                failed = [i for i in wave if not cache.get(i).success]
                if failed:
                    first = failed[0]
                    stop_message = (
                        f"Cancelled because step {first} ({steps[first].tool}) failed "
                        f"and fail_fast is enabled"
                    )
                    log.info("Stopping after failed wave", wave=wave_number, failed_steps=failed)

        return [cache.get(i) for i in range(len(steps))], cancelled

    async def _run_wave(
        self,
        wave: Sequence[int],
        steps: Sequence[PlanStep],
        cache: StepResultCache,
        semaphore: asyncio.Semaphore,
        progress_callback: Optional[ProgressCallback],
        log,
    ) -> None:
        total = len(steps)

        async def run_with_limit(index: int) -> None:
            failed_dependency = self._failed_dependency(steps, index, cache)
            if failed_dependency is not None:
                result = self._dependency_failed_result(index, steps, failed_dependency, log)
            else:
                async with semaphore:
                    result = await self._execute_step(index, steps[index], cache, log)
            await self._record(cache, result, total, progress_callback, log)

        outcomes = await asyncio.gather(
            *(run_with_limit(index) for index in wave), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def _execute_step(
        self,
        index: int,
        step: PlanStep,
        cache: StepResultCache,
        log,
    ) -> CachedStepResult:
        """Resolve, look up and invoke one step; never raises for step failures."""
        started = time.monotonic()

        resolution = resolve(step.params, cache)
        if not resolution.success:
            log.warning(
                "Reference resolution failed",
                step_index=index,
                tool=step.tool,
                error=resolution.error,
            )
            return CachedStepResult.failed(
                index,
                step.tool,
                resolution.error,
                FailureReason.RESOLUTION_ERROR,
                resolution.error_type,
                params=step.params,
                duration_ms=_elapsed_ms(started),
            )

        params = resolution.resolved
        tool = self._tool_lookup.lookup(step.tool)
        if tool is None:
            error = ToolNotFoundError(step.tool)
            log.error("Tool not found", step_index=index, tool=step.tool)
            return CachedStepResult.failed(
                index,
                step.tool,
                error.message,
                FailureReason.TOOL_ERROR,
                type(error).__name__,
                params=params,
                duration_ms=_elapsed_ms(started),
            )

        log.debug("Executing step", step_index=index, tool=step.tool)
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(
                multiplier=self._config.retry_backoff_seconds,
                max=self._config.retry_max_backoff_seconds,
            ),
            retry=retry_if_exception_type((StepTimeoutError, RetryableToolError)),
            before_sleep=_log_retry(log, index, step.tool),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    result = await self._invoke_once(tool, params)
        except Exception as e:
            # Transient failures that outlived every attempt count as tool failures
            if isinstance(e, (StepTimeoutError, RetryableToolError)):
                error_type = ToolExecutionError.__name__
            else:
                error_type = type(e).__name__
            log.warning(
                "Step failed",
                step_index=index,
                tool=step.tool,
                attempts=attempts,
                error=str(e),
                error_type=error_type,
                last_exception=type(e).__name__,
            )
            return CachedStepResult.failed(
                index,
                step.tool,
                str(e) or type(e).__name__,
                FailureReason.TOOL_ERROR,
                error_type,
                params=params,
                attempts=attempts,
                duration_ms=_elapsed_ms(started),
            )

        if not result.success:
            log.warning(
                "Tool reported failure",
                step_index=index,
                tool=step.tool,
                attempts=attempts,
                error=result.error,
            )
            return CachedStepResult.failed(
                index,
                step.tool,
                result.error or "Tool reported failure without an error message",
                FailureReason.TOOL_ERROR,
                ToolExecutionError.__name__,
                params=params,
                attempts=attempts,
                duration_ms=_elapsed_ms(started),
            )

        try:
            data = copy.deepcopy(result.data)
        except Exception as e:
            log.warning(
                "Tool returned data that cannot be copied",
                step_index=index,
                tool=step.tool,
                data_type=type(result.data).__name__,
                error=str(e),
            )
            return CachedStepResult.failed(
                index,
                step.tool,
                f"Tool {step.tool} returned data that cannot be copied: {e}",
                FailureReason.TOOL_ERROR,
                ToolExecutionError.__name__,
                params=params,
                attempts=attempts,
                duration_ms=_elapsed_ms(started),
            )

        log.info(
            "Step succeeded",
            step_index=index,
            tool=step.tool,
            attempts=attempts,
            duration_ms=_elapsed_ms(started),
        )
        return CachedStepResult.succeeded(
            index,
            step.tool,
            data,
            params,
            attempts=attempts,
            duration_ms=_elapsed_ms(started),
        )

    async def _invoke_once(self, tool: ToolCapability, params: Dict[str, Any]) -> ToolResult:
        """One attempt; timeouts and retryable results raise so the retry policy sees them."""
        timeout = self._config.step_timeout_seconds
        try:
            result = await asyncio.wait_for(tool.invoke(copy.deepcopy(params)), timeout=timeout)
        except asyncio.TimeoutError:
            raise StepTimeoutError(tool.name, timeout)

        if not isinstance(result, ToolResult):
            result = ToolResult(success=True, data=result)
        if not result.success and result.retryable:
            raise RetryableToolError(result.error or f"{tool.name} reported a retryable failure")
        return result

    async def _record(
        self,
        cache: StepResultCache,
        result: CachedStepResult,
        total: int,
        progress_callback: Optional[ProgressCallback],
        log,
    ) -> None:
        cache.set(result.step_index, result)
        if progress_callback is None:
            return
        try:
            outcome = progress_callback(result.step_index, total, result.tool)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            log.warning(
                "Progress callback failed",
                step_index=result.step_index,
                error=str(e),
            )

    def _failed_dependency(
        self, steps: Sequence[PlanStep], index: int, cache: StepResultCache
    ) -> Optional[int]:
        """Root failed ancestor of a step, or None if every ancestor succeeded."""
        failed = sorted(
            j for j in ancestors(steps, index)
            if cache.has(j) and not cache.get(j).success
        )
        if not failed:
            return None
        for j in failed:
            if cache.get(j).outcome == StepOutcome.FAILED:
                return j
        return failed[0]

    def _dependency_failed_result(
        self, index: int, steps: Sequence[PlanStep], failed: int, log
    ) -> CachedStepResult:
        error = DependencyFailedError(index, failed, steps[failed].tool)
        log.info(
            "Skipping step, dependency failed",
            step_index=index,
            tool=steps[index].tool,
            failed_step=failed,
        )
        return CachedStepResult.failed(
            index,
            steps[index].tool,
            error.message,
            FailureReason.DEPENDENCY_FAILED,
            type(error).__name__,
            params=steps[index].params,
        )

    def _cancelled_result(self, index: int, step: PlanStep, message: str) -> CachedStepResult:
        return CachedStepResult.failed(
            index,
            step.tool,
            message,
            FailureReason.CANCELLED,
            ExecutionCancelledError.__name__,
            params=step.params,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _log_retry(log, index: int, tool: str):
    def before_sleep(retry_state: RetryCallState) -> None:
        log.warning(
            "Retrying step",
            step_index=index,
            tool=tool,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()),
        )
    return before_sleep
