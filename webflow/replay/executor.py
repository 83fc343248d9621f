"""Workflow executor: drives a list of Steps through a StepExecutor."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Sequence

from webflow.core.config import ExecutionOptions
from webflow.core.errors import NON_RETRYABLE, ProtocolError
from webflow.core.types import ExecutionResult, RunStatus, Step
from webflow.replay.step_executor import StepExecutor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Any]  # (percent, step index)


class WorkflowExecutor:
    """
    Runs Steps strictly in order with per-step retry, inter-step pacing,
    progress reporting and cooperative cancellation.

    One run per instance at a time: ``run`` raises ProtocolError while a run
    is active. ``stop()`` is observed at step boundaries only; a step that is
    in flight (including its retry backoff) always finishes first.

    Usage:
        executor = WorkflowExecutor(StepExecutor(target, options), options)
        results = await executor.run(workflow.steps)
    """

    def __init__(
        self,
        step_executor: StepExecutor,
        options: ExecutionOptions | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._step_executor = step_executor
        self._options = options or step_executor.options
        self._on_progress = on_progress
        self._sleep = sleep

        self._status = RunStatus.IDLE
        self._running = False
        self._current_step = 0
        self._total_steps = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == RunStatus.RUNNING

    @property
    def current_step(self) -> int | None:
        """Index of the step in flight; None when no run is active."""
        return self._current_step if self.is_running else None

    @property
    def total_steps(self) -> int:
        return self._total_steps if self.is_running else 0

    @property
    def progress(self) -> int:
        """Percentage of steps started, 0 when no run is active."""
        if not self.is_running or not self._total_steps:
            return 0
        return round(self._current_step / self._total_steps * 100)

    def stop(self) -> None:
        """Request cancellation; takes effect before the next step starts."""
        if self._running:
            logger.info("Stop requested at step %d/%d", self._current_step, self._total_steps)
        self._running = False

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, steps: Sequence[Step]) -> list[ExecutionResult]:
        if self.is_running:
            raise ProtocolError("A workflow run is already active on this executor")

        steps = list(steps)
        self._status = RunStatus.RUNNING
        self._running = True
        self._current_step = 0
        self._total_steps = len(steps)
        results: list[ExecutionResult] = []
        final = RunStatus.COMPLETED
        logger.info("Starting run: %d steps", len(steps))

        try:
            for index, step in enumerate(steps):
                if not self._running:
                    final = RunStatus.STOPPED
                    break

                self._current_step = index
                await self._report_progress(round(index / len(steps) * 100), index)

                result = await self._execute_with_retry(step, index, len(steps))
                results.append(result)

                if not result.success and not self._options.continue_on_error:
                    logger.info("Halting run at step %d: %s", index, result.message)
                    final = RunStatus.FAILED
                    break

                if index < len(steps) - 1:
                    await self._sleep(self._options.delay_between_steps / 1000.0)
        except asyncio.CancelledError:
            final = RunStatus.STOPPED
            raise
        except BaseException:
            final = RunStatus.FAILED
            raise
        finally:
            self._running = False
            self._status = final
            logger.info(
                "Run finished: %s (%d/%d results)", final.value, len(results), len(steps)
            )

        return results

    async def _execute_with_retry(self, step: Step, index: int, total: int) -> ExecutionResult:
        """
        Up to ``retry_count`` attempts with linear backoff. The first success
        wins; non-retryable failures return immediately; otherwise the last
        failure is returned once attempts are exhausted.
        """
        retry_count = self._options.retry_count
        attempt = 0
        result: ExecutionResult | None = None

        while attempt < retry_count:
            result = await self._step_executor.execute(
                step, current_step=index, total_steps=total
            )
            attempt += 1
            if result.success:
                break
            if result.error_kind in NON_RETRYABLE:
                break
            if attempt < retry_count:
                logger.warning(
                    "Step %d (%s) attempt %d/%d failed: %s",
                    index, step.type.value, attempt, retry_count, result.message,
                )
                await self._sleep(self._options.backoff_base * attempt / 1000.0)

        assert result is not None
        if result.attempts == attempt:
            return result
        return ExecutionResult(
            step_id=result.step_id,
            success=result.success,
            message=result.message,
            timestamp=result.timestamp,
            error_kind=result.error_kind,
            attempts=attempt,
        )

    async def _report_progress(self, percent: int, index: int) -> None:
        if self._on_progress is None:
            return
        try:
            outcome = self._on_progress(percent, index)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning("Progress callback failed at step %d", index, exc_info=True)
