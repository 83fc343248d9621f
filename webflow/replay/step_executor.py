"""Executes a single recorded Step against a Target."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from webflow.core.config import ExecutionOptions
from webflow.core.errors import (
    CustomCodeError,
    InteractionBlockedError,
    StepConfigurationError,
    WebflowError,
)
from webflow.core.types import (
    ClickConfig,
    CustomConfig,
    ErrorKind,
    ExecutionResult,
    InputConfig,
    KeypressConfig,
    NavigationConfig,
    Step,
    StepType,
    SubmitConfig,
    TabConfig,
    WaitConfig,
    now_ms,
)
from webflow.replay.target import DispatchAction, Target
from webflow.replay.waits import delay, wait_for_element, wait_for_load

logger = logging.getLogger(__name__)

# StepType -> handler method name. Checked for completeness below the class.
_HANDLERS: dict[StepType, str] = {
    StepType.NAVIGATION: "_navigation",
    StepType.CLICK: "_click",
    StepType.INPUT: "_input",
    StepType.SUBMIT: "_submit",
    StepType.WAIT: "_wait",
    StepType.CUSTOM: "_custom",
    StepType.TAB_SWITCH: "_tab_marker",
    StepType.TAB_CLOSED: "_tab_marker",
    StepType.KEYPRESS: "_keypress",
}


class StepExecutor:
    """
    Performs one Step and reports the outcome as an ExecutionResult.

    ``execute`` never raises: configuration errors, timeouts, blocked clicks,
    failing custom code and unexpected backend exceptions all become
    ``success=False`` results carrying the error message and its ErrorKind.
    Cancellation of the surrounding task is the one thing that propagates.
    """

    def __init__(self, target: Target, options: ExecutionOptions | None = None) -> None:
        self._target = target
        self._options = options or ExecutionOptions()

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    async def execute(
        self, step: Step, *, current_step: int = 0, total_steps: int = 1
    ) -> ExecutionResult:
        start = time.monotonic()
        handler = getattr(self, _HANDLERS[step.type])
        try:
            message = await handler(step, current_step, total_steps)
        except WebflowError as exc:
            logger.debug("Step %s (%s) failed: %s", step.id, step.type.value, exc)
            return self._failure(step, str(exc), exc.kind)
        except Exception as exc:
            logger.exception("Unexpected error in %s step %s", step.type.value, step.id)
            return self._failure(step, str(exc) or type(exc).__name__, ErrorKind.UNEXPECTED)

        elapsed = int((time.monotonic() - start) * 1000)
        return ExecutionResult(
            step_id=step.id,
            success=True,
            message=message or f"Step completed in {elapsed}ms",
            timestamp=now_ms(),
        )

    @staticmethod
    def _failure(step: Step, message: str, kind: ErrorKind) -> ExecutionResult:
        return ExecutionResult(
            step_id=step.id,
            success=False,
            message=message,
            timestamp=now_ms(),
            error_kind=kind,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _resolve(self, selector: str):
        return await wait_for_element(
            self._target,
            selector,
            timeout=self._options.timeout,
            poll_interval=self._options.poll_interval,
        )

    async def _trigger_and_wait_for_load(self, trigger: Callable[[], Awaitable[None]]) -> None:
        # One deadline covers both the trigger and the load that follows it.
        loaded = asyncio.ensure_future(self._target.expect_load())

        async def trigger_then_load() -> None:
            await trigger()
            await loaded

        try:
            await wait_for_load(trigger_then_load(), self._options.timeout)
        finally:
            loaded.cancel()

    @staticmethod
    def _require_selector(step: Step, selector: str | None) -> str:
        if not selector:
            raise StepConfigurationError(f"Selector is required for {step.type.value} step")
        return selector

    # ------------------------------------------------------------------
    # Handlers (return an optional success message)
    # ------------------------------------------------------------------

    async def _navigation(self, step: Step, current: int, total: int) -> str | None:
        config: NavigationConfig = step.config  # type: ignore[assignment]
        if not config.url:
            raise StepConfigurationError("URL is required for navigation step")
        await self._trigger_and_wait_for_load(lambda: self._target.navigate(config.url))
        return None

    async def _click(self, step: Step, current: int, total: int) -> str | None:
        config: ClickConfig = step.config  # type: ignore[assignment]
        selector = self._require_selector(step, config.selector)
        element = await self._resolve(selector)

        await self._target.scroll_into_view(element)
        await delay(self._options.settle_delay)

        if not await self._target.is_clickable(element):
            raise InteractionBlockedError(selector)
        await self._target.dispatch(DispatchAction.CLICK, element)
        return None

    async def _input(self, step: Step, current: int, total: int) -> str | None:
        config: InputConfig = step.config  # type: ignore[assignment]
        selector = self._require_selector(step, config.selector)
        element = await self._resolve(selector)

        await self._target.dispatch(DispatchAction.SET_VALUE, element, "")
        await self._target.dispatch(DispatchAction.CHANGE, element)

        # Type one character at a time so keystroke-driven validation fires.
        typed = ""
        for ch in config.value:
            typed += ch
            await self._target.dispatch(DispatchAction.SET_VALUE, element, typed)
            await self._target.dispatch(DispatchAction.INPUT, element)
            await delay(self._options.keystroke_delay)

        await self._target.dispatch(DispatchAction.CHANGE, element)
        return None

    async def _submit(self, step: Step, current: int, total: int) -> str | None:
        config: SubmitConfig = step.config  # type: ignore[assignment]
        selector = self._require_selector(step, config.selector)
        form = await self._resolve(selector)
        await self._trigger_and_wait_for_load(
            lambda: self._target.dispatch(DispatchAction.SUBMIT, form)
        )
        return None

    async def _wait(self, step: Step, current: int, total: int) -> str | None:
        config: WaitConfig = step.config  # type: ignore[assignment]
        if config.selector:
            await self._resolve(config.selector)
        elif config.duration is not None:
            if config.duration < 0:
                raise StepConfigurationError("Wait duration must not be negative")
            await delay(config.duration)
        else:
            raise StepConfigurationError("Wait step requires either duration or selector")
        return None

    async def _custom(self, step: Step, current: int, total: int) -> str | None:
        config: CustomConfig = step.config  # type: ignore[assignment]
        if not config.code:
            raise StepConfigurationError("Custom action requires code")
        context = {"currentStep": current, "totalSteps": total}
        try:
            await self._target.run_code(config.code, step.to_dict(), context)
        except WebflowError:
            raise
        except Exception as exc:
            raise CustomCodeError(str(exc) or type(exc).__name__) from exc
        return None

    async def _keypress(self, step: Step, current: int, total: int) -> str | None:
        config: KeypressConfig = step.config  # type: ignore[assignment]
        if not config.key:
            raise StepConfigurationError("Key is required for keypress step")
        await self._target.dispatch(DispatchAction.PRESS, None, key_chord(config))
        return None

    async def _tab_marker(self, step: Step, current: int, total: int) -> str | None:
        config: TabConfig = step.config  # type: ignore[assignment]
        # Replay drives a single surface; tab events are kept for the record.
        return f"{step.type.value} for tab {config.tab_id} recorded; replay stays on the current page"


_missing = set(StepType) - set(_HANDLERS)
if _missing:  # pragma: no cover - guards edits to StepType
    raise RuntimeError(f"StepExecutor has no handler for: {sorted(t.value for t in _missing)}")


def key_chord(config: KeypressConfig) -> str:
    """Playwright-style chord string, e.g. ``Control+c``."""
    parts = []
    if config.ctrl_key:
        parts.append("Control")
    if config.alt_key:
        parts.append("Alt")
    if config.shift_key:
        parts.append("Shift")
    parts.append(config.key)
    return "+".join(parts)
