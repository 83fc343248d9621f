"""Interaction recorder: turns raw page events into an ordered list of Steps."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from webflow.core.config import RecorderOptions
from webflow.core.errors import ProtocolError
from webflow.core.types import (
    ClickConfig,
    InputConfig,
    KeypressConfig,
    NavigationConfig,
    RecorderState,
    Step,
    StepConfig,
    StepType,
    SubmitConfig,
    now_ms,
)
from webflow.recorder.selectors import ElementSnapshot, SelectorSynthesizer, is_volatile_name

logger = logging.getLogger(__name__)

StepListener = Callable[[Step], Any]

_CLICK_KINDS = {"click", "dblclick"}
_SPECIAL_KEYS = {"Enter", "Escape"}
_CLIPBOARD_KEYS = {"c", "v"}  # with Ctrl: copy / paste


@dataclass
class _PendingClick:
    config: ClickConfig
    timestamp: int


@dataclass
class _Idle:
    pass


@dataclass
class _Recording:
    buffer: list[Step] = field(default_factory=list)
    pending: _PendingClick | None = None
    flush_handle: asyncio.TimerHandle | None = None
    last_timestamp: int = 0


_State = Union[_Idle, _Recording]


def _event_time(event: dict) -> int:
    stamp = event.get("timestamp")
    return int(stamp) if isinstance(stamp, (int, float)) else now_ms()


def is_recorded_chord(key: str, ctrl_key: bool = False) -> bool:
    """Enter, Escape, copy and paste are the only keyboard chords recorded."""
    if key in _SPECIAL_KEYS:
        return True
    return ctrl_key and key.lower() in _CLIPBOARD_KEYS


class InteractionRecorder:
    """
    Two-state recorder (idle / recording) fed by raw page events.

    One instance per recording session; the owner hands it to collaborators
    by reference. Clicks are debounced: every click of a burst replaces the
    buffered one and a single Step is committed when the debounce window,
    opened by the burst's first click, elapses. Input, submit, keyboard and
    navigation events are committed immediately, after flushing any pending
    click so the buffer keeps event order.

    Usage:
        recorder = InteractionRecorder(SelectorSynthesizer(target))
        recorder.start()
        await recorder.handle_event({"kind": "click", "element": {...}})
        steps = recorder.stop()
    """

    def __init__(
        self,
        synthesizer: SelectorSynthesizer,
        *,
        options: RecorderOptions | None = None,
        on_step: StepListener | None = None,
    ) -> None:
        self._synth = synthesizer
        self._options = options or RecorderOptions()
        self._state: _State = _Idle()
        self._listeners: list[StepListener] = [on_step] if on_step else []
        self._notify_tasks: set[asyncio.Task] = set()
        # Page bindings run as separate tasks; intake is serialized in arrival order.
        self._intake = asyncio.Lock()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecorderState:
        return RecorderState.RECORDING if isinstance(self._state, _Recording) else RecorderState.IDLE

    @property
    def is_recording(self) -> bool:
        return isinstance(self._state, _Recording)

    @property
    def steps(self) -> list[Step]:
        """Copy of the steps committed so far in the active session."""
        if isinstance(self._state, _Recording):
            return list(self._state.buffer)
        return []

    def add_listener(self, listener: StepListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """idle → recording with an empty buffer."""
        if isinstance(self._state, _Recording):
            raise ProtocolError("Recording is already in progress")
        self._state = _Recording()
        logger.info("Recording started")

    def stop(self) -> list[Step]:
        """recording → idle. Flushes a pending click and returns the finalized steps."""
        state = self._state
        if not isinstance(state, _Recording):
            raise ProtocolError("No recording in progress")

        self._flush_pending(state)
        self._state = _Idle()
        logger.info("Recording stopped: %d steps", len(state.buffer))
        return list(state.buffer)

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    async def handle_event(self, event: dict) -> None:
        """
        Convert one raw page event into a Step. Events arriving while idle,
        and keyboard events outside the recorded chord set, are dropped.

        Events are processed one at a time in the order they arrive, so a slow
        selector lookup cannot reorder the recording. A page-side ``timestamp``
        (epoch ms) is used for the step when present.
        """
        async with self._intake:
            await self._dispatch(event)

    async def _dispatch(self, event: dict) -> None:
        if not self.is_recording:
            return

        kind = event.get("kind", "")
        if kind in _CLICK_KINDS:
            await self._on_click(event)
        elif kind == "change":
            await self._on_change(event)
        elif kind == "submit":
            await self._on_submit(event)
        elif kind == "keydown":
            self._on_keydown(event)
        elif kind == "navigation":
            self.record(
                StepType.NAVIGATION,
                NavigationConfig(url=event.get("url", ""), title=event.get("title", "")),
                timestamp=_event_time(event),
            )
        else:
            logger.debug("Ignoring unsupported event kind %r", kind)

    def record(
        self, step_type: StepType, config: StepConfig, *, timestamp: int | None = None
    ) -> Step | None:
        """
        Commit a step immediately (after any pending click). Also used by the
        session for steps that do not originate in the page, such as tab events.
        """
        state = self._state
        if not isinstance(state, _Recording):
            return None
        self._flush_pending(state)
        return self._commit(state, step_type, config, timestamp if timestamp is not None else now_ms())

    async def _on_click(self, event: dict) -> None:
        element = ElementSnapshot.from_dict(event.get("element") or {})
        selector = await self._synth.synthesize(element)

        state = self._state
        if not isinstance(state, _Recording):
            return  # stopped while the selector was being built

        config = ClickConfig(
            selector=selector,
            inner_text=element.inner_text,
            tag=element.tag,
            attributes={n: v for n, v in element.attributes if not is_volatile_name(n)},
        )
        state.pending = _PendingClick(config=config, timestamp=_event_time(event))
        if state.flush_handle is None:
            loop = asyncio.get_running_loop()
            state.flush_handle = loop.call_later(
                self._options.debounce_window / 1000.0, self._flush_pending, state
            )

    async def _on_change(self, event: dict) -> None:
        element = ElementSnapshot.from_dict(event.get("element") or {})
        selector = await self._synth.synthesize(element)

        input_type = (event.get("inputType") or element.get_attribute("type") or "text").lower()
        is_password = input_type == "password"
        value = self._options.mask if is_password else str(event.get("value", ""))
        self.record(
            StepType.INPUT,
            InputConfig(selector=selector, value=value, input_type=input_type, is_password=is_password),
            timestamp=_event_time(event),
        )

    async def _on_submit(self, event: dict) -> None:
        element = ElementSnapshot.from_dict(event.get("element") or {})
        selector = await self._synth.synthesize(element)

        form_data: dict[str, str] = {}
        for entry in event.get("formData", []):
            name, value = entry.get("name"), entry.get("value")
            if not name or not value:
                continue
            form_data[name] = self._options.mask if entry.get("type") == "password" else str(value)
        self.record(
            StepType.SUBMIT,
            SubmitConfig(selector=selector, form_data=form_data),
            timestamp=_event_time(event),
        )

    def _on_keydown(self, event: dict) -> None:
        key = event.get("key", "")
        ctrl = bool(event.get("ctrlKey", False))
        if not is_recorded_chord(key, ctrl):
            return
        self.record(
            StepType.KEYPRESS,
            KeypressConfig(
                key=key,
                ctrl_key=ctrl,
                alt_key=bool(event.get("altKey", False)),
                shift_key=bool(event.get("shiftKey", False)),
            ),
            timestamp=_event_time(event),
        )

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _flush_pending(self, state: _Recording) -> None:
        if state.flush_handle is not None:
            state.flush_handle.cancel()
            state.flush_handle = None
        pending, state.pending = state.pending, None
        if pending is not None and self._state is state:
            self._commit(state, StepType.CLICK, pending.config, pending.timestamp)

    def _commit(self, state: _Recording, step_type: StepType, config: StepConfig, timestamp: int) -> Step:
        # Timestamps never go backwards within a session.
        timestamp = max(timestamp, state.last_timestamp)
        state.last_timestamp = timestamp
        step = Step.create(step_type, config, timestamp=timestamp)
        state.buffer.append(step)
        logger.debug("Committed %s step %s", step_type.value, step.id)
        self._notify(step)
        return step

    def _notify(self, step: Step) -> None:
        """Fire-and-forget: listener failures are logged, never raised here."""
        for listener in self._listeners:
            try:
                outcome = listener(step)
            except Exception:
                logger.warning("Step listener failed for %s", step.id, exc_info=True)
                continue
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._notify_tasks.add(task)
                task.add_done_callback(self._notify_done)

    def _notify_done(self, task: asyncio.Task) -> None:
        self._notify_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Step notification failed: %s", task.exception())
