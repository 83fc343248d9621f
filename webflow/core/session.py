"""Message-driven coordinator between a UI process and the recorder and executor."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from webflow.core.config import ExecutionOptions
from webflow.core.errors import ProtocolError, WebflowError
from webflow.core.store import WorkflowStore
from webflow.core.types import (
    ExecutionResult,
    NavigationConfig,
    Step,
    StepType,
    TabConfig,
    Workflow,
)
from webflow.recorder.recorder import InteractionRecorder
from webflow.replay.executor import WorkflowExecutor
from webflow.replay.step_executor import StepExecutor

logger = logging.getLogger(__name__)

Notifier = Callable[[dict], Any]


class MessageType(str, Enum):
    # requests
    START_RECORDING = "START_RECORDING"
    STOP_RECORDING = "STOP_RECORDING"
    STEP_ADDED = "STEP_ADDED"
    GET_RECORDING_STATE = "GET_RECORDING_STATE"
    EXECUTE_WORKFLOW = "EXECUTE_WORKFLOW"
    STOP_EXECUTION = "STOP_EXECUTION"
    GET_EXECUTION_STATUS = "GET_EXECUTION_STATUS"
    SAVE_WORKFLOW = "SAVE_WORKFLOW"
    LOAD_WORKFLOW = "LOAD_WORKFLOW"
    UPDATE_WORKFLOW = "UPDATE_WORKFLOW"
    DELETE_WORKFLOW = "DELETE_WORKFLOW"
    LIST_WORKFLOWS = "LIST_WORKFLOWS"
    # notifications
    RECORDING_STARTED = "RECORDING_STARTED"
    RECORDING_STOPPED = "RECORDING_STOPPED"
    RECORDING_ERROR = "RECORDING_ERROR"
    WORKFLOW_SAVED = "WORKFLOW_SAVED"
    EXECUTION_PROGRESS = "EXECUTION_PROGRESS"
    EXECUTION_COMPLETE = "EXECUTION_COMPLETE"
    EXECUTION_ERROR = "EXECUTION_ERROR"


class WorkflowSession:
    """
    Sits between the surrounding UI/background process and the core.

    Owns one InteractionRecorder (passed in by reference) and creates a
    fresh WorkflowExecutor per run. Requests arrive through
    ``handle_message``; progress and outcomes leave through ``notify`` as
    fire-and-forget ``{"type", "payload"}`` messages.
    """

    def __init__(
        self,
        recorder: InteractionRecorder,
        step_executor: StepExecutor,
        *,
        options: ExecutionOptions | None = None,
        store: WorkflowStore | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self._recorder = recorder
        self._step_executor = step_executor
        self._options = options or step_executor.options
        self._store = store
        self._notify_cb = notify

        self._target_id: Any = None
        self._recording_name: str | None = None
        self._recorded: dict[str, Step] = {}  # committed steps seen this session, by id
        self._executor: WorkflowExecutor | None = None
        self._run_task: asyncio.Task | None = None
        self._pending_notifications: set[asyncio.Task] = set()

        recorder.add_listener(self._on_step_committed)

    # ------------------------------------------------------------------
    # Message entry point
    # ------------------------------------------------------------------

    async def handle_message(self, message: dict) -> dict:
        """Dispatch one request. Failures come back as ``{"success": False, "error"}``."""
        try:
            msg_type = MessageType(message.get("type"))
        except ValueError:
            return {"success": False, "error": "Unknown message type"}
        payload = message.get("payload") or {}

        try:
            return await self._dispatch(msg_type, payload)
        # Malformed payloads surface as TypeError or AttributeError from the from_dict parsers.
        except (WebflowError, KeyError, ValueError, TypeError, AttributeError, RuntimeError) as exc:
            error = exc.args[0] if isinstance(exc, KeyError) and exc.args else str(exc)
            logger.warning("%s failed: %s", msg_type.value, error)
            if msg_type in (MessageType.START_RECORDING, MessageType.STOP_RECORDING):
                self._emit(MessageType.RECORDING_ERROR, {"error": error})
            return {"success": False, "error": error}

    async def _dispatch(self, msg_type: MessageType, payload: dict) -> dict:
        if msg_type == MessageType.START_RECORDING:
            self.start_recording(payload.get("targetId"), payload.get("name"))
            return {"success": True}

        if msg_type == MessageType.STOP_RECORDING:
            steps, workflow = self.stop_recording()
            return {
                "success": True,
                "steps": [s.to_dict() for s in steps],
                "workflowId": workflow.id if workflow else None,
            }

        if msg_type == MessageType.STEP_ADDED:
            if self._recorder.is_recording:
                step = Step.from_dict(payload)
                self._recorded.setdefault(step.id, step)
            return {"success": True}

        if msg_type == MessageType.GET_RECORDING_STATE:
            return {
                "isRecording": self._recorder.is_recording,
                "targetId": self._target_id,
                "steps": [s.to_dict() for s in self._recorded.values()],
            }

        if msg_type == MessageType.EXECUTE_WORKFLOW:
            workflow = self._workflow_from_payload(payload)
            self.start_execution(workflow)
            return {"success": True}

        if msg_type == MessageType.STOP_EXECUTION:
            self.stop_execution()
            return {"success": True}

        if msg_type == MessageType.GET_EXECUTION_STATUS:
            return self.execution_status()

        if msg_type == MessageType.SAVE_WORKFLOW:
            workflow = self.save_workflow(
                name=payload.get("name", ""),
                steps=[Step.from_dict(s) for s in payload.get("steps", [])],
                description=payload.get("description", ""),
                tags=payload.get("tags"),
            )
            return {"success": True, "workflow": workflow.to_dict()}

        if msg_type == MessageType.LOAD_WORKFLOW:
            return {"workflow": self._require_workflow(payload.get("id", "")).to_dict()}

        if msg_type == MessageType.UPDATE_WORKFLOW:
            self._require_store().replace(Workflow.from_dict(payload))
            return {"success": True}

        if msg_type == MessageType.DELETE_WORKFLOW:
            return {"success": self._require_store().delete(payload.get("id", ""))}

        if msg_type == MessageType.LIST_WORKFLOWS:
            return {"workflows": [w.to_dict() for w in self._require_store().list()]}

        return {"success": False, "error": "Unknown message type"}

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return self._recorder.is_recording

    def start_recording(self, target_id: Any = None, name: str | None = None) -> None:
        """``name`` is used when the recording is saved; defaults to a timestamp."""
        self._recorder.start()  # ProtocolError if already recording
        self._target_id = target_id
        self._recording_name = name
        self._recorded = {}
        self._emit(MessageType.RECORDING_STARTED, {"targetId": target_id})

    def stop_recording(self) -> tuple[list[Step], Workflow | None]:
        """Finalize the session; saves the steps as a new workflow when a store is attached."""
        steps = self._recorder.stop()  # ProtocolError if idle
        self._emit(MessageType.RECORDING_STOPPED, {"steps": [s.to_dict() for s in steps]})

        workflow = None
        if self._store is not None:
            name = self._recording_name or f"Workflow {datetime.now():%Y-%m-%d %H:%M:%S}"
            workflow = self.save_workflow(name=name, steps=steps)
        return steps, workflow

    def on_tab_activated(self, tab_id: Any) -> None:
        if self._recorder.is_recording and tab_id != self._target_id:
            self._recorder.record(StepType.TAB_SWITCH, TabConfig(tab_id=tab_id))

    def on_tab_updated(self, tab_id: Any, url: str | None) -> None:
        """A tab finished loading ``url``."""
        if self._recorder.is_recording and url:
            self._recorder.record(StepType.NAVIGATION, NavigationConfig(url=url))

    def on_tab_removed(self, tab_id: Any) -> Workflow | None:
        """Closing the recorded tab ends the recording. Returns the saved workflow, if any."""
        if not (self._recorder.is_recording and tab_id == self._target_id):
            return None
        self._recorder.record(StepType.TAB_CLOSED, TabConfig(tab_id=tab_id))
        _, workflow = self.stop_recording()
        return workflow

    def _on_step_committed(self, step: Step) -> None:
        self._recorded[step.id] = step
        self._emit(MessageType.STEP_ADDED, step.to_dict())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @property
    def executor(self) -> WorkflowExecutor | None:
        return self._executor

    async def execute_workflow(self, workflow: Workflow) -> list[ExecutionResult]:
        """Run ``workflow`` to completion and return its results."""
        if self._executor is not None:
            raise ProtocolError("A workflow is already executing")

        try:
            if not workflow.steps:
                raise ValueError("Workflow has no steps")
            self._executor = WorkflowExecutor(
                self._step_executor, self._options, on_progress=self._on_progress
            )
            logger.info("Executing workflow %s (%s)", workflow.id, workflow.name)
            results = await self._executor.run(workflow.steps)
        except Exception as exc:
            self._emit(MessageType.EXECUTION_ERROR, {"error": str(exc)})
            raise
        finally:
            self._executor = None

        self._emit(MessageType.EXECUTION_COMPLETE, {"results": [r.to_dict() for r in results]})
        return results

    def start_execution(self, workflow: Workflow) -> asyncio.Task:
        """Acknowledge-now variant: runs in the background, outcome via notifications."""
        if self._executor is not None or (self._run_task and not self._run_task.done()):
            raise ProtocolError("A workflow is already executing")
        if not workflow.steps:
            self._emit(MessageType.EXECUTION_ERROR, {"error": "Workflow has no steps"})
            raise ValueError("Workflow has no steps")

        self._run_task = asyncio.ensure_future(self.execute_workflow(workflow))
        self._run_task.add_done_callback(self._run_done)
        return self._run_task

    async def wait_for_execution(self) -> list[ExecutionResult] | None:
        if self._run_task is None:
            return None
        return await self._run_task

    def stop_execution(self) -> None:
        if self._executor is not None:
            self._executor.stop()

    def execution_status(self) -> dict:
        executor = self._executor
        if executor is None or not executor.is_running:
            return {"status": "idle"}
        return {
            "status": "executing",
            "progress": executor.progress,
            "currentStep": executor.current_step,
        }

    def _on_progress(self, progress: int, step: int) -> None:
        self._emit(MessageType.EXECUTION_PROGRESS, {"progress": progress, "step": step})

    @staticmethod
    def _run_done(task: asyncio.Task) -> None:
        # Already reported through EXECUTION_ERROR; keep asyncio from warning.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Background run ended with %r", task.exception())

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def save_workflow(
        self,
        name: str,
        steps: list[Step],
        description: str = "",
        tags: list[str] | None = None,
    ) -> Workflow:
        workflow = Workflow.new(name, steps, description=description, tags=tags)
        self._require_store().append(workflow)
        self._emit(MessageType.WORKFLOW_SAVED, workflow.to_dict())
        return workflow

    def _require_store(self) -> WorkflowStore:
        if self._store is None:
            raise RuntimeError("No workflow store configured")
        return self._store

    def _require_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._require_store().find(workflow_id)
        if workflow is None:
            raise KeyError("Workflow not found")
        return workflow

    def _workflow_from_payload(self, payload: dict) -> Workflow:
        if "steps" in payload:
            return Workflow.from_dict({"id": payload.get("id", ""), **payload})
        return self._require_workflow(payload.get("id", ""))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _emit(self, msg_type: MessageType, payload: dict) -> None:
        """Fire-and-forget; a failing notifier is logged and otherwise ignored."""
        if self._notify_cb is None:
            return
        message = {"type": msg_type.value, "payload": payload}
        try:
            outcome = self._notify_cb(message)
        except Exception:
            logger.warning("Notification %s failed", msg_type.value, exc_info=True)
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending_notifications.add(task)
            task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending_notifications.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Notification failed: %s", task.exception())
