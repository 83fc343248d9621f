from webflow.core.config import ExecutionOptions, RecorderOptions
from webflow.core.errors import ProtocolError, WebflowError
from webflow.core.store import JsonWorkflowStore, WorkflowStore
from webflow.core.types import (
    ErrorKind,
    ExecutionResult,
    RunStatus,
    Step,
    StepType,
    Workflow,
)
from webflow.recorder import InteractionRecorder, SelectorSynthesizer, attach_recorder
from webflow.replay import PlaywrightTarget, StepExecutor, Target, WorkflowExecutor
from webflow.core.session import MessageType, WorkflowSession

__all__ = [
    "ErrorKind",
    "ExecutionOptions",
    "ExecutionResult",
    "JsonWorkflowStore",
    "MessageType",
    "ProtocolError",
    "RecorderOptions",
    "RunStatus",
    "Step",
    "StepType",
    "WebflowError",
    "Workflow",
    "WorkflowSession",
    "WorkflowStore",
    # Recording
    "InteractionRecorder",
    "SelectorSynthesizer",
    "attach_recorder",
    # Replay
    "PlaywrightTarget",
    "StepExecutor",
    "Target",
    "WorkflowExecutor",
]
