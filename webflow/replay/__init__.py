"""Replay: Steps in, ExecutionResults out."""

from webflow.replay.executor import WorkflowExecutor
from webflow.replay.playwright_target import PlaywrightTarget
from webflow.replay.step_executor import StepExecutor
from webflow.replay.target import DispatchAction, Target

__all__ = ["DispatchAction", "PlaywrightTarget", "StepExecutor", "Target", "WorkflowExecutor"]
