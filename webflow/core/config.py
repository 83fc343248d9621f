"""Runtime options for recording and replay."""

from __future__ import annotations

from dataclasses import dataclass

from webflow.core.types import MASK


@dataclass
class ExecutionOptions:
    """
    Replay settings. All durations are milliseconds.

    timeout:
        Upper bound for every blocking wait (element resolution, page load).
    retry_count:
        Attempts per step, including the first one.
    delay_between_steps:
        Pause after each step before the next one starts.
    continue_on_error:
        Keep going after a step exhausts its retries.
    poll_interval:
        Period of the element-resolution polling loop.
    settle_delay:
        Pause after scrolling an element into view, before the clickability check.
    keystroke_delay:
        Pause between characters when typing into an input.
    backoff_base:
        Retry backoff unit; attempt N waits ``backoff_base * N`` before attempt N+1.
    """

    timeout: int = 30_000
    retry_count: int = 3
    delay_between_steps: int = 1000
    continue_on_error: bool = False
    poll_interval: int = 100
    settle_delay: int = 300
    keystroke_delay: int = 50
    backoff_base: int = 1000

    def __post_init__(self) -> None:
        if self.retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        for name in ("timeout", "delay_between_steps", "settle_delay", "keystroke_delay", "backoff_base"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


@dataclass
class RecorderOptions:
    debounce_window: int = 500  # ms
    mask: str = MASK

    def __post_init__(self) -> None:
        if self.debounce_window < 0:
            raise ValueError("debounce_window must not be negative")
