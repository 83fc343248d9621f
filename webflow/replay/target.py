"""Abstract capability surface the core needs from an automated page."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable


class DispatchAction(str, Enum):
    CLICK = "click"
    SET_VALUE = "set_value"  # assign element.value, no events
    INPUT = "input"  # fire an ``input`` event
    CHANGE = "change"  # fire a ``change`` event
    SUBMIT = "submit"
    PRESS = "press"  # keyboard chord, e.g. "Enter" or "Control+c"


class Target(ABC):
    """
    Everything the recorder and the replay engine touch on a page goes
    through this interface, so both can run against an in-memory fake or any
    browser-automation backend.

    Element handles are opaque to the core: whatever ``query`` returns is
    passed back unchanged to the other methods.
    """

    @abstractmethod
    async def query(self, selector: str) -> Any | None:
        """Return the first element matching ``selector``, or None."""

    @abstractmethod
    async def count(self, selector: str) -> int:
        """Number of elements in the whole document matching ``selector``."""

    @abstractmethod
    async def scroll_into_view(self, element: Any) -> None: ...

    @abstractmethod
    async def is_clickable(self, element: Any) -> bool:
        """
        True when the element has a non-zero bounding box and the element at
        the box's center point is the element itself or one of its descendants.
        """

    @abstractmethod
    async def dispatch(self, action: DispatchAction, element: Any | None, value: str | None = None) -> None:
        """Perform ``action`` on ``element`` (``None`` targets the page)."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Start loading ``url``. Does not wait for the load to complete."""

    @abstractmethod
    def expect_load(self) -> Awaitable[None]:
        """
        Arm a listener for the next load-completion signal.

        Must be called *before* the action that triggers the load; the
        returned awaitable resolves when the signal fires and may be
        cancelled by the caller.
        """

    @abstractmethod
    async def run_code(self, code: str, step: dict, context: dict) -> Any:
        """
        Run ``code`` as a function body with ``step`` and ``context`` bound.

        No isolation is promised beyond the function scope: the snippet runs
        with whatever privilege the backend itself has.
        """
