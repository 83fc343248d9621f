"""Shared fixtures: an in-memory Target and fast replay options."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

import pytest

from webflow.core.config import ExecutionOptions
from webflow.replay.target import DispatchAction, Target


class FakeElement:
    def __init__(self, selector: str, clickable: bool = True) -> None:
        self.selector = selector
        self.clickable = clickable
        self.value = ""

    def __repr__(self) -> str:
        return f"FakeElement({self.selector!r})"


class FakeTarget(Target):
    """
    Scriptable page. Elements are registered by selector; ``appear_after``
    makes a selector resolve only once it has been queried that many times.
    Navigations and submits fire the load signal unless ``load_fires`` is off.
    """

    def __init__(self) -> None:
        self.elements: dict[str, FakeElement] = {}
        self.appear_after: dict[str, int] = {}
        self.counts: dict[str, Any] = {}  # selector -> int, or an Exception to raise
        self.query_calls: dict[str, int] = defaultdict(int)
        self.dispatched: list[tuple[DispatchAction, Any, str | None]] = []
        self.scrolled: list[FakeElement] = []
        self.navigations: list[str] = []
        self.code_calls: list[tuple[str, dict, dict]] = []
        self.code_error: Exception | None = None
        self.load_fires = True
        self._load_waiters: list[asyncio.Future] = []

    def add(self, selector: str, *, clickable: bool = True, appear_after: int = 0) -> FakeElement:
        element = FakeElement(selector, clickable)
        self.elements[selector] = element
        if appear_after:
            self.appear_after[selector] = appear_after
        return element

    async def query(self, selector: str) -> FakeElement | None:
        self.query_calls[selector] += 1
        if selector not in self.elements:
            return None
        if self.query_calls[selector] <= self.appear_after.get(selector, 0):
            return None
        return self.elements[selector]

    async def count(self, selector: str) -> int:
        if selector in self.counts:
            value = self.counts[selector]
            if isinstance(value, Exception):
                raise value
            return value
        return 1 if selector in self.elements else 0

    async def scroll_into_view(self, element: FakeElement) -> None:
        self.scrolled.append(element)

    async def is_clickable(self, element: FakeElement) -> bool:
        return element.clickable

    async def dispatch(self, action: DispatchAction, element: Any, value: str | None = None) -> None:
        self.dispatched.append((action, element, value))
        if action == DispatchAction.SET_VALUE:
            element.value = value or ""
        elif action == DispatchAction.SUBMIT:
            self._fire_load()

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self._fire_load()

    def expect_load(self) -> asyncio.Future:
        loaded = asyncio.get_running_loop().create_future()
        self._load_waiters.append(loaded)
        return loaded

    async def run_code(self, code: str, step: dict, context: dict) -> Any:
        self.code_calls.append((code, step, context))
        if self.code_error is not None:
            raise self.code_error
        return None

    def actions(self) -> list[DispatchAction]:
        return [action for action, _, _ in self.dispatched]

    def _fire_load(self) -> None:
        if not self.load_fires:
            return
        waiters, self._load_waiters = self._load_waiters, []
        for loaded in waiters:
            if not loaded.done():
                loaded.set_result(None)


def make_fast_options(**overrides) -> ExecutionOptions:
    """Millisecond-scale timings so failure paths finish quickly."""
    values = dict(
        timeout=200,
        retry_count=3,
        delay_between_steps=0,
        poll_interval=10,
        settle_delay=0,
        keystroke_delay=0,
        backoff_base=0,
    )
    values.update(overrides)
    return ExecutionOptions(**values)


@pytest.fixture
def fake_target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def fast_options() -> ExecutionOptions:
    return make_fast_options()


@pytest.fixture
def make_options():
    return make_fast_options
