"""Bounded waits used by the step executor."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable

from webflow.core.errors import NavigationTimeout, ResolutionTimeout
from webflow.replay.target import Target

logger = logging.getLogger(__name__)


async def delay(ms: int) -> None:
    await asyncio.sleep(ms / 1000.0)


async def wait_for_element(
    target: Target, selector: str, timeout: int, poll_interval: int = 100
) -> Any:
    """
    Poll the document for ``selector`` until it matches or ``timeout`` elapses.

    Busy polling rather than a mutation observer: DOM timing on arbitrary
    pages is not observable without instrumenting them. At least one query
    is always made, even with a zero timeout.

    Raises ResolutionTimeout naming the selector when nothing matched in time.
    """
    start = time.monotonic()
    deadline = timeout / 1000.0

    while True:
        element = await target.query(selector)
        if element is not None:
            logger.debug(
                "Resolved %r after %.0fms", selector, (time.monotonic() - start) * 1000
            )
            return element

        if time.monotonic() - start >= deadline:
            raise ResolutionTimeout(selector, timeout)

        await delay(poll_interval)


async def wait_for_load(loaded: Awaitable[None], timeout: int) -> None:
    """Wait for an armed load signal; NavigationTimeout after ``timeout`` ms."""
    try:
        await asyncio.wait_for(loaded, timeout / 1000.0)
    except asyncio.TimeoutError:
        raise NavigationTimeout(timeout) from None
