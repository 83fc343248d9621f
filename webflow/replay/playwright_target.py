"""Target implementation backed by an async Playwright Page."""

from __future__ import annotations

import asyncio
from typing import Any

from playwright.async_api import ElementHandle, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webflow.core.errors import NavigationTimeout
from webflow.replay.target import DispatchAction, Target

_JS_IS_CLICKABLE = """(el) => {
    const rect = el.getBoundingClientRect();
    if (!(rect.width > 0 && rect.height > 0)) return false;
    const hit = document.elementFromPoint(
        rect.left + rect.width / 2,
        rect.top + rect.height / 2
    );
    return el.contains(hit);
}"""

_JS_SCROLL_INTO_VIEW = "(el) => el.scrollIntoView({ behavior: 'instant', block: 'center' })"

_JS_ACTIVATE = "(el) => el.click()"

_JS_SET_VALUE = "(el, value) => { el.value = value; }"

_JS_SUBMIT = """(el) => {
    const form = el.tagName === 'FORM' ? el : (el.form || el.closest('form'));
    if (!form) throw new Error('No form to submit');
    form.submit();
}"""

# The snippet is a function body; AsyncFunction lets it use ``await``.
_JS_RUN_CODE = """async ({ code, step, context }) => {
    const AsyncFunction = Object.getPrototypeOf(async function () {}).constructor;
    const fn = new AsyncFunction('step', 'context', code);
    const out = await fn(step, context);
    return out === undefined ? null : out;
}"""


class PlaywrightTarget(Target):
    """Drives a live page; element handles are Playwright ElementHandles."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    async def query(self, selector: str) -> ElementHandle | None:
        return await self._page.query_selector(selector)

    async def count(self, selector: str) -> int:
        return await self._page.locator(selector).count()

    async def scroll_into_view(self, element: ElementHandle) -> None:
        await element.evaluate(_JS_SCROLL_INTO_VIEW)

    async def is_clickable(self, element: ElementHandle) -> bool:
        return bool(await element.evaluate(_JS_IS_CLICKABLE))

    async def dispatch(
        self, action: DispatchAction, element: ElementHandle | None, value: str | None = None
    ) -> None:
        if action == DispatchAction.PRESS:
            await self._page.keyboard.press(value or "")
            return
        if element is None:
            raise ValueError(f"{action.value} needs an element")

        if action == DispatchAction.CLICK:
            await element.evaluate(_JS_ACTIVATE)
        elif action == DispatchAction.SET_VALUE:
            await element.evaluate(_JS_SET_VALUE, value or "")
        elif action == DispatchAction.INPUT:
            await element.dispatch_event("input", {"bubbles": True})
        elif action == DispatchAction.CHANGE:
            await element.dispatch_event("change", {"bubbles": True})
        elif action == DispatchAction.SUBMIT:
            await element.evaluate(_JS_SUBMIT)
        else:
            raise ValueError(f"Unsupported dispatch action: {action}")

    async def navigate(self, url: str) -> None:
        try:
            await self._page.goto(url, wait_until="commit")
        except PlaywrightTimeoutError:
            raise NavigationTimeout() from None

    def expect_load(self) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        loaded: asyncio.Future = loop.create_future()

        def on_load(_page: Any = None) -> None:
            if not loaded.done():
                loaded.set_result(None)

        self._page.on("load", on_load)
        loaded.add_done_callback(lambda _: self._page.remove_listener("load", on_load))
        return loaded

    async def run_code(self, code: str, step: dict, context: dict) -> Any:
        return await self._page.evaluate(
            _JS_RUN_CODE, {"code": code, "step": step, "context": context}
        )
