"""Page-side event capture: forwards raw DOM events to an InteractionRecorder."""

from __future__ import annotations

import logging

from playwright.async_api import Page

from webflow.recorder.recorder import InteractionRecorder
from webflow.recorder.selectors import SNAPSHOT_JS

logger = logging.getLogger(__name__)

BINDING_NAME = "__webflowRecord"

# Capture-phase listeners, so handlers deeper in the page cannot hide events.
_CAPTURE_JS = (
    "(() => {\n"
    "if (window.__webflowCaptureInstalled) return;\n"
    "window.__webflowCaptureInstalled = true;\n"
    + SNAPSHOT_JS
    + """
const send = (payload) => {
    payload.timestamp = Date.now();
    try { window.%(binding)s(payload); } catch (e) { /* binding not ready yet */ }
};

const onPointer = (event) => {
    if (!(event.target instanceof Element)) return;
    send({ kind: event.type, element: __webflowSnapshot(event.target) });
};
document.addEventListener('click', onPointer, true);
document.addEventListener('dblclick', onPointer, true);

document.addEventListener('change', (event) => {
    const el = event.target;
    if (!(el instanceof Element)) return;
    send({
        kind: 'change',
        element: __webflowSnapshot(el),
        value: el.value === undefined ? '' : String(el.value),
        inputType: (el.type || '').toLowerCase(),
    });
}, true);

document.addEventListener('submit', (event) => {
    const form = event.target;
    if (!(form instanceof HTMLFormElement)) return;
    const formData = Array.from(form.elements)
        .filter(el => el.name && el.value)
        .map(el => ({ name: el.name, value: String(el.value), type: (el.type || '').toLowerCase() }));
    send({ kind: 'submit', element: __webflowSnapshot(form), formData: formData });
}, true);

document.addEventListener('keydown', (event) => {
    const chord = event.key === 'Enter' || event.key === 'Escape' ||
        (event.ctrlKey && (event.key === 'c' || event.key === 'v'));
    if (!chord) return;
    send({
        kind: 'keydown',
        key: event.key,
        ctrlKey: event.ctrlKey,
        altKey: event.altKey,
        shiftKey: event.shiftKey,
    });
}, true);

const onNavigation = () => send({ kind: 'navigation', url: location.href, title: document.title });
window.addEventListener('popstate', onNavigation);
window.addEventListener('hashchange', onNavigation);
})()
"""
    % {"binding": BINDING_NAME}
)


async def attach_recorder(page: Page, recorder: InteractionRecorder) -> None:
    """
    Route the page's interaction events into ``recorder``.

    Installs the capture script for every future document and the current
    one. Events only become Steps while the recorder is recording.
    """

    async def on_event(payload: dict) -> None:
        try:
            await recorder.handle_event(payload)
        except Exception:
            logger.exception("Failed to record %s event", payload.get("kind"))
            raise

    await page.expose_function(BINDING_NAME, on_event)
    await page.add_init_script(_CAPTURE_JS)
    await page.evaluate(_CAPTURE_JS)
    logger.debug("Capture script attached to %s", page.url)
