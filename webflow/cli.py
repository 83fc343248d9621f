"""
Command-line entry point.

  webflow record URL      record interactions in a headed browser
  webflow replay ID       replay a saved workflow
  webflow list / show / delete
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from webflow.core.config import ExecutionOptions
from webflow.core.store import JsonWorkflowStore
from webflow.core.types import ExecutionResult, Workflow

logger = logging.getLogger(__name__)

app = typer.Typer(
    help=(
        "webflow: record browser interactions and replay them.\n\n"
        "  1. webflow record https://example.com   (close the window to finish)\n"
        "  2. webflow replay <workflow id>"
    ),
    no_args_is_help=True,
)

_STORE_OPTION = typer.Option(
    None, "--store", envvar="WEBFLOW_STORE", help="Workflow directory (default: ~/.webflow/workflows)",
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# record
# ---------------------------------------------------------------------------


@app.command()
def record(
    url: str = typer.Argument(..., help="Page to start recording on"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Workflow name"),
    store_dir: Optional[Path] = _STORE_OPTION,
) -> None:
    """Open a browser at URL and record until its window is closed."""
    store = JsonWorkflowStore(store_dir)
    typer.echo(f"Recording {url}. Close the browser window to finish.")
    try:
        workflow = asyncio.run(_record(url, store, name))
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if workflow is None:
        typer.echo("Nothing was recorded.")
        return
    typer.echo(f"Saved workflow {workflow.id} ({len(workflow.steps)} steps)")


async def _record(url: str, store: JsonWorkflowStore, name: str | None) -> Workflow | None:
    from playwright.async_api import async_playwright

    from webflow.core.session import WorkflowSession
    from webflow.recorder.capture import attach_recorder
    from webflow.recorder.recorder import InteractionRecorder
    from webflow.recorder.selectors import SelectorSynthesizer
    from webflow.replay.playwright_target import PlaywrightTarget
    from webflow.replay.step_executor import StepExecutor

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=False)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            target = PlaywrightTarget(page)
            recorder = InteractionRecorder(SelectorSynthesizer(target))
            session = WorkflowSession(recorder, StepExecutor(target), store=store)

            tab_ids = {page: 0}

            def on_new_page(new_page) -> None:
                tab_ids[new_page] = len(tab_ids)
                session.on_tab_activated(tab_ids[new_page])

            closed: asyncio.Future = asyncio.get_running_loop().create_future()

            def on_close(_page) -> None:
                # Records tab_closed, stops the recording and saves it.
                workflow = session.on_tab_removed(0)
                if not closed.done():
                    closed.set_result(workflow)

            context.on("page", on_new_page)
            page.on("load", lambda p: session.on_tab_updated(tab_ids[p], p.url))
            page.on("close", on_close)
            browser.on("disconnected", lambda _browser: on_close(page))

            session.start_recording(target_id=0, name=name)
            await attach_recorder(page, recorder)
            await page.goto(url)
            workflow = await closed
            if workflow is None or not workflow.steps:
                return None
            return workflow
        finally:
            await browser.close()


# ---------------------------------------------------------------------------
# replay
# ---------------------------------------------------------------------------


@app.command()
def replay(
    workflow_id: str = typer.Argument(..., help="Id of a saved workflow"),
    headed: bool = typer.Option(False, "--headed/--headless", help="Show the browser"),
    retry_count: int = typer.Option(3, "--retry-count", help="Attempts per step"),
    timeout: int = typer.Option(30_000, "--timeout", help="Element and load timeout (ms)"),
    delay: int = typer.Option(1000, "--delay", help="Pause between steps (ms)"),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep going after a step fails",
    ),
    store_dir: Optional[Path] = _STORE_OPTION,
) -> None:
    """Replay a saved workflow and print one line per step."""
    store = JsonWorkflowStore(store_dir)
    workflow = store.find(workflow_id)
    if workflow is None:
        typer.echo(f"Error: workflow {workflow_id} not found", err=True)
        raise typer.Exit(code=1)

    try:
        options = ExecutionOptions(
            timeout=timeout,
            retry_count=retry_count,
            delay_between_steps=delay,
            continue_on_error=continue_on_error,
        )
        results = asyncio.run(_replay(workflow, options, headed))
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    steps = {s.id: s for s in workflow.steps}
    for index, result in enumerate(results, 1):
        mark = "ok  " if result.success else "FAIL"
        step_type = steps[result.step_id].type.value if result.step_id in steps else "?"
        typer.echo(f"{mark} {index:>3} {step_type:<11} {result.message}")

    passed = sum(1 for r in results if r.success)
    typer.echo(f"{passed}/{len(workflow.steps)} steps succeeded")
    if passed != len(workflow.steps):
        raise typer.Exit(code=1)


async def _replay(workflow: Workflow, options: ExecutionOptions, headed: bool) -> list[ExecutionResult]:
    from playwright.async_api import async_playwright

    from webflow.replay.executor import WorkflowExecutor
    from webflow.replay.playwright_target import PlaywrightTarget
    from webflow.replay.step_executor import StepExecutor

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=not headed)
        try:
            page = await browser.new_page()
            step_executor = StepExecutor(PlaywrightTarget(page), options)

            def on_progress(percent: int, index: int) -> None:
                logger.info("Step %d/%d (%d%%)", index + 1, len(workflow.steps), percent)

            executor = WorkflowExecutor(step_executor, options, on_progress=on_progress)
            return await executor.run(workflow.steps)
        finally:
            await browser.close()


# ---------------------------------------------------------------------------
# list / show / delete
# ---------------------------------------------------------------------------


@app.command("list")
def list_workflows(store_dir: Optional[Path] = _STORE_OPTION) -> None:
    """List saved workflows."""
    workflows = JsonWorkflowStore(store_dir).list()
    if not workflows:
        typer.echo("No workflows saved.")
        return
    for workflow in workflows:
        typer.echo(f"{workflow.id}  {len(workflow.steps):>3} steps  {workflow.name}")


@app.command()
def show(
    workflow_id: str = typer.Argument(..., help="Id of a saved workflow"),
    store_dir: Optional[Path] = _STORE_OPTION,
) -> None:
    """Print a workflow as JSON."""
    workflow = JsonWorkflowStore(store_dir).find(workflow_id)
    if workflow is None:
        typer.echo(f"Error: workflow {workflow_id} not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(workflow.to_dict(), indent=2))


@app.command()
def delete(
    workflow_id: str = typer.Argument(..., help="Id of a saved workflow"),
    store_dir: Optional[Path] = _STORE_OPTION,
) -> None:
    """Delete a saved workflow."""
    if not JsonWorkflowStore(store_dir).delete(workflow_id):
        typer.echo(f"Error: workflow {workflow_id} not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {workflow_id}")
