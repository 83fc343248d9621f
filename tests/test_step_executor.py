"""Unit tests for StepExecutor against the in-memory FakeTarget."""

from __future__ import annotations

import asyncio
import re
import time
from unittest.mock import AsyncMock

from webflow.core.types import (
    ClickConfig,
    CustomConfig,
    ErrorKind,
    InputConfig,
    KeypressConfig,
    NavigationConfig,
    Step,
    StepType,
    SubmitConfig,
    TabConfig,
    WaitConfig,
)
from webflow.replay.step_executor import StepExecutor, key_chord
from webflow.replay.target import DispatchAction


def make_step(step_type: StepType, config) -> Step:
    return Step.create(step_type, config)


class TestNavigation:
    async def test_navigates_and_waits_for_load(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.NAVIGATION, NavigationConfig(url="https://example.com"))
        )
        assert result.success
        assert re.fullmatch(r"Step completed in \d+ms", result.message)
        assert fake_target.navigations == ["https://example.com"]

    async def test_missing_url_is_configuration_error(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.NAVIGATION, NavigationConfig(url=""))
        )
        assert not result.success
        assert result.message == "URL is required for navigation step"
        assert result.error_kind == ErrorKind.CONFIGURATION

    async def test_load_never_fires(self, fake_target, make_options):
        fake_target.load_fires = False
        start = time.monotonic()
        result = await StepExecutor(fake_target, make_options(timeout=60)).execute(
            make_step(StepType.NAVIGATION, NavigationConfig(url="https://slow.example"))
        )
        assert time.monotonic() - start >= 0.055
        assert not result.success
        assert result.message == "Navigation timeout"
        assert result.error_kind == ErrorKind.NAVIGATION_TIMEOUT

    async def test_hanging_navigate_is_bounded_by_timeout(self, fake_target, make_options):
        async def never_answers(url):
            await asyncio.sleep(5)

        fake_target.navigate = never_answers
        start = time.monotonic()
        result = await StepExecutor(fake_target, make_options(timeout=100)).execute(
            make_step(StepType.NAVIGATION, NavigationConfig(url="https://unreachable.example"))
        )
        assert time.monotonic() - start < 1.0
        assert not result.success
        assert result.message == "Navigation timeout"
        assert result.error_kind == ErrorKind.NAVIGATION_TIMEOUT


class TestClick:
    async def test_click_scrolls_then_clicks(self, fake_target, fast_options):
        button = fake_target.add("#btn")
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CLICK, ClickConfig(selector="#btn"))
        )
        assert result.success
        assert fake_target.scrolled == [button]
        assert fake_target.dispatched == [(DispatchAction.CLICK, button, None)]

    async def test_missing_element_times_out(self, fake_target, make_options):
        result = await StepExecutor(fake_target, make_options(timeout=30)).execute(
            make_step(StepType.CLICK, ClickConfig(selector="#nope"))
        )
        assert not result.success
        assert result.message == "Timeout waiting for element: #nope"
        assert result.error_kind == ErrorKind.RESOLUTION_TIMEOUT
        assert fake_target.query_calls["#nope"] >= 2  # polled, not a single look

    async def test_covered_element_is_blocked(self, fake_target, fast_options):
        fake_target.add("#btn", clickable=False)
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CLICK, ClickConfig(selector="#btn"))
        )
        assert not result.success
        assert result.message == "Element is not clickable: #btn"
        assert result.error_kind == ErrorKind.INTERACTION_BLOCKED
        assert DispatchAction.CLICK not in fake_target.actions()

    async def test_empty_selector_is_configuration_error(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CLICK, ClickConfig(selector=""))
        )
        assert result.error_kind == ErrorKind.CONFIGURATION


class TestInput:
    async def test_types_character_by_character(self, fake_target, fast_options):
        field = fake_target.add("#q")
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.INPUT, InputConfig(selector="#q", value="ab"))
        )
        assert result.success
        assert fake_target.dispatched == [
            (DispatchAction.SET_VALUE, field, ""),
            (DispatchAction.CHANGE, field, None),
            (DispatchAction.SET_VALUE, field, "a"),
            (DispatchAction.INPUT, field, None),
            (DispatchAction.SET_VALUE, field, "ab"),
            (DispatchAction.INPUT, field, None),
            (DispatchAction.CHANGE, field, None),
        ]
        assert field.value == "ab"

    async def test_masked_password_typed_as_recorded(self, fake_target, fast_options):
        field = fake_target.add("#pw")
        await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.INPUT, InputConfig(selector="#pw", value="*****", is_password=True))
        )
        assert field.value == "*****"


class TestSubmit:
    async def test_submit_waits_for_load(self, fake_target, fast_options):
        form = fake_target.add("#login")
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.SUBMIT, SubmitConfig(selector="#login"))
        )
        assert result.success
        assert fake_target.dispatched == [(DispatchAction.SUBMIT, form, None)]

    async def test_submit_without_load_times_out(self, fake_target, make_options):
        fake_target.add("#login")
        fake_target.load_fires = False
        result = await StepExecutor(fake_target, make_options(timeout=30)).execute(
            make_step(StepType.SUBMIT, SubmitConfig(selector="#login"))
        )
        assert result.error_kind == ErrorKind.NAVIGATION_TIMEOUT


class TestWait:
    async def test_element_appearing_late_resolves(self, fake_target, fast_options):
        fake_target.add("#loaded", appear_after=3)
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.WAIT, WaitConfig(selector="#loaded"))
        )
        assert result.success
        assert fake_target.query_calls["#loaded"] == 4

    async def test_duration_wait_does_not_poll(self, fake_target, fast_options):
        start = time.monotonic()
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.WAIT, WaitConfig(duration=50))
        )
        assert result.success
        assert time.monotonic() - start >= 0.045
        assert dict(fake_target.query_calls) == {}

    async def test_neither_field_fails_immediately(self, fake_target):
        # Default 30s timeout: a configuration failure must not wait for it.
        start = time.monotonic()
        result = await StepExecutor(fake_target).execute(make_step(StepType.WAIT, WaitConfig()))
        assert not result.success
        assert result.message == "Wait step requires either duration or selector"
        assert result.error_kind == ErrorKind.CONFIGURATION
        assert time.monotonic() - start < 0.5

    async def test_negative_duration_rejected(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.WAIT, WaitConfig(duration=-5))
        )
        assert result.error_kind == ErrorKind.CONFIGURATION


class TestCustom:
    async def test_code_receives_step_and_context(self, fake_target, fast_options):
        step = make_step(StepType.CUSTOM, CustomConfig(code="return 1"))
        result = await StepExecutor(fake_target, fast_options).execute(
            step, current_step=2, total_steps=5
        )
        assert result.success
        code, step_dict, context = fake_target.code_calls[0]
        assert code == "return 1"
        assert step_dict["id"] == step.id
        assert context == {"currentStep": 2, "totalSteps": 5}

    async def test_failing_code_reported(self, fake_target, fast_options):
        fake_target.code_error = RuntimeError("boom")
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CUSTOM, CustomConfig(code="throw new Error('boom')"))
        )
        assert not result.success
        assert result.message == "Custom action failed: boom"
        assert result.error_kind == ErrorKind.CUSTOM_CODE

    async def test_empty_code_rejected(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CUSTOM, CustomConfig(code=""))
        )
        assert result.message == "Custom action requires code"
        assert fake_target.code_calls == []


class TestKeypressAndTabs:
    async def test_keypress_sends_chord(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.KEYPRESS, KeypressConfig(key="c", ctrl_key=True))
        )
        assert result.success
        assert fake_target.dispatched == [(DispatchAction.PRESS, None, "Control+c")]

    def test_key_chord_modifier_order(self):
        config = KeypressConfig(key="Enter", ctrl_key=True, alt_key=True, shift_key=True)
        assert key_chord(config) == "Control+Alt+Shift+Enter"

    async def test_tab_marker_succeeds_without_touching_page(self, fake_target, fast_options):
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.TAB_SWITCH, TabConfig(tab_id=3))
        )
        assert result.success
        assert "tab_switch for tab 3" in result.message
        assert fake_target.dispatched == []


class TestUnexpectedErrors:
    async def test_backend_exception_becomes_failed_result(self, fake_target, fast_options):
        fake_target.add("#btn")
        fake_target.dispatch = AsyncMock(side_effect=RuntimeError("target crashed"))
        result = await StepExecutor(fake_target, fast_options).execute(
            make_step(StepType.CLICK, ClickConfig(selector="#btn"))
        )
        assert not result.success
        assert result.message == "target crashed"
        assert result.error_kind == ErrorKind.UNEXPECTED
