"""Error taxonomy shared by the recorder and the replay engine."""

from __future__ import annotations

from webflow.core.types import ErrorKind


class WebflowError(Exception):
    kind: ErrorKind = ErrorKind.UNEXPECTED


class StepConfigurationError(WebflowError):
    """A step's config violates its required-field contract."""

    kind = ErrorKind.CONFIGURATION


class ResolutionTimeout(WebflowError):
    kind = ErrorKind.RESOLUTION_TIMEOUT

    def __init__(self, selector: str, timeout_ms: int) -> None:
        super().__init__(f"Timeout waiting for element: {selector}")
        self.selector = selector
        self.timeout_ms = timeout_ms


class InteractionBlockedError(WebflowError):
    """Element resolved but has no size or is covered by another element."""

    kind = ErrorKind.INTERACTION_BLOCKED

    def __init__(self, selector: str) -> None:
        super().__init__(f"Element is not clickable: {selector}")
        self.selector = selector


class NavigationTimeout(WebflowError):
    kind = ErrorKind.NAVIGATION_TIMEOUT

    def __init__(self, timeout_ms: int | None = None) -> None:
        super().__init__("Navigation timeout")
        self.timeout_ms = timeout_ms


class CustomCodeError(WebflowError):
    kind = ErrorKind.CUSTOM_CODE

    def __init__(self, detail: str) -> None:
        super().__init__(f"Custom action failed: {detail}")
        self.detail = detail


class ProtocolError(WebflowError, RuntimeError):
    """Invalid state transition (e.g. stopping a recorder that is idle)."""

    kind = ErrorKind.PROTOCOL


# Failures that cannot succeed on a later attempt.
NON_RETRYABLE = frozenset({ErrorKind.CONFIGURATION, ErrorKind.PROTOCOL})
