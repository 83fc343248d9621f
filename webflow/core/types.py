"""Shared types and dataclasses for recorded steps, results and workflows."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

MASK = "*****"  # stands in for every recorded password value

# Bump when the persisted step/config layout changes incompatibly.
WORKFLOW_SCHEMA_VERSION = 1


def now_ms() -> int:
    return int(time.time() * 1000)


class StepType(str, Enum):
    NAVIGATION = "navigation"
    CLICK = "click"
    INPUT = "input"
    SUBMIT = "submit"
    WAIT = "wait"
    CUSTOM = "custom"
    TAB_SWITCH = "tab_switch"
    TAB_CLOSED = "tab_closed"
    KEYPRESS = "keypress"


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    RESOLUTION_TIMEOUT = "resolution_timeout"
    INTERACTION_BLOCKED = "interaction_blocked"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    CUSTOM_CODE = "custom_code"
    PROTOCOL = "protocol"
    UNEXPECTED = "unexpected"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


# ---------------------------------------------------------------------------
# Step config variants (one payload class per StepType)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NavigationConfig:
    url: str
    title: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title}

    @classmethod
    def from_dict(cls, d: dict) -> NavigationConfig:
        return cls(url=d.get("url", ""), title=d.get("title", ""))


@dataclass(frozen=True)
class ClickConfig:
    selector: str
    inner_text: str = ""
    tag: str = ""
    attributes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "innerText": self.inner_text,
            "tag": self.tag,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ClickConfig:
        return cls(
            selector=d.get("selector", ""),
            inner_text=d.get("innerText", ""),
            tag=d.get("tag", ""),
            attributes=dict(d.get("attributes") or {}),
        )


@dataclass(frozen=True)
class InputConfig:
    selector: str
    value: str
    input_type: str = "text"
    is_password: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "value": self.value,
            "type": self.input_type,
            "isPassword": self.is_password,
        }

    @classmethod
    def from_dict(cls, d: dict) -> InputConfig:
        return cls(
            selector=d.get("selector", ""),
            value=d.get("value", ""),
            input_type=d.get("type", "text"),
            is_password=bool(d.get("isPassword", False)),
        )


@dataclass(frozen=True)
class SubmitConfig:
    selector: str
    form_data: dict[str, str] = field(default_factory=dict)  # passwords masked

    def to_dict(self) -> dict[str, Any]:
        return {"selector": self.selector, "formData": dict(self.form_data)}

    @classmethod
    def from_dict(cls, d: dict) -> SubmitConfig:
        return cls(
            selector=d.get("selector", ""),
            form_data=dict(d.get("formData") or {}),
        )


@dataclass(frozen=True)
class WaitConfig:
    duration: int | None = None  # ms
    selector: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.duration is not None:
            d["duration"] = self.duration
        if self.selector is not None:
            d["selector"] = self.selector
        return d

    @classmethod
    def from_dict(cls, d: dict) -> WaitConfig:
        return cls(duration=d.get("duration"), selector=d.get("selector"))


@dataclass(frozen=True)
class CustomConfig:
    code: str

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code}

    @classmethod
    def from_dict(cls, d: dict) -> CustomConfig:
        return cls(code=d.get("code", ""))


@dataclass(frozen=True)
class TabConfig:
    tab_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"tabId": self.tab_id}

    @classmethod
    def from_dict(cls, d: dict) -> TabConfig:
        return cls(tab_id=d.get("tabId"))


@dataclass(frozen=True)
class KeypressConfig:
    key: str
    ctrl_key: bool = False
    alt_key: bool = False
    shift_key: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "ctrlKey": self.ctrl_key,
            "altKey": self.alt_key,
            "shiftKey": self.shift_key,
        }

    @classmethod
    def from_dict(cls, d: dict) -> KeypressConfig:
        return cls(
            key=d.get("key", ""),
            ctrl_key=bool(d.get("ctrlKey", False)),
            alt_key=bool(d.get("altKey", False)),
            shift_key=bool(d.get("shiftKey", False)),
        )


StepConfig = Union[
    NavigationConfig,
    ClickConfig,
    InputConfig,
    SubmitConfig,
    WaitConfig,
    CustomConfig,
    TabConfig,
    KeypressConfig,
]

CONFIG_TYPES: dict[StepType, type] = {
    StepType.NAVIGATION: NavigationConfig,
    StepType.CLICK: ClickConfig,
    StepType.INPUT: InputConfig,
    StepType.SUBMIT: SubmitConfig,
    StepType.WAIT: WaitConfig,
    StepType.CUSTOM: CustomConfig,
    StepType.TAB_SWITCH: TabConfig,
    StepType.TAB_CLOSED: TabConfig,
    StepType.KEYPRESS: KeypressConfig,
}


def config_from_dict(step_type: StepType | str, data: dict | None) -> StepConfig:
    """Build the typed payload for ``step_type`` from its wire dict."""
    try:
        step_type = StepType(step_type)
    except ValueError:
        raise ValueError(f"Unknown step type: {step_type}") from None
    return CONFIG_TYPES[step_type].from_dict(data or {})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Step:
    """One recorded/replayable unit of interaction."""

    id: str
    type: StepType
    config: StepConfig
    timestamp: int  # ms since epoch, capture time

    def __post_init__(self) -> None:
        expected = CONFIG_TYPES[self.type]
        if not isinstance(self.config, expected):
            raise TypeError(
                f"{self.type.value} step needs {expected.__name__}, "
                f"got {type(self.config).__name__}"
            )

    @classmethod
    def create(cls, step_type: StepType, config: StepConfig, timestamp: int | None = None) -> Step:
        return cls(
            id=uuid.uuid4().hex,
            type=step_type,
            config=config,
            timestamp=now_ms() if timestamp is None else timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "config": self.config.to_dict(),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Step:
        step_type = StepType(d["type"])
        return cls(
            id=d["id"],
            type=step_type,
            config=config_from_dict(step_type, d.get("config")),
            timestamp=int(d.get("timestamp", 0)),
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of executing one Step. Never mutated after creation."""

    step_id: str
    success: bool
    message: str
    timestamp: int
    error_kind: ErrorKind | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepId": self.step_id,
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "attempts": self.attempts,
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Workflow:
    """A named, ordered sequence of Steps plus metadata."""

    id: str
    name: str
    steps: list[Step] = field(default_factory=list)
    description: str = ""
    tags: list[str] = field(default_factory=list)
    created: str = field(default_factory=_utc_now)
    modified: str = field(default_factory=_utc_now)

    @classmethod
    def new(cls, name: str, steps: list[Step], description: str = "", tags: list[str] | None = None) -> Workflow:
        return cls(
            id=uuid.uuid4().hex,
            name=name or "Untitled Workflow",
            steps=list(steps),
            description=description,
            tags=list(tags or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": WORKFLOW_SCHEMA_VERSION,
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "created": self.created,
            "modified": self.modified,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Workflow:
        # Records written before versioning carry no tag: treat them as v1.
        version = d.get("version", 1)
        if version > WORKFLOW_SCHEMA_VERSION:
            raise ValueError(
                f"Workflow {d.get('id')!r} uses schema version {version}; "
                f"this build understands up to {WORKFLOW_SCHEMA_VERSION}"
            )
        return cls(
            id=d["id"],
            name=d.get("name", "Untitled Workflow"),
            steps=[Step.from_dict(s) for s in d.get("steps", [])],
            description=d.get("description", ""),
            tags=list(d.get("tags", [])),
            created=d.get("created", ""),
            modified=d.get("modified", ""),
        )
