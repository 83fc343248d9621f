"""Workflow store: persisted collection of Workflow records keyed by id."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from webflow.core.types import Workflow

logger = logging.getLogger(__name__)

_DEFAULT_STORE_DIR = os.path.join(os.path.expanduser("~"), ".webflow", "workflows")


class WorkflowStore(ABC):
    """The storage contract the session depends on."""

    @abstractmethod
    def append(self, workflow: Workflow) -> Workflow: ...

    @abstractmethod
    def list(self) -> list[Workflow]: ...

    @abstractmethod
    def find(self, workflow_id: str) -> Workflow | None: ...

    @abstractmethod
    def replace(self, workflow: Workflow) -> Workflow:
        """Overwrite an existing record. Raises KeyError if the id is unknown."""

    @abstractmethod
    def delete(self, workflow_id: str) -> bool:
        """Remove a record. Returns True if it existed."""


class JsonWorkflowStore(WorkflowStore):
    """
    Filesystem store for workflows.

    Directory layout::

        {store_dir}/
            index.json            # id -> name / step count / timestamps
            {workflow_id}.json    # full Workflow record (versioned envelope)
    """

    def __init__(self, store_dir: str | os.PathLike | None = None) -> None:
        self._dir = Path(store_dir or _DEFAULT_STORE_DIR)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _index_path(self) -> Path:
        return self._dir / "index.json"

    def _load_index(self) -> dict:
        try:
            with open(self._index_path, encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return {}

    def _save_index(self, index: dict) -> None:
        with open(self._index_path, "w", encoding="utf-8") as f:
            json.dump(index, f, indent=2)

    def _record_path(self, workflow_id: str) -> Path:
        # Ids name files directly inside the store directory.
        if workflow_id in ("", ".", "..") or Path(workflow_id).name != workflow_id:
            raise ValueError(f"Invalid workflow id {workflow_id!r}")
        return self._dir / f"{workflow_id}.json"

    def _write(self, workflow: Workflow) -> None:
        self._record_path(workflow.id).write_text(
            json.dumps(workflow.to_dict(), indent=2), encoding="utf-8"
        )
        index = self._load_index()
        index[workflow.id] = {
            "name": workflow.name,
            "step_count": len(workflow.steps),
            "created": workflow.created,
            "modified": workflow.modified,
        }
        self._save_index(index)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, workflow: Workflow) -> Workflow:
        if workflow.id in self._load_index():
            raise ValueError(f"Workflow {workflow.id!r} already exists")
        self._write(workflow)
        return workflow

    def list(self) -> list[Workflow]:
        workflows = []
        for workflow_id in self._load_index():
            workflow = self.find(workflow_id)
            if workflow is not None:
                workflows.append(workflow)
        return workflows

    def find(self, workflow_id: str) -> Workflow | None:
        """Load a Workflow by id. Returns None if the id is invalid, missing or unreadable."""
        try:
            path = self._record_path(workflow_id)
        except ValueError:
            logger.warning("Rejected workflow id %r", workflow_id)
            return None
        if not path.exists():
            return None
        try:
            d = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Could not read workflow record %s", path, exc_info=True)
            return None
        try:
            return Workflow.from_dict(d)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping unreadable workflow %s: %s", workflow_id, exc)
            return None

    def replace(self, workflow: Workflow) -> Workflow:
        if workflow.id not in self._load_index():
            raise KeyError(f"Workflow {workflow.id!r} not found")
        workflow.modified = datetime.now(timezone.utc).isoformat()
        self._write(workflow)
        return workflow

    def delete(self, workflow_id: str) -> bool:
        index = self._load_index()
        if workflow_id not in index:
            return False

        try:
            self._record_path(workflow_id).unlink()
        except FileNotFoundError:
            pass

        del index[workflow_id]
        self._save_index(index)
        return True
