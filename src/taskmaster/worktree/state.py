"""Worktree registry persisted in the shared project state document.

The registry lives under the ``worktrees`` key of ``.taskmaster/state.json``.
That file also carries unrelated keys owned by other features (current tag,
migration notices, ...), so every write reloads the whole document, replaces
only ``worktrees`` and writes everything back.

The registry is a cache of git and filesystem state. Reading it never raises
and a failed read always degrades to an empty registry.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskmaster.config import TASKMASTER_DIR

logger = logging.getLogger(__name__)

STATE_FILENAME = "state.json"
DEFAULT_STATE_MODE = 0o644


def _utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


class WorktreeEntry(BaseModel):
    """Registry record for one task worktree."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    task_id: str = Field(alias="taskId")
    branch_name: str = Field(
        validation_alias=AliasChoices("branchName", "branch"),
        serialization_alias="branchName",
    )
    # Older registries stored the location under "path".
    worktree_path: str = Field(
        validation_alias=AliasChoices("worktreePath", "path"),
        serialization_alias="worktreePath",
    )
    created_at: str = Field(default_factory=_utc_timestamp, alias="createdAt")

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase JSON payload stored on disk."""
        return self.model_dump(by_alias=True)


class ProjectState(BaseModel):
    """The project state document; keys other than ``worktrees`` pass through untouched."""

    model_config = ConfigDict(extra="allow")

    worktrees: dict[str, Any] = Field(default_factory=dict)

    @field_validator("worktrees", mode="before")
    @classmethod
    def _coerce_worktrees(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value
        logger.warning(f"Ignoring malformed worktrees section of type {type(value).__name__}")
        return {}


def state_path(project_root: str | Path) -> Path:
    """Return the path of the project state document."""
    return Path(project_root) / TASKMASTER_DIR / STATE_FILENAME


class WorktreeStateStore:
    """Reads and writes the worktree registry for one project."""

    def __init__(self, project_root: str | Path) -> None:
        self.project_root = Path(project_root)
        self.path = state_path(self.project_root)

    # ------------------------------------------------------------------
    # Document level

    def load_document(self) -> ProjectState:
        """
        Load the full state document.

        An absent file, unparsable JSON or a top-level value that is not an
        object yields an empty document. A malformed ``worktrees`` section
        only resets that section; sibling keys are kept.
        """
        if not self.path.exists():
            return ProjectState()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return ProjectState.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(f"Ignoring unreadable state file {self.path}: {exc}")
            return ProjectState()

    def _file_mode(self) -> int:
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            return DEFAULT_STATE_MODE

    def _dump_document(self, state: ProjectState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(state.model_dump(), indent=2, ensure_ascii=False) + "\n"
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{STATE_FILENAME}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            # mkstemp creates 0600; keep the document as readable as before.
            os.chmod(tmp_name, self._file_mode())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Registry operations

    def read(self) -> dict[str, WorktreeEntry]:
        """Return registry entries keyed by worktree title."""
        raw = self.load_document().worktrees
        entries: dict[str, WorktreeEntry] = {}
        for title, payload in raw.items():
            try:
                entries[title] = WorktreeEntry.model_validate(payload)
            except ValidationError as exc:
                logger.warning(f"Dropping malformed registry entry {title!r}: {exc}")
        return entries

    def write(self, entries: Mapping[str, WorktreeEntry]) -> None:
        """
        Replace the registry section and persist the whole document.

        Raises:
            OSError: When the document cannot be written.
        """
        state = self.load_document()
        state.worktrees = {title: entry.to_payload() for title, entry in entries.items()}
        self._dump_document(state)

    def add(
        self,
        *,
        worktree_title: str,
        task_id: str,
        branch_name: str,
        worktree_path: str | Path,
    ) -> WorktreeEntry:
        """Insert or overwrite the entry for ``worktree_title`` with a fresh timestamp."""
        entries = self.read()
        entry = WorktreeEntry(
            task_id=task_id,
            branch_name=branch_name,
            worktree_path=str(worktree_path),
        )
        entries[worktree_title] = entry
        self.write(entries)
        return entry

    def remove(self, worktree_title: str) -> bool:
        """Delete the entry for ``worktree_title``; return whether one existed."""
        entries = self.read()
        existed = entries.pop(worktree_title, None) is not None
        self.write(entries)
        return existed

    def find_by_task_id(self, task_id: str) -> tuple[str, WorktreeEntry] | None:
        """Return ``(title, entry)`` for the first entry created for ``task_id``."""
        for title, entry in self.read().items():
            if entry.task_id == task_id:
                return title, entry
        return None


def read_worktree_state(project_root: str | Path) -> dict[str, WorktreeEntry]:
    return WorktreeStateStore(project_root).read()


def write_worktree_state(project_root: str | Path, entries: Mapping[str, WorktreeEntry]) -> None:
    WorktreeStateStore(project_root).write(entries)


def add_worktree_to_state(
    project_root: str | Path,
    *,
    worktree_title: str,
    task_id: str,
    branch_name: str,
    worktree_path: str | Path,
) -> WorktreeEntry:
    return WorktreeStateStore(project_root).add(
        worktree_title=worktree_title,
        task_id=task_id,
        branch_name=branch_name,
        worktree_path=worktree_path,
    )


def remove_worktree_from_state(project_root: str | Path, worktree_title: str) -> bool:
    return WorktreeStateStore(project_root).remove(worktree_title)
