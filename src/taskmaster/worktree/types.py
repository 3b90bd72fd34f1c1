"""Typed structures representing git worktree state and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .naming import task_id_from_title


@dataclass(slots=True)
class WorktreeInfo:
    """Machine-friendly representation of one `git worktree list --porcelain` block."""

    path: Path
    head: str | None = None
    branch: str | None = None
    is_bare: bool = False
    is_detached: bool = False
    locked: bool = False
    lock_reason: str | None = None
    prunable: bool = False
    prunable_reason: str | None = None

    @property
    def name(self) -> str:
        """Return the directory name of the worktree."""
        return self.path.name

    @property
    def branch_short(self) -> str | None:
        """Return branch name without refs/heads prefix when available."""
        if self.branch is None:
            return None
        if self.branch.startswith("refs/heads/"):
            return self.branch[len("refs/heads/") :]
        return self.branch

    @property
    def task_id(self) -> str | None:
        """Extract the task id from the task-<id> branch naming convention."""
        short = self.branch_short
        if short is not None:
            return task_id_from_title(short)
        if self.is_detached:
            return task_id_from_title(self.name)
        return None

    @property
    def is_task_worktree(self) -> bool:
        """Check whether the worktree follows the task-<id> convention."""
        return self.task_id is not None

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        data: dict[str, object] = {
            "path": str(self.path),
            "head": self.head,
            "branch": self.branch_short,
            "bare": self.is_bare,
            "detached": self.is_detached,
            "locked": self.locked,
            "prunable": self.prunable,
            "isTaskMasterWorktree": self.is_task_worktree,
        }
        if self.lock_reason:
            data["lockReason"] = self.lock_reason
        if self.prunable_reason:
            data["prunableReason"] = self.prunable_reason
        if self.task_id is not None:
            data["taskId"] = self.task_id
        return data


@dataclass(slots=True)
class CreateResult:
    """Outcome of a successful worktree creation."""

    task_id: str
    worktree_path: Path
    branch_name: str
    base_branch: str | None
    output: str = ""
    success: bool = True

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "taskId": self.task_id,
            "worktreePath": str(self.worktree_path),
            "branchName": self.branch_name,
            "baseBranch": self.base_branch,
            "output": self.output,
        }


@dataclass(slots=True)
class RemoveResult:
    """Outcome of a worktree removal, including declined forced removals."""

    worktree_title: str
    worktree_path: Path
    branch_name: str
    success: bool = True
    branch_removed: bool = False
    cancelled: bool = False

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "success": self.success,
            "worktreeTitle": self.worktree_title,
            "worktreePath": str(self.worktree_path),
            "branchName": self.branch_name,
            "branchRemoved": self.branch_removed,
        }
        if self.cancelled:
            data["cancelled"] = True
        return data


@dataclass(slots=True)
class SyncResult:
    """Summary of a registry reconciliation pass."""

    ok: bool = True
    checked: int = 0
    removed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed)
