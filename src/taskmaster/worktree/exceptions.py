"""Custom exceptions for worktree operations."""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class GitErrorKind(str, Enum):
    """Closed set of failure categories recognised in git output."""

    UNCOMMITTED = "uncommitted"
    UNMERGED = "unmerged"
    NOT_FOUND = "not_found"
    ALREADY_CHECKED_OUT = "already_checked_out"
    GENERIC = "generic"


class WorktreeError(RuntimeError):
    """Base exception for worktree related failures."""


class WorktreeValidationError(WorktreeError, ValueError):
    """Raised when a required argument is missing or malformed."""


class WorktreeDisabledError(WorktreeError):
    """Raised when the worktrees feature is switched off for the project."""


class WorktreeNotFoundError(WorktreeError):
    """Raised when a requested worktree cannot be located."""


class WorktreeInUseError(WorktreeError):
    """Raised when the current working directory is inside the worktree being removed."""


class WorktreeDirtyError(WorktreeError):
    """Raised when attempting to remove a worktree that has uncommitted changes."""


class WorktreeUnmergedError(WorktreeError):
    """Raised when a task branch still carries commits missing from its base."""


class WorktreeForbiddenError(WorktreeError):
    """Raised when a forbidden option combination is requested."""


class GitCommandError(WorktreeError):
    """Raised when an underlying git command fails."""

    def __init__(
        self,
        argv: Sequence[str],
        message: str,
        *,
        returncode: int | None = None,
        kind: GitErrorKind = GitErrorKind.GENERIC,
    ) -> None:
        super().__init__(message)
        self.argv = list(argv)
        self.message = message
        self.returncode = returncode
        self.kind = kind

    def __str__(self) -> str:
        return self.message or f"git command failed ({' '.join(self.argv)})"


class WorktreeCreateError(WorktreeError):
    """Raised when ``git worktree add`` fails."""

    def __init__(self, message: str, *, kind: GitErrorKind = GitErrorKind.GENERIC) -> None:
        super().__init__(message)
        self.kind = kind
