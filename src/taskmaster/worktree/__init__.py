"""
Git worktree management for Task Master.

Each task can get an isolated checkout under ``worktrees/task-<id>`` on branch
``task-<id>``. The association is cached in ``.taskmaster/state.json`` and
reconciled against git before it is trusted.
"""

from .events import (
    WORKTREE_CREATED,
    WORKTREE_REMOVED,
    EventSink,
    WorktreeEvent,
    WorktreeEventBus,
)
from .exceptions import (
    GitCommandError,
    GitErrorKind,
    WorktreeCreateError,
    WorktreeDirtyError,
    WorktreeDisabledError,
    WorktreeError,
    WorktreeForbiddenError,
    WorktreeInUseError,
    WorktreeNotFoundError,
    WorktreeUnmergedError,
    WorktreeValidationError,
)
from .git import GitRunner, classify_git_error, clean_error_message, parse_porcelain
from .manager import (
    WorktreeManager,
    create_worktree,
    list_worktrees,
    remove_worktree,
    remove_worktree_and_branch,
)
from .naming import branch_name, get_worktree_title, worktree_path
from .reconcile import StateReconciler
from .state import WorktreeEntry, WorktreeStateStore
from .types import CreateResult, RemoveResult, SyncResult, WorktreeInfo

__all__ = [
    "WORKTREE_CREATED",
    "WORKTREE_REMOVED",
    "EventSink",
    "WorktreeEvent",
    "WorktreeEventBus",
    "GitCommandError",
    "GitErrorKind",
    "WorktreeCreateError",
    "WorktreeDirtyError",
    "WorktreeDisabledError",
    "WorktreeError",
    "WorktreeForbiddenError",
    "WorktreeInUseError",
    "WorktreeNotFoundError",
    "WorktreeUnmergedError",
    "WorktreeValidationError",
    "GitRunner",
    "classify_git_error",
    "clean_error_message",
    "parse_porcelain",
    "WorktreeManager",
    "create_worktree",
    "list_worktrees",
    "remove_worktree",
    "remove_worktree_and_branch",
    "branch_name",
    "get_worktree_title",
    "worktree_path",
    "StateReconciler",
    "WorktreeEntry",
    "WorktreeStateStore",
    "CreateResult",
    "RemoveResult",
    "SyncResult",
    "WorktreeInfo",
]
