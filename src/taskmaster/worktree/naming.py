"""Naming helpers for task worktree directories and branches."""

from __future__ import annotations

import os
import re
from pathlib import Path

WORKTREES_DIR = "worktrees"
WORKTREE_PREFIX = "task-"

TASK_ID_PATTERN = re.compile(r"^\d+(\.\d+)*$")
WORKTREE_TITLE_PATTERN = re.compile(rf"^{WORKTREE_PREFIX}(\d+(?:\.\d+)*)$")


def branch_name(task_id: str) -> str:
    """Return the branch checked out in the worktree for ``task_id``."""
    return f"{WORKTREE_PREFIX}{task_id}"


def get_worktree_title(task_id: str) -> str:
    """Return the worktree title (registry key and directory name) for ``task_id``."""
    return branch_name(task_id)


def worktrees_dir(project_root: str | Path) -> Path:
    """Return the directory that holds every task worktree."""
    return Path(os.path.abspath(project_root)) / WORKTREES_DIR


def worktree_path_for_title(project_root: str | Path, worktree_title: str) -> Path:
    """Return the absolute path of the worktree named ``worktree_title``."""
    return worktrees_dir(project_root) / worktree_title


def worktree_path(project_root: str | Path, task_id: str) -> Path:
    """Return the absolute path of the worktree created for ``task_id``."""
    return worktree_path_for_title(project_root, get_worktree_title(task_id))


def task_id_from_title(title: str | None) -> str | None:
    """Extract the task id from a ``task-<id>`` branch or directory name."""
    if not title:
        return None
    match = WORKTREE_TITLE_PATTERN.match(title)
    if match is None:
        return None
    return match.group(1)


def is_valid_task_id(task_id: str) -> bool:
    """Return True for ids such as ``"6"`` or ``"1.2"``."""
    return bool(TASK_ID_PATTERN.match(task_id))


def is_valid_worktree_title(title: str) -> bool:
    """Return True for titles such as ``"task-6"`` or ``"task-1.2"``."""
    return task_id_from_title(title) is not None
