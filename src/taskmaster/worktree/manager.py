"""High-level orchestration for the task worktree lifecycle."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

from taskmaster.config import get_settings, is_worktrees_enabled

from .events import WORKTREE_CREATED, WORKTREE_REMOVED, EventSink, WorktreeEventBus
from .exceptions import (
    GitCommandError,
    GitErrorKind,
    WorktreeCreateError,
    WorktreeDirtyError,
    WorktreeDisabledError,
    WorktreeForbiddenError,
    WorktreeInUseError,
    WorktreeNotFoundError,
    WorktreeUnmergedError,
    WorktreeValidationError,
)
from .git import GitRunner
from .logs import OperationLog, Reporter
from .naming import (
    WORKTREES_DIR,
    get_worktree_title,
    is_valid_task_id,
    is_valid_worktree_title,
    worktree_path_for_title,
    worktrees_dir,
)
from .reconcile import StateReconciler
from .state import WorktreeStateStore
from .types import CreateResult, RemoveResult, WorktreeInfo

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = (
    "Worktrees are disabled for this project. This is a deliberate operator setting: "
    "do not retry, and do not work around it with raw git commands. "
    "Ask a human to enable it in .taskmaster/config.json with features.worktrees: true."
)

ConfirmCallback = Callable[[str], bool]
FeatureGate = Callable[[Path], bool]


def _normalize(path: str | Path) -> Path:
    return Path(os.path.normcase(os.path.realpath(path)))


def _is_within(path: str | Path, parent: str | Path) -> bool:
    return _normalize(path).is_relative_to(_normalize(parent))


def _current_directory() -> Path | None:
    try:
        return Path(os.getcwd())
    except FileNotFoundError:
        # The cwd was deleted underneath us; it cannot be inside a live worktree.
        return None


def _inside_some_worktree(cwd: Path | None) -> bool:
    if cwd is None:
        return False
    parts = cwd.parts
    for index, part in enumerate(parts[:-1]):
        if part == WORKTREES_DIR and is_valid_worktree_title(parts[index + 1]):
            return True
    return False


class WorktreeManager:
    """Creates, removes and lists git worktrees bound to Task Master tasks."""

    def __init__(
        self,
        project_root: str | Path,
        *,
        events: EventSink | None = None,
        store: WorktreeStateStore | None = None,
        git: GitRunner | None = None,
        reconciler: StateReconciler | None = None,
        feature_gate: FeatureGate | None = None,
        timeout: float | None = None,
    ) -> None:
        if not project_root:
            raise WorktreeValidationError("project_root is required for worktree operations")
        self.project_root = Path(os.path.abspath(project_root))
        self.events: EventSink = events if events is not None else WorktreeEventBus()
        self.store = store or WorktreeStateStore(self.project_root)
        if git is None:
            git = GitRunner(timeout if timeout is not None else get_settings().GIT_TIMEOUT)
        self.git = git
        self.reconciler = reconciler or StateReconciler(
            self.project_root, store=self.store, git=self.git
        )
        self._feature_gate = feature_gate or is_worktrees_enabled

    # ------------------------------------------------------------------
    # Creation

    def create(
        self,
        task_id: str,
        base_branch: str | None = None,
        *,
        log: OperationLog | None = None,
    ) -> CreateResult:
        """Create ``worktrees/task-<id>`` on branch ``task-<id>``."""
        if not task_id:
            raise WorktreeValidationError("task_id is required to create a worktree")
        if not is_valid_task_id(task_id):
            raise WorktreeValidationError(
                f'Invalid task ID format: {task_id!r}. Must be numeric (e.g., "1", "1.2")'
            )
        self._ensure_enabled()
        report = Reporter(logger, log)

        worktree_title = get_worktree_title(task_id)
        branch = worktree_title
        path = worktree_path_for_title(self.project_root, worktree_title)

        try:
            directory = worktrees_dir(self.project_root)
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                report.info(f"Created worktrees directory: {directory}")

            report.info(f"Creating worktree for task {task_id} on branch {branch}")
            if self.git.branch_exists(branch, cwd=self.project_root):
                args = ["worktree", "add", str(path), branch]
                report.info(f"Using existing branch {branch}")
            else:
                if base_branch is None:
                    base_branch = self.git.current_branch(cwd=self.project_root)
                args = ["worktree", "add", "-b", branch, str(path)]
                if base_branch:
                    args.append(base_branch)
                report.info(f"Creating new branch {branch} from {base_branch or 'HEAD'}")

            result = self.git.run(args, cwd=self.project_root)
        except GitCommandError as exc:
            report.error(f"Failed to create worktree for task {task_id}: {exc}")
            raise WorktreeCreateError(f"Error creating worktree: {exc}", kind=exc.kind) from exc
        except OSError as exc:
            report.error(f"Failed to create worktree for task {task_id}: {exc}")
            raise WorktreeCreateError(f"Error creating worktree: {exc}") from exc

        report.info(f"Successfully created worktree at {path}")

        try:
            self.store.add(
                worktree_title=worktree_title,
                task_id=task_id,
                branch_name=branch,
                worktree_path=path,
            )
            report.info(f"Added worktree to registry: {worktree_title}")
        except (OSError, ValueError) as exc:
            report.warning(f"Failed to add worktree to registry: {exc}")

        self.events.emit(
            WORKTREE_CREATED,
            {
                "taskId": task_id,
                "path": str(path),
                "branch": branch,
                "baseBranch": base_branch,
                "worktreeTitle": worktree_title,
            },
        )

        return CreateResult(
            task_id=task_id,
            worktree_path=path,
            branch_name=branch,
            base_branch=base_branch,
            output=(result.stdout or "") + (result.stderr or ""),
        )

    # ------------------------------------------------------------------
    # Removal

    def remove(
        self,
        worktree_title: str,
        *,
        force: bool = False,
        remove_branch: bool = False,
        confirm: ConfirmCallback | None = None,
        log: OperationLog | None = None,
    ) -> RemoveResult:
        """
        Remove a task worktree, keeping its branch.

        Without ``force`` a dirty worktree raises :class:`WorktreeDirtyError`.
        With ``force`` the optional ``confirm`` callback is asked before
        discarding uncommitted work; a falsy answer cancels the removal and
        returns a result with ``cancelled=True``.
        """
        if not worktree_title:
            raise WorktreeValidationError("worktree_title is required to remove a worktree")
        self._ensure_enabled()

        if remove_branch:
            return self.remove_with_branch(worktree_title, force=force, log=log)

        report = Reporter(logger, log)
        path = worktree_path_for_title(self.project_root, worktree_title)
        branch = worktree_title

        self._ensure_not_inside(path)
        self._ensure_exists(worktree_title, path)

        report.info(f"Removing {worktree_title} at {path}")
        try:
            self.git.run(["worktree", "remove", str(path)], cwd=self.project_root)
        except GitCommandError as exc:
            if exc.kind is not GitErrorKind.UNCOMMITTED:
                report.error(f"Failed to remove {worktree_title}: {exc}")
                raise
            if not force:
                raise WorktreeDirtyError(
                    f"{worktree_title} has uncommitted changes. Please commit or stash "
                    "changes before removing or try again with --force"
                ) from exc
            if confirm is not None:
                proceed = confirm(
                    f"{worktree_title} contains uncommitted changes that will be "
                    "PERMANENTLY LOST. Continue? (y/N)"
                )
                if not proceed:
                    report.info(f"Removal of {worktree_title} cancelled")
                    return RemoveResult(
                        worktree_title=worktree_title,
                        worktree_path=path,
                        branch_name=branch,
                        success=False,
                        cancelled=True,
                    )
            report.info("Force removing worktree with uncommitted changes")
            try:
                self.git.run(["worktree", "remove", "--force", str(path)], cwd=self.project_root)
            except GitCommandError as force_exc:
                report.error(f"Failed to remove {worktree_title}: {force_exc}")
                raise

        report.info(f"{worktree_title} removed successfully")
        self._forget(worktree_title, report, reconcile=True)

        self.events.emit(
            WORKTREE_REMOVED,
            {
                "worktreeTitle": worktree_title,
                "path": str(path),
                "branch": branch,
                "branchRemoved": False,
                "forced": force,
            },
        )

        return RemoveResult(
            worktree_title=worktree_title,
            worktree_path=path,
            branch_name=branch,
            branch_removed=False,
        )

    def remove_with_branch(
        self,
        worktree_title: str,
        *,
        force: bool = False,
        base_branch: str | None = None,
        log: OperationLog | None = None,
    ) -> RemoveResult:
        """
        Remove a clean, fully merged task worktree together with its branch.

        ``force`` is rejected outright. The branch is deleted with
        ``git branch -d`` so git refuses unmerged work a second time.
        """
        if not worktree_title:
            raise WorktreeValidationError("worktree_title is required to remove a worktree")
        self._ensure_enabled()
        if force:
            raise WorktreeForbiddenError(
                "--force is not supported together with --remove-branch. Merge or commit "
                "the work first, or remove only the worktree with --force."
            )

        report = Reporter(logger, log)
        path = worktree_path_for_title(self.project_root, worktree_title)
        branch = worktree_title

        self._ensure_not_inside(path)
        self._ensure_exists(worktree_title, path)

        report.info(f"Removing {worktree_title} and branch {branch}")
        self._ensure_clean(worktree_title, path, report)
        self._ensure_merged(branch, base_branch, report)

        try:
            self.git.run(["worktree", "remove", str(path)], cwd=self.project_root)
        except GitCommandError as exc:
            report.error(f"Failed to remove {worktree_title} and branch: {exc}")
            if exc.kind is GitErrorKind.UNCOMMITTED:
                raise WorktreeDirtyError(
                    f"{worktree_title} has uncommitted changes. Please commit or stash "
                    "changes before removing"
                ) from exc
            raise

        self._forget(worktree_title, report, reconcile=False)

        try:
            self.git.run(["branch", "-d", branch], cwd=self.project_root)
        except GitCommandError as exc:
            report.error(f"Worktree removed but branch {branch} was kept: {exc}")
            if exc.kind is GitErrorKind.UNMERGED:
                raise WorktreeUnmergedError(
                    f"Branch {branch} has unmerged changes. Please merge, rebase, "
                    "or stash changes then try again"
                ) from exc
            raise

        report.info(f"Worktree and branch {branch} removed successfully")
        self.events.emit(
            WORKTREE_REMOVED,
            {
                "worktreeTitle": worktree_title,
                "path": str(path),
                "branch": branch,
                "branchRemoved": True,
                "forced": False,
            },
        )

        return RemoveResult(
            worktree_title=worktree_title,
            worktree_path=path,
            branch_name=branch,
            branch_removed=True,
        )

    # ------------------------------------------------------------------
    # Listing

    def list_worktrees(self, *, log: OperationLog | None = None) -> list[WorktreeInfo]:
        """Return every worktree git knows about, after reconciling the registry."""
        self._ensure_enabled()
        report = Reporter(logger, log)

        self.reconciler.sync(log=log)

        try:
            infos = self.git.list_worktrees(cwd=self.project_root)
        except GitCommandError as exc:
            report.error(f"Failed to list worktrees: {exc}")
            raise GitCommandError(
                exc.argv,
                f"Failed to list worktrees: {exc}",
                returncode=exc.returncode,
                kind=exc.kind,
            ) from exc

        task_worktrees = sum(1 for info in infos if info.is_task_worktree)
        if task_worktrees:
            report.info(f"Found {task_worktrees} Task Master worktree(s)")
        return infos

    # ------------------------------------------------------------------
    # Internal helpers

    def _ensure_enabled(self) -> None:
        if not self._feature_gate(self.project_root):
            raise WorktreeDisabledError(DISABLED_MESSAGE)

    def _ensure_not_inside(self, path: Path) -> None:
        cwd = _current_directory()
        if cwd is not None and _is_within(cwd, path):
            raise WorktreeInUseError(
                f"Cannot remove worktree while inside it. You are currently in: {cwd}. "
                f"Please navigate out first: cd {self.project_root}"
            )

    def _ensure_exists(self, worktree_title: str, path: Path) -> None:
        if path.exists():
            return
        if _inside_some_worktree(_current_directory()):
            raise WorktreeNotFoundError(
                f"Cannot find worktree '{worktree_title}'. Note: you appear to be inside a "
                f"worktree. Try running from the main project directory: cd {self.project_root}"
            )
        raise WorktreeNotFoundError(f"{worktree_title} does not exist")

    def _ensure_clean(self, worktree_title: str, path: Path, report: Reporter) -> None:
        try:
            status = self.git.run(["status", "--porcelain"], cwd=path)
        except GitCommandError as exc:
            report.warning(f"Could not check status of {worktree_title}, continuing: {exc}")
            return
        if (status.stdout or "").strip():
            raise WorktreeDirtyError(
                f"{worktree_title} has uncommitted changes. Please commit or stash "
                "changes before removing"
            )

    def _ensure_merged(self, branch: str, base_branch: str | None, report: Reporter) -> None:
        try:
            reference = base_branch or self.git.default_branch(cwd=self.project_root)
            if not reference:
                report.warning(f"No base branch found, skipping merge check for {branch}")
                return
            merge_base = self.git.run(["merge-base", branch, reference], cwd=self.project_root)
            tip = self.git.run(["rev-parse", branch], cwd=self.project_root)
        except GitCommandError as exc:
            report.warning(f"Could not check merge state of {branch}, continuing: {exc}")
            return
        if (merge_base.stdout or "").strip() != (tip.stdout or "").strip():
            raise WorktreeUnmergedError(
                f"Branch {branch} has unmerged changes against {reference}. "
                "Please merge, rebase, or stash changes then try again"
            )

    def _forget(self, worktree_title: str, report: Reporter, *, reconcile: bool) -> None:
        """Drop registry bookkeeping after git removed the worktree; never raises."""
        if reconcile:
            sync = self.reconciler.sync(log=report.caller_log)
            if not sync.ok:
                report.warning("Registry sync after removal did not complete")
        try:
            self.store.remove(worktree_title)
            report.info(f"Removed {worktree_title} from registry")
        except (OSError, ValueError) as exc:
            report.warning(f"Failed to remove worktree from registry: {exc}")


def create_worktree(
    project_root: str | Path,
    task_id: str,
    base_branch: str | None = None,
    *,
    events: EventSink | None = None,
    log: OperationLog | None = None,
) -> CreateResult:
    return WorktreeManager(project_root, events=events).create(task_id, base_branch, log=log)


def remove_worktree(
    project_root: str | Path,
    worktree_title: str,
    *,
    force: bool = False,
    remove_branch: bool = False,
    confirm: ConfirmCallback | None = None,
    events: EventSink | None = None,
    log: OperationLog | None = None,
) -> RemoveResult:
    return WorktreeManager(project_root, events=events).remove(
        worktree_title,
        force=force,
        remove_branch=remove_branch,
        confirm=confirm,
        log=log,
    )


def remove_worktree_and_branch(
    project_root: str | Path,
    worktree_title: str,
    *,
    force: bool = False,
    base_branch: str | None = None,
    events: EventSink | None = None,
    log: OperationLog | None = None,
) -> RemoveResult:
    return WorktreeManager(project_root, events=events).remove_with_branch(
        worktree_title, force=force, base_branch=base_branch, log=log
    )


def list_worktrees(
    project_root: str | Path,
    *,
    log: OperationLog | None = None,
) -> list[WorktreeInfo]:
    return WorktreeManager(project_root).list_worktrees(log=log)
