"""Reconcile the worktree registry against git and the filesystem."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .exceptions import WorktreeError
from .git import GitRunner
from .logs import OperationLog, Reporter
from .state import WorktreeStateStore
from .types import SyncResult

logger = logging.getLogger(__name__)


def _normalize(path: str | Path) -> str:
    return os.path.normcase(os.path.realpath(path))


class StateReconciler:
    """Prunes registry entries that no longer match a live git worktree."""

    def __init__(
        self,
        project_root: str | Path,
        *,
        store: WorktreeStateStore | None = None,
        git: GitRunner | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.store = store or WorktreeStateStore(self.project_root)
        self.git = git or GitRunner()

    def sync(self, *, log: OperationLog | None = None) -> SyncResult:
        """
        Remove stale registry entries.

        An entry is stale when its path is missing on disk or when no live
        git worktree reports that path. Stale entries are dropped in one
        write; nothing is written when every entry is live. Never raises.
        """
        report = Reporter(logger, log)

        try:
            live = self.git.list_worktrees(cwd=self.project_root)
        except WorktreeError as exc:
            report.warning(f"Worktree sync failed: {exc}")
            return SyncResult(ok=False)

        live_paths = {_normalize(info.path) for info in live}
        entries = self.store.read()

        stale: list[str] = []
        for title, entry in entries.items():
            entry_path = entry.worktree_path
            if not entry_path or not os.path.exists(entry_path):
                stale.append(title)
                report.info(f"Removing stale entry: {title} (path missing)")
            elif _normalize(entry_path) not in live_paths:
                stale.append(title)
                report.info(f"Removing stale entry: {title} (not a git worktree)")

        result = SyncResult(ok=True, checked=len(entries), removed=stale)
        if not stale:
            return result

        for title in stale:
            del entries[title]
        try:
            self.store.write(entries)
        except OSError as exc:
            report.warning(f"Worktree sync could not persist registry: {exc}")
            result.ok = False
            return result

        report.info(f"Cleaned up {len(stale)} stale worktree entries")
        return result
