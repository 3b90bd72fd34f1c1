"""Low-level git helpers for worktree operations."""

from __future__ import annotations

import logging
import os
import re
import subprocess  # nosec B404 - subprocess required for the git CLI
from pathlib import Path
from typing import Mapping, Sequence

from .exceptions import GitCommandError, GitErrorKind
from .types import WorktreeInfo

logger = logging.getLogger(__name__)

_COMMAND_FAILED_PREFIX = re.compile(r"^Command failed:.*?(\n|$)")

# Ordered: the first matching kind wins.
_ERROR_PATTERNS: tuple[tuple[GitErrorKind, tuple[str, ...]], ...] = (
    (
        GitErrorKind.UNCOMMITTED,
        (
            "contains modified or untracked files",
            "uncommitted changes",
            "use --force to delete it",
        ),
    ),
    (GitErrorKind.UNMERGED, ("is not fully merged", "unmerged changes")),
    (
        GitErrorKind.ALREADY_CHECKED_OUT,
        ("is already checked out", "is already used by worktree"),
    ),
    (
        GitErrorKind.NOT_FOUND,
        (
            "is not a working tree",
            "does not exist",
            "no such file or directory",
            "invalid reference",
            "unknown revision",
            "not a valid object name",
        ),
    ),
)


def clean_error_message(stderr: str | None, stdout: str | None = None) -> str:
    """
    Return the most useful part of a failed command's output.

    Prefers stderr over stdout and strips a leading ``Command failed: ...``
    line added by process-spawning wrappers.
    """
    raw = (stderr or "").strip() or (stdout or "").strip()
    return _COMMAND_FAILED_PREFIX.sub("", raw, count=1).strip()


def classify_git_error(message: str | None) -> GitErrorKind:
    """Map raw git output onto a :class:`GitErrorKind`."""
    text = (message or "").lower()
    for kind, needles in _ERROR_PATTERNS:
        if any(needle in text for needle in needles):
            return kind
    return GitErrorKind.GENERIC


def run(
    args: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """
    Execute a git command returning the completed process.

    Args:
        args: Sequence of arguments that follow the `git` executable.
        cwd: Directory to execute the command from.
        env: Optional environment overrides.
        check: When True, raise :class:`GitCommandError` on non-zero exit.
        timeout: Optional timeout in seconds.

    Returns:
        CompletedProcess with stdout/stderr captured as text.

    Raises:
        GitCommandError: On non-zero exit (when ``check``), a missing git
            executable, an unusable ``cwd`` or an expired timeout.
    """
    command = ["git", *args]
    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)

    logger.debug(f"Running {' '.join(command)} in {cwd}")
    try:
        result = subprocess.run(
            command,
            cwd=str(cwd),
            env=merged_env,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise GitCommandError(
            command, f"{' '.join(command)} timed out after {timeout}s"
        ) from exc
    except OSError as exc:
        raise GitCommandError(command, f"Unable to run {' '.join(command)}: {exc}") from exc

    if check and result.returncode != 0:
        message = clean_error_message(result.stderr, result.stdout)
        raise GitCommandError(
            command,
            message or f"git command failed ({' '.join(command)})",
            returncode=result.returncode,
            kind=classify_git_error(message),
        )

    return result


def parse_porcelain(payload: str) -> list[WorktreeInfo]:
    """
    Parse `git worktree list --porcelain` output into structured records.

    Git prints one block per worktree, blocks separated by a blank line.
    Each block opens with ``worktree <path>`` followed by ``HEAD <sha>`` and
    one of ``branch <ref>``, ``bare`` or ``detached``, plus optional
    ``locked``/``prunable`` lines.
    """
    if not payload:
        return []

    items: list[WorktreeInfo] = []
    data: dict[str, object] = {}

    for raw in payload.splitlines():
        entry = raw.rstrip("\r")

        if not entry.strip():
            if data:
                items.append(_to_info(data))
                data = {}
            continue

        if entry.startswith("worktree "):
            if data:
                items.append(_to_info(data))
            data = {"path": Path(entry.split(" ", 1)[1])}
            continue

        if not data:
            continue

        if entry.startswith("HEAD "):
            data["head"] = entry.split(" ", 1)[1]
        elif entry.startswith("branch "):
            data["branch"] = entry.split(" ", 1)[1]
        elif entry == "bare":
            data["is_bare"] = True
        elif entry == "detached":
            data["is_detached"] = True
        elif entry.startswith("locked"):
            data["locked"] = True
            if " " in entry:
                data["lock_reason"] = entry.split(" ", 1)[1]
        elif entry.startswith("prunable"):
            data["prunable"] = True
            if " " in entry:
                data["prunable_reason"] = entry.split(" ", 1)[1]

    if data:
        items.append(_to_info(data))

    return items


def _to_info(data: Mapping[str, object]) -> WorktreeInfo:
    """Convert a parsed block into a WorktreeInfo dataclass."""
    return WorktreeInfo(
        path=Path(data["path"]),  # type: ignore[arg-type]
        head=data.get("head"),  # type: ignore[arg-type]
        branch=data.get("branch"),  # type: ignore[arg-type]
        is_bare=bool(data.get("is_bare", False)),
        is_detached=bool(data.get("is_detached", False)),
        locked=bool(data.get("locked", False)),
        lock_reason=data.get("lock_reason"),  # type: ignore[arg-type]
        prunable=bool(data.get("prunable", False)),
        prunable_reason=data.get("prunable_reason"),  # type: ignore[arg-type]
    )


class GitRunner:
    """Runs git commands for one project, applying a shared timeout."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        return run(args, cwd=cwd, check=check, timeout=self.timeout)

    def list_worktrees(self, *, cwd: Path) -> list[WorktreeInfo]:
        """Return parsed `git worktree list --porcelain` output."""
        result = self.run(["worktree", "list", "--porcelain"], cwd=cwd)
        return parse_porcelain(result.stdout or "")

    def branch_exists(self, branch: str, *, cwd: Path) -> bool:
        result = self.run(
            ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
            cwd=cwd,
            check=False,
        )
        return result.returncode == 0

    def current_branch(self, *, cwd: Path) -> str | None:
        """Return the checked-out branch, or None for a detached HEAD."""
        try:
            result = self.run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
        except GitCommandError as exc:
            logger.debug(f"Could not determine current branch: {exc}")
            return None
        value = (result.stdout or "").strip()
        if not value or value == "HEAD":
            return None
        return value

    def default_branch(self, *, cwd: Path) -> str | None:
        """Return the repository default branch (origin HEAD, else main/master)."""
        result = self.run(
            ["symbolic-ref", "--quiet", "refs/remotes/origin/HEAD"],
            cwd=cwd,
            check=False,
        )
        value = (result.stdout or "").strip()
        if result.returncode == 0 and value:
            return value.replace("refs/remotes/origin/", "", 1)

        for candidate in ("main", "master"):
            if self.branch_exists(candidate, cwd=cwd):
                return candidate
        return None

    def main_worktree_root(self, *, cwd: Path) -> Path | None:
        """
        Return the main checkout of the repository containing ``cwd``.

        From inside a linked worktree ``--git-common-dir`` points at the main
        repository's ``.git`` directory, whose parent is the main checkout.
        """
        try:
            result = self.run(
                ["rev-parse", "--path-format=absolute", "--git-common-dir"], cwd=cwd
            )
        except GitCommandError as exc:
            logger.debug(f"Not inside a git repository: {exc}")
            return None
        common_dir = (result.stdout or "").strip()
        if not common_dir:
            return None
        return Path(common_dir).parent
