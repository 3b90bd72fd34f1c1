"""Shared test helpers: project config writer and a scripted git runner."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from taskmaster.worktree import (
    GitCommandError,
    GitRunner,
    classify_git_error,
    clean_error_message,
)

MAIN_SHA = "a" * 40


def write_config(root: Path, *, worktrees: bool) -> None:
    config_dir = root / ".taskmaster"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.json").write_text(
        json.dumps({"features": {"worktrees": worktrees}}), encoding="utf-8"
    )


class ScriptedGit(GitRunner):
    """In-memory stand-in for the git CLI.

    Keeps a list of worktrees and a set of branches, applies the effects of
    ``worktree add``/``worktree remove``/``branch -d`` to them (creating and
    deleting directories on disk), and records every call. ``fail`` and
    ``output`` override the built-in behaviour for an argv prefix; the
    longest matching prefix wins.
    """

    def __init__(self, project_root: Path, *, main_branch: str = "main") -> None:
        super().__init__()
        self.project_root = project_root
        self.worktrees: list[dict[str, str]] = [
            {"path": str(project_root), "head": MAIN_SHA, "branch": main_branch}
        ]
        self.branches: set[str] = {main_branch}
        self.current_branch_name: str | None = main_branch
        self.calls: list[list[str]] = []
        self.cwds: list[Path] = []
        self._failures: dict[tuple[str, ...], tuple[int, str]] = {}
        self._outputs: dict[tuple[str, ...], str] = {}

    # -- scripting -----------------------------------------------------

    def fail(self, *prefix: str, stderr: str, returncode: int = 1) -> None:
        self._failures[tuple(prefix)] = (returncode, stderr)

    def output(self, *prefix: str, stdout: str) -> None:
        self._outputs[tuple(prefix)] = stdout

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)

    @staticmethod
    def _lookup(table: dict[tuple[str, ...], object], argv: list[str]) -> object | None:
        best: tuple[str, ...] | None = None
        for prefix in table:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return None if best is None else table[best]

    # -- GitRunner -----------------------------------------------------

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        argv = list(args)
        self.calls.append(argv)
        self.cwds.append(Path(cwd))

        failure = self._lookup(self._failures, argv)
        if failure is not None:
            returncode, stderr = failure  # type: ignore[misc]
            return self._finish(argv, returncode, "", stderr, check)

        stdout = self._lookup(self._outputs, argv)
        if stdout is not None:
            return self._finish(argv, 0, str(stdout), "", check)

        returncode, out = self._builtin(argv)
        return self._finish(argv, returncode, out, "", check)

    def _finish(
        self, argv: list[str], returncode: int, stdout: str, stderr: str, check: bool
    ) -> subprocess.CompletedProcess[str]:
        command = ["git", *argv]
        if check and returncode != 0:
            message = clean_error_message(stderr, stdout)
            raise GitCommandError(
                command, message, returncode=returncode, kind=classify_git_error(message)
            )
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    def _builtin(self, argv: list[str]) -> tuple[int, str]:
        if argv[:3] == ["worktree", "list", "--porcelain"]:
            return 0, self.porcelain()
        if argv[:1] == ["show-ref"]:
            branch = argv[-1].replace("refs/heads/", "", 1)
            return (0 if branch in self.branches else 1), ""
        if argv == ["rev-parse", "--abbrev-ref", "HEAD"]:
            return 0, f"{self.current_branch_name or 'HEAD'}\n"
        if argv[:1] == ["symbolic-ref"]:
            return 1, ""
        if argv[:2] == ["worktree", "add"]:
            rest = argv[2:]
            if rest[0] == "-b":
                branch, path = rest[1], rest[2]
            else:
                path, branch = rest[0], rest[1]
            Path(path).mkdir(parents=True)
            self.branches.add(branch)
            self.worktrees.append({"path": path, "head": MAIN_SHA, "branch": branch})
            return 0, f"Preparing worktree (new branch '{branch}')\n"
        if argv[:2] == ["worktree", "remove"]:
            path = argv[-1]
            shutil.rmtree(path, ignore_errors=True)
            self.worktrees = [item for item in self.worktrees if item["path"] != path]
            return 0, ""
        if argv[:2] == ["branch", "-d"]:
            self.branches.discard(argv[2])
            return 0, f"Deleted branch {argv[2]}\n"
        if argv[:1] in (["merge-base"], ["rev-parse"]):
            return 0, f"{MAIN_SHA}\n"
        return 0, ""

    def porcelain(self) -> str:
        blocks = []
        for item in self.worktrees:
            lines = [f"worktree {item['path']}", f"HEAD {item['head']}"]
            branch = item.get("branch")
            lines.append(f"branch refs/heads/{branch}" if branch else "detached")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"

