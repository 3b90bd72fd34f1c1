from __future__ import annotations

from pathlib import Path

import pytest

from taskmaster.mcp import create_server
from taskmaster.mcp.tools import (
    handle_create_worktree,
    handle_list_worktrees,
    handle_remove_worktree,
)
from taskmaster.worktree import WorktreeManager

from helpers import ScriptedGit, write_config


@pytest.fixture(autouse=True)
def scripted_manager(monkeypatch: pytest.MonkeyPatch, fake_git: ScriptedGit) -> None:
    monkeypatch.setattr(
        "taskmaster.mcp.tools.WorktreeManager",
        lambda root: WorktreeManager(root, git=fake_git),
    )


def test_create_tool_returns_result_payload(project_root: Path) -> None:
    payload = handle_create_worktree(str(project_root), "12")

    assert payload["success"] is True
    assert payload["taskId"] == "12"
    assert payload["branchName"] == "task-12"
    assert payload["worktreePath"] == str(project_root / "worktrees" / "task-12")
    assert payload["baseBranch"] == "main"
    assert payload["message"] == "Worktree created successfully for task 12"


@pytest.mark.parametrize("task_id", ["", "abc", "1.", "task-1"])
def test_create_tool_rejects_malformed_task_id(
    project_root: Path, fake_git: ScriptedGit, task_id: str
) -> None:
    payload = handle_create_worktree(str(project_root), task_id)

    assert payload["success"] is False
    assert "Invalid task ID format" in payload["error"]
    assert fake_git.calls == []


def test_tools_require_absolute_project_root(fake_git: ScriptedGit) -> None:
    for payload in (
        handle_create_worktree("relative/dir", "1"),
        handle_list_worktrees(""),
        handle_remove_worktree("relative/dir", "task-1"),
    ):
        assert payload == {"success": False, "error": "projectRoot must be an absolute path"}
    assert fake_git.calls == []


def test_list_tool_counts_task_worktrees(project_root: Path) -> None:
    handle_create_worktree(str(project_root), "1")
    handle_create_worktree(str(project_root), "2")

    payload = handle_list_worktrees(str(project_root))

    assert payload["success"] is True
    assert payload["count"] == 3
    assert payload["taskWorktrees"] == 2
    assert [item["taskId"] for item in payload["worktrees"][1:]] == ["1", "2"]


@pytest.mark.parametrize("title", ["", "6", "task-", "feature-6", "task-6/../main"])
def test_remove_tool_rejects_malformed_title(
    project_root: Path, fake_git: ScriptedGit, title: str
) -> None:
    payload = handle_remove_worktree(str(project_root), title)

    assert payload["success"] is False
    assert "Invalid worktree title format" in payload["error"]
    assert fake_git.calls == []


def test_remove_tool_removes_worktree(project_root: Path) -> None:
    handle_create_worktree(str(project_root), "6")

    payload = handle_remove_worktree(str(project_root), "task-6")

    assert payload["success"] is True
    assert payload["branchRemoved"] is False
    assert payload["message"] == "Worktree task-6 removed successfully"


def test_remove_tool_reports_dirty_worktree(project_root: Path, fake_git: ScriptedGit) -> None:
    handle_create_worktree(str(project_root), "6")
    path = project_root / "worktrees" / "task-6"
    fake_git.fail(
        "worktree",
        "remove",
        str(path),
        stderr=f"fatal: '{path}' contains modified or untracked files, use --force to delete it",
    )

    payload = handle_remove_worktree(str(project_root), "task-6")

    assert payload["success"] is False
    assert "uncommitted changes" in payload["error"]

    forced = handle_remove_worktree(str(project_root), "task-6", force=True)
    assert forced["success"] is True


def test_tools_report_disabled_feature(project_root: Path, fake_git: ScriptedGit) -> None:
    write_config(project_root, worktrees=False)

    payload = handle_list_worktrees(str(project_root))

    assert payload["success"] is False
    assert "do not retry" in payload["error"]
    assert fake_git.calls == []


@pytest.mark.asyncio
async def test_server_registers_worktree_tools() -> None:
    server = create_server()

    tools = await server.mcp.list_tools()

    names = {tool.name for tool in tools}
    assert {"create_worktree", "list_worktrees", "remove_worktree"} <= names
