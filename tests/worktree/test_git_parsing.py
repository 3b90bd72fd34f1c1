from __future__ import annotations

from pathlib import Path

from taskmaster.worktree.git import parse_porcelain


def test_parse_porcelain_parses_multiple_entries() -> None:
    """Ensure porcelain parser returns structured worktree entries."""
    payload = "\n".join(
        [
            "worktree /repo",
            "HEAD abcd1234",
            "branch refs/heads/main",
            "",
            "worktree /repo/worktrees/task-123",
            "HEAD deadbeef",
            "branch refs/heads/task-123",
            "locked reason-for-lock",
            "prunable gitdir file points to non-existent location",
            "",
            "worktree /repo/worktrees/detached",
            "HEAD cafe4321",
            "detached",
            "",
            "worktree /srv/mirror.git",
            "bare",
            "",
        ]
    )

    infos = parse_porcelain(payload)

    assert len(infos) == 4

    root = infos[0]
    assert root.path == Path("/repo")
    assert root.branch_short == "main"
    assert not root.locked
    assert not root.is_task_worktree

    task = infos[1]
    assert task.path == Path("/repo/worktrees/task-123")
    assert task.branch_short == "task-123"
    assert task.task_id == "123"
    assert task.locked
    assert task.lock_reason == "reason-for-lock"
    assert task.prunable
    assert task.prunable_reason == "gitdir file points to non-existent location"

    detached = infos[2]
    assert detached.is_detached
    assert detached.head == "cafe4321"
    assert detached.branch is None

    bare = infos[3]
    assert bare.is_bare
    assert bare.head is None


def test_parse_porcelain_handles_empty_and_unterminated_output() -> None:
    assert parse_porcelain("") == []

    infos = parse_porcelain("worktree /repo\nHEAD abc\nbranch refs/heads/main")
    assert len(infos) == 1
    assert infos[0].branch_short == "main"


def test_parse_porcelain_splits_blocks_without_blank_separator() -> None:
    payload = "worktree /a\nHEAD 1\nbranch refs/heads/main\nworktree /b\nHEAD 2\ndetached\n"

    infos = parse_porcelain(payload)

    assert [info.path for info in infos] == [Path("/a"), Path("/b")]
    assert infos[1].is_detached


def test_task_worktree_detection_follows_branch_convention() -> None:
    payload = "\n".join(
        [
            "worktree /repo",
            "HEAD 1",
            "branch refs/heads/main",
            "",
            "worktree /repo/worktrees/task-1.2",
            "HEAD 2",
            "branch refs/heads/task-1.2",
            "",
            "worktree /repo/worktrees/feature",
            "HEAD 3",
            "branch refs/heads/task-abc",
            "",
            "worktree /repo/worktrees/task-9",
            "HEAD 4",
            "detached",
            "",
        ]
    )

    infos = parse_porcelain(payload)
    payloads = [info.to_dict() for info in infos]

    assert [p["isTaskMasterWorktree"] for p in payloads] == [False, True, False, True]
    assert payloads[1]["taskId"] == "1.2"
    assert "taskId" not in payloads[2]
    # Detached task worktrees fall back to the directory name.
    assert payloads[3]["taskId"] == "9"
