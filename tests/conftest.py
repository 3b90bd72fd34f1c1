"""Pytest configuration helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from taskmaster.config import get_settings
from taskmaster.worktree import WorktreeEventBus, WorktreeManager

from helpers import ScriptedGit, write_config


@pytest.fixture(autouse=True)
def isolate_taskmaster_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep TASKMASTER_* variables from the developer's shell out of tests.

    Settings are memoized, so the cache is cleared on the way in and out.
    """
    for key in list(os.environ):
        if key.startswith("TASKMASTER_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    try:
        yield
    finally:
        get_settings.cache_clear()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A project directory with the worktrees feature switched on."""
    root = (tmp_path / "proj").resolve()
    root.mkdir()
    write_config(root, worktrees=True)
    return root


@pytest.fixture
def fake_git(project_root: Path) -> ScriptedGit:
    return ScriptedGit(project_root)


@pytest.fixture
def event_bus() -> WorktreeEventBus:
    return WorktreeEventBus()


@pytest.fixture
def manager(project_root: Path, fake_git: ScriptedGit, event_bus: WorktreeEventBus) -> WorktreeManager:
    return WorktreeManager(project_root, git=fake_git, events=event_bus)
