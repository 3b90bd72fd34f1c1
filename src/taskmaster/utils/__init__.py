"""Utility functions for Task Master."""

from __future__ import annotations

from pathlib import Path

PROJECT_MARKERS = (".taskmaster", ".git", "pyproject.toml")


def find_project_root(start_path: Path | None = None) -> Path:
    """
    Find the project root by looking for common project markers.

    Searches upward from the start path for a ``.taskmaster`` directory, a
    ``.git`` entry (directory for the main checkout, file inside a linked
    worktree) or ``pyproject.toml``.

    Args:
        start_path: Starting path to search from. Defaults to the current working directory.

    Returns:
        Path to project root directory.

    Raises:
        RuntimeError: If project root cannot be found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for marker in PROJECT_MARKERS:
            if (current / marker).exists():
                return current
        if current == current.parent:
            break
        current = current.parent

    raise RuntimeError(f"Could not find project root from {start_path}")

