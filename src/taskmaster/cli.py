from __future__ import annotations

import json
import logging
import pathlib
from typing import Optional

import typer

from taskmaster.config import get_settings
from taskmaster.utils import find_project_root
from taskmaster.worktree import (
    GitRunner,
    WorktreeError,
    WorktreeManager,
    get_worktree_title,
)

app = typer.Typer(no_args_is_help=True, help="Task Master command line interface")
worktree_app = typer.Typer(no_args_is_help=True, help="Git worktree commands for tasks")
mcp_app = typer.Typer(no_args_is_help=True, help="Model Context Protocol server commands")

logger = logging.getLogger(__name__)


class _State:
    project_root: Optional[pathlib.Path] = None


_state = _State()


def resolve_project_root(explicit: Optional[pathlib.Path] = None) -> pathlib.Path:
    """
    Return the main project directory for worktree commands.

    Inside a linked worktree the discovered root is the worktree itself, so
    it is mapped back to the main checkout that owns ``worktrees/``.
    """
    if explicit is not None:
        return explicit.resolve()
    configured = get_settings().PROJECT_ROOT
    if configured:
        return pathlib.Path(configured).resolve()

    root = find_project_root()
    if (root / ".git").is_file():
        main_root = GitRunner().main_worktree_root(cwd=root)
        if main_root is not None:
            logger.debug(f"Running inside worktree {root}; using main project {main_root}")
            return main_root
    return root


def _manager() -> WorktreeManager:
    try:
        root = resolve_project_root(_state.project_root)
    except RuntimeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    return WorktreeManager(root)


@app.callback()
def main(
    project_root: Optional[pathlib.Path] = typer.Option(
        None,
        "--project-root",
        help="Project directory (defaults to the nearest .taskmaster/.git ancestor).",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to TASKMASTER_LOG_LEVEL or INFO).",
    ),
) -> None:
    """Configure logging and the project root shared by all commands."""
    level_name = (log_level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    _state.project_root = project_root


@worktree_app.command("create")
def worktree_create(
    task: str = typer.Option(..., "--task", "-t", help="Task ID to create the worktree for."),
    base_branch: Optional[str] = typer.Option(
        None,
        "--base-branch",
        "-b",
        help="Branch to start from (defaults to the current branch).",
    ),
) -> None:
    """Create a git worktree and branch for a task."""
    manager = _manager()
    try:
        result = manager.create(task, base_branch)
    except WorktreeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    typer.echo(f"Created worktree for task {result.task_id}")
    typer.echo(f"  Path:   {result.worktree_path}")
    typer.echo(f"  Branch: {result.branch_name}")
    typer.echo(f"\nStart working: cd {result.worktree_path}")


@worktree_app.command("list")
def worktree_list(
    as_json: bool = typer.Option(False, "--json", help="Print worktrees as JSON."),
) -> None:
    """List git worktrees, marking Task Master task worktrees."""
    manager = _manager()
    try:
        infos = manager.list_worktrees()
    except WorktreeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps([info.to_dict() for info in infos], indent=2))
        return

    if not infos:
        typer.echo("No worktrees found")
        return

    for info in infos:
        if info.is_bare:
            label = "(bare)"
        elif info.branch_short:
            label = info.branch_short
        else:
            label = "(detached)"
        marker = f"  [task {info.task_id}]" if info.is_task_worktree else ""
        typer.echo(f"{info.path}  {label}{marker}")


@worktree_app.command("remove")
def worktree_remove(
    title: Optional[str] = typer.Argument(None, help="Worktree title, e.g. task-6."),
    task: Optional[str] = typer.Option(None, "--task", "-t", help="Task ID instead of a title."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Discard uncommitted changes in the worktree."
    ),
    remove_branch: bool = typer.Option(
        False, "--remove-branch", help="Also delete the task branch (must be clean and merged)."
    ),
    base_branch: Optional[str] = typer.Option(
        None,
        "--base-branch",
        help="Branch the task branch must be merged into (with --remove-branch).",
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask before discarding uncommitted changes."
    ),
) -> None:
    """Remove a task worktree, optionally together with its branch."""
    if title is None and task is None:
        typer.echo("Error: pass a worktree title or --task", err=True)
        raise typer.Exit(2)
    worktree_title = title or get_worktree_title(task or "")

    def _confirm(message: str) -> bool:
        return typer.confirm(message, default=False)

    manager = _manager()
    try:
        if remove_branch:
            result = manager.remove_with_branch(
                worktree_title, force=force, base_branch=base_branch
            )
        else:
            result = manager.remove(
                worktree_title, force=force, confirm=None if yes else _confirm
            )
    except WorktreeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    if result.cancelled:
        typer.echo("Worktree removal cancelled")
        return

    typer.echo(f"Removed worktree {result.worktree_title}")
    if result.branch_removed:
        typer.echo(f"Deleted branch {result.branch_name}")


@mcp_app.command("serve")
def mcp_serve() -> None:
    """Start the Task Master MCP server on stdio.

    Example client configuration:

        {
          "mcpServers": {
            "task-master": {
              "command": "task-master",
              "args": ["mcp", "serve"]
            }
          }
        }
    """
    from taskmaster.mcp import create_server

    try:
        server = create_server()
        server.run(transport="stdio")
    except Exception as e:
        typer.echo(f"MCP server failed: {e}", err=True)
        raise typer.Exit(2)


app.add_typer(worktree_app, name="worktree")
app.add_typer(mcp_app, name="mcp")


if __name__ == "__main__":
    app()
