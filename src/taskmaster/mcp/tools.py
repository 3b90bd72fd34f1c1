"""Worktree operations exposed as MCP tools.

The ``handle_*`` functions do the blocking work and return plain dict
payloads; :func:`register_worktree_tools` wraps them as async FastMCP tools
that run the handlers in a worker thread.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from anyio import to_thread
from mcp.server.fastmcp import Context, FastMCP

from taskmaster.worktree import WorktreeError, WorktreeManager
from taskmaster.worktree.naming import is_valid_task_id, is_valid_worktree_title

logger = logging.getLogger(__name__)


def error_response(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}


def _resolve_root(project_root: str) -> Path | None:
    if not project_root:
        return None
    path = Path(project_root)
    if not path.is_absolute():
        return None
    return path


def handle_create_worktree(
    project_root: str, task_id: str, base_branch: str | None = None
) -> dict[str, Any]:
    root = _resolve_root(project_root)
    if root is None:
        return error_response("projectRoot must be an absolute path")
    if not task_id or not is_valid_task_id(task_id):
        return error_response('Invalid task ID format. Must be numeric (e.g., "1", "1.2")')

    try:
        result = WorktreeManager(root).create(task_id, base_branch, log=logger)
    except WorktreeError as exc:
        logger.error(f"Error in create_worktree tool: {exc}")
        return error_response(str(exc))

    payload = result.to_dict()
    payload["message"] = f"Worktree created successfully for task {task_id}"
    return payload


def handle_list_worktrees(project_root: str) -> dict[str, Any]:
    root = _resolve_root(project_root)
    if root is None:
        return error_response("projectRoot must be an absolute path")

    try:
        infos = WorktreeManager(root).list_worktrees(log=logger)
    except WorktreeError as exc:
        logger.error(f"Error in list_worktrees tool: {exc}")
        return error_response(str(exc))

    worktrees = [info.to_dict() for info in infos]
    return {
        "success": True,
        "worktrees": worktrees,
        "count": len(worktrees),
        "taskWorktrees": sum(1 for info in infos if info.is_task_worktree),
    }


def handle_remove_worktree(
    project_root: str,
    worktree_title: str,
    force: bool = False,
    remove_branch: bool = False,
) -> dict[str, Any]:
    root = _resolve_root(project_root)
    if root is None:
        return error_response("projectRoot must be an absolute path")
    if not worktree_title or not is_valid_worktree_title(worktree_title):
        return error_response(
            'Invalid worktree title format. Must be in format "task-X" (e.g., "task-6", "task-1.2")'
        )

    try:
        # No interactive confirmation over MCP: force is the caller's explicit consent.
        result = WorktreeManager(root).remove(
            worktree_title, force=force, remove_branch=remove_branch, log=logger
        )
    except WorktreeError as exc:
        logger.error(f"Error in remove_worktree tool: {exc}")
        return error_response(str(exc))

    payload = result.to_dict()
    if result.cancelled:
        payload["message"] = "Worktree removal cancelled"
    else:
        payload["message"] = f"Worktree {worktree_title} removed successfully"
    return payload


def register_worktree_tools(server: FastMCP) -> None:
    """Register the worktree tools on ``server``."""

    @server.tool(name="create_worktree", description="Create a new Git worktree for a task")
    async def create_worktree(
        task_id: str,
        project_root: str,
        ctx: Context,
        base_branch: str | None = None,
    ) -> dict[str, Any]:
        await ctx.info(f"Creating worktree for task {task_id}")
        return await to_thread.run_sync(
            handle_create_worktree, project_root, task_id, base_branch
        )

    @server.tool(
        name="list_worktrees",
        description="List all Git worktrees, flagging Task Master task worktrees",
    )
    async def list_worktrees(project_root: str, ctx: Context) -> dict[str, Any]:
        await ctx.info("Listing worktrees")
        return await to_thread.run_sync(handle_list_worktrees, project_root)

    @server.tool(name="remove_worktree", description="Remove a Git worktree")
    async def remove_worktree(
        worktree_title: str,
        project_root: str,
        ctx: Context,
        force: bool = False,
        remove_branch: bool = False,
    ) -> dict[str, Any]:
        await ctx.info(f"Removing worktree {worktree_title}")
        return await to_thread.run_sync(
            handle_remove_worktree, project_root, worktree_title, force, remove_branch
        )
