"""
MCP tool catalogue
==================

Each tool is a thin alias for one provider route: the tool arguments are
passed to the dispatcher as the request body. Tool failures are reported
inside the MCP result (``isError``) so clients can show them to the model.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Tuple

from ..services.base import Route
from ..services.dispatcher import Dispatcher
from ..services.figma import FigmaRoute
from ..services.filesystem import FilesystemRoute
from ..services.github import GitHubRoute
from ..utils.central_logging import log_tool_call
from ..utils.errors import InvalidArgument, ToolError

logger = logging.getLogger("toolhub.mcp")


TOOLS: List[Dict[str, Any]] = [
    # GitHub
    {
        "name": "github_read_file",
        "description": "Read a file from the configured GitHub repository",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path in repository"},
                "branch": {"type": "string", "description": "Branch name", "default": "main"},
            },
            "required": ["path"],
        },
    },
    {
        "name": "github_write_file",
        "description": "Create or update a file in the configured GitHub repository",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path in repository"},
                "content": {"type": "string", "description": "File content"},
                "message": {"type": "string", "description": "Commit message"},
                "branch": {"type": "string", "description": "Branch name", "default": "main"},
            },
            "required": ["path", "content", "message"],
        },
    },
    {
        "name": "github_create_pr",
        "description": "Open a pull request",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "PR title"},
                "body": {"type": "string", "description": "PR description"},
                "head": {"type": "string", "description": "Source branch"},
                "base": {"type": "string", "description": "Target branch", "default": "main"},
            },
            "required": ["title", "head"],
        },
    },
    # Figma
    {
        "name": "figma_get_file",
        "description": "Get a Figma file with its trimmed document tree",
        "inputSchema": {
            "type": "object",
            "properties": {
                "fileKey": {"type": "string", "description": "Figma file key"},
            },
            "required": ["fileKey"],
        },
    },
    {
        "name": "figma_export_images",
        "description": "Export rendered images of Figma nodes",
        "inputSchema": {
            "type": "object",
            "properties": {
                "fileKey": {"type": "string", "description": "Figma file key"},
                "nodeIds": {"type": "array", "items": {"type": "string"}, "description": "Node IDs to export"},
                "format": {"type": "string", "enum": ["png", "jpg", "svg"], "default": "png"},
            },
            "required": ["fileKey", "nodeIds"],
        },
    },
    # Filesystem
    {
        "name": "fs_read_file",
        "description": "Read a file below the project root",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path relative to project root"},
            },
            "required": ["path"],
        },
    },
    {
        "name": "fs_write_file",
        "description": "Write a file below the project root",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path relative to project root"},
                "content": {"type": "string", "description": "File content"},
            },
            "required": ["path", "content"],
        },
    },
    {
        "name": "fs_list_directory",
        "description": "List directory contents",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory path relative to project root", "default": "."},
            },
            "required": [],
        },
    },
    {
        "name": "fs_search_files",
        "description": "Search file names and text content below a directory",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Case-insensitive search text"},
                "path": {"type": "string", "description": "Directory to search", "default": "."},
            },
            "required": ["query"],
        },
    },
    {
        "name": "fs_project_structure",
        "description": "Export the project tree up to a maximum depth",
        "inputSchema": {
            "type": "object",
            "properties": {
                "maxDepth": {"type": "integer", "description": "Maximum depth", "default": 3},
            },
            "required": [],
        },
    },
]


# Tool name -> (provider, route)
TOOL_ROUTES: Dict[str, Tuple[str, Route]] = {
    "github_read_file": ("github", GitHubRoute.READ_FILE),
    "github_write_file": ("github", GitHubRoute.WRITE_FILE),
    "github_create_pr": ("github", GitHubRoute.CREATE_PR),
    "figma_get_file": ("figma", FigmaRoute.FILE),
    "figma_export_images": ("figma", FigmaRoute.EXPORT),
    "fs_read_file": ("filesystem", FilesystemRoute.READ),
    "fs_write_file": ("filesystem", FilesystemRoute.WRITE),
    "fs_list_directory": ("filesystem", FilesystemRoute.LIST),
    "fs_search_files": ("filesystem", FilesystemRoute.SEARCH),
    "fs_project_structure": ("filesystem", FilesystemRoute.STRUCTURE),
}


def list_tools() -> List[Dict[str, Any]]:
    return TOOLS


def _text_content(payload: Any, is_error: bool = False) -> Dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False, indent=2)
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


async def call_tool(dispatcher: Dispatcher, name: str, arguments: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Run tool ``name`` through the dispatcher and wrap the result as MCP content.

    Raises InvalidArgument for unknown tools; provider errors come back as
    an ``isError`` result.
    """
    target = TOOL_ROUTES.get(name)
    if target is None:
        raise InvalidArgument(f"Unknown tool: {name}")

    arguments = arguments or {}
    provider, route = target
    try:
        result = await dispatcher.handle(provider, route.method, route.path, arguments)
    except ToolError as exc:
        logger.error(f"Tool execution failed for {name}: {exc}")
        log_tool_call(name, arguments, error=str(exc))
        return _text_content(str(exc), is_error=True)

    log_tool_call(name, arguments, result=result)
    return _text_content(result)
