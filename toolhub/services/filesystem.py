"""
Filesystem Provider
===================

Sandboxed access to the project tree:
- read / write / delete single files (extension-checked)
- directory listing, stat and mkdir
- recursive name + content search (result list capped)
- depth-bounded project structure export

Every operation validates its path through ``PathValidator`` before touching
the disk; all disk I/O goes through aiofiles so the event loop never blocks.
"""

from __future__ import annotations

import stat as stat_mod
from datetime import datetime, timezone
from enum import unique
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os

from ..utils.errors import InvalidArgument, NotFound, PermissionDenied, StorageError, ToolError
from .base import Handler, Provider, Route, optional_int, optional_str, require_str
from .sandbox import PathValidator, SandboxPolicy


@unique
class FilesystemRoute(Route):
    READ = "GET:/read"
    WRITE = "POST:/write"
    LIST = "GET:/list"
    CREATE_DIR = "POST:/create-dir"
    DELETE = "DELETE:/delete"
    STATS = "GET:/stats"
    SEARCH = "GET:/search"
    STRUCTURE = "GET:/structure"


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class FilesystemProvider(Provider):
    name = "filesystem"
    display_name = "Filesystem"
    route_enum = FilesystemRoute

    def __init__(self, policy: SandboxPolicy):
        self.policy = policy
        self.validator = PathValidator(policy)
        super().__init__()

    @property
    def root(self) -> Path:
        return self.policy.root

    def is_healthy(self) -> bool:
        return True

    def _build_routes(self) -> Dict[Route, Handler]:
        return {
            FilesystemRoute.READ: lambda body: self.read_file(require_str(body, "path")),
            FilesystemRoute.WRITE: self._handle_write,
            FilesystemRoute.LIST: lambda body: self.list_directory(optional_str(body, "path", ".")),
            FilesystemRoute.CREATE_DIR: lambda body: self.create_directory(require_str(body, "path")),
            FilesystemRoute.DELETE: lambda body: self.delete_file(require_str(body, "path")),
            FilesystemRoute.STATS: lambda body: self.get_file_stats(require_str(body, "path")),
            FilesystemRoute.SEARCH: lambda body: self.search_files(require_str(body, "query"), optional_str(body, "path", ".")),
            FilesystemRoute.STRUCTURE: lambda body: self.get_project_structure(
                optional_int(body, "maxDepth", self.policy.default_structure_depth)
            ),
        }

    async def _handle_write(self, body: Dict[str, Any]) -> Dict[str, Any]:
        path = require_str(body, "path")
        content = body.get("content")
        if not isinstance(content, str):
            raise InvalidArgument("'content' must be a string")
        return await self.write_file(path, content)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def read_file(self, file_path: str) -> Dict[str, Any]:
        self.logger.info(f"Reading file: {file_path}")
        try:
            full_path = self.validator.validate(file_path)
            self.validator.validate_extension(full_path)

            try:
                async with aiofiles.open(full_path, "r", encoding="utf-8", errors="replace", newline="") as f:
                    content = await f.read()
                stats = await aiofiles.os.stat(full_path)
            except OSError as exc:
                raise NotFound(f"File not found or unreadable: {file_path}") from exc

            return {
                "content": content,
                "path": file_path,
                "size": stats.st_size,
                "modifiedAt": _iso(stats.st_mtime),
                "message": f"Successfully read {file_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to read file {file_path}: {exc}")
            raise

    async def write_file(self, file_path: str, content: str) -> Dict[str, Any]:
        self.logger.info(f"Writing file: {file_path}")
        try:
            full_path = self.validator.validate(file_path)
            self.validator.validate_extension(full_path)

            try:
                content.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise InvalidArgument(f"Content for {file_path} is not valid UTF-8 text") from exc

            try:
                await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
                async with aiofiles.open(full_path, "w", encoding="utf-8", newline="") as f:
                    await f.write(content)
                stats = await aiofiles.os.stat(full_path)
            except OSError as exc:
                raise StorageError(f"Failed to write {file_path}: {exc.strerror or exc}") from exc

            return {
                "path": file_path,
                "size": stats.st_size,
                "modifiedAt": _iso(stats.st_mtime),
                "message": f"Successfully wrote {file_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to write file {file_path}: {exc}")
            raise

    async def list_directory(self, dir_path: str = ".") -> Dict[str, Any]:
        self.logger.info(f"Listing directory: {dir_path}")
        try:
            full_path = self.validator.validate(dir_path)
            try:
                names = await aiofiles.os.listdir(full_path)
            except OSError as exc:
                raise NotFound(f"Directory not found or unreadable: {dir_path}") from exc

            directories: List[Dict[str, Any]] = []
            files: List[Dict[str, Any]] = []

            for name in names:
                if self.validator.is_blocked(name):
                    continue
                item = full_path / name
                stats = await self._entry_stat(item)
                if stats is None:
                    continue

                is_dir = stat_mod.S_ISDIR(stats.st_mode)
                info = {
                    "name": name,
                    "path": (Path(dir_path) / name).as_posix(),
                    "size": stats.st_size,
                    "modifiedAt": _iso(stats.st_mtime),
                    "type": "directory" if is_dir else "file",
                }
                if is_dir:
                    directories.append(info)
                elif self.validator.is_allowed_file(name):
                    files.append(info)

            directories.sort(key=lambda e: e["name"])
            files.sort(key=lambda e: e["name"])
            return {
                "path": dir_path,
                "directories": directories,
                "files": files,
                "totalItems": len(directories) + len(files),
                "message": f"Successfully listed {dir_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to list directory {dir_path}: {exc}")
            raise

    async def create_directory(self, dir_path: str) -> Dict[str, Any]:
        self.logger.info(f"Creating directory: {dir_path}")
        try:
            full_path = self.validator.validate(dir_path)
            try:
                await aiofiles.os.makedirs(full_path, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Failed to create directory {dir_path}: {exc.strerror or exc}") from exc
            return {
                "path": dir_path,
                "message": f"Successfully created directory {dir_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to create directory {dir_path}: {exc}")
            raise

    async def delete_file(self, file_path: str) -> Dict[str, Any]:
        self.logger.info(f"Deleting file: {file_path}")
        try:
            full_path = self.validator.validate(file_path)
            self.validator.validate_extension(full_path)

            try:
                stats = await aiofiles.os.stat(full_path)
            except OSError as exc:
                raise NotFound(f"File not found: {file_path}") from exc

            if stat_mod.S_ISDIR(stats.st_mode):
                raise PermissionDenied("Cannot delete directories for security reasons")

            try:
                await aiofiles.os.remove(full_path)
            except FileNotFoundError as exc:
                raise NotFound(f"File not found: {file_path}") from exc
            except OSError as exc:
                raise StorageError(f"Failed to delete {file_path}: {exc.strerror or exc}") from exc

            return {
                "path": file_path,
                "message": f"Successfully deleted {file_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to delete file {file_path}: {exc}")
            raise

    async def get_file_stats(self, file_path: str) -> Dict[str, Any]:
        self.logger.info(f"Getting stats for: {file_path}")
        try:
            full_path = self.validator.validate(file_path)
            try:
                stats = await aiofiles.os.stat(full_path)
            except OSError as exc:
                raise NotFound(f"Path not found: {file_path}") from exc

            # st_birthtime only exists on some platforms
            created = getattr(stats, "st_birthtime", stats.st_ctime)
            return {
                "path": file_path,
                "size": stats.st_size,
                "created": _iso(created),
                "modified": _iso(stats.st_mtime),
                "accessed": _iso(stats.st_atime),
                "isDirectory": stat_mod.S_ISDIR(stats.st_mode),
                "isFile": stat_mod.S_ISREG(stats.st_mode),
                "permissions": format(stats.st_mode, "o"),
                "message": f"Successfully got stats for {file_path}",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to get stats for {file_path}: {exc}")
            raise

    # =========================================================================
    # Search
    # =========================================================================

    async def search_files(self, query: str, search_path: str = ".") -> Dict[str, Any]:
        self.logger.info(f'Searching for "{query}" in {search_path}')
        try:
            if not query:
                raise InvalidArgument("'query' must not be empty")
            full_path = self.validator.validate(search_path)
            if not await aiofiles.os.path.isdir(full_path):
                raise NotFound(f"Directory not found: {search_path}")

            results: List[Dict[str, Any]] = []
            await self._search_recursive(full_path, query.lower(), results)

            limit = self.policy.search_result_limit
            return {
                "query": query,
                "searchPath": search_path,
                "results": results[:limit],
                "totalFound": len(results),
                "message": f'Found {len(results)} matches for "{query}"',
            }
        except ToolError as exc:
            self.logger.error(f'Failed to search for "{query}": {exc}')
            raise

    async def _search_recursive(self, directory: Path, query: str, results: List[Dict[str, Any]]) -> None:
        try:
            names = sorted(await aiofiles.os.listdir(directory))
        except OSError as exc:
            self.logger.debug(f"Skipping unreadable directory {directory}: {exc}")
            return

        for name in names:
            if self.validator.is_blocked(name):
                continue
            item = directory / name
            stats = await self._entry_stat(item)
            if stats is None:
                continue

            if stat_mod.S_ISDIR(stats.st_mode):
                if not await aiofiles.os.path.islink(item):
                    await self._search_recursive(item, query, results)
                continue

            rel = self.validator.relative(item)
            if query in name.lower():
                results.append(self._match(name, rel, "filename", stats))

            if self.validator.is_searchable(name):
                try:
                    async with aiofiles.open(item, "r", encoding="utf-8") as f:
                        content = await f.read()
                except (OSError, UnicodeDecodeError):
                    # binary or unreadable: excluded from content matches
                    continue
                if query in content.lower():
                    results.append(self._match(name, rel, "content", stats))

    @staticmethod
    def _match(name: str, rel: str, kind: str, stats) -> Dict[str, Any]:
        return {
            "name": name,
            "path": rel,
            "type": kind,
            "size": stats.st_size,
            "modifiedAt": _iso(stats.st_mtime),
        }

    # =========================================================================
    # Structure
    # =========================================================================

    async def get_project_structure(self, max_depth: Optional[int] = None) -> Dict[str, Any]:
        if max_depth is None:
            max_depth = self.policy.default_structure_depth
        self.logger.info(f"Getting project structure (max depth: {max_depth})")
        try:
            if max_depth < 0:
                raise InvalidArgument("'maxDepth' must be zero or positive")
            structure = {
                "name": self.root.name or "root",
                "type": "directory",
                "path": ".",
                "children": await self._build_children(self.root, 0, max_depth),
            }
            return {
                "structure": structure,
                "maxDepth": max_depth,
                "message": "Successfully built project structure",
            }
        except ToolError as exc:
            self.logger.error(f"Failed to get project structure: {exc}")
            raise

    async def _build_children(self, directory: Path, depth: int, max_depth: int) -> List[Dict[str, Any]]:
        if depth >= max_depth:
            return []
        try:
            names = await aiofiles.os.listdir(directory)
        except OSError as exc:
            self.logger.debug(f"Skipping unreadable directory {directory}: {exc}")
            return []

        children = []
        for name in names:
            node = await self._build_node(directory / name, depth, max_depth)
            if node is not None:
                children.append(node)

        # directories first, then by name
        children.sort(key=lambda n: (n["type"] != "directory", n["name"]))
        return children

    async def _build_node(self, path: Path, depth: int, max_depth: int) -> Optional[Dict[str, Any]]:
        name = path.name
        if self.validator.is_blocked(name):
            return None
        stats = await self._entry_stat(path)
        if stats is None:
            return None

        rel = self.validator.relative(path)
        if stat_mod.S_ISDIR(stats.st_mode):
            children: List[Dict[str, Any]] = []
            if not await aiofiles.os.path.islink(path):
                children = await self._build_children(path, depth + 1, max_depth)
            return {"name": name, "type": "directory", "path": rel, "children": children}

        if stat_mod.S_ISREG(stats.st_mode) and self.validator.is_allowed_file(name):
            return {"name": name, "type": "file", "path": rel, "size": stats.st_size}
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _entry_stat(self, item: Path):
        """Stat a directory child; None for dangling links or links that escape or reach blocked paths."""
        if await aiofiles.os.path.islink(item) and not self.validator.is_reachable(item):
            self.logger.warning(f"Skipping symlink to an unreachable target: {item.name}")
            return None
        try:
            return await aiofiles.os.stat(item)
        except OSError:
            return None
