"""
Filesystem sandbox
==================

``SandboxPolicy`` is the immutable configuration of the filesystem provider
(project root, blocked entry names, allowed and searchable extensions).
``PathValidator`` turns caller-supplied relative paths into absolute paths
that are confined to the root and free of blocked segments.

Blocked entries are matched by *name*, so ``node_modules`` is rejected no
matter how deep it appears. Extension checks are a separate step, applied only
by operations that touch file content.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet

from ..config import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_BLOCKED_DIRS,
    DEFAULT_SEARCHABLE_EXTENSIONS,
    Settings,
)
from ..utils.errors import AccessDenied

logger = logging.getLogger("toolhub.sandbox")


@dataclass(frozen=True)
class SandboxPolicy:
    root: Path
    blocked: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_BLOCKED_DIRS))
    allowed_extensions: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_ALLOWED_EXTENSIONS))
    searchable_extensions: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_SEARCHABLE_EXTENSIONS))
    search_result_limit: int = 50
    default_structure_depth: int = 3

    def __post_init__(self):
        # Canonical root, symlinks resolved
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
        object.__setattr__(self, "blocked", frozenset(self.blocked))
        object.__setattr__(self, "allowed_extensions", frozenset(e.lower() for e in self.allowed_extensions))
        object.__setattr__(self, "searchable_extensions", frozenset(e.lower() for e in self.searchable_extensions))

    @classmethod
    def from_settings(cls, settings: Settings) -> "SandboxPolicy":
        return cls(
            root=settings.resolved_project_root,
            blocked=settings.blocked_dirs,
            allowed_extensions=settings.allowed_extensions,
            searchable_extensions=settings.searchable_extensions,
            search_result_limit=settings.fs_search_result_limit,
            default_structure_depth=settings.fs_structure_default_depth,
        )

    @property
    def content_search_extensions(self) -> FrozenSet[str]:
        return self.searchable_extensions & self.allowed_extensions


class PathValidator:
    """Resolves relative paths against the project root and enforces the policy."""

    def __init__(self, policy: SandboxPolicy):
        self.policy = policy

    @property
    def root(self) -> Path:
        return self.policy.root

    def validate(self, relative_path: str) -> Path:
        """Return the absolute, root-confined path for ``relative_path``.

        Raises AccessDenied when the path leaves the root (after resolving
        ``..`` and symlinks) or when any segment below the root is blocked.
        """
        if not isinstance(relative_path, str) or not relative_path:
            raise AccessDenied("Access denied: Path must be a non-empty string")
        if "\x00" in relative_path:
            logger.warning(f"Null byte in path: {relative_path[:50]!r}")
            raise AccessDenied("Access denied: Path contains a null byte")

        try:
            full_path = (self.root / relative_path).resolve()
        except (OSError, RuntimeError) as exc:
            logger.warning(f"Unresolvable path: {relative_path!r}: {exc}")
            raise AccessDenied("Access denied: Path cannot be resolved") from exc

        if not full_path.is_relative_to(self.root):
            logger.warning(f"Path traversal attempt: {relative_path!r}")
            raise AccessDenied("Access denied: Path is outside project root")

        for part in full_path.relative_to(self.root).parts:
            if part in self.policy.blocked:
                logger.warning(f"Blocked path component: {part} in {relative_path!r}")
                raise AccessDenied(f"Access denied: {part} is a blocked directory")

        return full_path

    def validate_extension(self, path: str | os.PathLike) -> None:
        ext = Path(path).suffix.lower()
        if ext and ext not in self.policy.allowed_extensions:
            raise AccessDenied(f"Access denied: {ext} files are not allowed")

    def is_blocked(self, name: str) -> bool:
        return name in self.policy.blocked

    def is_allowed_file(self, name: str) -> bool:
        ext = Path(name).suffix.lower()
        return not ext or ext in self.policy.allowed_extensions

    def is_searchable(self, name: str) -> bool:
        return Path(name).suffix.lower() in self.policy.content_search_extensions

    def is_reachable(self, path: Path) -> bool:
        """True when ``path``, with symlinks followed, is inside the root and not blocked."""
        try:
            target = path.resolve()
        except (OSError, RuntimeError):
            return False
        if not target.is_relative_to(self.root):
            return False
        return not any(part in self.policy.blocked for part in target.relative_to(self.root).parts)

    def relative(self, path: Path) -> str:
        rel = path.relative_to(self.root).as_posix()
        return rel or "."
