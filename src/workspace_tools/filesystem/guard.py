"""
Workspace containment guard.

Every operation that accepts a caller-supplied path runs it through
``WorkspaceGuard`` before touching the filesystem or spawning a process.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    IsADirectoryPathError,
    NotADirectoryPathError,
    PathNotFoundError,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def _absolute(candidate: PathLike, root: str) -> str:
    """Resolve ``candidate`` against ``root`` without touching the filesystem."""
    candidate = os.fspath(candidate)
    if not os.path.isabs(candidate):
        candidate = os.path.join(root, candidate)
    return os.path.normpath(candidate)


def is_within_workspace(candidate: PathLike, root: PathLike) -> bool:
    """
    Check whether ``candidate`` is ``root`` or lies below it.

    The comparison is purely lexical: ``..`` segments are collapsed, the
    path does not need to exist and symlinks are not followed. Relative
    candidates are taken relative to ``root``.

    Args:
        candidate: Path to check
        root: Workspace root

    Returns:
        True if the normalized candidate is inside the root
    """
    root_abs = os.path.normpath(os.path.abspath(os.fspath(root)))
    candidate_abs = _absolute(candidate, root_abs)

    try:
        relative = os.path.relpath(candidate_abs, root_abs)
    except ValueError:
        # Different drives on Windows
        return False

    if relative in ("", os.curdir):
        return True
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return False
    return not os.path.isabs(relative)


class WorkspaceGuard:
    """
    Admits or denies paths relative to a single workspace root.

    With ``follow_symlinks=False`` (the default) a path is admitted only
    if both its lexical form and its symlink-resolved form stay inside
    the root, so a link pointing out of the workspace is rejected.

    Usage:
        guard = WorkspaceGuard(Path("/srv/workspace"))

        guard.admit("src/main.py")        # True
        guard.admit("../etc/passwd")      # False
        path = guard.resolve("src")       # Path("/srv/workspace/src")
    """

    def __init__(self, root: PathLike, follow_symlinks: bool = False):
        self.root = Path(os.path.normpath(os.path.abspath(os.fspath(root))))
        self.follow_symlinks = follow_symlinks

    def admit(self, candidate: PathLike) -> bool:
        """Return True if ``candidate`` may be accessed."""
        if not is_within_workspace(candidate, self.root):
            return False

        if self.follow_symlinks:
            return True

        real_root = os.path.realpath(self.root)
        real_candidate = os.path.realpath(_absolute(candidate, str(self.root)))
        return is_within_workspace(real_candidate, real_root)

    def resolve(self, candidate: PathLike) -> Path:
        """
        Resolve ``candidate`` to an absolute path inside the workspace.

        Args:
            candidate: Absolute path, or path relative to the workspace root

        Returns:
            Absolute, normalized path

        Raises:
            FileAccessDeniedError: If the path escapes the workspace
        """
        resolved = Path(_absolute(candidate, str(self.root)))
        if not self.admit(candidate):
            logger.warning(f"Access denied to {resolved}: outside workspace {self.root}")
            raise FileAccessDeniedError(
                str(resolved), "Access denied: path outside working directory"
            )
        return resolved

    def resolve_directory(self, candidate: Optional[PathLike] = None) -> Path:
        """
        Resolve an existing directory inside the workspace.

        ``None`` or an empty string selects the workspace root.

        Raises:
            FileAccessDeniedError: If the path escapes the workspace
            PathNotFoundError: If the directory does not exist
            NotADirectoryPathError: If the path is not a directory
        """
        resolved = self.resolve(candidate or self.root)
        if not resolved.exists():
            raise PathNotFoundError(str(resolved), "Directory not found at path")
        if not resolved.is_dir():
            raise NotADirectoryPathError(str(resolved))
        return resolved

    def resolve_file(self, candidate: PathLike) -> Path:
        """
        Resolve an existing regular file inside the workspace.

        Raises:
            FileAccessDeniedError: If the path escapes the workspace
            PathNotFoundError: If the file does not exist
            IsADirectoryPathError: If the path is a directory
        """
        resolved = self.resolve(candidate)
        if not resolved.exists():
            raise PathNotFoundError(str(resolved), "File not found at path")
        if resolved.is_dir():
            raise IsADirectoryPathError(str(resolved))
        return resolved

    def relative(self, path: PathLike) -> str:
        """Render an admitted path relative to the workspace root."""
        relative = os.path.relpath(_absolute(path, str(self.root)), self.root)
        return "." if relative == os.curdir else Path(relative).as_posix()

    def __repr__(self) -> str:
        return f"WorkspaceGuard(root={str(self.root)!r}, follow_symlinks={self.follow_symlinks})"
