"""
Restricted file reader for safe LLM access to workspace files.
"""

import fnmatch
import logging
from pathlib import Path
from typing import Optional

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    FileSizeLimitExceededError,
    InvalidArgumentError,
    InvalidPathError,
)
from workspace_tools.filesystem.guard import WorkspaceGuard

logger = logging.getLogger(__name__)

DEFAULT_LINE_LIMIT = 2000


def read_text_file(path: Path, encoding: str = "utf-8") -> str:
    """
    Read a whole text file.

    Raises:
        InvalidPathError: If the file is not valid text in ``encoding``
        FileAccessDeniedError: If the OS refuses to open the file
    """
    try:
        return path.read_text(encoding=encoding)
    except UnicodeDecodeError:
        logger.warning(f"Not a {encoding} text file: {path}")
        raise InvalidPathError(str(path), f"File is not valid {encoding} text") from None
    except PermissionError:
        raise FileAccessDeniedError(str(path), "Permission denied") from None


class RestrictedFileReader:
    """
    Secure file reader confined to the workspace root.

    Usage:
        config = FileSystemAccessConfig(workspace_root=Path("/srv/workspace"))
        reader = RestrictedFileReader(config)

        try:
            content = reader.read_file("src/main.py", offset=0, limit=50)
        except FileAccessDeniedError as e:
            print(f"Access denied: {e}")
    """

    def __init__(self, config: FileSystemAccessConfig):
        """
        Initialize the file reader.

        Args:
            config: Filesystem access configuration
        """
        self.config = config
        self.guard = WorkspaceGuard(
            config.workspace_root, follow_symlinks=config.follow_symlinks
        )

    def read_file(
        self,
        path: str,
        offset: int = 0,
        limit: Optional[int] = None,
        encoding: str = "utf-8",
    ) -> str:
        """
        Read a window of lines from a file.

        Each returned line is prefixed with its 1-based line number,
        right-aligned to six columns and followed by a tab.

        Args:
            path: File path (absolute, or relative to the workspace root)
            offset: Number of lines to skip (0-based)
            limit: Number of lines to return (default: 2000)
            encoding: Text encoding (default: utf-8)

        Returns:
            Numbered lines joined with newlines

        Raises:
            FileAccessDeniedError: If access is denied
            PathNotFoundError: If the file doesn't exist
            IsADirectoryPathError: If the path is a directory
            FileSizeLimitExceededError: If the file is too large
            InvalidPathError: If the file is not valid text in ``encoding``
        """
        if not path:
            raise InvalidArgumentError("path", "The parameter is required")
        if offset < 0:
            raise InvalidArgumentError("offset", "Must not be negative")

        content = self._read_text(path, encoding)

        lines = content.split("\n")
        start = offset
        end = min(len(lines), start + (limit or DEFAULT_LINE_LIMIT))
        return "\n".join(
            f"{start + index + 1:>6}\t{line}"
            for index, line in enumerate(lines[start:end])
        )

    def read_files(self, paths: list[str], encoding: str = "utf-8") -> list[dict[str, str]]:
        """
        Read several files in full.

        Every path is checked against the workspace before any file is
        read. The first file that cannot be read aborts the call.

        Args:
            paths: File paths to read
            encoding: Text encoding (default: utf-8)

        Returns:
            List of ``{"path": ..., "content": ...}`` in request order
        """
        if not paths:
            raise InvalidArgumentError("paths", "The parameter is required and must not be empty")

        for path in paths:
            self.guard.resolve(path)

        return [
            {"path": path, "content": self._read_text(path, encoding)} for path in paths
        ]

    def list_directory(self, path: str, ignore: Optional[list[str]] = None) -> list[str]:
        """
        List the entries of a directory.

        Args:
            path: Directory path (absolute, or relative to the workspace root)
            ignore: Glob patterns; entries whose name matches one are skipped

        Returns:
            Sorted entry names

        Raises:
            FileAccessDeniedError: If access is denied
            PathNotFoundError: If the directory doesn't exist
            NotADirectoryPathError: If the path is not a directory
        """
        if not path:
            raise InvalidArgumentError("path", "The parameter is required")
        self._check_enabled(path)

        directory = self.guard.resolve_directory(path)
        names = sorted(entry.name for entry in directory.iterdir())
        if ignore:
            names = [
                name
                for name in names
                if not any(fnmatch.fnmatchcase(name, pattern) for pattern in ignore)
            ]

        logger.debug(f"Listed {len(names)} entries in {directory}")
        return names

    def _read_text(self, path: str, encoding: str) -> str:
        self._check_enabled(path)
        resolved = self.guard.resolve_file(path)

        file_size = resolved.stat().st_size
        if file_size > self.config.max_file_size_bytes:
            logger.warning(
                f"File too large: {resolved} ({file_size} bytes > "
                f"{self.config.max_file_size_bytes} bytes)"
            )
            raise FileSizeLimitExceededError(
                str(resolved), file_size, self.config.max_file_size_bytes
            )

        content = read_text_file(resolved, encoding)
        logger.debug(f"Successfully read file: {resolved} ({file_size} bytes)")
        return content

    def _check_enabled(self, path: str) -> None:
        if not self.config.enabled:
            raise FileAccessDeniedError(str(path), "Filesystem access is disabled")
