"""
Restricted file writer for safe LLM file creation and patching.
"""

import logging
import os
import tempfile
from pathlib import Path

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    FileSizeLimitExceededError,
    IsADirectoryPathError,
    InvalidArgumentError,
)
from workspace_tools.filesystem.guard import WorkspaceGuard
from workspace_tools.filesystem.reader import read_text_file

logger = logging.getLogger(__name__)


class RestrictedFileWriter:
    """
    Secure file writer confined to the workspace root.

    Usage:
        config = FileSystemAccessConfig(
            workspace_root=Path("/srv/workspace"),
            allow_write=True,
            max_write_size_bytes=1_000_000,
        )
        writer = RestrictedFileWriter(config)

        writer.write_file("notes/todo.txt", "Hello, world!")
        writer.replace("src/app.py", "DEBUG = True", "DEBUG = False")
    """

    def __init__(self, config: FileSystemAccessConfig):
        """
        Initialize the file writer.

        Args:
            config: Filesystem access configuration
        """
        self.config = config
        self.guard = WorkspaceGuard(
            config.workspace_root, follow_symlinks=config.follow_symlinks
        )

    def write_file(self, path: str, content: str, encoding: str = "utf-8") -> int:
        """
        Write content to a file, creating parent directories as needed.

        The content is written to a temporary file next to the target
        and renamed over it, so readers never see a partial file.

        Args:
            path: File path (absolute, or relative to the workspace root)
            content: Content to write
            encoding: Text encoding (default: utf-8)

        Returns:
            Number of bytes written

        Raises:
            FileAccessDeniedError: If write access is denied
            FileSizeLimitExceededError: If content is too large
            IsADirectoryPathError: If the path is a directory
        """
        if not path:
            raise InvalidArgumentError("path", "The parameter is required")
        if content is None:
            raise InvalidArgumentError("content", "The parameter is required")

        resolved_path = self._check_write_access(path)
        if resolved_path.is_dir():
            raise IsADirectoryPathError(str(resolved_path))

        content_bytes = content.encode(encoding)
        if len(content_bytes) > self.config.max_write_size_bytes:
            logger.warning(
                f"Content too large: {len(content_bytes)} bytes > "
                f"{self.config.max_write_size_bytes} bytes"
            )
            raise FileSizeLimitExceededError(
                str(resolved_path),
                len(content_bytes),
                self.config.max_write_size_bytes,
            )

        if not resolved_path.parent.exists():
            resolved_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created parent directories for {resolved_path}")

        _atomic_write(resolved_path, content_bytes)
        logger.info(f"Successfully wrote file: {resolved_path} ({len(content_bytes)} bytes)")
        return len(content_bytes)

    def replace(
        self,
        path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
        encoding: str = "utf-8",
    ) -> int:
        """
        Replace exact text in an existing file.

        Args:
            path: File path (absolute, or relative to the workspace root)
            old_string: Text to replace (must not be empty)
            new_string: Replacement text
            replace_all: Replace every occurrence instead of exactly one

        Returns:
            Number of replacements made

        Raises:
            InvalidArgumentError: If ``old_string`` is missing, or is not
                unique while ``replace_all`` is False
            FileAccessDeniedError: If write access is denied
            PathNotFoundError: If the file doesn't exist
            InvalidPathError: If the file is not valid text in ``encoding``
        """
        if not path:
            raise InvalidArgumentError("path", "The parameter is required")
        if not old_string:
            raise InvalidArgumentError("old_string", "The parameter is required")
        if new_string is None:
            raise InvalidArgumentError("new_string", "The parameter is required")

        self._check_write_access(path)
        resolved_path = self.guard.resolve_file(path)

        content = read_text_file(resolved_path, encoding)
        occurrences = content.count(old_string)

        if occurrences == 0:
            raise InvalidArgumentError("old_string", "Text not found in file")
        if occurrences > 1 and not replace_all:
            raise InvalidArgumentError(
                "old_string",
                "Text is not unique in the file. Provide more surrounding context "
                "to make it unique or set replace_all to change every instance",
            )

        count = occurrences if replace_all else 1
        new_content = content.replace(old_string, new_string, count)

        new_bytes = new_content.encode(encoding)
        if len(new_bytes) > self.config.max_write_size_bytes:
            raise FileSizeLimitExceededError(
                str(resolved_path), len(new_bytes), self.config.max_write_size_bytes
            )

        _atomic_write(resolved_path, new_bytes)
        logger.info(f"Replaced {count} occurrence(s) in {resolved_path}")
        return count

    def _check_write_access(self, path: str) -> Path:
        if not self.config.enabled:
            raise FileAccessDeniedError(str(path), "Filesystem access is disabled")
        if not self.config.allow_write:
            raise FileAccessDeniedError(str(path), "Write operations are disabled")
        return self.guard.resolve(path)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to a sibling temp file, then rename it over ``path``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
