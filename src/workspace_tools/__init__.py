"""
Workspace Tools - sandboxed filesystem tools for LLM agents.

This package lets an agent search, list, read and edit files inside a
single workspace directory. Content search runs ripgrep, which is
downloaded on first use when it is not installed.
"""

__version__ = "0.1.0"

from workspace_tools.filesystem import (
    FileAccessDeniedError,
    FileSystemAccessConfig,
    FileSystemError,
    LLMFileSystemTools,
    PathNotFoundError,
    RestrictedFileReader,
    RestrictedFileWriter,
    RestrictedSearchTools,
    RipgrepConfig,
    RipgrepProvisioner,
    SearchError,
    SearchReport,
    WorkspaceGuard,
)

from workspace_tools.settings import WorkspaceToolsSettings

__all__ = [
    # Version
    "__version__",
    # Config
    "FileSystemAccessConfig",
    "RipgrepConfig",
    "WorkspaceToolsSettings",
    # Errors
    "FileSystemError",
    "FileAccessDeniedError",
    "PathNotFoundError",
    "SearchError",
    # Tools
    "WorkspaceGuard",
    "RipgrepProvisioner",
    "RestrictedSearchTools",
    "RestrictedFileReader",
    "RestrictedFileWriter",
    "SearchReport",
    "LLMFileSystemTools",
]
