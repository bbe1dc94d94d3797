"""
Workspace-restricted filesystem tools.

This module provides sandboxed filesystem access for LLM agents: a
workspace containment guard, ripgrep-backed content search with on-demand
binary provisioning, glob, file reading and writing, shell commands and
web fetching, all confined to a single workspace root.
"""

from workspace_tools.filesystem.config import FileSystemAccessConfig, RipgrepConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    FileSizeLimitExceededError,
    FileSystemError,
    InvalidArgumentError,
    InvalidPathError,
    IsADirectoryPathError,
    NotADirectoryPathError,
    OperationTimeoutError,
    PathNotFoundError,
    ProvisionError,
    SearchError,
    UnsupportedPlatformError,
    WebFetchError,
)
from workspace_tools.filesystem.formatter import SearchReport, format_matches
from workspace_tools.filesystem.guard import WorkspaceGuard, is_within_workspace
from workspace_tools.filesystem.models import (
    RawMatch,
    SearchOutcome,
    SearchQuery,
    SearchStatus,
    SubMatch,
)
from workspace_tools.filesystem.reader import RestrictedFileReader
from workspace_tools.filesystem.ripgrep import (
    BinarySource,
    RipgrepProvisioner,
    SearchBinary,
    shared_provisioner,
)
from workspace_tools.filesystem.search import RestrictedSearchTools, RipgrepSearcher
from workspace_tools.filesystem.shell import ShellResult, ShellRunner
from workspace_tools.filesystem.tools import LLMFileSystemTools
from workspace_tools.filesystem.web import WebFetcher
from workspace_tools.filesystem.writer import RestrictedFileWriter

__all__ = [
    # Config
    "FileSystemAccessConfig",
    "RipgrepConfig",
    # Exceptions
    "FileSystemError",
    "InvalidArgumentError",
    "FileAccessDeniedError",
    "PathNotFoundError",
    "NotADirectoryPathError",
    "IsADirectoryPathError",
    "FileSizeLimitExceededError",
    "InvalidPathError",
    "UnsupportedPlatformError",
    "ProvisionError",
    "SearchError",
    "OperationTimeoutError",
    "WebFetchError",
    # Guard
    "WorkspaceGuard",
    "is_within_workspace",
    # Search
    "RawMatch",
    "SubMatch",
    "SearchQuery",
    "SearchStatus",
    "SearchOutcome",
    "SearchReport",
    "format_matches",
    "BinarySource",
    "SearchBinary",
    "RipgrepProvisioner",
    "shared_provisioner",
    "RipgrepSearcher",
    "RestrictedSearchTools",
    # Files, shell and web
    "RestrictedFileReader",
    "RestrictedFileWriter",
    "ShellResult",
    "ShellRunner",
    "WebFetcher",
    # LLM surface
    "LLMFileSystemTools",
]
