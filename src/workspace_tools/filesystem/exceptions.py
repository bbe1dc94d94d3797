"""
Exceptions for workspace filesystem operations.

Every failure a tool can report maps to one class here, so callers can
tell an access denial apart from a missing path or a failed search.
"""

from typing import Optional


class FileSystemError(Exception):
    """Base exception for workspace filesystem operations."""

    pass


class InvalidArgumentError(FileSystemError):
    """Raised when a required parameter is missing, empty or malformed."""

    def __init__(self, argument: str, reason: str = "Invalid argument"):
        self.argument = argument
        self.reason = reason
        super().__init__(f'{reason}: "{argument}"')


class FileAccessDeniedError(FileSystemError):
    """Raised when a path falls outside the workspace or an operation is disabled."""

    def __init__(self, path: str, reason: str = "Access denied"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class PathNotFoundError(FileSystemError):
    """Raised when a path that must exist does not."""

    def __init__(self, path: str, reason: str = "Path not found"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class NotADirectoryPathError(FileSystemError):
    """Raised when a directory was expected."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The path is not a directory: {path}")


class IsADirectoryPathError(FileSystemError):
    """Raised when a file was expected but the path is a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The path points to a directory, not a file: {path}")


class FileSizeLimitExceededError(FileSystemError):
    """Raised when a file exceeds the size limit."""

    def __init__(self, path: str, size: int, limit: int):
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"File too large ({size} bytes > {limit} bytes): {path}")


class InvalidPathError(FileSystemError):
    """Raised when a path is invalid or malformed."""

    def __init__(self, path: str, reason: str = "Invalid path"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class UnsupportedPlatformError(FileSystemError):
    """Raised when no search binary release exists for this platform."""

    def __init__(self, platform_key: str):
        self.platform_key = platform_key
        super().__init__(f"Unsupported platform: {platform_key}")


class ProvisionError(FileSystemError):
    """Raised when the search binary cannot be downloaded or extracted."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status_code={self.status_code}")
        if self.url:
            parts.append(f"url={self.url}")
        return " ".join(parts)


class SearchError(FileSystemError):
    """Raised when a search operation fails."""

    def __init__(
        self,
        message: str,
        *,
        pattern: Optional[str] = None,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.message = message
        self.pattern = pattern
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.exit_code is not None:
            parts.append(f"exit_code={self.exit_code}")
        return " ".join(parts)


class OperationTimeoutError(FileSystemError):
    """Raised when a subprocess or request exceeds its deadline."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout} seconds")


class WebFetchError(FileSystemError):
    """Raised when a web page cannot be fetched."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Error during fetch for {url}: {reason}")
