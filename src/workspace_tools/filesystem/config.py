"""
Configuration for workspace-restricted filesystem access.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RIPGREP_VERSION = "14.1.1"
DEFAULT_RELEASE_URL_TEMPLATE = (
    "https://github.com/BurntSushi/ripgrep/releases/download/"
    "{version}/ripgrep-{version}-{triple}.{extension}"
)


class RipgrepConfig(BaseModel):
    """
    Settings for locating or downloading the ripgrep binary.

    Usage:
        config = RipgrepConfig(cache_dir=Path("~/.cache/workspace-tools/bin"))
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(
        default=DEFAULT_RIPGREP_VERSION,
        description="ripgrep release to download when none is installed",
    )

    cache_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "bin",
        description="Directory holding the downloaded executable",
    )

    use_system_binary: bool = Field(
        default=True,
        description="Prefer an `rg` found on PATH over a downloaded copy",
    )

    download_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for downloading the release archive (seconds)",
    )

    release_url_template: str = Field(
        default=DEFAULT_RELEASE_URL_TEMPLATE,
        description="Release URL with {version}, {triple} and {extension} placeholders",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def resolve_cache_dir(cls, v):
        """Resolve the cache directory to an absolute path."""
        return Path(v).expanduser().absolute()


class FileSystemAccessConfig(BaseModel):
    """
    Configuration for LLM filesystem access restrictions.

    Every operation is confined to ``workspace_root``. Relative paths
    supplied by a caller are resolved against it, never against the
    process working directory.
    """

    enabled: bool = Field(
        default=True,
        description="Enable filesystem access for LLMs",
    )

    workspace_root: Path = Field(
        default_factory=Path.cwd,
        description="Sandbox boundary for every operation (resolved to an absolute path)",
    )

    max_file_size_bytes: int = Field(
        default=10_000_000,  # 10 MB
        ge=0,
        description="Maximum file size that can be read (bytes)",
    )

    max_search_results: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum number of search results to return",
    )

    search_timeout_seconds: Optional[float] = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for search subprocesses (seconds, None = no deadline)",
    )

    follow_symlinks: bool = Field(
        default=False,
        description="Allow symbolic links that point outside the workspace (security risk if enabled)",
    )

    # Write permissions
    allow_write: bool = Field(
        default=False,
        description="Allow write operations (write_file, replace)",
    )

    max_write_size_bytes: int = Field(
        default=1_000_000,  # 1 MB
        ge=0,
        description="Maximum size for files being written (bytes)",
    )

    allow_shell: bool = Field(
        default=False,
        description="Allow running shell commands in the workspace",
    )

    shell_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Default timeout for shell commands (seconds)",
    )

    allow_web: bool = Field(
        default=False,
        description="Allow fetching web pages",
    )

    web_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Default timeout for web fetches (seconds)",
    )

    ripgrep: RipgrepConfig = Field(default_factory=RipgrepConfig)

    @field_validator("workspace_root", mode="before")
    @classmethod
    def resolve_root(cls, v):
        """Make the workspace root absolute and normalized, keeping symlinks."""
        return Path(os.path.abspath(Path(v).expanduser()))

    def __repr__(self) -> str:
        """Safe representation."""
        return (
            f"FileSystemAccessConfig("
            f"enabled={self.enabled}, "
            f"root={str(self.workspace_root)!r}, "
            f"allow_write={self.allow_write})"
        )
