"""
Workspace Tools settings.

This module provides configuration management for the workspace tools:
filesystem restrictions and ripgrep provisioning, loaded from a
YAML/JSON file and from ``WORKSPACE_TOOLS_`` environment variables.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from workspace_tools.filesystem.config import FileSystemAccessConfig


class WorkspaceToolsSettings(BaseSettings):
    """
    Complete workspace tools configuration.

    Values passed explicitly (or loaded from a file) take precedence over
    environment variables. Nested fields use ``__`` as separator.

    Environment variables:
        WORKSPACE_TOOLS_FILESYSTEM__WORKSPACE_ROOT - Workspace root
        WORKSPACE_TOOLS_FILESYSTEM__ALLOW_WRITE - Enable write tools
        WORKSPACE_TOOLS_FILESYSTEM__MAX_SEARCH_RESULTS - Search result cap
        WORKSPACE_TOOLS_FILESYSTEM__RIPGREP__CACHE_DIR - ripgrep cache directory
        WORKSPACE_TOOLS_LOG_LEVEL - Log level for the CLI

    Example:
        ```python
        settings = WorkspaceToolsSettings.from_file("~/.workspace-tools.yaml")
        config = settings.to_access_config()
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACE_TOOLS_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    filesystem: FileSystemAccessConfig = Field(
        default_factory=FileSystemAccessConfig,
        description="Filesystem access restrictions",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level used by the CLI when not running verbose",
    )

    def to_access_config(
        self, workspace_root: Optional[Union[str, Path]] = None
    ) -> FileSystemAccessConfig:
        """
        Build the filesystem access configuration.

        Args:
            workspace_root: Override the configured workspace root

        Returns:
            FileSystemAccessConfig instance
        """
        if workspace_root is None:
            return self.filesystem
        data = self.filesystem.model_dump()
        data["workspace_root"] = workspace_root
        return FileSystemAccessConfig(**data)

    def __repr__(self) -> str:
        return f"WorkspaceToolsSettings(filesystem={self.filesystem!r}, log_level={self.log_level!r})"

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WorkspaceToolsSettings":
        """
        Load settings from a YAML or JSON file.

        File format (YAML):
            ```yaml
            filesystem:
              workspace_root: /srv/workspace
              allow_write: true
              max_search_results: 200
              ripgrep:
                cache_dir: ~/.cache/workspace-tools/bin
            log_level: DEBUG
            ```

        Args:
            path: Path to settings file

        Returns:
            Loaded WorkspaceToolsSettings instance

        Raises:
            FileNotFoundError: If the settings file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceToolsSettings":
        """Create settings from a dictionary."""
        return cls(**data)
