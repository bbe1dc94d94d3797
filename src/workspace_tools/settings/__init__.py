"""
Settings and configuration for Workspace Tools.

Example:
    ```python
    from workspace_tools.settings import WorkspaceToolsSettings

    settings = WorkspaceToolsSettings.from_file("~/.workspace-tools.yaml")
    config = settings.to_access_config(workspace_root="/srv/workspace")
    ```
"""

from workspace_tools.settings.config import WorkspaceToolsSettings

__all__ = [
    "WorkspaceToolsSettings",
]
