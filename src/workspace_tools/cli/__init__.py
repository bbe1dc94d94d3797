"""
CLI module for workspace-tools.

Provides a command-line interface for the workspace-restricted search
tools and for provisioning ripgrep.
"""

from workspace_tools.cli.main import cli

__all__ = ["cli"]
