"""
CLI for workspace-tools.

Runs the workspace-restricted search tools from the command line, and
provisions the ripgrep binary ahead of time.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from workspace_tools import __version__
from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import FileSystemError
from workspace_tools.filesystem.ripgrep import RipgrepProvisioner, shared_provisioner
from workspace_tools.filesystem.search import RestrictedSearchTools
from workspace_tools.filesystem.tools import LLMFileSystemTools
from workspace_tools.settings import WorkspaceToolsSettings

# Load environment variables
load_dotenv()

console = Console()


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Setup rich logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    # Reduce noise from httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}", highlight=False)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--root",
    "-r",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Workspace root (default: current directory)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (YAML or JSON)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, root: Optional[Path], config_path: Optional[Path], verbose: bool):
    """Workspace Tools CLI - sandboxed search and file tools for LLM agents."""
    try:
        if config_path:
            settings = WorkspaceToolsSettings.from_file(config_path)
        else:
            settings = WorkspaceToolsSettings()
    except (OSError, ValueError, yaml.YAMLError) as e:
        _fail(e)

    setup_logging(verbose, settings.log_level)
    ctx.obj = settings.to_access_config(workspace_root=root)


@cli.command()
@click.argument("pattern")
@click.option("--path", "-p", default=None, help="Directory to search, relative to the root")
@click.option("--include", "-i", default=None, help="File glob, e.g. '*.py'")
@click.pass_obj
def grep(config: FileSystemAccessConfig, pattern: str, path: Optional[str], include: Optional[str]):
    """
    Search file contents with ripgrep.

    Examples:

        # Search the whole workspace
        workspace-tools grep "def main"

        # Only TypeScript files under src/
        workspace-tools grep export -p src -i "*.ts"
    """
    search = RestrictedSearchTools(config)
    try:
        report = asyncio.run(search.grep(pattern, path=path, include=include))
    except FileSystemError as e:
        _fail(e)

    console.print(report.output, markup=False, highlight=False, emoji=False, soft_wrap=True)


@cli.command()
@click.argument("pattern")
@click.option("--path", "-p", default=None, help="Directory the pattern is relative to")
@click.pass_obj
def glob(config: FileSystemAccessConfig, pattern: str, path: Optional[str]):
    """
    Find files by glob pattern, most recently modified first.

    Example:

        workspace-tools glob "**/*.py"
    """
    search = RestrictedSearchTools(config)
    try:
        files = search.glob(pattern, path=path)
    except FileSystemError as e:
        _fail(e)

    if not files:
        console.print("[yellow]No files found[/yellow]")
        return
    for file in files:
        console.print(file, markup=False, highlight=False, emoji=False, soft_wrap=True)


@cli.command()
@click.argument("pattern")
@click.option("--path", "-p", default=None, help="Directory to search, relative to the root")
@click.option("--include", "-i", default=None, help="File glob (default: '**/*')")
@click.pass_obj
def scan(config: FileSystemAccessConfig, pattern: str, path: Optional[str], include: Optional[str]):
    """
    Search file contents with Python regular expressions (no ripgrep needed).
    """
    search = RestrictedSearchTools(config)
    try:
        matches = asyncio.run(search.search_file_content(pattern, path=path, include=include))
    except FileSystemError as e:
        _fail(e)

    if not matches:
        console.print("[yellow]No matches found[/yellow]")
        return
    for match in matches:
        console.print(str(match), markup=False, highlight=False, emoji=False, soft_wrap=True)


@cli.command()
@click.option(
    "--no-system",
    is_flag=True,
    help="Ignore an rg on PATH and use the cached or downloaded binary",
)
@click.pass_obj
def provision(config: FileSystemAccessConfig, no_system: bool):
    """
    Locate ripgrep, downloading it into the cache directory if needed.
    """
    if no_system:
        provisioner = RipgrepProvisioner(
            config.ripgrep.model_copy(update={"use_system_binary": False})
        )
    else:
        provisioner = shared_provisioner(config.ripgrep)

    try:
        with console.status("[bold green]Resolving ripgrep..."):
            binary = provisioner.resolve()
    except FileSystemError as e:
        _fail(e)

    console.print(f"[green]ripgrep ({binary.source.value}):[/green] {escape(str(binary.path))}", highlight=False)


@cli.command()
@click.option("--summary", is_flag=True, help="Show the effective configuration instead")
@click.pass_obj
def tools(config: FileSystemAccessConfig, summary: bool):
    """
    Print the tool schemas offered to an LLM as JSON.
    """
    llm_tools = LLMFileSystemTools(config)

    if summary:
        table = Table(title="Workspace Tools")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in llm_tools.get_summary().items():
            table.add_row(key, str(value))
        console.print(table)
        return

    click.echo(json.dumps(llm_tools.get_tool_schemas(), indent=2))


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
