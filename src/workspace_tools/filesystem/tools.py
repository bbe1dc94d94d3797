"""
Unified LLM filesystem tools interface.

Provides a high-level interface for LLMs to interact with the workspace
through function calling (OpenAI function calling format).
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import FileSystemError, InvalidArgumentError
from workspace_tools.filesystem.reader import RestrictedFileReader
from workspace_tools.filesystem.ripgrep import RipgrepProvisioner
from workspace_tools.filesystem.search import RestrictedSearchTools
from workspace_tools.filesystem.shell import ShellRunner
from workspace_tools.filesystem.web import FORMATS, WebFetcher
from workspace_tools.filesystem.writer import RestrictedFileWriter

logger = logging.getLogger(__name__)

# Arguments echoed back in failure payloads so the caller can tell which call failed
_CONTEXT_KEYS = ("path", "pattern", "url", "command")


def _function(
    name: str,
    description: str,
    properties: dict[str, dict[str, Any]],
    required: list[str],
) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_DIRECTORY_PROPERTY = {
    "type": "string",
    "description": "Directory to search in, relative to the workspace root. "
    "Defaults to the workspace root.",
}


class LLMFileSystemTools:
    """
    Unified filesystem interface for LLM function calling.

    Every tool is confined to the configured workspace root. Write, shell
    and web tools are only offered when enabled in the configuration.

    Usage:
        config = FileSystemAccessConfig(workspace_root=Path("/srv/workspace"))
        tools = LLMFileSystemTools(config)

        # Get tool schemas for LLM
        schemas = tools.get_tool_schemas()

        # Execute tool call
        result = await tools.execute_tool(
            tool_name="grep",
            arguments={"pattern": "export", "path": "src", "include": "*.ts"},
        )
    """

    def __init__(
        self,
        config: FileSystemAccessConfig,
        provisioner: Optional[RipgrepProvisioner] = None,
    ):
        """
        Initialize LLM filesystem tools.

        Args:
            config: Filesystem access configuration
            provisioner: ripgrep provisioner (defaults to the process-wide one)
        """
        self.config = config
        self.reader = RestrictedFileReader(config)
        self.writer = RestrictedFileWriter(config)
        self.search = RestrictedSearchTools(config, provisioner=provisioner)
        self.shell = ShellRunner(config)
        self.web = WebFetcher(config)

        self._handlers: dict[str, Callable[..., Awaitable[dict[str, Any]]]] = {
            "glob": self._glob,
            "grep": self._grep,
            "search_file_content": self._search_file_content,
            "list_directory": self._list_directory,
            "read_file": self._read_file,
            "read_many_files": self._read_many_files,
            "write_file": self._write_file,
            "replace": self._replace,
            "run_shell_command": self._run_shell_command,
            "web_fetch": self._web_fetch,
        }

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """
        Get OpenAI function calling schemas for all enabled tools.

        Returns:
            List of tool schemas in OpenAI format
        """
        schemas = [
            _function(
                "glob",
                "Fast file pattern matching. Supports glob patterns like '**/*.py' or "
                "'src/**/*.ts'. Returns matching file paths, most recently modified first.",
                {
                    "pattern": {
                        "type": "string",
                        "description": "The glob pattern to match files against",
                    },
                    "path": _DIRECTORY_PROPERTY,
                },
                ["pattern"],
            ),
            _function(
                "grep",
                "Search file contents with a regular expression using ripgrep. "
                "Returns matching lines grouped by file, sorted by path.",
                {
                    "pattern": {
                        "type": "string",
                        "description": "Regular expression pattern to search for",
                    },
                    "path": _DIRECTORY_PROPERTY,
                    "include": {
                        "type": "string",
                        "description": "File glob to search (e.g. '*.py', '*.{ts,tsx}')",
                    },
                },
                ["pattern"],
            ),
            _function(
                "search_file_content",
                "Search file contents with a Python regular expression without ripgrep. "
                "Returns each matching line with its file and line number.",
                {
                    "pattern": {
                        "type": "string",
                        "description": "Regular expression pattern to search for",
                    },
                    "path": _DIRECTORY_PROPERTY,
                    "include": {
                        "type": "string",
                        "description": "Glob selecting files to scan (default: '**/*')",
                    },
                },
                ["pattern"],
            ),
            _function(
                "list_directory",
                "List the files and directories in a directory.",
                {
                    "path": {
                        "type": "string",
                        "description": "Directory to list",
                    },
                    "ignore": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Glob patterns of entry names to leave out",
                    },
                },
                ["path"],
            ),
            _function(
                "read_file",
                "Read a file. Returns up to 2000 lines from the start of the file by "
                "default, each prefixed with its line number.",
                {
                    "path": {
                        "type": "string",
                        "description": "Path to the file to read",
                    },
                    "offset": {
                        "type": "integer",
                        "description": "Number of lines to skip (0-based)",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Number of lines to read (default: 2000)",
                    },
                },
                ["path"],
            ),
            _function(
                "read_many_files",
                "Read several files at once. Returns the path and content of each file.",
                {
                    "paths": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Paths of the files to read",
                    },
                },
                ["paths"],
            ),
        ]

        if self.config.allow_write:
            schemas.extend([
                _function(
                    "write_file",
                    "Write content to a file. Creates the file if it doesn't exist, "
                    "overwrites it if it does.",
                    {
                        "path": {
                            "type": "string",
                            "description": "Path to the file to write",
                        },
                        "content": {
                            "type": "string",
                            "description": "Content to write to the file",
                        },
                    },
                    ["path", "content"],
                ),
                _function(
                    "replace",
                    "Replace exact text in a file. If old_string is not unique, provide "
                    "more surrounding context or set replace_all.",
                    {
                        "path": {
                            "type": "string",
                            "description": "Path to the file to modify",
                        },
                        "old_string": {
                            "type": "string",
                            "description": "The text to replace",
                        },
                        "new_string": {
                            "type": "string",
                            "description": "The replacement text",
                        },
                        "replace_all": {
                            "type": "boolean",
                            "description": "Replace every occurrence (default: false)",
                        },
                    },
                    ["path", "old_string", "new_string"],
                ),
            ])

        if self.config.allow_shell:
            schemas.append(
                _function(
                    "run_shell_command",
                    "Run a shell command in the workspace root. Commands must not "
                    "contain absolute paths.",
                    {
                        "command": {
                            "type": "string",
                            "description": "The command to run",
                        },
                        "timeout_ms": {
                            "type": "integer",
                            "description": "Timeout in milliseconds (default: 120000)",
                        },
                    },
                    ["command"],
                )
            )

        if self.config.allow_web:
            schemas.append(
                _function(
                    "web_fetch",
                    "Fetch a web page and return its visible text, Markdown or raw HTML.",
                    {
                        "url": {
                            "type": "string",
                            "description": "The http(s) URL to fetch",
                        },
                        "format": {
                            "type": "string",
                            "enum": list(FORMATS),
                            "description": "Return format (default: text)",
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Timeout in seconds (default: 10)",
                        },
                    },
                    ["url"],
                )
            )

        return schemas

    async def execute_tool(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Execute a tool call from an LLM.

        Args:
            tool_name: Name of the tool to execute
            arguments: Tool arguments (from LLM function call)

        Returns:
            Tool execution result as a dict. ``success`` is False on failure,
            with ``error`` and ``error_type`` describing it.

        Raises:
            ValueError: If tool name is unknown
        """
        handler = self._handlers.get(tool_name)
        if handler is None:
            raise ValueError(f"Unknown tool: {tool_name}")

        context = {key: arguments[key] for key in _CONTEXT_KEYS if key in arguments}

        try:
            inspect.signature(handler).bind(**arguments)
        except TypeError as e:
            error = InvalidArgumentError(tool_name, f"Invalid arguments ({e})")
            logger.warning(f"LLM {tool_name} failed: {error}")
            return self._failure(context, str(error), type(error).__name__)

        try:
            result = await handler(**arguments)
        except FileSystemError as e:
            logger.warning(f"LLM {tool_name} failed: {e}")
            return self._failure(context, str(e), type(e).__name__)
        except Exception as e:
            logger.error(f"LLM {tool_name} unexpected error: {e}")
            return self._failure(context, f"Unexpected error: {e}", "UnexpectedError")

        return {"success": True, **context, **result}

    @staticmethod
    def _failure(context: dict[str, Any], error: str, error_type: str) -> dict[str, Any]:
        return {"success": False, **context, "error": error, "error_type": error_type}

    async def _glob(self, pattern: str, path: Optional[str] = None) -> dict[str, Any]:
        files = self.search.glob(pattern, path=path)
        return {"files": files, "count": len(files)}

    async def _grep(
        self, pattern: str, path: Optional[str] = None, include: Optional[str] = None
    ) -> dict[str, Any]:
        report = await self.search.grep(pattern, path=path, include=include)
        return {
            "title": report.title,
            "matches": report.total_matches,
            "truncated": report.truncated,
            "output": report.output,
        }

    async def _search_file_content(
        self, pattern: str, path: Optional[str] = None, include: Optional[str] = None
    ) -> dict[str, Any]:
        matches = await self.search.search_file_content(pattern, path=path, include=include)
        return {
            "matches": [
                {
                    "file_path": match.path,
                    "line_number": match.line_number,
                    "line": match.line_text,
                }
                for match in matches
            ],
            "count": len(matches),
        }

    async def _list_directory(
        self, path: str, ignore: Optional[list[str]] = None
    ) -> dict[str, Any]:
        entries = self.reader.list_directory(path, ignore=ignore)
        return {"entries": entries, "count": len(entries)}

    async def _read_file(
        self, path: str, offset: int = 0, limit: Optional[int] = None
    ) -> dict[str, Any]:
        content = self.reader.read_file(path, offset=offset, limit=limit)
        return {"content": content}

    async def _read_many_files(self, paths: list[str]) -> dict[str, Any]:
        files = self.reader.read_files(paths)
        return {"files": files, "count": len(files)}

    async def _write_file(self, path: str, content: str) -> dict[str, Any]:
        size = self.writer.write_file(path, content)
        return {"size": size, "message": "File written successfully"}

    async def _replace(
        self, path: str, old_string: str, new_string: str, replace_all: bool = False
    ) -> dict[str, Any]:
        count = self.writer.replace(path, old_string, new_string, replace_all=replace_all)
        return {"replacements": count}

    async def _run_shell_command(
        self, command: str, timeout_ms: Optional[int] = None
    ) -> dict[str, Any]:
        result = await self.shell.run(
            command, timeout=timeout_ms / 1000 if timeout_ms else None
        )
        return {
            "exit_code": result.exit_code,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }

    async def _web_fetch(
        self, url: str, format: str = "text", timeout: Optional[float] = None
    ) -> dict[str, Any]:
        content = await self.web.fetch(url, format=format, timeout=timeout)
        return {"content": content, "size": len(content)}

    def get_summary(self) -> dict[str, Any]:
        """
        Get a summary of the filesystem access configuration.

        Returns:
            Dict with configuration summary
        """
        binary = self.search.provisioner.binary
        return {
            "enabled": self.config.enabled,
            "workspace_root": str(self.config.workspace_root),
            "max_file_size_mb": self.config.max_file_size_bytes / (1024 * 1024),
            "max_search_results": self.config.max_search_results,
            "search_timeout_seconds": self.config.search_timeout_seconds,
            "follow_symlinks": self.config.follow_symlinks,
            "allow_write": self.config.allow_write,
            "allow_shell": self.config.allow_shell,
            "allow_web": self.config.allow_web,
            "ripgrep_version": self.config.ripgrep.version,
            "ripgrep_cache_dir": str(self.config.ripgrep.cache_dir),
            "ripgrep_binary": str(binary.path) if binary else None,
        }
