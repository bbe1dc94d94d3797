"""
Shell command execution inside the workspace.
"""

import asyncio
import logging
import re
from typing import Optional

from pydantic import BaseModel, Field

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    InvalidArgumentError,
    OperationTimeoutError,
)
from workspace_tools.filesystem.search import kill_process

logger = logging.getLogger(__name__)

# Commands may not name paths outside the workspace: no separators,
# no home directory and no Windows drive letters.
_FORBIDDEN_PATH_TOKENS = re.compile(r"[/~]|[A-Z]:")


class ShellResult(BaseModel):
    """Captured output of a shell command."""

    command: str
    exit_code: int = Field(description="Process exit status")
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ShellRunner:
    """
    Runs shell commands with the workspace root as working directory.

    Usage:
        runner = ShellRunner(FileSystemAccessConfig(allow_shell=True))
        result = await runner.run("ls -la", timeout=10)
        print(result.stdout)
    """

    def __init__(self, config: FileSystemAccessConfig):
        self.config = config

    async def run(self, command: str, timeout: Optional[float] = None) -> ShellResult:
        """
        Run ``command`` through the platform shell.

        A non-zero exit status is reported in the result, not raised.

        Args:
            command: Command line to run
            timeout: Seconds before the process is killed
                (default: ``shell_timeout_seconds``)

        Raises:
            InvalidArgumentError: If the command is empty
            FileAccessDeniedError: If shell access is disabled or the
                command contains a path
            OperationTimeoutError: If the command exceeds the timeout
        """
        if not command:
            raise InvalidArgumentError("command", "The parameter is required")
        if not self.config.enabled or not self.config.allow_shell:
            raise FileAccessDeniedError(command, "Shell commands are disabled")
        if _FORBIDDEN_PATH_TOKENS.search(command):
            logger.warning(f"Rejected shell command containing a path: {command}")
            raise FileAccessDeniedError(command, "Access denied: command contains absolute paths")

        timeout = timeout or self.config.shell_timeout_seconds
        logger.debug(f"Running shell command in {self.config.workspace_root}: {command}")

        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(self.config.workspace_root),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Shell command timed out after {timeout}s: {command}")
            raise OperationTimeoutError("Shell command", timeout) from None
        finally:
            await kill_process(proc)

        result = ShellResult(
            command=command,
            exit_code=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if result.succeeded:
            logger.info(f"Shell command succeeded: {command}")
        else:
            logger.info(f"Shell command exited with {result.exit_code}: {command}")
        return result
