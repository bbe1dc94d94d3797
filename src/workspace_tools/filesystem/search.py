"""
Workspace-restricted search tools: ripgrep content search, glob and a
pure-Python content scan.
"""

import asyncio
import base64
import json
import logging
import os
import re
import shlex
from pathlib import Path
from typing import Any, Optional, Union

from workspace_tools.filesystem.config import FileSystemAccessConfig
from workspace_tools.filesystem.exceptions import (
    FileAccessDeniedError,
    InvalidArgumentError,
    OperationTimeoutError,
    SearchError,
)
from workspace_tools.filesystem.formatter import SearchReport, format_matches
from workspace_tools.filesystem.guard import WorkspaceGuard
from workspace_tools.filesystem.models import (
    RawMatch,
    SearchOutcome,
    SearchQuery,
    SearchStatus,
    SubMatch,
)
from workspace_tools.filesystem.ripgrep import (
    RipgrepProvisioner,
    SearchBinary,
    shared_provisioner,
)

logger = logging.getLogger(__name__)

VCS_EXCLUDE_GLOB = "!.git/*"

# ripgrep emits one JSON object per line; minified sources make long lines
_STREAM_LIMIT = 16 * 1024 * 1024


def build_ripgrep_args(executable: Union[str, Path], query: SearchQuery) -> list[str]:
    """
    Build the ripgrep argument vector for ``query``.

    The pattern is always the last argument. A pattern starting with
    ``-`` is preceded by ``--`` so it cannot be read as a flag.
    """
    args = [str(executable), "--json", "--hidden"]

    if query.include:
        args.extend(["--glob", query.include])

    args.extend(["--glob", VCS_EXCLUDE_GLOB])

    if query.max_matches:
        args.extend(["--max-count", str(query.max_matches)])

    if query.pattern.startswith("-"):
        args.append("--")
    args.append(query.pattern)
    return args


def _decode_text(value: Any) -> str:
    """Read a ripgrep ``{"text": ...}`` or ``{"bytes": <base64>}`` field."""
    if "text" in value:
        return value["text"]
    return base64.b64decode(value["bytes"]).decode("utf-8", errors="replace")


def decode_record(line: Union[str, bytes]) -> Optional[RawMatch]:
    """
    Decode one line of ``rg --json`` output.

    Returns:
        RawMatch for ``match`` records, None for any other or malformed record
    """
    line = line.strip()
    if not line:
        return None

    try:
        record = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug(f"Skipping malformed ripgrep record: {line[:200]!r}")
        return None

    if not isinstance(record, dict) or record.get("type") != "match":
        return None

    try:
        data = record["data"]
        return RawMatch(
            path=_decode_text(data["path"]),
            line_number=data["line_number"],
            line_text=_decode_text(data["lines"]),
            submatches=tuple(
                SubMatch(
                    text=_decode_text(sub["match"]),
                    start=sub["start"],
                    end=sub["end"],
                )
                for sub in data.get("submatches", [])
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Skipping unexpected ripgrep match record: {e}")
        return None


def parse_ripgrep_output(output: str) -> list[RawMatch]:
    """Decode complete ``rg --json`` output into matches, in order."""
    matches = []
    for line in output.splitlines():
        match = decode_record(line)
        if match is not None:
            matches.append(match)
    return matches


class RipgrepSearcher:
    """
    Runs ripgrep as a child process and decodes its JSON stream.

    Standard output is decoded line by line while standard error is
    drained concurrently, so the child never blocks on a full pipe. The
    child is killed on timeout, cancellation or error.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds before the child is killed (None = no deadline)
        """
        self.timeout = timeout

    async def search(
        self, query: SearchQuery, binary: SearchBinary, cwd: Path
    ) -> SearchOutcome:
        """
        Run one search.

        Args:
            query: What to search for
            binary: ripgrep executable to run
            cwd: Directory to search (already admitted by the guard)

        Returns:
            SearchOutcome with status MATCHES (exit 0) or NO_MATCHES (exit 1)

        Raises:
            SearchError: If ripgrep cannot start or exits with another code
            OperationTimeoutError: If the deadline passes
        """
        args = build_ripgrep_args(binary.path, query)
        logger.debug(f"Running ripgrep in {cwd}: {shlex.join(args)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise SearchError(
                f"Failed to start ripgrep: {e}", pattern=query.pattern
            ) from e

        matches: list[RawMatch] = []
        try:
            stderr_bytes, exit_code = await asyncio.wait_for(
                self._communicate(proc, matches), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"ripgrep timed out after {self.timeout}s")
            raise OperationTimeoutError("Search", self.timeout) from None
        except ValueError as e:
            raise SearchError(
                f"Unreadable ripgrep output: {e}", pattern=query.pattern
            ) from e
        finally:
            await kill_process(proc)

        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        if exit_code == 0:
            return SearchOutcome(
                status=SearchStatus.MATCHES, matches=matches, stderr=stderr
            )
        if exit_code == 1:
            return SearchOutcome(status=SearchStatus.NO_MATCHES, stderr=stderr)

        logger.error(f"ripgrep exited with {exit_code}: {stderr}")
        raise SearchError(
            f"ripgrep failed: {stderr or 'unknown error'}",
            pattern=query.pattern,
            exit_code=exit_code,
            stderr=stderr,
        )

    @staticmethod
    async def _communicate(
        proc: asyncio.subprocess.Process, matches: list[RawMatch]
    ) -> tuple[bytes, int]:
        async def read_stdout() -> None:
            async for line in proc.stdout:
                match = decode_record(line)
                if match is not None:
                    matches.append(match)

        _, stderr = await asyncio.gather(read_stdout(), proc.stderr.read())
        exit_code = await proc.wait()
        return stderr, exit_code


async def kill_process(proc: asyncio.subprocess.Process) -> None:
    """Kill ``proc`` if it is still running and reap it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


class RestrictedSearchTools:
    """
    Secure search tools confined to the workspace root.

    Usage:
        config = FileSystemAccessConfig(
            workspace_root=Path("/srv/workspace"),
            max_search_results=100,
            search_timeout_seconds=30,
        )
        search = RestrictedSearchTools(config)

        report = await search.grep("export", path="src", include="*.ts")
        print(report.output)

        files = search.glob("**/*.py")
    """

    def __init__(
        self,
        config: FileSystemAccessConfig,
        provisioner: Optional[RipgrepProvisioner] = None,
        searcher: Optional[RipgrepSearcher] = None,
    ):
        """
        Initialize search tools.

        Args:
            config: Filesystem access configuration
            provisioner: ripgrep provisioner (defaults to the process-wide one)
            searcher: ripgrep runner (defaults to one using the configured timeout)
        """
        self.config = config
        self.guard = WorkspaceGuard(
            config.workspace_root, follow_symlinks=config.follow_symlinks
        )
        self.provisioner = provisioner or shared_provisioner(config.ripgrep)
        self.searcher = searcher or RipgrepSearcher(
            timeout=config.search_timeout_seconds
        )

    async def grep(
        self,
        pattern: str,
        path: Optional[str] = None,
        include: Optional[str] = None,
    ) -> SearchReport:
        """
        Search file contents with ripgrep.

        Args:
            pattern: Regular expression (ripgrep syntax)
            path: Directory to search (default: workspace root)
            include: File glob such as ``*.ts``

        Returns:
            SearchReport with matches sorted by path, capped at
            ``max_search_results``. Paths are relative to the workspace root.

        Raises:
            InvalidArgumentError: If the pattern is empty
            FileAccessDeniedError: If the directory is outside the workspace
            PathNotFoundError: If the directory does not exist
            ProvisionError: If ripgrep cannot be provisioned
            SearchError: If ripgrep fails
            OperationTimeoutError: If the search exceeds the timeout
        """
        self._check_enabled(path)
        if not pattern:
            raise InvalidArgumentError("pattern", "The parameter is required")

        search_dir = self.guard.resolve_directory(path)
        query = SearchQuery(
            pattern=pattern,
            directory=self.guard.relative(search_dir),
            include=include,
            max_matches=self.config.max_search_results,
        )

        binary = await self.provisioner.aresolve()
        outcome = await self.searcher.search(query, binary, cwd=search_dir)

        matches = [
            match.model_copy(
                update={"path": self.guard.relative(search_dir / match.path)}
            )
            for match in outcome.matches
        ]
        report = format_matches(
            matches, cap=self.config.max_search_results, title=pattern
        )

        if report.truncated:
            logger.warning(
                f"Search returned {len(matches)} results, "
                f"limiting to {self.config.max_search_results}"
            )
        logger.info(f"grep found {report.total_matches} matches")
        return report

    async def search_file_content(
        self,
        pattern: str,
        path: Optional[str] = None,
        include: Optional[str] = None,
    ) -> list[RawMatch]:
        """
        Search file contents using Python's re module.

        This does not rely on ripgrep. Files that cannot be read as UTF-8
        text (directories, binaries, permission errors) are skipped.

        Args:
            pattern: Regular expression (Python syntax)
            path: Directory to search (default: workspace root)
            include: Glob selecting files (default: ``**/*``)

        Returns:
            Matches in path order, capped at ``max_search_results``
        """
        self._check_enabled(path)
        if not pattern:
            raise InvalidArgumentError("pattern", "The parameter is required")

        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise InvalidArgumentError(pattern, f"Invalid regex pattern ({e})")

        search_dir = self.guard.resolve_directory(path)
        glob_pattern = include or "**/*"
        if os.path.isabs(glob_pattern):
            raise InvalidArgumentError(glob_pattern, "Absolute include patterns are not supported")

        results = await asyncio.to_thread(self._scan, regex, search_dir, glob_pattern)
        logger.info(f"Python search found {len(results)} matches")
        return results

    def _scan(self, regex: re.Pattern, search_dir: Path, glob_pattern: str) -> list[RawMatch]:
        limit = self.config.max_search_results
        results: list[RawMatch] = []

        for file_path in sorted(search_dir.glob(glob_pattern)):
            if not self.guard.admit(file_path):
                continue
            relative = self.guard.relative(file_path)
            if ".git" in relative.split("/"):
                continue

            try:
                if file_path.stat().st_size > self.config.max_file_size_bytes:
                    continue
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping {file_path}: {e}")
                continue

            for line_number, line in enumerate(content.split("\n"), start=1):
                hits = list(regex.finditer(line))
                if not hits:
                    continue
                results.append(
                    RawMatch(
                        path=relative,
                        line_number=line_number,
                        line_text=line,
                        submatches=tuple(
                            SubMatch(
                                text=hit.group(0),
                                start=len(line[: hit.start()].encode("utf-8")),
                                end=len(line[: hit.end()].encode("utf-8")),
                            )
                            for hit in hits
                        ),
                    )
                )
                if len(results) >= limit:
                    logger.warning(f"Reached max results ({limit})")
                    return results

        return results

    def glob(self, pattern: str, path: Optional[str] = None) -> list[str]:
        """
        Find files matching a glob pattern.

        Args:
            pattern: Glob such as ``**/*.py`` or ``src/*.ts``
            path: Directory the pattern is relative to (default: workspace root)

        Returns:
            File paths relative to the workspace root, most recently
            modified first (ties ordered by path), capped at
            ``max_search_results``
        """
        self._check_enabled(path)
        if not pattern:
            raise InvalidArgumentError("pattern", "The parameter is required")
        if os.path.isabs(pattern):
            raise InvalidArgumentError(pattern, "Absolute glob patterns are not supported")

        base = self.guard.resolve_directory(path)

        found = []
        for candidate in base.glob(pattern):
            if not self.guard.admit(candidate):
                logger.debug(f"Dropping glob result outside workspace: {candidate}")
                continue
            try:
                if not candidate.is_file():
                    continue
                mtime = candidate.stat().st_mtime
            except OSError:
                continue
            found.append((mtime, self.guard.relative(candidate)))

        found.sort(key=lambda item: (-item[0], item[1]))
        limit = self.config.max_search_results
        if len(found) > limit:
            logger.warning(f"glob returned {len(found)} results, limiting to {limit}")
            found = found[:limit]

        logger.info(f"glob found {len(found)} files")
        return [relative for _, relative in found]

    def _check_enabled(self, path: Optional[str]) -> None:
        if not self.config.enabled:
            raise FileAccessDeniedError(path or ".", "Filesystem access is disabled")
