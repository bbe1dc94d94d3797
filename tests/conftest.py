"""
Shared fixtures for workspace-tools tests.
"""

import json
import os
import shlex
import stat
import tempfile
from pathlib import Path
from typing import Optional

import pytest

from workspace_tools.filesystem.ripgrep import (
    BinarySource,
    SearchBinary,
    reset_shared_provisioners,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing (symlinks resolved)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture(autouse=True)
def fresh_provisioners():
    """Give every test its own process-wide provisioners."""
    reset_shared_provisioners()
    yield
    reset_shared_provisioners()


class FakeProvisioner:
    """Provisioner stand-in that hands out a fixed binary."""

    def __init__(self, binary: SearchBinary):
        self.binary = binary
        self.calls = 0

    def resolve(self) -> SearchBinary:
        self.calls += 1
        return self.binary

    async def aresolve(self) -> SearchBinary:
        return self.resolve()


def rg_match(path: str, line_number: int, text: str, word: Optional[str] = None) -> str:
    """One ``rg --json`` match record."""
    submatches = []
    if word and word in text:
        start = text.index(word)
        submatches.append({"match": {"text": word}, "start": start, "end": start + len(word)})
    return json.dumps({
        "type": "match",
        "data": {
            "path": {"text": path},
            "lines": {"text": text + "\n"},
            "line_number": line_number,
            "absolute_offset": 0,
            "submatches": submatches,
        },
    })


@pytest.fixture
def make_match_line():
    """Factory for ``rg --json`` match records."""
    return rg_match


@pytest.fixture
def fake_rg(tmp_path_factory):
    """
    Factory writing a shell script that behaves like ``rg --json``.

    The script prints canned stdout/stderr, records its arguments and
    exits with the given code.
    """
    if os.name == "nt":
        pytest.skip("fake ripgrep script requires a POSIX shell")

    def factory(
        stdout: str = "",
        exit_code: int = 0,
        stderr: str = "",
        sleep: Optional[float] = None,
    ) -> SearchBinary:
        directory = tmp_path_factory.mktemp("fake-rg")
        (directory / "stdout.txt").write_text(stdout)
        (directory / "stderr.txt").write_text(stderr)

        lines = [
            "#!/bin/sh",
            f"printf '%s\\n' \"$@\" > {shlex.quote(str(directory / 'args.txt'))}",
            f"pwd -P > {shlex.quote(str(directory / 'cwd.txt'))}",
        ]
        if sleep is not None:
            lines.append(f"exec sleep {sleep}")
        lines.extend([
            f"cat {shlex.quote(str(directory / 'stdout.txt'))}",
            f"cat {shlex.quote(str(directory / 'stderr.txt'))} >&2",
            f"exit {exit_code}",
        ])

        script = directory / "rg"
        script.write_text("\n".join(lines) + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return SearchBinary(path=script, source=BinarySource.SYSTEM)

    return factory


def recorded_args(binary: SearchBinary) -> list[str]:
    """Arguments the fake script was last invoked with (without argv[0])."""
    return (binary.path.parent / "args.txt").read_text().splitlines()


def recorded_cwd(binary: SearchBinary) -> Path:
    """Working directory the fake script last ran in."""
    return Path((binary.path.parent / "cwd.txt").read_text().strip())


@pytest.fixture
def fake_rg_calls():
    """Accessors for what a fake ripgrep script was invoked with."""
    return recorded_args, recorded_cwd


@pytest.fixture
def fake_provisioner():
    """Factory for provisioners returning a fixed binary."""
    return FakeProvisioner
