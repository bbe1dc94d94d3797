"""
On-demand provisioning of the ripgrep binary.

Resolution order:
    1. an ``rg`` executable on PATH (when ``use_system_binary`` is set)
    2. a previously extracted executable in the cache directory
    3. download the release archive for this platform, extract ``rg``
       into the cache directory and delete the archive

The result is memoized per provisioner. Concurrent callers share a
single resolution: the first one downloads while the others wait on
the same lock and then read the memoized binary.
"""

import asyncio
import logging
import os
import platform
import shutil
import tarfile
import threading
import zipfile
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from workspace_tools.filesystem.config import RipgrepConfig
from workspace_tools.filesystem.exceptions import (
    ProvisionError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)


class ArchiveFormat(str, Enum):
    """Archive formats used by ripgrep releases."""

    TAR_GZ = "tar.gz"
    ZIP = "zip"


class ReleaseArtifact(BaseModel):
    """Release archive published for one platform."""

    model_config = ConfigDict(frozen=True)

    triple: str
    archive_format: ArchiveFormat


PLATFORM_ARTIFACTS: dict[str, ReleaseArtifact] = {
    "arm64-darwin": ReleaseArtifact(
        triple="aarch64-apple-darwin", archive_format=ArchiveFormat.TAR_GZ
    ),
    "arm64-linux": ReleaseArtifact(
        triple="aarch64-unknown-linux-gnu", archive_format=ArchiveFormat.TAR_GZ
    ),
    "x64-darwin": ReleaseArtifact(
        triple="x86_64-apple-darwin", archive_format=ArchiveFormat.TAR_GZ
    ),
    "x64-linux": ReleaseArtifact(
        triple="x86_64-unknown-linux-musl", archive_format=ArchiveFormat.TAR_GZ
    ),
    "x64-win32": ReleaseArtifact(
        triple="x86_64-pc-windows-msvc", archive_format=ArchiveFormat.ZIP
    ),
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "win32",
    "win32": "win32",
}


def detect_platform_key(
    machine: Optional[str] = None, system: Optional[str] = None
) -> str:
    """
    Build the ``<arch>-<os>`` key used to pick a release artifact.

    Args:
        machine: CPU architecture (defaults to ``platform.machine()``)
        system: Operating system (defaults to ``platform.system()``)

    Returns:
        Key such as ``x64-linux`` or ``arm64-darwin``
    """
    machine = (machine or platform.machine()).lower()
    system = (system or platform.system()).lower()
    return f"{_ARCH_ALIASES.get(machine, machine)}-{_OS_ALIASES.get(system, system)}"


def artifact_for_platform(platform_key: str) -> ReleaseArtifact:
    """Look up the release artifact for a platform key."""
    try:
        return PLATFORM_ARTIFACTS[platform_key]
    except KeyError:
        raise UnsupportedPlatformError(platform_key) from None


def executable_name(platform_key: str) -> str:
    """Name of the ripgrep executable on the given platform."""
    return "rg.exe" if platform_key.endswith("win32") else "rg"


class BinarySource(str, Enum):
    """Where a resolved binary came from."""

    SYSTEM = "system"
    CACHE = "cache"
    DOWNLOAD = "download"


class SearchBinary(BaseModel):
    """A ready-to-run search executable."""

    model_config = ConfigDict(frozen=True)

    path: Path
    version: Optional[str] = None
    source: BinarySource


class RipgrepProvisioner:
    """
    Locates ripgrep, downloading it once if needed.

    Usage:
        provisioner = RipgrepProvisioner(RipgrepConfig())

        binary = provisioner.resolve()          # blocking
        binary = await provisioner.aresolve()   # from async code
        print(binary.path)
    """

    def __init__(
        self,
        config: Optional[RipgrepConfig] = None,
        *,
        platform_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the provisioner.

        Args:
            config: ripgrep settings (defaults to ``RipgrepConfig()``)
            platform_key: Override the detected ``<arch>-<os>`` key
            transport: httpx transport used for downloads (tests inject a mock)
        """
        self.config = config or RipgrepConfig()
        self.platform_key = platform_key or detect_platform_key()
        self._transport = transport
        self._lock = threading.Lock()
        self._binary: Optional[SearchBinary] = None

    @property
    def binary(self) -> Optional[SearchBinary]:
        """The memoized binary, or None before the first resolution."""
        return self._binary

    def resolve(self) -> SearchBinary:
        """
        Return the search binary, provisioning it on first use.

        Returns:
            The resolved SearchBinary (same object on every call)

        Raises:
            UnsupportedPlatformError: If no release exists for this platform
            ProvisionError: If downloading or extracting fails
        """
        binary = self._binary
        if binary is not None:
            return binary

        with self._lock:
            if self._binary is None:
                self._binary = self._provision()
            return self._binary

    async def aresolve(self) -> SearchBinary:
        """Async variant of ``resolve`` that keeps the event loop free while downloading."""
        if self._binary is not None:
            return self._binary
        return await asyncio.to_thread(self.resolve)

    def reset(self) -> None:
        """Forget the memoized binary. The cache directory is left untouched."""
        with self._lock:
            self._binary = None

    def release_url(self, artifact: ReleaseArtifact) -> str:
        """Download URL of the release archive for ``artifact``."""
        return self.config.release_url_template.format(
            version=self.config.version,
            triple=artifact.triple,
            extension=artifact.archive_format.value,
        )

    @property
    def cached_path(self) -> Path:
        """Location of the extracted executable inside the cache directory."""
        return self.config.cache_dir / executable_name(self.platform_key)

    def _provision(self) -> SearchBinary:
        if self.config.use_system_binary:
            system_path = shutil.which("rg")
            if system_path:
                logger.debug(f"Using system ripgrep at {system_path}")
                return SearchBinary(path=Path(system_path), source=BinarySource.SYSTEM)

        artifact = artifact_for_platform(self.platform_key)
        target = self.cached_path

        if target.is_file():
            logger.debug(f"Using cached ripgrep at {target}")
            return SearchBinary(
                path=target, version=self.config.version, source=BinarySource.CACHE
            )

        self._download(artifact, target)
        return SearchBinary(
            path=target, version=self.config.version, source=BinarySource.DOWNLOAD
        )

    def _download(self, artifact: ReleaseArtifact, target: Path) -> None:
        url = self.release_url(artifact)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisionError(f"Cannot create cache directory {target.parent}: {e}") from e

        archive_path = target.parent / url.rsplit("/", 1)[-1]

        logger.info(f"Downloading ripgrep {self.config.version}...")
        try:
            self._fetch(url, archive_path)
            self._extract(archive_path, artifact, target)
        finally:
            archive_path.unlink(missing_ok=True)

        logger.info(f"ripgrep {self.config.version} installed at {target}")

    def _fetch(self, url: str, destination: Path) -> None:
        """Stream ``url`` into ``destination``."""
        logger.debug(f"GET {url}")
        try:
            with httpx.Client(
                transport=self._transport,
                timeout=httpx.Timeout(self.config.download_timeout_seconds),
                follow_redirects=True,
            ) as client:
                with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise ProvisionError(
                            f"Failed to download: {response.status_code}",
                            url=url,
                            status_code=response.status_code,
                        )
                    with open(destination, "wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)
        except httpx.TimeoutException as e:
            raise ProvisionError(f"Download timed out: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise ProvisionError(f"Download failed: {e}", url=url) from e
        except OSError as e:
            raise ProvisionError(f"Cannot write {destination}: {e}", url=url) from e

    def _extract(
        self, archive_path: Path, artifact: ReleaseArtifact, target: Path
    ) -> None:
        """
        Extract the executable into ``target``.

        The member is written to a staging file that is renamed into place
        only once it is complete, so an interrupted extraction never
        leaves a truncated executable in the cache.
        """
        staging = target.with_name(f".{target.name}.{os.getpid()}.part")
        try:
            if artifact.archive_format is ArchiveFormat.TAR_GZ:
                self._extract_tar(archive_path, target.name, staging)
            else:
                self._extract_zip(archive_path, target.name, staging)

            if os.name != "nt":
                os.chmod(staging, 0o755)
            os.replace(staging, target)
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise ProvisionError(
                f"Failed to extract {target.name} from {archive_path.name}: {e}"
            ) from e
        finally:
            staging.unlink(missing_ok=True)

    @staticmethod
    def _extract_tar(archive_path: Path, member_name: str, destination: Path) -> None:
        with tarfile.open(archive_path, "r:gz") as tar:
            member = next(
                (
                    m
                    for m in tar.getmembers()
                    if m.isfile() and PurePosixPath(m.name).name == member_name
                ),
                None,
            )
            if member is None:
                raise ProvisionError(f"{member_name} not found in {archive_path.name}")

            source = tar.extractfile(member)
            if source is None:
                raise ProvisionError(f"Cannot read {member.name} from {archive_path.name}")
            with source, open(destination, "wb") as out:
                shutil.copyfileobj(source, out)

    @staticmethod
    def _extract_zip(archive_path: Path, member_name: str, destination: Path) -> None:
        with zipfile.ZipFile(archive_path) as zf:
            name = next(
                (
                    n
                    for n in zf.namelist()
                    if not n.endswith("/") and PurePosixPath(n).name == member_name
                ),
                None,
            )
            if name is None:
                raise ProvisionError(f"{member_name} not found in {archive_path.name}")

            with zf.open(name) as source, open(destination, "wb") as out:
                shutil.copyfileobj(source, out)


_shared_provisioners: dict[RipgrepConfig, RipgrepProvisioner] = {}
_shared_lock = threading.Lock()


def shared_provisioner(config: Optional[RipgrepConfig] = None) -> RipgrepProvisioner:
    """
    Process-wide provisioner for ``config``.

    Tools built from equal configurations share one provisioner, so the
    lookup/download sequence runs at most once per process.
    """
    config = config or RipgrepConfig()
    with _shared_lock:
        provisioner = _shared_provisioners.get(config)
        if provisioner is None:
            provisioner = RipgrepProvisioner(config)
            _shared_provisioners[config] = provisioner
        return provisioner


def reset_shared_provisioners() -> None:
    """Drop all process-wide provisioners."""
    with _shared_lock:
        _shared_provisioners.clear()
