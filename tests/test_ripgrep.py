"""
Tests for ripgrep provisioning.
"""

import asyncio
import io
import os
import tarfile
import threading
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from workspace_tools.filesystem import (
    ProvisionError,
    RipgrepConfig,
    UnsupportedPlatformError,
)
from workspace_tools.filesystem.ripgrep import (
    PLATFORM_ARTIFACTS,
    ArchiveFormat,
    BinarySource,
    RipgrepProvisioner,
    artifact_for_platform,
    detect_platform_key,
    executable_name,
    reset_shared_provisioners,
    shared_provisioner,
)

FAKE_BINARY = b"#!/bin/sh\necho ripgrep 14.1.1\n"
LINUX_URL = (
    "https://github.com/BurntSushi/ripgrep/releases/download/14.1.1/"
    "ripgrep-14.1.1-x86_64-unknown-linux-musl.tar.gz"
)


def build_tar_gz(members: dict[str, bytes]) -> bytes:
    """Build a gzipped tarball in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def build_zip(members: dict[str, bytes]) -> bytes:
    """Build a zip archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class RecordingHandler:
    """MockTransport handler that serves one archive and counts requests."""

    def __init__(self, body: bytes = b"", status_code: int = 200, delay: float = 0.0):
        self.body = body
        self.status_code = status_code
        self.delay = delay
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.delay:
            time.sleep(self.delay)
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def rg_config(temp_dir):
    """ripgrep configuration that never uses a system binary."""
    return RipgrepConfig(cache_dir=temp_dir / "bin", use_system_binary=False)


@pytest.fixture
def linux_archive():
    """A release tarball laid out like the real one."""
    return build_tar_gz({
        "ripgrep-14.1.1-x86_64-unknown-linux-musl/README.md": b"readme",
        "ripgrep-14.1.1-x86_64-unknown-linux-musl/rg": FAKE_BINARY,
    })


class TestPlatform:
    """Test platform detection and artifact lookup."""

    @pytest.mark.parametrize(
        "machine,system,expected",
        [
            ("x86_64", "Linux", "x64-linux"),
            ("AMD64", "Windows", "x64-win32"),
            ("arm64", "Darwin", "arm64-darwin"),
            ("aarch64", "Linux", "arm64-linux"),
            ("x86_64", "Darwin", "x64-darwin"),
        ],
    )
    def test_detect_platform_key(self, machine, system, expected):
        """Python machine/system names map to release keys."""
        assert detect_platform_key(machine, system) == expected

    def test_detect_platform_key_unknown_passthrough(self):
        """Unknown names are kept so the lookup can report them."""
        assert detect_platform_key("riscv64", "Linux") == "riscv64-linux"

    def test_artifact_table(self):
        """Every supported platform has an artifact."""
        assert set(PLATFORM_ARTIFACTS) == {
            "arm64-darwin",
            "arm64-linux",
            "x64-darwin",
            "x64-linux",
            "x64-win32",
        }
        assert artifact_for_platform("x64-linux").triple == "x86_64-unknown-linux-musl"
        assert artifact_for_platform("x64-win32").archive_format is ArchiveFormat.ZIP

    def test_unsupported_platform(self):
        """Unknown platforms raise UnsupportedPlatformError."""
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            artifact_for_platform("riscv64-linux")

        assert str(exc_info.value) == "Unsupported platform: riscv64-linux"
        assert exc_info.value.platform_key == "riscv64-linux"

    def test_executable_name(self):
        """Windows gets rg.exe."""
        assert executable_name("x64-linux") == "rg"
        assert executable_name("x64-win32") == "rg.exe"

    def test_release_url(self, rg_config):
        """The URL is built from version, triple and archive format."""
        provisioner = RipgrepProvisioner(rg_config, platform_key="x64-linux")
        assert provisioner.release_url(artifact_for_platform("x64-linux")) == LINUX_URL
        assert provisioner.release_url(artifact_for_platform("x64-win32")).endswith(
            "ripgrep-14.1.1-x86_64-pc-windows-msvc.zip"
        )


class TestRipgrepProvisioner:
    """Test RipgrepProvisioner."""

    def test_system_binary_preferred(self, temp_dir, monkeypatch):
        """An rg on PATH is used without touching the cache."""
        monkeypatch.setattr(
            "workspace_tools.filesystem.ripgrep.shutil.which",
            lambda name: "/usr/local/bin/rg" if name == "rg" else None,
        )
        handler = RecordingHandler()
        provisioner = RipgrepProvisioner(
            RipgrepConfig(cache_dir=temp_dir / "bin"),
            platform_key="x64-linux",
            transport=httpx.MockTransport(handler),
        )

        binary = provisioner.resolve()

        assert binary.source is BinarySource.SYSTEM
        assert str(binary.path) == os.path.normpath("/usr/local/bin/rg")
        assert handler.requests == []
        assert not (temp_dir / "bin").exists()

    def test_system_binary_skips_platform_check(self, temp_dir, monkeypatch):
        """A system binary works even on platforms without a release."""
        monkeypatch.setattr(
            "workspace_tools.filesystem.ripgrep.shutil.which", lambda name: "/usr/bin/rg"
        )
        provisioner = RipgrepProvisioner(
            RipgrepConfig(cache_dir=temp_dir / "bin"), platform_key="riscv64-linux"
        )
        assert provisioner.resolve().source is BinarySource.SYSTEM

    def test_unsupported_platform_without_system_binary(self, rg_config):
        """Without a system binary an unknown platform fails."""
        provisioner = RipgrepProvisioner(rg_config, platform_key="riscv64-linux")
        with pytest.raises(UnsupportedPlatformError):
            provisioner.resolve()
        assert provisioner.binary is None

    def test_cached_binary(self, rg_config):
        """A binary already in the cache is reused without downloading."""
        rg_config.cache_dir.mkdir(parents=True)
        (rg_config.cache_dir / "rg").write_bytes(FAKE_BINARY)
        handler = RecordingHandler()
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        binary = provisioner.resolve()

        assert binary.source is BinarySource.CACHE
        assert binary.path == rg_config.cache_dir / "rg"
        assert binary.version == "14.1.1"
        assert handler.requests == []

    def test_download_and_extract_tar(self, rg_config, linux_archive):
        """The release tarball is fetched, rg extracted and the archive removed."""
        handler = RecordingHandler(linux_archive)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        binary = provisioner.resolve()

        assert binary.source is BinarySource.DOWNLOAD
        assert binary.path == rg_config.cache_dir / "rg"
        assert binary.path.read_bytes() == FAKE_BINARY
        assert [str(r.url) for r in handler.requests] == [LINUX_URL]
        assert sorted(p.name for p in rg_config.cache_dir.iterdir()) == ["rg"]
        if os.name != "nt":
            assert os.access(binary.path, os.X_OK)

    def test_download_and_extract_zip(self, rg_config):
        """Windows releases are zip archives containing rg.exe."""
        archive = build_zip({
            "ripgrep-14.1.1-x86_64-pc-windows-msvc/rg.exe": FAKE_BINARY,
            "ripgrep-14.1.1-x86_64-pc-windows-msvc/doc/rg.1": b"manpage",
        })
        handler = RecordingHandler(archive)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-win32", transport=httpx.MockTransport(handler)
        )

        binary = provisioner.resolve()

        assert binary.path == rg_config.cache_dir / "rg.exe"
        assert binary.path.read_bytes() == FAKE_BINARY
        assert str(handler.requests[0].url).endswith("x86_64-pc-windows-msvc.zip")
        assert sorted(p.name for p in rg_config.cache_dir.iterdir()) == ["rg.exe"]

    def test_resolve_is_memoized(self, rg_config, linux_archive):
        """Later calls return the same binary without downloading again."""
        handler = RecordingHandler(linux_archive)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        first = provisioner.resolve()
        second = provisioner.resolve()

        assert first is second
        assert provisioner.binary is first
        assert len(handler.requests) == 1

    def test_second_provisioner_uses_cache(self, rg_config, linux_archive):
        """A fresh provisioner finds the binary a previous one downloaded."""
        handler = RecordingHandler(linux_archive)
        transport = httpx.MockTransport(handler)
        RipgrepProvisioner(rg_config, platform_key="x64-linux", transport=transport).resolve()

        binary = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=transport
        ).resolve()

        assert binary.source is BinarySource.CACHE
        assert len(handler.requests) == 1

    def test_reset(self, rg_config, linux_archive):
        """reset forgets the memoized binary but keeps the cache."""
        provisioner = RipgrepProvisioner(
            rg_config,
            platform_key="x64-linux",
            transport=httpx.MockTransport(RecordingHandler(linux_archive)),
        )
        provisioner.resolve()
        provisioner.reset()

        assert provisioner.binary is None
        assert provisioner.resolve().source is BinarySource.CACHE

    def test_http_error_leaves_no_cache(self, rg_config):
        """A failed download raises and caches nothing."""
        handler = RecordingHandler(b"not found", status_code=404)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(ProvisionError) as exc_info:
            provisioner.resolve()

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == LINUX_URL
        assert "Failed to download: 404" in str(exc_info.value)
        assert provisioner.binary is None
        assert list(rg_config.cache_dir.iterdir()) == []

    def test_failed_download_can_be_retried(self, rg_config, linux_archive):
        """A failure is not memoized."""
        handler = RecordingHandler(b"", status_code=503)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ProvisionError):
            provisioner.resolve()

        handler.status_code = 200
        handler.body = linux_archive

        assert provisioner.resolve().source is BinarySource.DOWNLOAD
        assert len(handler.requests) == 2

    def test_transport_error(self, rg_config):
        """Network errors are reported as ProvisionError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ProvisionError) as exc_info:
            provisioner.resolve()
        assert "connection refused" in str(exc_info.value)

    def test_archive_without_executable(self, rg_config):
        """An archive missing rg fails and leaves nothing behind."""
        archive = build_tar_gz({"ripgrep/README.md": b"readme"})
        provisioner = RipgrepProvisioner(
            rg_config,
            platform_key="x64-linux",
            transport=httpx.MockTransport(RecordingHandler(archive)),
        )

        with pytest.raises(ProvisionError) as exc_info:
            provisioner.resolve()

        assert "rg not found" in str(exc_info.value)
        assert list(rg_config.cache_dir.iterdir()) == []

    def test_corrupt_archive(self, rg_config):
        """A body that is not a tarball fails cleanly."""
        provisioner = RipgrepProvisioner(
            rg_config,
            platform_key="x64-linux",
            transport=httpx.MockTransport(RecordingHandler(b"garbage")),
        )
        with pytest.raises(ProvisionError):
            provisioner.resolve()
        assert list(rg_config.cache_dir.iterdir()) == []


class TestConcurrentProvisioning:
    """Concurrent first use must download exactly once."""

    def test_threads_share_one_download(self, rg_config, linux_archive):
        """Threads racing on resolve trigger a single download."""
        handler = RecordingHandler(linux_archive, delay=0.05)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: provisioner.resolve(), range(8)))

        assert len(handler.requests) == 1
        assert all(result is results[0] for result in results)

    @pytest.mark.asyncio
    async def test_async_callers_share_one_download(self, rg_config, linux_archive):
        """Concurrent aresolve calls trigger a single download."""
        handler = RecordingHandler(linux_archive, delay=0.05)
        provisioner = RipgrepProvisioner(
            rg_config, platform_key="x64-linux", transport=httpx.MockTransport(handler)
        )

        results = await asyncio.gather(*(provisioner.aresolve() for _ in range(5)))

        assert len(handler.requests) == 1
        assert {id(result) for result in results} == {id(results[0])}
        assert results[0].source is BinarySource.DOWNLOAD


class TestSharedProvisioner:
    """Test the process-wide provisioner registry."""

    def test_equal_configs_share_provisioner(self, temp_dir):
        """Equal configurations map to the same provisioner."""
        first = shared_provisioner(RipgrepConfig(cache_dir=temp_dir / "bin"))
        second = shared_provisioner(RipgrepConfig(cache_dir=temp_dir / "bin"))
        other = shared_provisioner(RipgrepConfig(cache_dir=temp_dir / "other"))

        assert first is second
        assert other is not first

    def test_reset_shared_provisioners(self, temp_dir):
        """Resetting drops the registry."""
        config = RipgrepConfig(cache_dir=temp_dir / "bin")
        first = shared_provisioner(config)
        reset_shared_provisioners()
        assert shared_provisioner(config) is not first
