"""
Pytest configuration and shared fixtures for anvs installer tests.
"""

import hashlib
import io
import logging
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Optional

import pytest
import responses

from anvs_installer.core.config import InstallerConfig
from anvs_installer.core.platform import ReleaseTarget

BASE_URL = "https://releases.example.test/download"
BINARY_CONTENT = b"#!/bin/sh\necho anvs\n"


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    for var in ("ANVS_DIR", "ANVS_VERSION", "ANVS_RELEASE_BASE_URL", "ANVS_INSTALLER_CONFIG"):
        monkeypatch.delenv(var, raising=False)

    return fake_home


def build_tarball(entries: Dict[str, bytes]) -> bytes:
    """Build a gzip-compressed tar archive in memory, entries in the given order."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture
def make_tarball() -> Callable[[Dict[str, bytes]], bytes]:
    """Factory building release tarballs in memory."""
    return build_tarball


@pytest.fixture
def release_tarball() -> bytes:
    """A release tarball with the binary between two unrelated entries."""
    return build_tarball(
        {
            "README": b"read me\n",
            "anvs": BINARY_CONTENT,
            "LICENSE": b"MIT\n",
        }
    )


@pytest.fixture
def mocked_responses() -> Generator[responses.RequestsMock, None, None]:
    """Activate `responses` without requiring every registered URL to be hit."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def publish_release(mocked_responses, make_tarball):
    """
    Register a release's tarball and checksum under BASE_URL.

    Returns a function (version, binary=..., target=..., checksum=None) that
    returns the tarball bytes it published.
    """

    def publish(
        version: str,
        binary: bytes = BINARY_CONTENT,
        target: ReleaseTarget = ReleaseTarget.LINUX_X64,
        checksum: Optional[str] = None,
    ) -> bytes:
        tarball = make_tarball({"README": b"docs\n", "anvs": binary})
        name = f"anvs-{target.value}.tar.gz"
        url = f"{BASE_URL}/v{version}/{name}"
        digest = checksum or hashlib.sha256(tarball).hexdigest()

        mocked_responses.add(responses.GET, url, body=tarball, status=200)
        mocked_responses.add(
            responses.GET, f"{url}.sha256", body=f"{digest}  {name}\n", status=200
        )
        return tarball

    return publish


@pytest.fixture
def installer_config(isolated_home: Path) -> Callable[..., InstallerConfig]:
    """Factory for configs rooted in the isolated home."""

    def make(version: str = "1.0.0", **kwargs) -> InstallerConfig:
        kwargs.setdefault("release_base_url", BASE_URL)
        kwargs.setdefault("lock_timeout", 5)
        return InstallerConfig(home=isolated_home, version=version, **kwargs)

    return make


@pytest.fixture
def release_base_url() -> str:
    """Base URL releases are published under in mocked tests."""
    return BASE_URL


@pytest.fixture
def binary_content() -> bytes:
    """Content of the binary inside published releases."""
    return BINARY_CONTENT


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo logging.basicConfig(force=True) calls made by CLI runs."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
