"""
Platform detection and release target resolution.

Maps the host operating system and CPU architecture to the canonical target
triple used in release artifact names.

Usage:
    from anvs_installer.core.platform import detect_target

    target = detect_target()
    print(target.value)  # e.g. 'x86_64-unknown-linux-gnu'
"""

import platform
from enum import Enum
from typing import Optional, Tuple

from .exceptions import UnsupportedPlatform


class ReleaseTarget(Enum):
    """Platforms a release artifact is published for."""

    LINUX_X64 = "x86_64-unknown-linux-gnu"
    LINUX_ARM64 = "aarch64-unknown-linux-gnu"
    DARWIN_X64 = "x86_64-apple-darwin"
    DARWIN_ARM64 = "aarch64-apple-darwin"

    def __str__(self) -> str:
        return self.value


_TARGETS = {
    ("linux", "x64"): ReleaseTarget.LINUX_X64,
    ("linux", "arm64"): ReleaseTarget.LINUX_ARM64,
    ("darwin", "x64"): ReleaseTarget.DARWIN_X64,
    ("darwin", "arm64"): ReleaseTarget.DARWIN_ARM64,
}


def resolve(os_name: str, arch: str) -> ReleaseTarget:
    """
    Resolve an (os, arch) pair to its release target.

    Args:
        os_name: Normalized OS name ('linux', 'darwin')
        arch: Normalized architecture ('x64', 'arm64')

    Returns:
        Matching ReleaseTarget

    Raises:
        UnsupportedPlatform: If no release is published for the pair

    Example:
        >>> resolve("darwin", "arm64")
        <ReleaseTarget.DARWIN_ARM64: 'aarch64-apple-darwin'>
    """
    try:
        return _TARGETS[(os_name, arch)]
    except KeyError:
        raise UnsupportedPlatform(os_name, arch) from None


def supported_platforms() -> list[Tuple[str, str]]:
    """Return every (os, arch) pair that resolves to a target."""
    return list(_TARGETS)


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'linux', 'darwin', 'windows' or the raw value
    """
    return platform.system().lower()


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    # Normalize architecture names
    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        # Return original for unknown architectures
        return machine


def detect_host() -> Tuple[str, str]:
    """Return the normalized (os, arch) pair of the running host."""
    return _detect_os(), _detect_architecture()


def detect_target(host: Optional[Tuple[str, str]] = None) -> ReleaseTarget:
    """
    Resolve the release target for the running host.

    Args:
        host: Optional (os, arch) override, mainly for tests

    Raises:
        UnsupportedPlatform: If the host has no published release
    """
    os_name, arch = host or detect_host()
    return resolve(os_name, arch)


__all__ = [
    "ReleaseTarget",
    "resolve",
    "supported_platforms",
    "detect_host",
    "detect_target",
]
