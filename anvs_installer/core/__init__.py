"""
Core functionality for the anvs installer.

This package contains the foundational modules the store, the shell editor
and the lifecycle commands depend on.
"""

from .exceptions import (
    InstallerError,
    ConfigurationError,
    LockTimeoutError,
    UnsupportedPlatform,
    NetworkError,
    TimedOut,
    DownloadFailed,
    RedirectLimitExceeded,
    ChecksumMismatch,
    ArchiveExtractionError,
    EntryNotFound,
    FilesystemError,
    PartialCleanupFailure,
    InvalidVersionError,
    ProfileFormatError,
)

from .platform import (
    ReleaseTarget,
    resolve,
    detect_target,
)

from .download import (
    ReleaseArtifact,
    ReleaseFetcher,
)

from .locking import LockManager

from .config import InstallerConfig

__all__ = [
    "InstallerError",
    "ConfigurationError",
    "LockTimeoutError",
    "UnsupportedPlatform",
    "NetworkError",
    "TimedOut",
    "DownloadFailed",
    "RedirectLimitExceeded",
    "ChecksumMismatch",
    "ArchiveExtractionError",
    "EntryNotFound",
    "FilesystemError",
    "PartialCleanupFailure",
    "InvalidVersionError",
    "ProfileFormatError",
    "ReleaseTarget",
    "resolve",
    "detect_target",
    "ReleaseArtifact",
    "ReleaseFetcher",
    "LockManager",
    "InstallerConfig",
]
