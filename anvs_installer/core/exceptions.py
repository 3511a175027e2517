"""
Centralized exception hierarchy for the anvs installer.

Every error the installer raises derives from InstallerError so the CLI can
turn any of them into a concise message and a non-zero exit status.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class InstallerError(Exception):
    """Base exception for all installer errors."""

    pass


class ConfigurationError(InstallerError):
    """Raised when installer configuration is invalid."""

    pass


class LockTimeoutError(InstallerError):
    """Raised when the installer lock cannot be acquired within timeout."""

    pass


# ============================================================================
# Platform Exceptions
# ============================================================================


class UnsupportedPlatform(InstallerError):
    """Raised when no release is published for the host OS/architecture."""

    def __init__(self, os_name: str, arch: str):
        self.os_name = os_name
        self.arch = arch
        super().__init__(f"Unsupported platform: {os_name}-{arch}")


# ============================================================================
# Download Exceptions
# ============================================================================


class NetworkError(InstallerError):
    """Raised when a transport-level failure interrupts a download."""

    pass


class TimedOut(NetworkError):
    """Raised when the server does not answer within the configured timeout."""

    pass


class DownloadFailed(InstallerError):
    """Raised when a download ends with a non-success HTTP status."""

    def __init__(self, status: int, url: str, message: str = ""):
        self.status = status
        self.url = url
        super().__init__(message or f"Failed to download {url}: HTTP {status}")


class RedirectLimitExceeded(DownloadFailed):
    """Raised when a server keeps redirecting past the configured cap."""

    def __init__(self, status: int, url: str, limit: int):
        self.limit = limit
        super().__init__(
            status, url, f"Failed to download {url}: more than {limit} redirects"
        )


# ============================================================================
# Integrity / Archive Exceptions
# ============================================================================


class ChecksumMismatch(InstallerError):
    """Raised when the artifact digest differs from the published checksum."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch: expected {expected}, got {actual}")


class ArchiveExtractionError(InstallerError):
    """Raised when the release archive cannot be read."""

    pass


class EntryNotFound(ArchiveExtractionError):
    """Raised when the release archive does not contain the expected entry."""

    def __init__(self, entry_name: str, archive: str):
        self.entry_name = entry_name
        self.archive = archive
        super().__init__(f"Archive {archive} does not contain '{entry_name}'")


# ============================================================================
# Filesystem / Store Exceptions
# ============================================================================


class FilesystemError(InstallerError):
    """Raised when a filesystem mutation fails and the step is aborted."""

    pass


class PartialCleanupFailure(InstallerError):
    """Recorded (not raised) when one item of a best-effort cleanup fails."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not remove {path}: {reason}")


class InvalidVersionError(InstallerError):
    """Invalid version string."""

    pass


# ============================================================================
# Shell Profile Exceptions
# ============================================================================


class ProfileFormatError(InstallerError):
    """Raised when a shell profile holds malformed integration markers."""

    pass


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
]
