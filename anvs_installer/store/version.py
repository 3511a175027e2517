"""
Semantic version parsing and ordering for installed releases.

Versions are compared on an explicit integer tuple, never as strings, so
1.10.0 sorts above 1.9.0.
"""

import re
from functools import total_ordering
from typing import Optional

from ..core.exceptions import InvalidVersionError

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z][0-9A-Za-z.-]*))?$"
)


@total_ordering
class Version:
    """
    Semantic version parser and comparator.

    Supports "major.minor.patch" with an optional "-prerelease" suffix and
    an optional leading "v". A release ranks above its own prereleases.

    Example:
        >>> Version("1.10.0") > Version("v1.9.3")
        True
        >>> Version("2.0.0-rc.1") < Version("2.0.0")
        True
    """

    def __init__(self, version_string: str):
        """
        Parse version string.

        Raises:
            InvalidVersionError: If version format is invalid
        """
        self.original = version_string
        match = _VERSION_RE.match(version_string.strip())
        if not match:
            raise InvalidVersionError(
                f"Invalid version format: {version_string}. "
                f"Expected format: major.minor.patch"
            )

        self.major = int(match.group("major"))
        self.minor = int(match.group("minor"))
        self.patch = int(match.group("patch") or 0)
        self.prerelease: Optional[str] = match.group("prerelease")

    @classmethod
    def parse(cls, version_string: str) -> Optional["Version"]:
        """Parse a version, returning None instead of raising."""
        try:
            return cls(version_string)
        except InvalidVersionError:
            return None

    def _key(self) -> tuple:
        # Releases sort after prereleases of the same numeric version
        return (
            self.major,
            self.minor,
            self.patch,
            self.prerelease is None,
            self._prerelease_key(),
        )

    def _prerelease_key(self) -> tuple:
        # Numeric identifiers compare as integers and rank below alphanumeric ones
        if self.prerelease is None:
            return ()
        return tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease.split(".")
        )

    @property
    def dirname(self) -> str:
        """Directory name used in the version store ('v1.2.3')."""
        return f"v{self}"

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base

    def __repr__(self) -> str:
        return f"Version('{self}')"
