"""
Shell detection and profile file discovery.

Only bash and zsh are wired automatically; other shells get manual
instructions instead of an edited profile.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)


class Shell(Enum):
    """Shells whose startup files the installer edits."""

    BASH = "bash"
    ZSH = "zsh"

    @classmethod
    def from_path(cls, shell_path: str) -> Optional["Shell"]:
        """
        Determine shell from an executable path.

        Example:
            >>> Shell.from_path("/usr/local/bin/zsh")
            <Shell.ZSH: 'zsh'>
            >>> Shell.from_path("/usr/bin/fish") is None
            True
        """
        name = Path(shell_path).name
        for shell in cls:
            if shell.value == name:
                return shell
        return None

    @classmethod
    def detect(cls, environ: Optional[Mapping[str, str]] = None) -> Optional["Shell"]:
        """
        Detect the user's shell from $SHELL.

        Returns:
            Detected Shell, or None if $SHELL is unset or unsupported
        """
        environ = os.environ if environ is None else environ
        shell_path = environ.get("SHELL", "")
        if not shell_path:
            logger.debug("$SHELL is not set")
            return None

        shell = cls.from_path(shell_path)
        if shell is None:
            logger.debug(f"Unsupported shell: {shell_path}")
        else:
            logger.debug(f"Detected shell from $SHELL: {shell_path}")
        return shell

    def profile_files(self, home: Path) -> List[Path]:
        """
        Profile files for this shell in priority order.

        The first existing file is used, or the first in the list if none
        exist.
        """
        if self is Shell.BASH:
            return [home / ".bashrc", home / ".bash_profile", home / ".profile"]
        return [home / ".zshrc", home / ".zprofile"]

    def find_profile(self, home: Path) -> Path:
        """Pick the profile file to edit for this shell."""
        candidates = self.profile_files(home)
        for candidate in candidates:
            if candidate.exists():
                logger.debug(f"Found existing profile: {candidate}")
                return candidate

        logger.warning(f"No existing profile found, will create: {candidates[0]}")
        return candidates[0]


def all_profile_files(home: Path) -> List[Path]:
    """Every profile file of every supported shell (zsh first, then bash)."""
    profiles: List[Path] = []
    for shell in (Shell.ZSH, Shell.BASH):
        profiles.extend(shell.profile_files(home))
    return profiles


__all__ = ["Shell", "all_profile_files"]
