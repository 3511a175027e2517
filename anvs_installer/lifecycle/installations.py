"""
Detection of anvs installations managed by other package managers.

An anvs binary installed through npm, Homebrew or Cargo that appears on
PATH shadows (or is shadowed by) the one in the version store. The
installer reports such copies and leaves a marker file in the store root
so the tool itself can warn about the conflict later.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

CONFLICT_MARKER = "conflict_warning"


class InstallMethod(Enum):
    """Package managers anvs is also distributed through."""

    NPM = "npm"
    HOMEBREW = "homebrew"
    CARGO = "cargo"

    @property
    def description(self) -> str:
        return {
            InstallMethod.NPM: "npm global package (@olvrcc/anvs)",
            InstallMethod.HOMEBREW: "Homebrew (brew install anvs)",
            InstallMethod.CARGO: "Cargo (cargo install anvs)",
        }[self]

    @property
    def uninstall_command(self) -> str:
        return {
            InstallMethod.NPM: "npm uninstall -g @olvrcc/anvs",
            InstallMethod.HOMEBREW: "brew uninstall anvs",
            InstallMethod.CARGO: "cargo uninstall anvs",
        }[self]


@dataclass
class ForeignInstallation:
    """An anvs executable on PATH that the version store does not own."""

    method: InstallMethod
    path: Path


def classify(path: Path) -> Optional[InstallMethod]:
    """
    Guess which package manager installed an executable from its path.

    Example:
        >>> classify(Path("/opt/homebrew/bin/anvs"))
        <InstallMethod.HOMEBREW: 'homebrew'>
    """
    text = path.as_posix()
    if "node_modules" in text:
        return InstallMethod.NPM
    if "/Cellar/anvs" in text or "/homebrew" in text:
        return InstallMethod.HOMEBREW
    if "/.cargo/bin" in text:
        return InstallMethod.CARGO
    return None


def find_executables(name: str, path_env: Optional[str] = None) -> List[Path]:
    """
    Every executable called `name` on PATH, in PATH order, without duplicates.

    Args:
        name: Executable name
        path_env: PATH value to search (default: $PATH)
    """
    path_env = os.environ.get("PATH", "") if path_env is None else path_env
    found: List[Path] = []

    for directory in path_env.split(os.pathsep):
        if not directory:
            continue
        candidate = Path(directory) / name
        if candidate.is_file() and os.access(candidate, os.X_OK) and candidate not in found:
            found.append(candidate)

    return found


def _owned_by_store(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        pass
    # Symlinks into the store (e.g. ~/.local/bin/anvs -> ~/.anvs/bin/anvs)
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except (ValueError, OSError):
        return False


def detect_installations(
    tool_name: str, root: Path, path_env: Optional[str] = None
) -> List[ForeignInstallation]:
    """
    Find installations of the tool that were not made by this installer.

    Executables inside the store root and unrecognized locations are
    skipped.

    Args:
        tool_name: Executable name to look for
        root: Version store root
        path_env: PATH value to search (default: $PATH)

    Returns:
        Foreign installations in PATH order
    """
    installations = []
    for path in find_executables(tool_name, path_env):
        if _owned_by_store(path, Path(root)):
            continue
        method = classify(path)
        if method is None:
            logger.debug(f"Ignoring {path}: unknown installation method")
            continue
        logger.debug(f"Found {method.value} installation at {path}")
        installations.append(ForeignInstallation(method=method, path=path))
    return installations


def mark_conflict(root: Path, installations: List[ForeignInstallation]) -> bool:
    """
    Create or clear the conflict marker in the store root.

    Returns:
        True if a conflict is flagged
    """
    marker = Path(root) / CONFLICT_MARKER
    if not installations:
        marker.unlink(missing_ok=True)
        return False

    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text(
        "".join(f"{i.method.value}\t{i.path}\n" for i in installations),
        encoding="utf-8",
    )
    return True


__all__ = [
    "InstallMethod",
    "ForeignInstallation",
    "CONFLICT_MARKER",
    "classify",
    "find_executables",
    "detect_installations",
    "mark_conflict",
]
