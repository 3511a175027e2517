"""
Uninstall flow.

Removes the integration block from every known shell profile, deletes the
version store and the tool's config file. Each step tolerates its target
being absent, so running uninstall twice is harmless.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..core.config import InstallerConfig
from ..core.exceptions import FilesystemError, ProfileFormatError
from ..core.locking import LockManager
from ..shell import ShellIntegrationEditor, all_profile_files
from ..store import VersionStore

logger = logging.getLogger(__name__)


@dataclass
class UninstallReport:
    """Outcome of an uninstall."""

    profiles_cleaned: List[Path] = field(default_factory=list)
    profile_failures: List[str] = field(default_factory=list)
    store_removed: bool = False
    config_removed: bool = False

    @property
    def removed_anything(self) -> bool:
        return bool(self.profiles_cleaned or self.store_removed or self.config_removed)


def uninstall(config: InstallerConfig) -> UninstallReport:
    """
    Remove everything the installer created.

    A profile that cannot be cleaned is recorded and the remaining profiles
    are still processed; the store root and config file are removed
    regardless.

    Raises:
        FilesystemError: If the store root or config file cannot be removed
        LockTimeoutError: If another installer run holds the lock
    """
    report = UninstallReport()
    lock_manager = LockManager(config.lock_path)
    editor = ShellIntegrationEditor(config.tool_name, lock_manager=lock_manager)
    store = VersionStore(config.root, tool_name=config.tool_name, lock_manager=lock_manager)

    with lock_manager.exclusive(timeout=config.lock_timeout):
        for profile in all_profile_files(config.home):
            try:
                if editor.remove(profile):
                    report.profiles_cleaned.append(profile)
            except (ProfileFormatError, FilesystemError) as e:
                logger.error(f"Failed to update {profile.name}: {e}")
                report.profile_failures.append(f"{profile}: {e}")

        report.store_removed = store.destroy()
        report.config_removed = _remove_file(config.tool_config_path)

    lock_manager.discard()

    if not report.removed_anything:
        logger.info(f"{config.tool_name} is not installed, nothing to remove")
    return report


def _remove_file(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FilesystemError(f"Failed to remove {path}: {e}") from e

    logger.info(f"Removed {path}")
    return True


__all__ = ["UninstallReport", "uninstall"]
