"""
anvs_installer/store/version_store.py

Versioned on-disk layout with symlink indirection and retention pruning.

Layout under the store root::

    versions/v<semver>/bin/<tool>
    versions/v<semver>/lib/<tool>.sh, <tool>.ps1
    bin/<tool>      -> ../versions/v<semver>/bin/<tool>
    current         -> versions/v<semver>

An install walks Resolving -> Provisioning -> Committing -> Pruning -> Done.
Provisioning only writes inside the new version's own directory, Committing
swaps both links atomically (and restores them if the second swap fails),
and Pruning is best-effort. At no point is `current` missing or dangling.
"""

import logging
import os
import shutil
import tempfile
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.exceptions import FilesystemError, PartialCleanupFailure
from ..core.filesystem import (
    EXECUTABLE_MODE,
    atomic_symlink,
    read_link,
    replace_file,
    safe_rmtree,
)
from ..core.locking import LockManager
from .version import Version

logger = logging.getLogger(__name__)

DEFAULT_KEEP = 2
SCRIPT_MODE = 0o644
STAGING_SUFFIX = ".staging"
BACKUP_SUFFIX = ".backup"


class StoreState(Enum):
    """Steps of an install/upgrade run."""

    RESOLVING = "resolving"
    PROVISIONING = "provisioning"
    COMMITTING = "committing"
    PRUNING = "pruning"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class VersionRecord:
    """An installed version and the files inside its directory."""

    version: Version
    path: Path
    binary: Path
    shell_scripts: List[Path] = field(default_factory=list)

    @property
    def binary_path(self) -> Path:
        """Absolute path of the version's binary."""
        return self.path / self.binary


@dataclass
class PruneResult:
    """Result of a pruning pass."""

    kept: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failures: List[PartialCleanupFailure] = field(default_factory=list)


@dataclass
class InstallResult:
    """Result of an install/upgrade run."""

    record: VersionRecord
    previous: Optional[Version]
    prune: PruneResult


class VersionStore:
    """Owns the versioned install layout under one root directory."""

    def __init__(
        self,
        root: Union[str, Path],
        tool_name: str = "anvs",
        keep: int = DEFAULT_KEEP,
        lock_manager: Optional[LockManager] = None,
    ):
        """
        Initialize the store.

        Args:
            root: Store root (e.g. ~/.anvs)
            tool_name: Binary name inside each version's bin/ directory
            keep: Number of versions retained by prune()
            lock_manager: Lock held while the store is mutated (none if None)
        """
        if keep < 1:
            raise ValueError(f"keep must be at least 1, got {keep}")

        self.root = Path(root)
        self.tool_name = tool_name
        self.keep = keep
        self.lock_manager = lock_manager
        self.state: Optional[StoreState] = None

    @property
    def versions_dir(self) -> Path:
        return self.root / "versions"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    @property
    def bin_link(self) -> Path:
        return self.bin_dir / self.tool_name

    @property
    def current_link(self) -> Path:
        return self.root / "current"

    def _lock(self):
        if self.lock_manager is None:
            return nullcontext()
        return self.lock_manager.exclusive()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _record(self, version: Version, path: Path) -> VersionRecord:
        lib_dir = path / "lib"
        scripts = (
            sorted(Path("lib") / p.name for p in lib_dir.iterdir() if p.is_file())
            if lib_dir.is_dir()
            else []
        )
        return VersionRecord(
            version=version,
            path=path,
            binary=Path("bin") / self.tool_name,
            shell_scripts=scripts,
        )

    def record_for(self, version: Version) -> VersionRecord:
        """Record for a version at its canonical directory (may not exist yet)."""
        return self._record(version, self.versions_dir / version.dirname)

    def installed_versions(self) -> List[VersionRecord]:
        """
        List installed versions, newest first.

        Hidden entries (staging directories) and names that do not parse as
        a version are ignored.
        """
        if not self.versions_dir.is_dir():
            return []

        records = []
        for entry in self.versions_dir.iterdir():
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            version = Version.parse(entry.name)
            if version is None:
                logger.debug(f"Ignoring unrecognized entry in versions/: {entry.name}")
                continue
            records.append(self._record(version, entry))

        records.sort(key=lambda r: r.version, reverse=True)
        return records

    def current_version(self) -> Optional[Version]:
        """Version the `current` link points at, or None if not installed."""
        target = read_link(self.current_link)
        if target is None:
            return None
        return Version.parse(Path(target).name)

    # ------------------------------------------------------------------
    # Lifecycle steps
    # ------------------------------------------------------------------

    def install(
        self,
        version: Union[str, Version],
        binary: Path,
        shell_scripts: Sequence[Path] = (),
    ) -> InstallResult:
        """
        Provision, commit and prune under the store lock.

        If provisioning or committing fails, the previously committed version
        stays active. A newly created version directory is removed again; a
        reinstalled one is put back from a copy taken before it was touched.

        Args:
            version: Version being installed
            binary: Verified binary to copy into bin/
            shell_scripts: Shell glue files to copy into lib/

        Returns:
            InstallResult with the new record, the previous version and the
            pruning outcome

        Raises:
            InvalidVersionError: If the version string does not parse
            FilesystemError: If provisioning or committing fails
        """
        with self._lock():
            self.state = StoreState.RESOLVING
            if not isinstance(version, Version):
                version = Version(str(version))

            previous = self.current_version()
            created = not (self.versions_dir / version.dirname).exists()
            backup = None

            try:
                self.state = StoreState.PROVISIONING
                if not created:
                    backup = self._backup_version(version)
                record = self.provision(version, binary, shell_scripts)

                self.state = StoreState.COMMITTING
                self.commit(record)
            except BaseException:
                self.state = StoreState.ABORTED
                if created:
                    self._discard_new_version(version)
                elif backup is not None:
                    self._restore_version(version, backup)
                raise

            if backup is not None:
                self._drop_backup(backup)

            self.state = StoreState.PRUNING
            prune = self.prune()

            self.state = StoreState.DONE
            if previous is None:
                logger.info(f"Installed {self.tool_name} {version}")
            elif previous == version:
                logger.info(f"Reinstalled {self.tool_name} {version}")
            else:
                logger.info(f"Switched {self.tool_name} from {previous} to {version}")

            return InstallResult(record=record, previous=previous, prune=prune)

    def provision(
        self, version: Version, binary: Path, shell_scripts: Sequence[Path] = ()
    ) -> VersionRecord:
        """
        Create versions/v<semver>/{bin,lib} with the binary and glue scripts.

        A new version is assembled in a hidden staging directory and renamed
        into place. An already present version is refreshed file by file,
        each file replaced atomically; install() keeps a copy of it to put
        back if the run aborts.

        Raises:
            FilesystemError: If any write fails
        """
        final = self.versions_dir / version.dirname

        try:
            self.versions_dir.mkdir(parents=True, exist_ok=True)

            if final.is_dir():
                logger.debug(f"Refreshing existing version directory {final}")
                self._populate(final, binary, shell_scripts)
                return self._record(version, final)

            staging = Path(
                tempfile.mkdtemp(
                    dir=self.versions_dir,
                    prefix=f".{version.dirname}.",
                    suffix=STAGING_SUFFIX,
                )
            )
        except OSError as e:
            raise FilesystemError(f"Failed to provision {version.dirname}: {e}") from e

        try:
            os.chmod(staging, 0o755)
            self._populate(staging, binary, shell_scripts)
            os.rename(staging, final)
        except BaseException as e:
            try:
                safe_rmtree(staging)
            except FilesystemError as cleanup_error:
                logger.warning(f"Could not remove staging directory: {cleanup_error}")
            if isinstance(e, OSError):
                raise FilesystemError(
                    f"Failed to provision {version.dirname}: {e}"
                ) from e
            raise

        logger.debug(f"Provisioned {final}")
        return self._record(version, final)

    def _populate(
        self, directory: Path, binary: Path, shell_scripts: Sequence[Path]
    ) -> None:
        (directory / "bin").mkdir(exist_ok=True)
        (directory / "lib").mkdir(exist_ok=True)

        for script in shell_scripts:
            replace_file(Path(script), directory / "lib" / Path(script).name, SCRIPT_MODE)
        replace_file(Path(binary), directory / "bin" / self.tool_name, EXECUTABLE_MODE)

    def commit(self, record: VersionRecord) -> None:
        """
        Point the global binary link and `current` at a provisioned version.

        Each link is swapped atomically. If the second swap fails the first
        is restored, so both links keep agreeing on the committed version.

        Raises:
            FilesystemError: If the version is incomplete or a swap fails
        """
        if not record.binary_path.is_file():
            raise FilesystemError(
                f"Refusing to activate {record.path}: {record.binary} is missing"
            )

        links = (
            (self.bin_link, os.path.relpath(record.binary_path, self.bin_dir)),
            (self.current_link, os.path.relpath(record.path, self.root)),
        )
        swapped = []

        try:
            self.bin_dir.mkdir(parents=True, exist_ok=True)
            for link, target in links:
                previous = read_link(link)
                atomic_symlink(target, link)
                swapped.append((link, previous))
        except BaseException as e:
            self._rollback_links(swapped)
            if isinstance(e, OSError):
                raise FilesystemError(
                    f"Failed to activate {record.version.dirname}: {e}"
                ) from e
            raise

        logger.debug(f"Committed {record.version.dirname}")

    def _rollback_links(self, swapped) -> None:
        for link, previous in reversed(swapped):
            try:
                if previous is None:
                    link.unlink(missing_ok=True)
                else:
                    atomic_symlink(previous, link)
                logger.debug(f"Restored {link}")
            except OSError as e:
                logger.error(f"Could not restore {link}: {e}")

    def _backup_version(self, version: Version) -> Path:
        """Copy an installed version aside before it is refreshed in place."""
        source = self.versions_dir / version.dirname
        backup = None
        try:
            backup = Path(
                tempfile.mkdtemp(
                    dir=self.versions_dir,
                    prefix=f".{version.dirname}.",
                    suffix=BACKUP_SUFFIX,
                )
            )
            shutil.copytree(source, backup, symlinks=True, dirs_exist_ok=True)
        except OSError as e:
            if backup is not None:
                self._drop_backup(backup)
            raise FilesystemError(f"Failed to back up {version.dirname}: {e}") from e
        return backup

    def _restore_version(self, version: Version, backup: Path) -> None:
        """Put every file of a refreshed version back as it was."""
        target = self.versions_dir / version.dirname
        try:
            for path in sorted(target.rglob("*"), reverse=True):
                if path.is_dir() and not path.is_symlink():
                    continue
                if not (backup / path.relative_to(target)).exists():
                    path.unlink()
            for saved in sorted(backup.rglob("*")):
                if saved.is_dir() and not saved.is_symlink():
                    (target / saved.relative_to(backup)).mkdir(exist_ok=True)
                else:
                    os.replace(saved, target / saved.relative_to(backup))
        except OSError as e:
            logger.error(f"Could not restore {target} from {backup.name}: {e}")
            return

        logger.debug(f"Restored {target}")
        self._drop_backup(backup)

    def _drop_backup(self, backup: Path) -> None:
        try:
            safe_rmtree(backup)
        except FilesystemError as e:
            logger.warning(f"Could not remove backup {backup.name}: {e}")

    def _discard_new_version(self, version: Version) -> None:
        path = self.versions_dir / version.dirname
        try:
            safe_rmtree(path)
        except FilesystemError as e:
            logger.warning(f"Could not remove incomplete version {path}: {e}")

    def prune(self, keep: Optional[int] = None) -> PruneResult:
        """
        Delete all but the newest `keep` installed versions.

        The committed version is always retained and counts toward `keep`;
        the remaining slots go to the highest other versions. Leftover
        staging directories from interrupted runs are removed as well.
        A failure to delete one directory is recorded and the others are
        still attempted.

        Returns:
            PruneResult listing kept and removed versions and any failures
        """
        keep = self.keep if keep is None else keep
        result = PruneResult()

        records = self.installed_versions()
        current = self.current_version()

        retained = [r.path for r in records if r.version == current][:1]
        for record in records:
            if len(retained) >= keep:
                break
            if record.path not in retained:
                retained.append(record.path)

        for record in records:
            if record.path in retained:
                result.kept.append(str(record.version))
            elif self._remove(record.path, result):
                result.removed.append(str(record.version))
                logger.info(f"Removed old version {record.version}")

        for leftover in self._staging_leftovers():
            if self._remove(leftover, result):
                logger.debug(f"Removed leftover staging directory {leftover.name}")

        return result

    def _staging_leftovers(self) -> List[Path]:
        if not self.versions_dir.is_dir():
            return []
        return [
            p
            for p in self.versions_dir.iterdir()
            if p.name.startswith(".")
            and p.name.endswith((STAGING_SUFFIX, BACKUP_SUFFIX))
        ]

    def _remove(self, path: Path, result: PruneResult) -> bool:
        try:
            safe_rmtree(path)
            return True
        except (FilesystemError, OSError) as e:
            failure = PartialCleanupFailure(path, str(e))
            result.failures.append(failure)
            logger.warning(str(failure))
            return False

    def destroy(self) -> bool:
        """
        Remove the whole store root.

        Returns:
            True if the root existed and was removed, False if it was absent

        Raises:
            FilesystemError: If the root cannot be removed
        """
        with self._lock():
            removed = safe_rmtree(self.root)

        if removed:
            logger.info(f"Removed {self.root}")
        else:
            logger.debug(f"Nothing to remove at {self.root}")
        return removed


__all__ = [
    "StoreState",
    "VersionRecord",
    "PruneResult",
    "InstallResult",
    "VersionStore",
    "DEFAULT_KEEP",
]
