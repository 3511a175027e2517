"""
Install and upgrade flow.

Fetches a release for the host, verifies and unpacks it, then, holding the
installer lock, commits it into the version store and wires the shell
profile. Downloading happens before the lock is taken, so a slow network
never blocks another installer run.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from ..core.config import InstallerConfig
from ..core.download import ReleaseFetcher
from ..core.exceptions import ProfileFormatError
from ..core.filesystem import extract_entry, temporary_directory
from ..core.locking import LockManager
from ..core.platform import ReleaseTarget, detect_target
from ..core.verification import verify_file
from ..shell import Shell, ShellIntegrationEditor, render_block, write_glue_scripts
from ..shell.profile import end_marker, start_marker
from ..store import InstallResult, VersionStore
from .installations import ForeignInstallation, detect_installations, mark_conflict

logger = logging.getLogger(__name__)


@dataclass
class InstallReport:
    """
    Outcome of an install or upgrade.

    Attributes:
        version: Version now committed
        target: Release target that was downloaded
        store: Version store result (previous version, pruning outcome)
        shell: Detected shell, or None if profile editing was skipped
        profile: Profile file that holds the integration block
        profile_updated: Whether the profile content changed
        profile_error: Why the profile was left alone, if it was
        block: Integration block text (for manual setup)
        conflicts: anvs installations from other package managers on PATH
    """

    version: str
    target: ReleaseTarget
    store: InstallResult
    shell: Optional[Shell] = None
    profile: Optional[Path] = None
    profile_updated: bool = False
    profile_error: Optional[str] = None
    block: str = ""
    conflicts: List[ForeignInstallation] = field(default_factory=list)

    @property
    def previous_version(self) -> Optional[str]:
        previous = self.store.previous
        return str(previous) if previous is not None else None

    @property
    def is_upgrade(self) -> bool:
        return self.previous_version not in (None, self.version)

    @property
    def needs_manual_setup(self) -> bool:
        return self.profile is None or self.profile_error is not None


def manual_instructions(report: InstallReport, tool_name: str = "anvs") -> str:
    """Text telling the user how to wire the shell by hand."""
    return "\n".join(
        [
            "Add the following to your shell profile:",
            "",
            start_marker(tool_name),
            report.block.rstrip("\n"),
            end_marker(tool_name),
        ]
    )


class Installer:
    """
    Installs (or upgrades to) one release of the tool.

    Example:
        >>> config = InstallerConfig.load()
        >>> report = Installer(config).run()
        >>> print(report.version)
    """

    def __init__(
        self,
        config: InstallerConfig,
        fetcher: Optional[ReleaseFetcher] = None,
        host: Optional[Tuple[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize installer.

        Args:
            config: Installer settings
            fetcher: Release fetcher (built from config if None)
            host: (os, arch) override for platform resolution
            environ: Environment used for shell and PATH lookups
        """
        self.config = config
        self.fetcher = fetcher or ReleaseFetcher(
            config.release_base_url,
            tool_name=config.tool_name,
            timeout=config.timeout,
            max_redirects=config.max_redirects,
        )
        self.host = host
        self.environ = os.environ if environ is None else environ
        self.lock_manager = LockManager(config.lock_path)
        self.store = VersionStore(
            config.root,
            tool_name=config.tool_name,
            keep=config.keep_versions,
            lock_manager=self.lock_manager,
        )
        self.editor = ShellIntegrationEditor(
            config.tool_name, lock_manager=self.lock_manager
        )

    def run(self) -> InstallReport:
        """
        Run the whole install.

        Returns:
            InstallReport describing what changed

        Raises:
            UnsupportedPlatform, DownloadFailed, NetworkError, ChecksumMismatch,
            EntryNotFound, FilesystemError, LockTimeoutError
        """
        config = self.config
        target = detect_target(self.host)
        logger.info(f"Installing {config.tool_name} {config.version} for {target}")

        with temporary_directory(prefix=f"{config.tool_name}_install_") as work_dir:
            binary, scripts = self._prepare(target, work_dir)

            with self.lock_manager.exclusive(timeout=config.lock_timeout):
                result = self.store.install(config.version, binary, scripts)
                report = InstallReport(
                    version=str(result.record.version), target=target, store=result
                )
                self._integrate_shell(report)
                report.conflicts = self._check_conflicts()

        for failure in result.prune.failures:
            logger.warning(f"Old version left behind: {failure}")

        return report

    def _prepare(self, target: ReleaseTarget, work_dir: Path) -> Tuple[Path, List[Path]]:
        """Download, verify and unpack the release into a scratch directory."""
        artifact = self.fetcher.fetch_artifact(
            target, self.config.version, work_dir / "download"
        )

        logger.info("Verifying checksum...")
        verify_file(artifact.tarball_path, artifact.checksum_text)

        logger.debug(f"Extracting {self.config.tool_name} from {artifact.tarball_path.name}")
        binary = extract_entry(
            artifact.tarball_path,
            self.config.tool_name,
            work_dir / "payload" / "bin" / self.config.tool_name,
        )
        # Verified artifact is no longer needed once the binary is out
        artifact.tarball_path.unlink(missing_ok=True)

        scripts = write_glue_scripts(work_dir / "payload" / "lib")
        return binary, scripts

    def _integrate_shell(self, report: InstallReport) -> None:
        config = self.config
        report.block = render_block(config.root, config.home, config.tool_name)

        shell = Shell.detect(self.environ)
        if shell is None:
            logger.warning(
                "Could not detect a supported shell (bash or zsh); "
                "the shell profile was not modified"
            )
            return

        report.shell = shell
        profile = shell.find_profile(config.home)
        try:
            report.profile_updated = self.editor.install(profile, report.block)
        except ProfileFormatError as e:
            logger.warning(f"Leaving {profile} unchanged: {e}")
            report.profile_error = str(e)
        report.profile = profile

    def _check_conflicts(self) -> List[ForeignInstallation]:
        conflicts = detect_installations(
            self.config.tool_name, self.config.root, self.environ.get("PATH", "")
        )
        try:
            mark_conflict(self.config.root, conflicts)
        except OSError as e:
            logger.debug(f"Could not update conflict marker: {e}")

        for conflict in conflicts:
            logger.warning(
                f"Another {self.config.tool_name} is installed via "
                f"{conflict.method.description} at {conflict.path}"
            )
        return conflicts


def install(config: InstallerConfig, **kwargs) -> InstallReport:
    """Install or upgrade to `config.version`. See Installer for arguments."""
    return Installer(config, **kwargs).run()


__all__ = ["Installer", "InstallReport", "install", "manual_instructions"]
