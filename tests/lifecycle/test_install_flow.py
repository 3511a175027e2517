"""
Tests for the install/upgrade flow with mocked release downloads.
"""

import hashlib
import os

import pytest
import responses

from anvs_installer.core.exceptions import (
    ChecksumMismatch,
    DownloadFailed,
    EntryNotFound,
    UnsupportedPlatform,
)
from anvs_installer.lifecycle import Installer, InstallMethod, install, manual_instructions
from anvs_installer.lifecycle.installations import CONFLICT_MARKER
from anvs_installer.shell import Shell

HOST = ("linux", "x64")
START = "# >>> anvs initialize >>>"


@pytest.fixture
def zsh_env():
    """Environment of a zsh user with nothing else on PATH."""
    return {"SHELL": "/bin/zsh", "PATH": ""}


def run_install(config, environ):
    return install(config, host=HOST, environ=environ)


class TestInstall:
    """Tests for a fresh install."""

    def test_fresh_install(self, installer_config, publish_release, zsh_env, binary_content):
        """Test store layout, links and profile after a first install."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")

        report = run_install(config, zsh_env)

        binary = config.root / "versions" / "v1.0.0" / "bin" / "anvs"
        assert binary.read_bytes() == binary_content
        assert os.access(binary, os.X_OK)
        assert (config.root / "versions" / "v1.0.0" / "lib" / "anvs.sh").exists()
        assert (config.root / "versions" / "v1.0.0" / "lib" / "anvs.ps1").exists()
        assert (config.root / "bin" / "anvs").resolve() == binary.resolve()
        assert (config.root / "current").resolve() == binary.parent.parent.resolve()

        assert report.version == "1.0.0"
        assert report.previous_version is None
        assert not report.is_upgrade
        assert report.shell is Shell.ZSH
        assert report.profile == config.home / ".zshrc"
        assert report.profile_updated is True
        assert not report.needs_manual_setup

        profile = (config.home / ".zshrc").read_text()
        assert profile.count(START) == 1
        assert 'export ANVS_DIR="$HOME/.anvs"' in profile

    def test_no_scratch_files_left_in_store(self, installer_config, publish_release, zsh_env):
        """Test only the documented layout ends up under the root."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")

        run_install(config, zsh_env)

        assert sorted(p.name for p in config.root.iterdir()) == ["bin", "current", "versions"]
        assert sorted(p.name for p in (config.root / "versions").iterdir()) == ["v1.0.0"]

    def test_upgrades_prune_and_keep_one_block(
        self, installer_config, publish_release, zsh_env
    ):
        """Test v1.0.0 -> v1.1.0 -> v1.2.0 end to end."""
        for version in ("1.0.0", "1.1.0", "1.2.0"):
            publish_release(version)

        run_install(installer_config("1.0.0"), zsh_env)
        run_install(installer_config("1.1.0"), zsh_env)
        config = installer_config("1.2.0")
        report = run_install(config, zsh_env)

        assert sorted(p.name for p in (config.root / "versions").iterdir()) == [
            "v1.1.0",
            "v1.2.0",
        ]
        assert os.readlink(config.root / "current") == os.path.join("versions", "v1.2.0")
        assert report.is_upgrade
        assert report.previous_version == "1.1.0"
        assert report.store.prune.removed == ["1.0.0"]
        assert report.profile_updated is False
        assert (config.home / ".zshrc").read_text().count(START) == 1

    def test_uses_existing_bash_profile(self, installer_config, publish_release):
        """Test an existing .bash_profile is edited for a bash user."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")
        (config.home / ".bash_profile").write_text("export A=1\n")

        report = run_install(config, {"SHELL": "/bin/bash", "PATH": ""})

        assert report.profile == config.home / ".bash_profile"
        assert (config.home / ".bash_profile").read_text().startswith("export A=1\n\n")
        assert not (config.home / ".bashrc").exists()

    def test_lock_file_outside_root(self, installer_config, publish_release, zsh_env):
        """Test the lock lives beside the store root."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")

        run_install(config, zsh_env)

        assert config.lock_path.parent == config.home
        assert not (config.root / ".anvs.lock").exists()


class TestInstallFailures:
    """Tests for fatal errors during install."""

    def test_checksum_mismatch_installs_nothing(
        self, installer_config, publish_release, zsh_env
    ):
        """Test a bad checksum aborts before the store is touched."""
        publish_release("1.0.0", checksum="0" * 64)
        config = installer_config("1.0.0")

        with pytest.raises(ChecksumMismatch):
            run_install(config, zsh_env)

        assert not config.root.exists()
        assert not (config.home / ".zshrc").exists()

    def test_failed_upgrade_keeps_previous(
        self, installer_config, publish_release, zsh_env
    ):
        """Test a corrupt upgrade leaves the installed version active."""
        publish_release("1.0.0")
        publish_release("1.1.0", checksum="f" * 64)
        config = installer_config("1.0.0")
        run_install(config, zsh_env)

        with pytest.raises(ChecksumMismatch):
            run_install(installer_config("1.1.0"), zsh_env)

        assert os.readlink(config.root / "current") == os.path.join("versions", "v1.0.0")
        assert sorted(p.name for p in (config.root / "versions").iterdir()) == ["v1.0.0"]

    def test_missing_release(self, installer_config, mocked_responses, zsh_env):
        """Test a 404 for the tarball is a DownloadFailed."""
        config = installer_config("9.9.9")
        mocked_responses.add(
            responses.GET,
            f"{config.release_base_url}/v9.9.9/anvs-x86_64-unknown-linux-gnu.tar.gz",
            status=404,
        )

        with pytest.raises(DownloadFailed) as exc_info:
            run_install(config, zsh_env)

        assert exc_info.value.status == 404

    def test_binary_missing_from_archive(
        self, installer_config, mocked_responses, make_tarball, zsh_env
    ):
        """Test a release without the binary raises EntryNotFound."""
        config = installer_config("1.0.0")
        tarball = make_tarball({"README": b"docs", "LICENSE": b"MIT"})
        url = f"{config.release_base_url}/v1.0.0/anvs-x86_64-unknown-linux-gnu.tar.gz"
        mocked_responses.add(responses.GET, url, body=tarball)
        mocked_responses.add(
            responses.GET, url + ".sha256", body=hashlib.sha256(tarball).hexdigest()
        )

        with pytest.raises(EntryNotFound):
            run_install(config, zsh_env)

        assert not config.root.exists()

    def test_unsupported_platform(self, installer_config, mocked_responses, zsh_env):
        """Test an unsupported host fails before any download."""
        config = installer_config("1.0.0")

        with pytest.raises(UnsupportedPlatform):
            install(config, host=("windows", "x64"), environ=zsh_env)

        assert len(mocked_responses.calls) == 0


class TestShellIntegration:
    """Tests for profile handling during install."""

    def test_unknown_shell_skips_profile(self, installer_config, publish_release):
        """Test an unsupported shell gets manual instructions instead."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")

        report = run_install(config, {"SHELL": "/usr/bin/fish", "PATH": ""})

        assert report.shell is None
        assert report.needs_manual_setup
        assert list(config.home.glob(".*rc")) == []
        text = manual_instructions(report)
        assert START in text
        assert "# <<< anvs initialize <<<" in text
        assert 'export PATH="$ANVS_DIR/bin:$PATH"' in text

    def test_malformed_profile_left_alone(self, installer_config, publish_release, zsh_env):
        """Test a broken profile is reported while the install still commits."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")
        broken = f"export A=1\n{START}\nunterminated\n"
        (config.home / ".zshrc").write_text(broken)

        report = run_install(config, zsh_env)

        assert report.profile_error is not None
        assert report.needs_manual_setup
        assert (config.home / ".zshrc").read_text() == broken
        assert os.readlink(config.root / "current") == os.path.join("versions", "v1.0.0")


class TestConflicts:
    """Tests for detection of other anvs installations."""

    def test_reports_npm_install(self, installer_config, publish_release, tmp_path):
        """Test an npm-installed anvs on PATH is reported and flagged."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")
        npm_bin = tmp_path / "lib" / "node_modules" / ".bin"
        npm_bin.mkdir(parents=True)
        (npm_bin / "anvs").write_text("#!/bin/sh\n")
        os.chmod(npm_bin / "anvs", 0o755)
        environ = {
            "SHELL": "/bin/zsh",
            "PATH": os.pathsep.join([str(config.root / "bin"), str(npm_bin)]),
        }

        report = run_install(config, environ)

        assert [c.method for c in report.conflicts] == [InstallMethod.NPM]
        assert (config.root / CONFLICT_MARKER).exists()

    def test_own_binary_is_not_a_conflict(self, installer_config, publish_release):
        """Test the store's own bin/ on PATH is ignored."""
        publish_release("1.0.0")
        config = installer_config("1.0.0")
        environ = {"SHELL": "/bin/zsh", "PATH": str(config.root / "bin")}

        report = Installer(config, host=HOST, environ=environ).run()

        assert report.conflicts == []
        assert not (config.root / CONFLICT_MARKER).exists()
